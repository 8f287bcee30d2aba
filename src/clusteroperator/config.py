"""
Operator settings using Pydantic.

Provides environment-based configuration loading with CLUSTEROPERATOR_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Operator settings."""

    # AWS
    aws_region: str = "eu-central-1"

    # Certificates and key material
    certs_dir: str = "/etc/clusteroperator/certs"
    ssh_public_key_path: str | None = None

    # Object store
    bucket_suffix: str = "g8s-cloudconfig"

    # API load balancer listener
    api_lb_port: int = 443
    api_instance_port: int = 6443
    api_lb_protocol: str = "TCP"

    # Eventual-consistency wait for identity artifacts
    profile_wait_timeout: float = 120.0
    profile_wait_initial: float = 1.0
    profile_wait_max: float = 15.0

    # Teardown
    wait_for_termination: bool = True

    # Kubernetes
    kubeconfig: str | None = None
    kube_context: str | None = None
    crd_group: str = "cluster.giantswarm.io"
    crd_version: str = "v1"
    crd_plural: str = "awses"
    crd_kind: str = "Aws"

    # Event processing
    max_concurrent_events: int = 4

    # Backoff before reopening a failed watch stream
    watch_retry_initial: float = 1.0
    watch_retry_max: float = 30.0

    # Metrics
    metrics_enabled: bool = False
    metrics_namespace: str = "ClusterOperator"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CLUSTEROPERATOR_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
