"""
Control-plane side of a cluster: its Kubernetes namespace.

The kubernetes client is synchronous; calls run in the default executor so the
reconciler's event loop is never blocked.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from functools import partial
from typing import Any, Iterator, Protocol

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from clusteroperator.config import Settings
from clusteroperator.core.errors import (
    AlreadyExistsError,
    ConfigurationError,
    ProviderError,
    ResourceNotFoundError,
)
from clusteroperator.resources.base import ResourceKind
from clusteroperator.resources.naming import sanitize_name

logger = structlog.get_logger()

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def load_api_client(settings: Settings) -> client.ApiClient:
    """Build an API client, trying in-cluster config first, then kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        try:
            config.load_kube_config(config_file=settings.kubeconfig, context=settings.kube_context)
        except config.ConfigException as e:
            raise ConfigurationError(f"Failed to load Kubernetes config: {e}") from e
    return client.ApiClient()


async def run_sync(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Run a synchronous kubernetes API call in the executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


@contextmanager
def kube_call(kind: str, name: str, operation: str) -> Iterator[None]:
    """Translate ApiException by HTTP status, like provider_call does for botocore."""
    try:
        yield
    except ApiException as exc:
        details = {"resource": str(kind), "name": name, "operation": operation, "code": exc.status}
        if exc.status == HTTP_CONFLICT:
            raise AlreadyExistsError(f"{kind} '{name}' already exists", details=details) from exc
        if exc.status == HTTP_NOT_FOUND:
            raise ResourceNotFoundError(f"{kind} '{name}' not found", details=details) from exc
        raise ProviderError(f"Failed to {operation} {kind} '{name}'", details=details) from exc


class NamespaceService(Protocol):
    async def create(self, cluster_id: str) -> bool:
        """Create the cluster namespace; False if it already existed."""
        ...

    async def delete(self, cluster_id: str) -> None:
        ...


class KubernetesNamespaces:
    """Cluster namespaces on the control plane, named after the cluster id."""

    def __init__(self, api_client: client.ApiClient) -> None:
        self._core = client.CoreV1Api(api_client)

    async def create(self, cluster_id: str) -> bool:
        name = sanitize_name(cluster_id)
        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name, labels={"cluster": name})
        )
        try:
            with kube_call(ResourceKind.NAMESPACE, name, "create"):
                await run_sync(self._core.create_namespace, body)
        except AlreadyExistsError:
            logger.info("namespace_reused", name=name)
            return False
        logger.info("namespace_created", name=name)
        return True

    async def delete(self, cluster_id: str) -> None:
        name = sanitize_name(cluster_id)
        with kube_call(ResourceKind.NAMESPACE, name, "delete"):
            await run_sync(self._core.delete_namespace, name)
        logger.info("namespace_deleted", name=name)
