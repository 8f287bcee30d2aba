"""
Naming conventions for cluster resources.

Every resource name is derived from the cluster id, so deletion can re-derive
the same name and locate the resource without remembering provider ids.
"""

from __future__ import annotations

from clusteroperator.core.errors import MalformedKeyError

# Tag keys used as idempotency keys on EC2 resources.
TAG_NAME = "Name"
TAG_CLUSTER = "Cluster"

# ELB names are limited to 32 characters.
MAX_LOAD_BALANCER_NAME = 32

HOSTED_ZONE_DOMAIN_PARTS = 6


def sanitize_name(name: str) -> str:
    """
    Normalize a name for use across AWS APIs.

    Args:
        name: Raw name

    Returns:
        Lower-case name with spaces and underscores replaced by dashes
    """
    return name.strip().lower().replace(" ", "-").replace("_", "-")


def vpc_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-vpc"


def subnet_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-public"


def gateway_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-gateway"


def security_group_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-sg"


def key_pair_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-key"


def kms_key_name(cluster_id: str) -> str:
    return sanitize_name(cluster_id)


def role_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-EC2-K8S-Role"


def policy_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-EC2-K8S-Policy"


def instance_profile_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-EC2-K8S-Profile"


def bucket_name(cluster_id: str, suffix: str) -> str:
    return f"{sanitize_name(cluster_id)}-{suffix}"


def cloudconfig_object_key(cluster_id: str, role: str) -> str:
    """
    Get the object key of a role's boot configuration.

    Pattern: cloudconfig/{cluster}/{role}
    Uploading twice for the same role overwrites the same object.
    """
    return f"cloudconfig/{sanitize_name(cluster_id)}/{role}"


def machine_name(cluster_id: str, role: str, index: int) -> str:
    """
    Get instance name.

    Pattern: {cluster}-{role}-{index}
    Examples:
        - abc12-master-0
        - abc12-worker-3
    """
    return f"{sanitize_name(cluster_id)}-{role}-{index}"


def machine_name_pattern(cluster_id: str, role: str) -> str:
    """Tag filter value matching every machine of a role (EC2 filters accept ``*``)."""
    return f"{sanitize_name(cluster_id)}-{role}-*"


def load_balancer_name(cluster_id: str) -> str:
    return f"{sanitize_name(cluster_id)}-api"[:MAX_LOAD_BALANCER_NAME]


def hosted_zone_name(domain: str) -> str:
    """
    Derive the hosted zone name from a component domain.

    The domain is split into six parts; the sixth part, which holds the
    remaining labels as one string, is the hosted zone.

    Example:
        etcd.pbmva.g8s.eu-west-1.adidas.aws.giantswarm.io -> aws.giantswarm.io

    Raises:
        MalformedKeyError: if the domain has fewer than six dot-separated parts
    """
    parts = domain.split(".", HOSTED_ZONE_DOMAIN_PARTS - 1)
    if len(parts) != HOSTED_ZONE_DOMAIN_PARTS:
        raise MalformedKeyError(
            f"Malformed domain '{domain}': expected at least {HOSTED_ZONE_DOMAIN_PARTS} labels",
            details={"domain": domain},
        )
    return parts[-1]
