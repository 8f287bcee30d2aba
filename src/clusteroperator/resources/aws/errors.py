"""Translation of botocore errors into the operator's error taxonomy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from botocore.exceptions import BotoCoreError, ClientError

from clusteroperator.core.errors import (
    AlreadyExistsError,
    OperatorError,
    ProviderError,
    ResourceNotFoundError,
)

ALREADY_EXISTS_CODES = frozenset(
    {
        "AlreadyExistsException",
        "BucketAlreadyOwnedByYou",
        "DuplicateLoadBalancerName",
        "EntityAlreadyExists",
        "HostedZoneAlreadyExists",
        "InvalidGroup.Duplicate",
        "InvalidKeyPair.Duplicate",
        "InvalidPermission.Duplicate",
        "RouteAlreadyExists",
        "Resource.AlreadyAssociated",
    }
)

NOT_FOUND_CODES = frozenset(
    {
        "InvalidGroup.NotFound",
        "InvalidInstanceID.NotFound",
        "InvalidInternetGatewayID.NotFound",
        "InvalidKeyPair.NotFound",
        "InvalidSubnetID.NotFound",
        "InvalidVpcID.NotFound",
        "LoadBalancerNotFound",
        "NoSuchBucket",
        "NoSuchEntity",
        "NoSuchHostedZone",
        "NoSuchKey",
        "NotFoundException",
        "404",
    }
)


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def translate_client_error(
    exc: ClientError,
    *,
    kind: str,
    name: str,
    operation: str,
) -> OperatorError:
    """Classify a botocore ClientError by its error code."""
    code = error_code(exc)
    details = {"resource": kind, "name": name, "operation": operation, "code": code}
    if code in ALREADY_EXISTS_CODES:
        return AlreadyExistsError(f"{kind} '{name}' already exists", details=details)
    if code in NOT_FOUND_CODES:
        return ResourceNotFoundError(f"{kind} '{name}' not found", details=details)
    return ProviderError(f"Failed to {operation} {kind} '{name}'", details=details)


@contextmanager
def provider_call(kind: str, name: str, operation: str) -> Iterator[None]:
    """Translate provider exceptions raised inside the block.

    Usage:
        with provider_call(ResourceKind.VPC, self.name, "create"):
            await self.clients.ec2.create_vpc(CidrBlock=self.cidr_block)
    """
    try:
        yield
    except ClientError as exc:
        raise translate_client_error(exc, kind=str(kind), name=name, operation=operation) from exc
    except BotoCoreError as exc:
        raise ProviderError(
            f"Failed to {operation} {kind} '{name}'",
            details={"resource": str(kind), "name": name, "operation": operation},
        ) from exc


def not_found(kind: str, name: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        f"{kind} '{name}' not found",
        details={"resource": str(kind), "name": name, "operation": "find"},
    )
