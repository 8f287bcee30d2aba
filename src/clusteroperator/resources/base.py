"""Capability traits implemented by provisionable resources.

Resources are polymorphic over capability sets instead of a single class
hierarchy. Each provisioner implements exactly the traits its resource kind
supports; callers check for a trait with ``isinstance`` (the protocols are
runtime checkable) or simply depend on the narrowest trait they need.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

import structlog

from clusteroperator.core.errors import AlreadyExistsError, ResourceNotFoundError

logger = structlog.get_logger()


class ResourceKind(StrEnum):
    NAMESPACE = "namespace"
    DEFINITION = "custom_resource_definition"
    VPC = "vpc"
    SUBNET = "subnet"
    GATEWAY = "internet_gateway"
    ROUTE = "route"
    SECURITY_GROUP = "security_group"
    KEY_PAIR = "key_pair"
    KMS_KEY = "kms_key"
    ROLE = "iam_role"
    POLICY = "iam_policy"
    INSTANCE_PROFILE = "instance_profile"
    BUCKET = "bucket"
    BUCKET_OBJECT = "bucket_object"
    INSTANCE = "instance"
    LOAD_BALANCER = "load_balancer"
    HOSTED_ZONE = "hosted_zone"
    RECORD_SET = "record_set"


@runtime_checkable
class Resource(Protocol):
    """Unconditional create and delete."""

    async def create_or_fail(self) -> None:
        ...

    async def delete(self) -> None:
        ...


@runtime_checkable
class ReusableResource(Resource, Protocol):
    """Idempotent creation: returns True if this call created the resource."""

    async def create_if_not_exists(self) -> bool:
        ...


@runtime_checkable
class ArnResource(Resource, Protocol):
    @property
    def arn(self) -> str:
        ...


@runtime_checkable
class NamedResource(ReusableResource, Protocol):
    name: str


@runtime_checkable
class FetchableResource(ReusableResource, Protocol):
    async def get(self) -> None:
        ...


@runtime_checkable
class ResourceWithID(FetchableResource, Protocol):
    @property
    def id(self) -> str:
        ...


@runtime_checkable
class DNSNamedResource(Resource, Protocol):
    @property
    def dns_name(self) -> str:
        ...

    @property
    def hosted_zone_id(self) -> str:
        ...


class FindOrCreate:
    """Shared find-by-name, create-if-absent algorithm.

    Subclasses implement ``get`` (populates the provider-assigned fields, or
    raises ResourceNotFoundError) and ``create_or_fail``.
    """

    kind: ResourceKind
    name: str

    async def get(self) -> None:
        raise NotImplementedError

    async def create_or_fail(self) -> None:
        raise NotImplementedError

    async def _find_existing(self) -> bool:
        try:
            await self.get()
        except ResourceNotFoundError:
            return False
        return True

    async def create_if_not_exists(self) -> bool:
        if await self._find_existing():
            logger.info("resource_reused", resource=str(self.kind), name=self.name)
            return False

        try:
            await self.create_or_fail()
        except AlreadyExistsError:
            # Another creator won the race; adopt its resource.
            logger.info("resource_created_concurrently", resource=str(self.kind), name=self.name)
            await self._find_existing()
            return False

        logger.info("resource_created", resource=str(self.kind), name=self.name)
        return True
