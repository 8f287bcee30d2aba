"""Object storage for per-role boot configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import provider_call
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()

# Buckets in us-east-1 must be created without a location constraint.
DEFAULT_REGION = "us-east-1"


@dataclass
class Bucket(FindOrCreate):
    name: str
    clients: AWSClients
    kind: ResourceKind = field(default=ResourceKind.BUCKET, init=False)

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            await self.clients.s3.head_bucket(Bucket=self.name)

    async def create_or_fail(self) -> None:
        params: dict = {"Bucket": self.name}
        if self.clients.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.clients.region}
        with provider_call(self.kind, self.name, "create"):
            await self.clients.s3.create_bucket(**params)

    async def delete(self) -> None:
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.s3.delete_bucket(Bucket=self.name)
        logger.info("bucket_deleted", name=self.name)


@dataclass
class BucketObject:
    """An object at a deterministic key; uploading again overwrites it."""

    bucket: str
    key: str
    clients: AWSClients
    body: bytes = b""
    content_type: str = "text/plain"
    kind: ResourceKind = field(default=ResourceKind.BUCKET_OBJECT, init=False)

    @property
    def name(self) -> str:
        return f"{self.bucket}/{self.key}"

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            await self.clients.s3.head_object(Bucket=self.bucket, Key=self.key)

    async def create_or_fail(self) -> None:
        with provider_call(self.kind, self.name, "upload"):
            await self.clients.s3.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=self.body,
                ContentType=self.content_type,
            )
        logger.info("object_uploaded", bucket=self.bucket, key=self.key, size=len(self.body))

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.s3.delete_object(Bucket=self.bucket, Key=self.key)
        logger.info("object_deleted", bucket=self.bucket, key=self.key)
