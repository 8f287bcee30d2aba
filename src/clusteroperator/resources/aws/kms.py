"""KMS key material used to encrypt the cluster's TLS assets."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.core.errors import AlreadyExistsError, NotReusableError
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import provider_call
from clusteroperator.resources.base import ResourceKind

logger = structlog.get_logger()

# The number of days a KMS key stays "pending deletion". During this window
# the key cannot be used; only afterwards is it destroyed.
KEY_PENDING_WINDOW_DAYS = 7


@dataclass
class KMSKey:
    """A customer master key reachable through ``alias/<name>``.

    Keys are never reused: every creation provisions new key material.
    """

    name: str
    clients: AWSClients
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.KMS_KEY, init=False)
    _arn: str = field(default="", init=False, repr=False)

    @property
    def arn(self) -> str:
        return self._arn

    @property
    def full_alias(self) -> str:
        # Alias names must start with the "alias/" prefix.
        return f"alias/{self.name}"

    async def create_if_not_exists(self) -> bool:
        raise NotReusableError(
            "KMS keys cannot be reused",
            details={"resource": str(self.kind), "name": self.name},
        )

    async def create_or_fail(self) -> None:
        kms = self.clients.kms
        tags = [{"TagKey": "Cluster", "TagValue": self.cluster_id or self.name}]
        with provider_call(self.kind, self.name, "create"):
            key = await kms.create_key(Description=f"Cluster {self.name} TLS assets", Tags=tags)
        metadata = key["KeyMetadata"]

        try:
            with provider_call(self.kind, self.full_alias, "create alias"):
                await kms.create_alias(AliasName=self.full_alias, TargetKeyId=metadata["Arn"])
        except AlreadyExistsError:
            # The alias belongs to an earlier key; retire the one just created.
            with provider_call(self.kind, self.name, "schedule deletion"):
                await kms.schedule_key_deletion(
                    KeyId=metadata["KeyId"], PendingWindowInDays=KEY_PENDING_WINDOW_DAYS
                )
            logger.info("kms_alias_taken", alias=self.full_alias, orphan_key=metadata["KeyId"])
            raise

        self._arn = metadata["Arn"]
        logger.info("kms_key_created", alias=self.full_alias, arn=self._arn)

    async def get(self) -> None:
        """Resolve the key currently behind the alias."""
        with provider_call(self.kind, self.full_alias, "describe"):
            key = await self.clients.kms.describe_key(KeyId=self.full_alias)
        self._arn = key["KeyMetadata"]["Arn"]

    async def delete(self) -> None:
        kms = self.clients.kms
        with provider_call(self.kind, self.full_alias, "describe"):
            key = await kms.describe_key(KeyId=self.full_alias)
        key_id = key["KeyMetadata"]["KeyId"]

        with provider_call(self.kind, self.full_alias, "delete alias"):
            await kms.delete_alias(AliasName=self.full_alias)

        # Keys cannot be deleted synchronously; deletion is scheduled instead.
        with provider_call(self.kind, self.name, "schedule deletion"):
            await kms.schedule_key_deletion(KeyId=key_id, PendingWindowInDays=KEY_PENDING_WINDOW_DAYS)

        logger.info(
            "kms_key_deletion_scheduled",
            alias=self.full_alias,
            key_id=key_id,
            pending_window_days=KEY_PENDING_WINDOW_DAYS,
        )


class KMSEncryptor:
    """Key-encryption service backed by ``kms.encrypt``."""

    def __init__(self, clients: AWSClients) -> None:
        self._clients = clients

    async def encrypt(self, key_ref: str, plaintext: bytes) -> bytes:
        with provider_call(ResourceKind.KMS_KEY, key_ref, "encrypt"):
            response = await self._clients.kms.encrypt(KeyId=key_ref, Plaintext=plaintext)
        return response["CiphertextBlob"]
