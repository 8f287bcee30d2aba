"""EC2 key pair used for SSH access to cluster machines."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()


@dataclass
class KeyPair(FindOrCreate):
    """A key pair, reusable by name.

    With ``public_key_material`` the key is imported; otherwise the provider
    generates one and its private half is not kept.
    """

    name: str
    clients: AWSClients
    public_key_material: bytes | None = None
    kind: ResourceKind = field(default=ResourceKind.KEY_PAIR, init=False)
    _id: str = field(default="", init=False, repr=False)
    _fingerprint: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    @property
    def fingerprint(self) -> str:
        return self._fingerprint

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_key_pairs(KeyNames=[self.name])
        pairs = response.get("KeyPairs", [])
        if not pairs or pairs[0].get("KeyName") != self.name:
            raise not_found(self.kind, self.name)
        self._id = pairs[0].get("KeyPairId", "")
        self._fingerprint = pairs[0].get("KeyFingerprint", "")

    async def create_or_fail(self) -> None:
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "create"):
            if self.public_key_material:
                response = await ec2.import_key_pair(
                    KeyName=self.name, PublicKeyMaterial=self.public_key_material
                )
            else:
                response = await ec2.create_key_pair(KeyName=self.name)
                logger.warning("key_pair_private_key_discarded", name=self.name)

        self._id = response.get("KeyPairId", "")
        self._fingerprint = response.get("KeyFingerprint", "")
        logger.info("key_pair_created", name=self.name, imported=bool(self.public_key_material))

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.ec2.delete_key_pair(KeyName=self.name)
        logger.info("key_pair_deleted", name=self.name)
