"""DNS hosted zones and alias records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog

from clusteroperator.core.errors import require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.base import FindOrCreate, ResourceKind
from clusteroperator.resources.naming import hosted_zone_name

logger = structlog.get_logger()


def normalize_dns_name(name: str) -> str:
    """Route53 returns fully qualified names with a trailing dot."""
    return name.rstrip(".")


@dataclass
class HostedZone(FindOrCreate):
    name: str
    clients: AWSClients
    comment: str = ""
    kind: ResourceKind = field(default=ResourceKind.HOSTED_ZONE, init=False)
    _id: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    @classmethod
    async def from_existing(cls, name: str, clients: AWSClients) -> HostedZone:
        """Resolve an existing zone; raises ResourceNotFoundError if there is none."""
        zone = cls(name=name, clients=clients)
        await zone.get()
        return zone

    @classmethod
    async def for_domain(cls, domain: str, clients: AWSClients) -> HostedZone:
        return await cls.from_existing(hosted_zone_name(domain), clients)

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.route53.list_hosted_zones_by_name(
                DNSName=self.name, MaxItems="1"
            )
        zones = response.get("HostedZones", [])
        # The listing starts at the closest name, which is not necessarily ours.
        if not zones or normalize_dns_name(zones[0]["Name"]) != normalize_dns_name(self.name):
            raise not_found(self.kind, self.name)
        self._id = zones[0]["Id"]

    async def create_or_fail(self) -> None:
        with provider_call(self.kind, self.name, "create"):
            response = await self.clients.route53.create_hosted_zone(
                Name=self.name,
                CallerReference=str(uuid.uuid4()),
                HostedZoneConfig={"Comment": self.comment},
            )
        self._id = response["HostedZone"]["Id"]
        logger.info("hosted_zone_created", name=self.name, zone_id=self._id)

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.route53.delete_hosted_zone(Id=self._id)
        logger.info("hosted_zone_deleted", name=self.name, zone_id=self._id)


@dataclass
class RecordSet:
    """An alias A record pointing a domain at a load balancer.

    The hosted zone is a precondition: ``hosted_zone_id`` must already be
    resolved before the record can be written.
    """

    name: str
    clients: AWSClients
    hosted_zone_id: str = ""
    target_dns_name: str = ""
    target_hosted_zone_id: str = ""
    kind: ResourceKind = field(default=ResourceKind.RECORD_SET, init=False)

    @property
    def dns_name(self) -> str:
        return self.target_dns_name

    def _change(self, action: str) -> dict:
        return {
            "Action": action,
            "ResourceRecordSet": {
                "Name": self.name,
                "Type": "A",
                "AliasTarget": {
                    "HostedZoneId": require(self.target_hosted_zone_id, "target zone id", stage="record set"),
                    "DNSName": require(self.target_dns_name, "target dns name", stage="record set"),
                    "EvaluateTargetHealth": False,
                },
            },
        }

    async def _submit(self, action: str) -> None:
        zone_id = require(self.hosted_zone_id, "hosted zone id", stage="record set")
        with provider_call(self.kind, self.name, action.lower()):
            await self.clients.route53.change_resource_record_sets(
                HostedZoneId=zone_id,
                ChangeBatch={"Changes": [self._change(action)]},
            )

    async def get(self) -> None:
        """Load the alias target from the zone; raises ResourceNotFoundError if there is no record."""
        zone_id = require(self.hosted_zone_id, "hosted zone id", stage="record set")
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.route53.list_resource_record_sets(
                HostedZoneId=zone_id, StartRecordName=self.name, StartRecordType="A", MaxItems="1"
            )
        records = response.get("ResourceRecordSets", [])
        if (
            not records
            or normalize_dns_name(records[0]["Name"]) != normalize_dns_name(self.name)
            or records[0]["Type"] != "A"
            or "AliasTarget" not in records[0]
        ):
            raise not_found(self.kind, self.name)
        target = records[0]["AliasTarget"]
        self.target_dns_name = target["DNSName"]
        self.target_hosted_zone_id = target["HostedZoneId"]

    async def create_or_fail(self) -> None:
        # UPSERT makes repeated creation converge on the same record.
        await self._submit("UPSERT")
        logger.info("record_set_created", name=self.name, target=self.target_dns_name)

    async def delete(self) -> None:
        await self._submit("DELETE")
        logger.info("record_set_deleted", name=self.name)
