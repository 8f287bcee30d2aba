"""Cluster network (VPC)."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.aws.tags import cluster_tags, name_filter
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()


@dataclass
class VPC(FindOrCreate):
    """A VPC identified by its Name tag.

    DNS hostnames and DNS support are enabled after creation; both are
    required for private hosted zones to resolve inside the network.
    """

    name: str
    clients: AWSClients
    cidr_block: str = ""
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.VPC, init=False)
    _id: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_vpcs(Filters=[name_filter(self.name)])
        vpcs = response.get("Vpcs", [])
        if not vpcs:
            raise not_found(self.kind, self.name)
        self._id = vpcs[0]["VpcId"]

    async def create_or_fail(self) -> None:
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "create"):
            response = await ec2.create_vpc(CidrBlock=self.cidr_block)
            vpc_id = response["Vpc"]["VpcId"]

            waiter = ec2.get_waiter("vpc_available")
            await waiter.wait(VpcIds=[vpc_id])

            await ec2.create_tags(Resources=[vpc_id], Tags=cluster_tags(self.name, self.cluster_id))

            await ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsHostnames={"Value": True})
            await ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsSupport={"Value": True})

        self._id = vpc_id
        logger.info("vpc_created", name=self.name, vpc_id=vpc_id, cidr=self.cidr_block)

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.ec2.delete_vpc(VpcId=self._id)
        logger.info("vpc_deleted", name=self.name, vpc_id=self._id)
