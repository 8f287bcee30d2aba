"""Public subnet of the cluster network."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.core.errors import require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.aws.tags import cluster_tags, name_filter
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()


@dataclass
class Subnet(FindOrCreate):
    name: str
    clients: AWSClients
    vpc_id: str = ""
    cidr_block: str = ""
    availability_zone: str = ""
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.SUBNET, init=False)
    _id: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_subnets(Filters=[name_filter(self.name)])
        subnets = response.get("Subnets", [])
        if not subnets:
            raise not_found(self.kind, self.name)
        self._id = subnets[0]["SubnetId"]

    async def create_or_fail(self) -> None:
        vpc_id = require(self.vpc_id, "network id", stage="subnet")
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "create"):
            response = await ec2.create_subnet(
                VpcId=vpc_id,
                CidrBlock=self.cidr_block,
                AvailabilityZone=self.availability_zone,
            )
            subnet_id = response["Subnet"]["SubnetId"]
            await ec2.create_tags(Resources=[subnet_id], Tags=cluster_tags(self.name, self.cluster_id))
            await ec2.modify_subnet_attribute(SubnetId=subnet_id, MapPublicIpOnLaunch={"Value": True})

        self._id = subnet_id
        logger.info("subnet_created", name=self.name, subnet_id=subnet_id, vpc_id=vpc_id)

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.ec2.delete_subnet(SubnetId=self._id)
        logger.info("subnet_deleted", name=self.name, subnet_id=self._id)
