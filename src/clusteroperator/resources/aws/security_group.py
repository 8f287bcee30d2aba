"""Cluster security group."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from clusteroperator.core.errors import AlreadyExistsError, require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.aws.tags import cluster_tags
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()

OPEN_CIDR = "0.0.0.0/0"


@dataclass
class SecurityGroup(FindOrCreate):
    """Security group looked up by group name within the cluster network."""

    name: str
    clients: AWSClients
    vpc_id: str = ""
    description: str = "Cluster security group"
    ingress_ports: tuple[int, ...] = (22,)
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.SECURITY_GROUP, init=False)
    _id: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    def _filters(self) -> list[dict[str, Any]]:
        filters = [{"Name": "group-name", "Values": [self.name]}]
        if self.vpc_id:
            filters.append({"Name": "vpc-id", "Values": [self.vpc_id]})
        return filters

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_security_groups(Filters=self._filters())
        groups = response.get("SecurityGroups", [])
        if not groups:
            raise not_found(self.kind, self.name)
        self._id = groups[0]["GroupId"]

    async def create_or_fail(self) -> None:
        vpc_id = require(self.vpc_id, "network id", stage="security group")
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "create"):
            response = await ec2.create_security_group(
                GroupName=self.name,
                Description=self.description,
                VpcId=vpc_id,
            )
        group_id = response["GroupId"]
        self._id = group_id

        with provider_call(self.kind, self.name, "tag"):
            await ec2.create_tags(Resources=[group_id], Tags=cluster_tags(self.name, self.cluster_id))

        permissions = [
            {
                "IpProtocol": "tcp",
                "FromPort": port,
                "ToPort": port,
                "IpRanges": [{"CidrIp": OPEN_CIDR}],
            }
            for port in self.ingress_ports
        ]
        try:
            with provider_call(self.kind, self.name, "authorize ingress"):
                await ec2.authorize_security_group_ingress(GroupId=group_id, IpPermissions=permissions)
        except AlreadyExistsError:
            logger.info("security_group_rules_exist", name=self.name, group_id=group_id)

        logger.info("security_group_created", name=self.name, group_id=group_id, ports=list(self.ingress_ports))

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.ec2.delete_security_group(GroupId=self._id)
        logger.info("security_group_deleted", name=self.name, group_id=self._id)
