"""Internet gateway attached to the cluster network."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from clusteroperator.core.errors import AlreadyExistsError, ResourceNotFoundError, require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import provider_call
from clusteroperator.resources.aws.tags import cluster_tags, name_filter
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()

DEFAULT_ROUTE_CIDR = "0.0.0.0/0"


class GatewayNotFoundError(ResourceNotFoundError):
    """No internet gateway carries the requested Name tag."""


@dataclass
class Gateway(FindOrCreate):
    name: str
    clients: AWSClients
    vpc_id: str = ""
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.GATEWAY, init=False)
    _id: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    async def _find(self) -> dict[str, Any]:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_internet_gateways(
                Filters=[name_filter(self.name)]
            )
        gateways = response.get("InternetGateways", [])
        if not gateways:
            raise GatewayNotFoundError(
                f"No internet gateway tagged '{self.name}'",
                details={"resource": str(self.kind), "name": self.name, "operation": "find"},
            )
        return gateways[0]

    async def get(self) -> None:
        gateway = await self._find()
        self._id = gateway["InternetGatewayId"]

    async def create_or_fail(self) -> None:
        vpc_id = require(self.vpc_id, "network id", stage="gateway")
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "create"):
            response = await ec2.create_internet_gateway()
            gateway_id = response["InternetGateway"]["InternetGatewayId"]
            await ec2.attach_internet_gateway(InternetGatewayId=gateway_id, VpcId=vpc_id)
            await ec2.create_tags(Resources=[gateway_id], Tags=cluster_tags(self.name, self.cluster_id))

        self._id = gateway_id
        logger.info("gateway_created", name=self.name, gateway_id=gateway_id, vpc_id=vpc_id)

    async def ensure_default_route(self) -> bool:
        """Route 0.0.0.0/0 of the network's main route table through this gateway.

        Returns True if the route was added, False if it was already present.
        """
        vpc_id = require(self.vpc_id, "network id", stage="gateway")
        gateway_id = require(self._id, "gateway id", stage="gateway")
        ec2 = self.clients.ec2
        with provider_call(ResourceKind.ROUTE, self.name, "describe"):
            response = await ec2.describe_route_tables(
                Filters=[
                    {"Name": "vpc-id", "Values": [vpc_id]},
                    {"Name": "association.main", "Values": ["true"]},
                ]
            )
        tables = response.get("RouteTables", [])
        if not tables:
            raise ResourceNotFoundError(
                f"Main route table of network '{vpc_id}' not found",
                details={"resource": str(ResourceKind.ROUTE), "name": self.name, "operation": "find"},
            )

        table = tables[0]
        for route in table.get("Routes", []):
            if route.get("DestinationCidrBlock") == DEFAULT_ROUTE_CIDR and route.get("GatewayId") == gateway_id:
                return False

        try:
            with provider_call(ResourceKind.ROUTE, self.name, "create"):
                await ec2.create_route(
                    RouteTableId=table["RouteTableId"],
                    DestinationCidrBlock=DEFAULT_ROUTE_CIDR,
                    GatewayId=gateway_id,
                )
        except AlreadyExistsError:
            return False
        logger.info("default_route_created", gateway_id=gateway_id, route_table=table["RouteTableId"])
        return True

    async def delete(self) -> None:
        gateway = await self._find()
        gateway_id = gateway["InternetGatewayId"]
        ec2 = self.clients.ec2
        with provider_call(self.kind, self.name, "delete"):
            for attachment in gateway.get("Attachments", []):
                await ec2.detach_internet_gateway(
                    InternetGatewayId=gateway_id, VpcId=attachment["VpcId"]
                )
            await ec2.delete_internet_gateway(InternetGatewayId=gateway_id)
        logger.info("gateway_deleted", name=self.name, gateway_id=gateway_id)
