"""Classic load balancer fronting the cluster API."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clusteroperator.core.errors import require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import provider_call
from clusteroperator.resources.base import FindOrCreate, ResourceKind

logger = structlog.get_logger()


@dataclass(frozen=True)
class Listener:
    protocol: str = "TCP"
    port: int = 443
    instance_port: int = 6443

    def as_dict(self) -> dict:
        return {
            "Protocol": self.protocol,
            "LoadBalancerPort": self.port,
            "InstanceProtocol": self.protocol,
            "InstancePort": self.instance_port,
        }


@dataclass
class LoadBalancer(FindOrCreate):
    """A load balancer with one listener in a single availability zone.

    Instances are registered after creation with ``register_instances``.
    """

    name: str
    clients: AWSClients
    availability_zone: str = ""
    subnet_id: str | None = None
    security_group_id: str = ""
    listener: Listener = field(default_factory=Listener)
    cluster_id: str | None = None
    kind: ResourceKind = field(default=ResourceKind.LOAD_BALANCER, init=False)
    _dns_name: str = field(default="", init=False, repr=False)
    _hosted_zone_id: str = field(default="", init=False, repr=False)

    @property
    def dns_name(self) -> str:
        return self._dns_name

    @property
    def hosted_zone_id(self) -> str:
        return self._hosted_zone_id

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.elb.describe_load_balancers(LoadBalancerNames=[self.name])
        description = response["LoadBalancerDescriptions"][0]
        self._dns_name = description["DNSName"]
        self._hosted_zone_id = description.get("CanonicalHostedZoneNameID", "")

    async def create_or_fail(self) -> None:
        params: dict = {
            "LoadBalancerName": self.name,
            "Listeners": [self.listener.as_dict()],
            "SecurityGroups": [require(self.security_group_id, "security group id", stage="load balancer")],
        }
        if self.subnet_id:
            params["Subnets"] = [self.subnet_id]
        else:
            params["AvailabilityZones"] = [require(self.availability_zone, "availability zone", stage="load balancer")]
        if self.cluster_id:
            params["Tags"] = [{"Key": "Cluster", "Value": self.cluster_id}]

        with provider_call(self.kind, self.name, "create"):
            await self.clients.elb.create_load_balancer(**params)
        # The create response only carries the DNS name; the zone id needs a describe.
        await self.get()
        logger.info("load_balancer_created", name=self.name, dns_name=self._dns_name)

    async def register_instances(self, instance_ids: list[str]) -> None:
        if not instance_ids:
            return
        with provider_call(self.kind, self.name, "register instances"):
            await self.clients.elb.register_instances_with_load_balancer(
                LoadBalancerName=self.name,
                Instances=[{"InstanceId": instance_id} for instance_id in instance_ids],
            )
        logger.info("load_balancer_instances_registered", name=self.name, instance_ids=instance_ids)

    async def delete(self) -> None:
        await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.elb.delete_load_balancer(LoadBalancerName=self.name)
        logger.info("load_balancer_deleted", name=self.name)
