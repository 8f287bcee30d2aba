"""Compute instances for cluster machines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from botocore.exceptions import ClientError

from clusteroperator.core.errors import ProviderError, require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import error_code, not_found, provider_call
from clusteroperator.resources.aws.tags import cluster_tags, name_filter, tag_filter
from clusteroperator.resources.base import FindOrCreate, ResourceKind
from clusteroperator.resources.naming import TAG_CLUSTER
from clusteroperator.resources.retry import RetryPolicy, poll_until

logger = structlog.get_logger()

# EC2 instance state code.
STATE_TERMINATED = 48


def is_live(instance: dict[str, Any]) -> bool:
    """A terminated instance does not count as existing."""
    return instance.get("State", {}).get("Code") != STATE_TERMINATED


def is_profile_propagation_error(exc: BaseException) -> bool:
    """Launch rejected because a just-created instance profile is not visible yet.

    EC2 reports this as InvalidParameterValue naming the IAM instance profile.
    """
    cause = exc.__cause__ if isinstance(exc, ProviderError) else exc
    if not isinstance(cause, ClientError) or error_code(cause) != "InvalidParameterValue":
        return False
    message = cause.response.get("Error", {}).get("Message", "")
    return "iam instance profile" in message.lower()


async def find_instances(clients: AWSClients, cluster_id: str, name_pattern: str) -> list[str]:
    """Ids of every live instance of ``cluster_id`` whose Name tag matches ``name_pattern``."""
    paginator = clients.ec2.get_paginator("describe_instances")
    ids = []
    with provider_call(ResourceKind.INSTANCE, name_pattern, "describe"):
        async for page in paginator.paginate(
            Filters=[name_filter(name_pattern), tag_filter(TAG_CLUSTER, cluster_id)]
        ):
            for reservation in page.get("Reservations", []):
                ids.extend(
                    instance["InstanceId"]
                    for instance in reservation.get("Instances", [])
                    if is_live(instance)
                )
    return ids


async def terminate_instances(clients: AWSClients, instance_ids: list[str], *, wait: bool = True) -> None:
    if not instance_ids:
        return
    ec2 = clients.ec2
    label = ",".join(instance_ids)
    with provider_call(ResourceKind.INSTANCE, label, "terminate"):
        await ec2.terminate_instances(InstanceIds=instance_ids)
        if wait:
            waiter = ec2.get_waiter("instance_terminated")
            await waiter.wait(InstanceIds=instance_ids)
    logger.info("instances_terminated", instance_ids=instance_ids, waited=wait)


@dataclass
class Instance(FindOrCreate):
    """A machine identified by its Name and Cluster tags."""

    name: str
    clients: AWSClients
    cluster_id: str = ""
    image_id: str = ""
    instance_type: str = ""
    key_name: str = ""
    instance_profile_name: str = ""
    subnet_id: str | None = None
    security_group_ids: list[str] = field(default_factory=list)
    user_data: str = ""
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    kind: ResourceKind = field(default=ResourceKind.INSTANCE, init=False)
    _id: str = field(default="", init=False, repr=False)
    _private_ip: str = field(default="", init=False, repr=False)

    @property
    def id(self) -> str:
        return self._id

    @property
    def private_ip(self) -> str:
        return self._private_ip

    def _load(self, instance: dict[str, Any]) -> None:
        self._id = instance["InstanceId"]
        self._private_ip = instance.get("PrivateIpAddress", "")

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.ec2.describe_instances(
                Filters=[name_filter(self.name), tag_filter(TAG_CLUSTER, self.cluster_id)]
            )
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if is_live(instance):
                    self._load(instance)
                    return
        raise not_found(self.kind, self.name)

    def _launch_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "ImageId": require(self.image_id, "image id", stage="instance"),
            "InstanceType": require(self.instance_type, "instance type", stage="instance"),
            "MinCount": 1,
            "MaxCount": 1,
            "IamInstanceProfile": {
                "Name": require(self.instance_profile_name, "instance profile", stage="instance")
            },
            "TagSpecifications": [
                {"ResourceType": "instance", "Tags": cluster_tags(self.name, self.cluster_id)}
            ],
        }
        if self.key_name:
            params["KeyName"] = self.key_name
        if self.subnet_id:
            params["SubnetId"] = self.subnet_id
        if self.security_group_ids:
            params["SecurityGroupIds"] = list(self.security_group_ids)
        if self.user_data:
            params["UserData"] = self.user_data
        return params

    async def create_or_fail(self) -> None:
        params = self._launch_params()

        async def launch() -> dict[str, Any]:
            with provider_call(self.kind, self.name, "create"):
                return await self.clients.ec2.run_instances(**params)

        # The profile may take a while to become usable after creation.
        response = await poll_until(
            launch,
            policy=self.retry_policy,
            retry_on=is_profile_propagation_error,
            what=f"instance profile '{self.instance_profile_name}'",
            details={"resource": str(self.kind), "name": self.name},
        )
        self._load(response["Instances"][0])
        logger.info(
            "instance_created",
            name=self.name,
            instance_id=self._id,
            image_id=self.image_id,
            instance_type=self.instance_type,
        )

    async def delete(self) -> None:
        await self.get()
        await terminate_instances(self.clients, [self._id], wait=False)
