"""IAM role, managed policy and instance profile for cluster machines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import structlog

from clusteroperator.core.errors import OperatorError, ResourceNotFoundError, require
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.errors import not_found, provider_call
from clusteroperator.resources.base import FindOrCreate, ResourceKind
from clusteroperator.resources.retry import RetryPolicy, poll_until

logger = structlog.get_logger()

ASSUME_ROLE_POLICY_DOCUMENT = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        },
    }
)


def machine_policy_document(kms_key_arn: str, bucket_name: str) -> str:
    """Allow machines to decrypt their TLS assets and fetch their boot configuration."""
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {"Effect": "Allow", "Action": "kms:Decrypt", "Resource": kms_key_arn},
                {
                    "Effect": "Allow",
                    "Action": "s3:GetObject",
                    "Resource": f"arn:aws:s3:::{bucket_name}/*",
                },
            ],
        }
    )


class ProfileNotReadyError(OperatorError):
    """The instance profile exists but its role is not attached yet."""


@dataclass
class Role(FindOrCreate):
    name: str
    clients: AWSClients
    assume_role_policy: str = ASSUME_ROLE_POLICY_DOCUMENT
    kind: ResourceKind = field(default=ResourceKind.ROLE, init=False)
    _arn: str = field(default="", init=False, repr=False)

    @property
    def arn(self) -> str:
        return self._arn

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.iam.get_role(RoleName=self.name)
        self._arn = response["Role"]["Arn"]

    async def create_or_fail(self) -> None:
        with provider_call(self.kind, self.name, "create"):
            response = await self.clients.iam.create_role(
                RoleName=self.name, AssumeRolePolicyDocument=self.assume_role_policy
            )
        self._arn = response["Role"]["Arn"]

    async def delete(self) -> None:
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.iam.delete_role(RoleName=self.name)
        logger.info("role_deleted", name=self.name)


@dataclass
class Policy(FindOrCreate):
    """Managed policy attached to the cluster role."""

    name: str
    clients: AWSClients
    role_name: str = ""
    document: str = ""
    kind: ResourceKind = field(default=ResourceKind.POLICY, init=False)
    _arn: str = field(default="", init=False, repr=False)

    @property
    def arn(self) -> str:
        return self._arn

    async def get(self) -> None:
        paginator = self.clients.iam.get_paginator("list_policies")
        with provider_call(self.kind, self.name, "describe"):
            async for page in paginator.paginate(Scope="Local"):
                for policy in page.get("Policies", []):
                    if policy["PolicyName"] == self.name:
                        self._arn = policy["Arn"]
                        return
        raise not_found(self.kind, self.name)

    async def create_or_fail(self) -> None:
        with provider_call(self.kind, self.name, "create"):
            response = await self.clients.iam.create_policy(
                PolicyName=self.name, PolicyDocument=self.document
            )
        self._arn = response["Policy"]["Arn"]

    async def attach(self) -> None:
        role_name = require(self.role_name, "role name", stage="policy attach")
        arn = require(self._arn, "policy arn", stage="policy attach")
        with provider_call(self.kind, self.name, "attach"):
            await self.clients.iam.attach_role_policy(RoleName=role_name, PolicyArn=arn)
        logger.info("policy_attached", name=self.name, role=role_name)

    async def detach(self) -> None:
        if not self._arn:
            await self.get()
        with provider_call(self.kind, self.name, "detach"):
            await self.clients.iam.detach_role_policy(RoleName=self.role_name, PolicyArn=self._arn)
        logger.info("policy_detached", name=self.name, role=self.role_name)

    async def delete(self) -> None:
        if not self._arn:
            await self.get()
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.iam.delete_policy(PolicyArn=self._arn)
        logger.info("policy_deleted", name=self.name)


@dataclass
class InstanceProfile(FindOrCreate):
    name: str
    clients: AWSClients
    role_name: str = ""
    kind: ResourceKind = field(default=ResourceKind.INSTANCE_PROFILE, init=False)
    _arn: str = field(default="", init=False, repr=False)
    _roles: list[str] = field(default_factory=list, init=False, repr=False)

    @property
    def arn(self) -> str:
        return self._arn

    @property
    def roles(self) -> list[str]:
        return list(self._roles)

    def _load(self, profile: dict[str, Any]) -> None:
        self._arn = profile["Arn"]
        self._roles = [role["RoleName"] for role in profile.get("Roles", [])]

    async def get(self) -> None:
        with provider_call(self.kind, self.name, "describe"):
            response = await self.clients.iam.get_instance_profile(InstanceProfileName=self.name)
        self._load(response["InstanceProfile"])

    async def create_or_fail(self) -> None:
        with provider_call(self.kind, self.name, "create"):
            response = await self.clients.iam.create_instance_profile(InstanceProfileName=self.name)
        self._load(response["InstanceProfile"])
        await self.ensure_role()

    async def ensure_role(self) -> bool:
        """Attach ``role_name`` unless it is already in the profile."""
        role_name = require(self.role_name, "role name", stage="instance profile")
        if role_name in self._roles:
            return False
        with provider_call(self.kind, self.name, "add role"):
            await self.clients.iam.add_role_to_instance_profile(
                InstanceProfileName=self.name, RoleName=role_name
            )
        self._roles.append(role_name)
        logger.info("role_added_to_profile", profile=self.name, role=role_name)
        return True

    async def wait_until_ready(self, policy: RetryPolicy) -> None:
        """Poll until the profile is visible with its role attached."""

        async def profile_ready() -> None:
            await self.get()
            if self.role_name not in self._roles:
                raise ProfileNotReadyError(
                    f"Role '{self.role_name}' not yet visible in profile '{self.name}'"
                )

        await poll_until(
            profile_ready,
            policy=policy,
            retry_on=lambda exc: isinstance(exc, (ProfileNotReadyError, ResourceNotFoundError)),
            what=f"instance profile '{self.name}'",
            details={"resource": str(self.kind), "name": self.name},
        )

    async def remove_role(self) -> None:
        with provider_call(self.kind, self.name, "remove role"):
            await self.clients.iam.remove_role_from_instance_profile(
                InstanceProfileName=self.name, RoleName=self.role_name
            )
        logger.info("role_removed_from_profile", profile=self.name, role=self.role_name)

    async def delete(self) -> None:
        with provider_call(self.kind, self.name, "delete"):
            await self.clients.iam.delete_instance_profile(InstanceProfileName=self.name)
        logger.info("instance_profile_deleted", name=self.name)
