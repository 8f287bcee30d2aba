"""
Dependency-ordered stages for creating and deleting a cluster.

Create stages share a ClusterContext: each stage reads the outputs of earlier
stages (ids, ARNs, rendered content) from it and writes its own. Delete stages
re-derive every resource name from the cluster id and return the errors of
their sub-steps instead of raising, so teardown can continue past failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

import structlog

from clusteroperator.cloudconfig.renderer import CloudConfigRenderer, bootstrap_user_data
from clusteroperator.config import Settings
from clusteroperator.core.errors import (
    AlreadyExistsError,
    ConfigurationError,
    OperatorError,
    is_not_found,
    require,
)
from clusteroperator.resources import naming
from clusteroperator.resources.aws.clients import AWSClients
from clusteroperator.resources.aws.elb import Listener, LoadBalancer
from clusteroperator.resources.aws.gateway import Gateway
from clusteroperator.resources.aws.iam import InstanceProfile, Policy, Role, machine_policy_document
from clusteroperator.resources.aws.instance import Instance, find_instances, terminate_instances
from clusteroperator.resources.aws.keypair import KeyPair
from clusteroperator.resources.aws.kms import KMSKey
from clusteroperator.resources.aws.route53 import HostedZone, RecordSet
from clusteroperator.resources.aws.s3 import Bucket, BucketObject
from clusteroperator.resources.aws.security_group import SecurityGroup
from clusteroperator.resources.aws.subnet import Subnet
from clusteroperator.resources.aws.vpc import VPC
from clusteroperator.resources.kubernetes import NamespaceService
from clusteroperator.resources.retry import RetryPolicy
from clusteroperator.service.results import StageName
from clusteroperator.specs.models import ClusterSpec, MachineRole
from clusteroperator.tls.assets import AssetsBundle, AssetsBundleKey, KeyEncryptor, encrypt_assets, read_raw_assets

logger = structlog.get_logger()

SSH_PORT = 22

REUSED = "reused"


@dataclass
class ClusterContext:
    """Inputs and accumulated outputs of one reconciliation run."""

    spec: ClusterSpec
    clients: AWSClients
    settings: Settings
    namespaces: NamespaceService
    renderer: CloudConfigRenderer
    encryptor: KeyEncryptor

    vpc_id: str = ""
    subnet_id: str = ""
    security_group_id: str = ""
    key_name: str = ""
    raw_assets: AssetsBundle = field(default_factory=dict)
    kms_key_arn: str = ""
    encrypted_assets: dict[AssetsBundleKey, str] = field(default_factory=dict)
    instance_profile_name: str = ""
    bucket_name: str = ""
    object_keys: dict[MachineRole, str] = field(default_factory=dict)
    master_ids: list[str] = field(default_factory=list)
    worker_ids: list[str] = field(default_factory=list)
    created_instances: list[str] = field(default_factory=list)
    load_balancer_dns_name: str = ""

    @property
    def cluster_id(self) -> str:
        return self.spec.cluster_id

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            timeout=self.settings.profile_wait_timeout,
            initial=self.settings.profile_wait_initial,
            maximum=self.settings.profile_wait_max,
        )


@dataclass(frozen=True)
class CreateStep:
    """A create stage; ``run`` returns the stage detail shown in its label.

    A tolerated stage records its error and lets the run continue.
    """

    stage: StageName
    run: Callable[[ClusterContext], Awaitable[str | None]]
    tolerated: bool = False


@dataclass(frozen=True)
class DeleteStep:
    """A teardown stage; ``run`` returns the errors of its sub-steps."""

    stage: StageName
    run: Callable[[ClusterContext], Awaitable[list[Exception]]]


# Create stages


async def create_namespace(ctx: ClusterContext) -> None:
    spec, clients = ctx.spec, ctx.clients
    await ctx.namespaces.create(spec.cluster_id)

    vpc = VPC(
        name=naming.vpc_name(spec.cluster_id),
        clients=clients,
        cidr_block=spec.network.vpc_cidr,
        cluster_id=spec.cluster_id,
    )
    await vpc.create_if_not_exists()
    ctx.vpc_id = vpc.id

    subnet = Subnet(
        name=naming.subnet_name(spec.cluster_id),
        clients=clients,
        vpc_id=ctx.vpc_id,
        cidr_block=spec.network.public_subnet_cidr,
        availability_zone=spec.availability_zone,
        cluster_id=spec.cluster_id,
    )
    await subnet.create_if_not_exists()
    ctx.subnet_id = subnet.id

    gateway = Gateway(
        name=naming.gateway_name(spec.cluster_id),
        clients=clients,
        vpc_id=ctx.vpc_id,
        cluster_id=spec.cluster_id,
    )
    await gateway.create_if_not_exists()
    await gateway.ensure_default_route()

    group = SecurityGroup(
        name=naming.security_group_name(spec.cluster_id),
        clients=clients,
        vpc_id=ctx.vpc_id,
        description=f"Security group for cluster {spec.cluster_id}",
        ingress_ports=(SSH_PORT, ctx.settings.api_instance_port, ctx.settings.api_lb_port),
        cluster_id=spec.cluster_id,
    )
    await group.create_if_not_exists()
    ctx.security_group_id = group.id


async def create_key_pair(ctx: ClusterContext) -> None:
    public_key = None
    if ctx.settings.ssh_public_key_path:
        path = Path(ctx.settings.ssh_public_key_path)
        if not path.is_file():
            raise ConfigurationError(
                f"SSH public key not found: {path}",
                details={"ssh_public_key_path": str(path)},
            )
        public_key = path.read_bytes()

    key_pair = KeyPair(
        name=naming.key_pair_name(ctx.cluster_id),
        clients=ctx.clients,
        public_key_material=public_key,
    )
    await key_pair.create_if_not_exists()
    ctx.key_name = key_pair.name


async def load_certificates(ctx: ClusterContext) -> None:
    ctx.raw_assets = read_raw_assets(ctx.settings.certs_dir)


async def create_key_material(ctx: ClusterContext) -> str | None:
    key = KMSKey(name=naming.kms_key_name(ctx.cluster_id), clients=ctx.clients, cluster_id=ctx.cluster_id)
    try:
        await key.create_or_fail()
    except AlreadyExistsError:
        # The alias already points at key material from an earlier run.
        if not await _resolve_key_arn(key):
            raise
        ctx.kms_key_arn = key.arn
        return REUSED
    except OperatorError:
        # Later stages can still use an earlier key reachable through the alias.
        await _resolve_key_arn(key)
        ctx.kms_key_arn = key.arn
        raise
    ctx.kms_key_arn = key.arn
    return None


async def _resolve_key_arn(key: KMSKey) -> bool:
    try:
        await key.get()
    except OperatorError as e:
        logger.warning("kms_key_unresolved", alias=key.full_alias, error=str(e))
        return False
    logger.info("kms_key_resolved", alias=key.full_alias, arn=key.arn)
    return True


async def encrypt_tls_assets(ctx: ClusterContext) -> None:
    key_arn = require(ctx.kms_key_arn, "key material arn", stage=StageName.ENCRYPTED_ASSETS)
    ctx.encrypted_assets = await encrypt_assets(ctx.raw_assets, ctx.encryptor, key_arn)


async def create_identity_policy(ctx: ClusterContext) -> None:
    cluster_id, clients = ctx.cluster_id, ctx.clients
    role_name = naming.role_name(cluster_id)
    # Instances use the deterministic name even if this stage fails.
    ctx.instance_profile_name = naming.instance_profile_name(cluster_id)
    ctx.bucket_name = naming.bucket_name(cluster_id, ctx.settings.bucket_suffix)

    role = Role(name=role_name, clients=clients)
    await role.create_if_not_exists()

    key_arn = require(ctx.kms_key_arn, "key material arn", stage=StageName.IDENTITY_POLICY)
    policy = Policy(
        name=naming.policy_name(cluster_id),
        clients=clients,
        role_name=role_name,
        document=machine_policy_document(key_arn, ctx.bucket_name),
    )
    await policy.create_if_not_exists()
    await policy.attach()

    profile = InstanceProfile(name=ctx.instance_profile_name, clients=clients, role_name=role_name)
    if not await profile.create_if_not_exists():
        await profile.ensure_role()
    await profile.wait_until_ready(ctx.retry_policy)


async def create_object_store(ctx: ClusterContext) -> None:
    if not ctx.bucket_name:
        ctx.bucket_name = naming.bucket_name(ctx.cluster_id, ctx.settings.bucket_suffix)
    bucket = Bucket(name=ctx.bucket_name, clients=ctx.clients)
    await bucket.create_if_not_exists()

    for role in MachineRole:
        key = naming.cloudconfig_object_key(ctx.cluster_id, role)
        content = ctx.renderer.render(role, ctx.spec, ctx.encrypted_assets)
        await BucketObject(bucket=bucket.name, key=key, clients=ctx.clients, body=content).create_or_fail()
        ctx.object_keys[role] = key


async def _create_machines(ctx: ClusterContext, role: MachineRole, ids: list[str]) -> str:
    stage = StageName.MASTER_INSTANCES if role == MachineRole.MASTER else StageName.WORKER_INSTANCES
    profile = require(ctx.instance_profile_name, "instance profile", stage=stage)
    object_key = require(ctx.object_keys.get(role), f"{role} boot configuration", stage=stage)
    user_data = bootstrap_user_data(ctx.bucket_name, object_key, ctx.spec.region)

    for index, machine in enumerate(ctx.spec.machines(role)):
        instance = Instance(
            name=naming.machine_name(ctx.cluster_id, role, index),
            clients=ctx.clients,
            cluster_id=ctx.cluster_id,
            image_id=machine.image_id,
            instance_type=machine.instance_type,
            key_name=ctx.key_name,
            instance_profile_name=profile,
            subnet_id=ctx.subnet_id or None,
            security_group_ids=[ctx.security_group_id] if ctx.security_group_id else [],
            user_data=user_data,
            retry_policy=ctx.retry_policy,
        )
        if await instance.create_if_not_exists():
            ctx.created_instances.append(instance.id)
        ids.append(instance.id)

    return str(len(ids))


async def create_masters(ctx: ClusterContext) -> str:
    return await _create_machines(ctx, MachineRole.MASTER, ctx.master_ids)


async def create_workers(ctx: ClusterContext) -> str:
    return await _create_machines(ctx, MachineRole.WORKER, ctx.worker_ids)


async def create_load_balancer(ctx: ClusterContext) -> None:
    settings = ctx.settings
    balancer = LoadBalancer(
        name=naming.load_balancer_name(ctx.cluster_id),
        clients=ctx.clients,
        availability_zone=ctx.spec.availability_zone,
        subnet_id=ctx.subnet_id or None,
        security_group_id=require(ctx.security_group_id, "security group id", stage=StageName.LOAD_BALANCER),
        listener=Listener(
            protocol=settings.api_lb_protocol,
            port=settings.api_lb_port,
            instance_port=settings.api_instance_port,
        ),
        cluster_id=ctx.cluster_id,
    )
    await balancer.create_if_not_exists()
    await balancer.register_instances(ctx.master_ids)
    ctx.load_balancer_dns_name = balancer.dns_name

    if ctx.spec.api_domain:
        zone = await HostedZone.for_domain(ctx.spec.api_domain, ctx.clients)
        record = RecordSet(
            name=ctx.spec.api_domain,
            clients=ctx.clients,
            hosted_zone_id=zone.id,
            target_dns_name=balancer.dns_name,
            target_hosted_zone_id=balancer.hosted_zone_id,
        )
        await record.create_or_fail()


CREATE_STEPS: tuple[CreateStep, ...] = (
    CreateStep(StageName.NAMESPACE, create_namespace),
    CreateStep(StageName.KEY_PAIR, create_key_pair),
    CreateStep(StageName.CERTIFICATES, load_certificates),
    CreateStep(StageName.KEY_MATERIAL, create_key_material, tolerated=True),
    CreateStep(StageName.ENCRYPTED_ASSETS, encrypt_tls_assets),
    CreateStep(StageName.IDENTITY_POLICY, create_identity_policy, tolerated=True),
    CreateStep(StageName.OBJECT_STORE, create_object_store),
    CreateStep(StageName.MASTER_INSTANCES, create_masters),
    CreateStep(StageName.LOAD_BALANCER, create_load_balancer),
    CreateStep(StageName.WORKER_INSTANCES, create_workers),
)


# Delete stages


class Teardown:
    """Runs teardown sub-steps, collecting their errors.

    A sub-step whose resource is already gone counts as done.
    """

    def __init__(self, stage: StageName) -> None:
        self.stage = stage
        self.errors: list[Exception] = []

    async def attempt(self, step: str, action: Callable[[], Awaitable[object]]) -> bool:
        try:
            await action()
        except Exception as e:
            if is_not_found(e):
                logger.info("resource_already_absent", stage=str(self.stage), step=step)
                return True
            logger.error("teardown_step_failed", stage=str(self.stage), step=step, error=str(e))
            self.errors.append(e)
            return False
        return True


async def delete_namespace(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.NAMESPACE)
    await teardown.attempt("namespace", lambda: ctx.namespaces.delete(ctx.cluster_id))
    return teardown.errors


async def _delete_machines(ctx: ClusterContext, role: MachineRole, stage: StageName) -> list[Exception]:
    teardown = Teardown(stage)
    pattern = naming.machine_name_pattern(ctx.cluster_id, role)

    async def terminate() -> None:
        ids = await find_instances(ctx.clients, ctx.cluster_id, pattern)
        await terminate_instances(ctx.clients, ids, wait=ctx.settings.wait_for_termination)

    await teardown.attempt(f"{role} instances", terminate)
    return teardown.errors


async def delete_masters(ctx: ClusterContext) -> list[Exception]:
    return await _delete_machines(ctx, MachineRole.MASTER, StageName.MASTER_INSTANCES)


async def delete_workers(ctx: ClusterContext) -> list[Exception]:
    return await _delete_machines(ctx, MachineRole.WORKER, StageName.WORKER_INSTANCES)


async def delete_object_store(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.OBJECT_STORE_OBJECTS)
    bucket_name = naming.bucket_name(ctx.cluster_id, ctx.settings.bucket_suffix)
    for role in MachineRole:
        key = naming.cloudconfig_object_key(ctx.cluster_id, role)
        obj = BucketObject(bucket=bucket_name, key=key, clients=ctx.clients)
        await teardown.attempt(f"object {key}", obj.delete)
    await teardown.attempt("bucket", Bucket(name=bucket_name, clients=ctx.clients).delete)
    return teardown.errors


async def delete_load_balancer(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.LOAD_BALANCER)
    balancer = LoadBalancer(name=naming.load_balancer_name(ctx.cluster_id), clients=ctx.clients)

    if ctx.spec.api_domain:
        async def delete_record() -> None:
            # The DELETE change must match the alias target exactly, so it is
            # read from the zone rather than from a balancer that may be gone.
            zone = await HostedZone.for_domain(ctx.spec.api_domain, ctx.clients)
            record = RecordSet(name=ctx.spec.api_domain, clients=ctx.clients, hosted_zone_id=zone.id)
            await record.get()
            await record.delete()

        await teardown.attempt("record set", delete_record)

    await teardown.attempt("load balancer", balancer.delete)
    return teardown.errors


async def delete_identity_policy(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.IDENTITY_POLICY)
    role_name = naming.role_name(ctx.cluster_id)
    policy = Policy(name=naming.policy_name(ctx.cluster_id), clients=ctx.clients, role_name=role_name)
    profile = InstanceProfile(
        name=naming.instance_profile_name(ctx.cluster_id), clients=ctx.clients, role_name=role_name
    )
    role = Role(name=role_name, clients=ctx.clients)

    # IAM rejects deleting a role that is still attached to a policy or profile.
    await teardown.attempt("detach policy", policy.detach)
    await teardown.attempt("delete policy", policy.delete)
    await teardown.attempt("remove role from profile", profile.remove_role)
    await teardown.attempt("delete role", role.delete)
    await teardown.attempt("delete profile", profile.delete)
    return teardown.errors


async def delete_key_pair(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.KEY_PAIR)
    key_pair = KeyPair(name=naming.key_pair_name(ctx.cluster_id), clients=ctx.clients)
    await teardown.attempt("key pair", key_pair.delete)
    return teardown.errors


async def delete_key_material(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.KEY_MATERIAL)
    key = KMSKey(name=naming.kms_key_name(ctx.cluster_id), clients=ctx.clients)
    await teardown.attempt("key material", key.delete)
    return teardown.errors


async def delete_network(ctx: ClusterContext) -> list[Exception]:
    teardown = Teardown(StageName.NETWORK)
    cluster_id, clients = ctx.cluster_id, ctx.clients
    vpc = VPC(name=naming.vpc_name(cluster_id), clients=clients)

    async def resolve_vpc() -> None:
        await vpc.get()

    await teardown.attempt("resolve network", resolve_vpc)

    group = SecurityGroup(name=naming.security_group_name(cluster_id), clients=clients, vpc_id=vpc.id)
    await teardown.attempt("security group", group.delete)
    await teardown.attempt("subnet", Subnet(name=naming.subnet_name(cluster_id), clients=clients).delete)
    await teardown.attempt("gateway", Gateway(name=naming.gateway_name(cluster_id), clients=clients).delete)
    if vpc.id:
        await teardown.attempt("network", vpc.delete)
    return teardown.errors


DELETE_STEPS: tuple[DeleteStep, ...] = (
    DeleteStep(StageName.NAMESPACE, delete_namespace),
    DeleteStep(StageName.MASTER_INSTANCES, delete_masters),
    DeleteStep(StageName.WORKER_INSTANCES, delete_workers),
    DeleteStep(StageName.OBJECT_STORE_OBJECTS, delete_object_store),
    DeleteStep(StageName.LOAD_BALANCER, delete_load_balancer),
    DeleteStep(StageName.IDENTITY_POLICY, delete_identity_policy),
    DeleteStep(StageName.KEY_PAIR, delete_key_pair),
    DeleteStep(StageName.KEY_MATERIAL, delete_key_material),
    DeleteStep(StageName.NETWORK, delete_network),
)
