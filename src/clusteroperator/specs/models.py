"""Cluster specification models.

A ClusterSpec is the immutable input to one reconciliation run. It is decoded
once from the custom-object document delivered by the event source (or read
from a YAML file by the CLI) and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from clusteroperator.core.errors import ValidationError


class MachineRole(StrEnum):
    MASTER = "master"
    WORKER = "worker"


@dataclass(frozen=True)
class MachineSpec:
    """One declared machine: image reference and instance size."""

    image_id: str
    instance_type: str


@dataclass(frozen=True)
class NetworkSpec:
    vpc_cidr: str
    public_subnet_cidr: str


@dataclass(frozen=True)
class ClusterSpec:
    """Declared cluster: identity, placement, network and machines."""

    cluster_id: str
    region: str
    availability_zone: str
    network: NetworkSpec
    masters: tuple[MachineSpec, ...] = ()
    workers: tuple[MachineSpec, ...] = ()
    customer_id: str | None = None
    api_domain: str | None = None
    etcd_domain: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def machines(self, role: MachineRole) -> tuple[MachineSpec, ...]:
        return self.masters if role == MachineRole.MASTER else self.workers

    @classmethod
    def from_custom_object(cls, obj: dict[str, Any]) -> ClusterSpec:
        """Decode a cluster custom object (``metadata`` + ``spec.cluster`` + ``spec.aws``)."""
        if not isinstance(obj, dict):
            raise ValidationError("Cluster object must be a mapping")

        spec = obj.get("spec") or {}
        cluster = spec.get("cluster") or {}
        aws = spec.get("aws") or {}
        metadata = obj.get("metadata") or {}

        cluster_id = (cluster.get("cluster") or {}).get("id") or metadata.get("name")
        if not cluster_id:
            raise ValidationError("Cluster id is required (spec.cluster.cluster.id)")

        region = aws.get("region")
        if not region:
            raise ValidationError(
                "AWS region is required (spec.aws.region)",
                details={"cluster_id": cluster_id},
            )

        vpc = aws.get("vpc") or {}
        if not vpc.get("cidr") or not vpc.get("publicSubnetCidr"):
            raise ValidationError(
                "Network CIDR blocks are required (spec.aws.vpc.cidr, spec.aws.vpc.publicSubnetCidr)",
                details={"cluster_id": cluster_id},
            )
        network = NetworkSpec(
            vpc_cidr=vpc["cidr"],
            public_subnet_cidr=vpc["publicSubnetCidr"],
        )

        masters = _merge_machines(
            MachineRole.MASTER, cluster.get("masters") or [], aws.get("masters") or [], cluster_id
        )
        workers = _merge_machines(
            MachineRole.WORKER, cluster.get("workers") or [], aws.get("workers") or [], cluster_id
        )

        kubernetes = cluster.get("kubernetes") or {}
        return cls(
            cluster_id=cluster_id,
            region=region,
            availability_zone=aws.get("az") or f"{region}a",
            network=network,
            masters=masters,
            workers=workers,
            customer_id=(cluster.get("customer") or {}).get("id"),
            api_domain=(kubernetes.get("api") or {}).get("domain"),
            etcd_domain=(cluster.get("etcd") or {}).get("domain"),
            raw=obj,
        )


def _merge_machines(
    role: MachineRole,
    generic: list[dict[str, Any]],
    aws: list[dict[str, Any]],
    cluster_id: str,
) -> tuple[MachineSpec, ...]:
    """Zip the generic and AWS-specific machine lists of one role."""
    if generic and len(generic) != len(aws):
        raise ValidationError(
            f"Mismatched number of {role} machines in the 'cluster' and 'aws' sections: "
            f"{len(generic)} != {len(aws)}",
            details={"cluster_id": cluster_id, "role": str(role)},
        )

    machines = []
    for index, machine in enumerate(aws):
        image_id = machine.get("imageid") or machine.get("imageId")
        instance_type = machine.get("instancetype") or machine.get("instanceType")
        if not image_id or not instance_type:
            raise ValidationError(
                f"{role} machine {index} needs an image id and an instance type",
                details={"cluster_id": cluster_id, "role": str(role), "index": index},
            )
        machines.append(MachineSpec(image_id=image_id, instance_type=instance_type))
    return tuple(machines)
