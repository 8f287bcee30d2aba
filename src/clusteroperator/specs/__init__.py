"""Cluster specification models and loading."""

from clusteroperator.specs.loader import load_cluster_spec
from clusteroperator.specs.models import ClusterSpec, MachineRole, MachineSpec, NetworkSpec

__all__ = [
    "ClusterSpec",
    "MachineRole",
    "MachineSpec",
    "NetworkSpec",
    "load_cluster_spec",
]
