"""Cluster events and their Kubernetes source."""

from clusteroperator.events.registration import ensure_registered
from clusteroperator.events.types import AddCluster, ClusterEvent, DeleteCluster, decode_event
from clusteroperator.events.watcher import KubernetesClusterWatcher

__all__ = [
    "AddCluster",
    "ClusterEvent",
    "DeleteCluster",
    "KubernetesClusterWatcher",
    "decode_event",
    "ensure_registered",
]
