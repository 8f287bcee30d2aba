"""Cluster reconciliation: stage composition, consistency checking and reporting."""

from clusteroperator.service.reconciler import ClusterReconciler
from clusteroperator.service.results import (
    Action,
    Outcome,
    ReconcileReport,
    ReportCollector,
    StageName,
    StageOutcome,
    StageStatus,
)

__all__ = [
    "Action",
    "ClusterReconciler",
    "Outcome",
    "ReconcileReport",
    "ReportCollector",
    "StageName",
    "StageOutcome",
    "StageStatus",
]
