"""
Detection of inconsistent clusters.

A create run is inconsistent when it launched at least one instance while a
prerequisite stage (key material or identity policy) reported an error. The
instances then exist without verified access to their encryption key or IAM
policy. This needs an operator: it is never retried or cleaned up automatically.
"""

from __future__ import annotations

import structlog

from clusteroperator.core.errors import InconsistentClusterError
from clusteroperator.service.results import StageName, StageOutcome

logger = structlog.get_logger()

PREREQUISITE_STAGES = (StageName.KEY_MATERIAL, StageName.IDENTITY_POLICY)


def find_inconsistency(
    cluster_id: str,
    stages: list[StageOutcome],
    created_instances: list[str],
) -> InconsistentClusterError | None:
    """Return an InconsistentClusterError describing the problem, or None."""
    if not created_instances:
        return None

    failed = [outcome for outcome in stages if outcome.stage in PREREQUISITE_STAGES and outcome.errors]
    if not failed:
        return None

    error = InconsistentClusterError(
        f"Cluster '{cluster_id}' has instances whose prerequisites could not be verified",
        details={
            "cluster_id": cluster_id,
            "instances": list(created_instances),
            "failed_stages": [str(outcome.stage) for outcome in failed],
        },
    )
    # Chain the first prerequisite failure so the cause survives in logs.
    error.__cause__ = failed[0].error
    return error
