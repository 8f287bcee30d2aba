"""Result types for cluster reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class StageName(StrEnum):
    NAMESPACE = "Namespace"
    KEY_PAIR = "KeyPair"
    CERTIFICATES = "Certificates"
    KEY_MATERIAL = "KeyMaterial"
    ENCRYPTED_ASSETS = "EncryptedAssets"
    IDENTITY_POLICY = "IdentityPolicy"
    OBJECT_STORE = "ObjectStore"
    OBJECT_STORE_OBJECTS = "ObjectStoreObjects"
    MASTER_INSTANCES = "MasterInstances"
    LOAD_BALANCER = "LoadBalancer"
    WORKER_INSTANCES = "WorkerInstances"
    CONSISTENCY_CHECK = "ConsistencyCheck"
    NETWORK = "Network"
    DONE = "Done"


class StageStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Outcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    INCONSISTENT = "inconsistent"


class Action(StrEnum):
    CREATE = "create"
    DELETE = "delete"


@dataclass
class StageOutcome:
    """What one stage did: its status, an optional detail and its errors."""

    stage: StageName
    status: StageStatus = StageStatus.SUCCEEDED
    detail: str | None = None
    errors: list[Exception] = field(default_factory=list)

    @property
    def label(self) -> str:
        """Stage name with its detail, e.g. ``MasterInstances(3)``."""
        if self.detail is None:
            return str(self.stage)
        return f"{self.stage}({self.detail})"

    @property
    def error(self) -> Exception | None:
        return self.errors[0] if self.errors else None

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


@dataclass
class ReconcileReport:
    """Result of handling one cluster event."""

    cluster_id: str
    action: Action
    stages: list[StageOutcome] = field(default_factory=list)
    outcome: Outcome = Outcome.SUCCESS
    duration_seconds: float = 0.0
    created_instances: list[str] = field(default_factory=list)

    @property
    def labels(self) -> list[str]:
        return [stage.label for stage in self.stages]

    @property
    def failures(self) -> list[StageOutcome]:
        return [stage for stage in self.stages if not stage.succeeded]

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    def stage(self, name: StageName) -> StageOutcome | None:
        for outcome in self.stages:
            if outcome.stage == name:
                return outcome
        return None

    def error(self, name: StageName) -> Exception | None:
        outcome = self.stage(name)
        return outcome.error if outcome else None


class ReportCollector:
    """Aggregates stage outcomes during a reconciliation."""

    def __init__(self, cluster_id: str, action: Action) -> None:
        self._report = ReconcileReport(cluster_id=cluster_id, action=action)

    @property
    def stages(self) -> list[StageOutcome]:
        return self._report.stages

    def record(self, stage: StageName, detail: str | None = None) -> StageOutcome:
        """Record a successful stage."""
        outcome = StageOutcome(stage=stage, detail=detail)
        self._report.stages.append(outcome)
        return outcome

    def record_error(
        self,
        stage: StageName,
        errors: Exception | list[Exception],
        detail: str | None = None,
    ) -> StageOutcome:
        """Record a failed stage with one or more errors."""
        if isinstance(errors, Exception):
            errors = [errors]
        outcome = StageOutcome(stage=stage, status=StageStatus.FAILED, detail=detail, errors=list(errors))
        self._report.stages.append(outcome)
        return outcome

    def record_instances(self, instance_ids: list[str]) -> None:
        self._report.created_instances = list(instance_ids)

    def finalize(self, outcome: Outcome, duration: float) -> ReconcileReport:
        """Return the final report with outcome and duration set."""
        self._report.outcome = outcome
        self._report.duration_seconds = duration
        return self._report
