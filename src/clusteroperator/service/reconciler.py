"""
Cluster reconciler: the handler invoked once per cluster event.

Create runs the stages fail-fast, except for the prerequisite stages
(KeyMaterial, IdentityPolicy) whose errors are recorded and later judged by
the consistency check. Delete runs every stage regardless of failures.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from clusteroperator.cloudconfig.renderer import CloudConfigRenderer, CoreOSCloudConfigRenderer
from clusteroperator.cloudwatch import MetricsCollector
from clusteroperator.config import Settings
from clusteroperator.events.types import AddCluster, ClusterEvent, DeleteCluster
from clusteroperator.logging import bind_cluster_context, clear_cluster_context
from clusteroperator.resources.aws.clients import AWSClients, ClientsFactory, open_clients
from clusteroperator.resources.aws.kms import KMSEncryptor
from clusteroperator.resources.kubernetes import NamespaceService
from clusteroperator.service.composer import CREATE_STEPS, DELETE_STEPS, ClusterContext, CreateStep, DeleteStep
from clusteroperator.service.consistency import find_inconsistency
from clusteroperator.service.results import (
    Action,
    Outcome,
    ReconcileReport,
    ReportCollector,
    StageName,
)
from clusteroperator.specs.models import ClusterSpec
from clusteroperator.tls.assets import KeyEncryptor

logger = structlog.get_logger()

CHECK_PASS = "pass"
CHECK_FAIL = "fail"


class ClusterReconciler:
    """Handles cluster events against the cloud provider.

    Stateless between events: every run opens its own client set and finds
    existing resources by name.
    """

    def __init__(
        self,
        settings: Settings,
        namespaces: NamespaceService,
        *,
        renderer: CloudConfigRenderer | None = None,
        encryptor_factory: Callable[[AWSClients], KeyEncryptor] = KMSEncryptor,
        clients_factory: ClientsFactory = open_clients,
        metrics: MetricsCollector | None = None,
        create_steps: tuple[CreateStep, ...] = CREATE_STEPS,
        delete_steps: tuple[DeleteStep, ...] = DELETE_STEPS,
    ) -> None:
        self._settings = settings
        self._namespaces = namespaces
        self._renderer = renderer or CoreOSCloudConfigRenderer()
        self._encryptor_factory = encryptor_factory
        self._clients_factory = clients_factory
        self._metrics = metrics
        self._create_steps = create_steps
        self._delete_steps = delete_steps

    async def handle(self, event: ClusterEvent) -> ReconcileReport:
        if isinstance(event, AddCluster):
            report = await self.create(event.spec)
        elif isinstance(event, DeleteCluster):
            report = await self.delete(event.spec)
        else:
            raise TypeError(f"Unsupported cluster event: {type(event).__name__}")

        if self._metrics is not None:
            await self._metrics.record_report(report)
        return report

    async def create(self, spec: ClusterSpec) -> ReconcileReport:
        bind_cluster_context(spec.cluster_id, Action.CREATE)
        try:
            start = time.time()
            collector = ReportCollector(spec.cluster_id, Action.CREATE)
            logger.info(
                "cluster_create_started",
                region=spec.region,
                masters=len(spec.masters),
                workers=len(spec.workers),
            )

            async with self._clients_factory(spec.region) as clients:
                ctx = self._context(spec, clients)
                outcome = await self._run_create(ctx, collector)

            report = collector.finalize(outcome, time.time() - start)
            logger.info("cluster_create_finished", outcome=str(outcome), stages=report.labels)
            return report
        finally:
            clear_cluster_context()

    async def delete(self, spec: ClusterSpec) -> ReconcileReport:
        bind_cluster_context(spec.cluster_id, Action.DELETE)
        try:
            start = time.time()
            collector = ReportCollector(spec.cluster_id, Action.DELETE)
            logger.info("cluster_delete_started", region=spec.region)

            async with self._clients_factory(spec.region) as clients:
                ctx = self._context(spec, clients)
                for step in self._delete_steps:
                    errors = await step.run(ctx)
                    if errors:
                        collector.record_error(step.stage, errors)
                        logger.error(
                            "delete_stage_failed",
                            stage=str(step.stage),
                            errors=[str(e) for e in errors],
                        )
                    else:
                        collector.record(step.stage)
            collector.record(StageName.DONE)

            outcome = Outcome.FAILURE if any(not s.succeeded for s in collector.stages) else Outcome.SUCCESS
            report = collector.finalize(outcome, time.time() - start)
            logger.info("cluster_delete_finished", outcome=str(outcome), failed=[s.label for s in report.failures])
            return report
        finally:
            clear_cluster_context()

    def _context(self, spec: ClusterSpec, clients: AWSClients) -> ClusterContext:
        return ClusterContext(
            spec=spec,
            clients=clients,
            settings=self._settings,
            namespaces=self._namespaces,
            renderer=self._renderer,
            encryptor=self._encryptor_factory(clients),
        )

    async def _run_create(self, ctx: ClusterContext, collector: ReportCollector) -> Outcome:
        failed = False
        for step in self._create_steps:
            try:
                detail = await step.run(ctx)
            except Exception as e:
                collector.record_error(step.stage, e)
                if step.tolerated:
                    logger.warning("create_stage_error_tolerated", stage=str(step.stage), error=str(e))
                    continue
                logger.error("create_stage_failed", stage=str(step.stage), error=str(e), exc_info=True)
                failed = True
                break
            collector.record(step.stage, detail)
            logger.info("create_stage_succeeded", stage=str(step.stage), detail=detail)

        collector.record_instances(ctx.created_instances)

        # Checked after a fatal failure too: instances launched before it still count.
        inconsistency = find_inconsistency(ctx.cluster_id, collector.stages, ctx.created_instances)
        if inconsistency is not None:
            collector.record(StageName.CONSISTENCY_CHECK, CHECK_FAIL)
            logger.critical("cluster_inconsistent", error=inconsistency.message, **inconsistency.details)
            return Outcome.INCONSISTENT
        if failed:
            return Outcome.FAILURE

        collector.record(StageName.CONSISTENCY_CHECK, CHECK_PASS)
        collector.record(StageName.DONE)
        return Outcome.SUCCESS
