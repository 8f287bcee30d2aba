"""CLI command implementations."""

from __future__ import annotations

import asyncio

import structlog

from clusteroperator.cli import ux
from clusteroperator.cloudwatch import MetricsCollector
from clusteroperator.config import Settings
from clusteroperator.core.errors import ExitCode
from clusteroperator.events.registration import ensure_registered
from clusteroperator.events.types import AddCluster, ClusterEvent, DeleteCluster
from clusteroperator.events.watcher import KubernetesClusterWatcher
from clusteroperator.operator import Operator
from clusteroperator.resources.aws.clients import open_clients
from clusteroperator.resources.aws.route53 import HostedZone
from clusteroperator.resources.kubernetes import KubernetesNamespaces, load_api_client
from clusteroperator.resources.naming import hosted_zone_name
from clusteroperator.service.reconciler import ClusterReconciler
from clusteroperator.service.results import Outcome, ReconcileReport
from clusteroperator.specs.loader import load_cluster_spec

logger = structlog.get_logger()

OUTCOME_EXIT_CODES = {
    Outcome.SUCCESS: ExitCode.SUCCESS,
    Outcome.INCONSISTENT: ExitCode.INCONSISTENT,
    Outcome.FAILURE: ExitCode.PROVIDER_ERROR,
}


def exit_code_for(report: ReconcileReport) -> int:
    return OUTCOME_EXIT_CODES[report.outcome]


def _metrics(settings: Settings) -> MetricsCollector:
    return MetricsCollector(
        settings.metrics_namespace,
        settings.aws_region,
        enabled=settings.metrics_enabled,
    )


async def _handle_once(settings: Settings, event: ClusterEvent) -> ReconcileReport:
    metrics = _metrics(settings)
    reconciler = ClusterReconciler(
        settings,
        KubernetesNamespaces(load_api_client(settings)),
        metrics=metrics,
    )
    try:
        return await reconciler.handle(event)
    finally:
        await metrics.close()


def create_command(settings: Settings, cluster_file: str) -> int:
    """Provision the cluster described in ``cluster_file``."""
    spec = load_cluster_spec(cluster_file)
    report = asyncio.run(_handle_once(settings, AddCluster(spec)))
    ux.print_report(report)
    return exit_code_for(report)


def delete_command(settings: Settings, cluster_file: str) -> int:
    """Tear down the cluster described in ``cluster_file``."""
    spec = load_cluster_spec(cluster_file)
    report = asyncio.run(_handle_once(settings, DeleteCluster(spec)))
    ux.print_report(report)
    return exit_code_for(report)


async def _lookup_zone(name: str, region: str) -> str:
    async with open_clients(region) as clients:
        zone = await HostedZone.from_existing(name, clients)
    return zone.id


def hosted_zone_command(settings: Settings, domain: str, lookup: bool = False) -> int:
    """Print the hosted zone a domain belongs to, optionally with its id."""
    name = hosted_zone_name(domain)
    if not lookup:
        print(name)
        return ExitCode.SUCCESS

    zone_id = asyncio.run(_lookup_zone(name, settings.aws_region))
    print(f"{name}\t{zone_id}")
    return ExitCode.SUCCESS


async def _run_operator(settings: Settings) -> None:
    api_client = load_api_client(settings)
    metrics = _metrics(settings)
    watcher = KubernetesClusterWatcher(api_client, settings)
    operator = Operator(
        settings,
        ClusterReconciler(settings, KubernetesNamespaces(api_client), metrics=metrics),
        watcher,
        register=lambda done: ensure_registered(api_client, settings, done),
    )
    try:
        await operator.run()
    finally:
        watcher.stop()
        await metrics.close()


def run_command(settings: Settings) -> int:
    """Watch cluster objects and reconcile them until interrupted."""
    ux.info(f"Watching {settings.crd_plural}.{settings.crd_group}/{settings.crd_version}")
    asyncio.run(_run_operator(settings))
    return ExitCode.SUCCESS
