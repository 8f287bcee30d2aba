from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import aioboto3
import structlog

if TYPE_CHECKING:
    from clusteroperator.service.results import ReconcileReport

logger = structlog.get_logger()

FLUSH_THRESHOLD = 20

OUTCOME_METRICS = {
    "success": "ReconcileSucceeded",
    "failure": "ReconcileFailed",
    "inconsistent": "ReconcileInconsistent",
}


class MetricsCollector:
    """CloudWatch metrics collector for reconciliation outcomes."""

    def __init__(
        self,
        namespace: str = "ClusterOperator",
        region: str = "eu-central-1",
        *,
        enabled: bool = True,
    ) -> None:
        self.namespace = namespace
        self.region = region
        self.enabled = enabled
        self._metrics_buffer: list[dict[str, Any]] = []

    async def emit(
        self,
        metric_name: str,
        value: float,
        *,
        unit: str = "Count",
        **dimensions: str,
    ) -> None:
        """Buffer a metric; the buffer is flushed once it holds FLUSH_THRESHOLD entries."""
        if not self.enabled:
            return

        metric_data = {
            "MetricName": metric_name,
            "Value": value,
            "Unit": unit,
            "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
            "Timestamp": time.time(),
        }
        self._metrics_buffer.append(metric_data)

        if len(self._metrics_buffer) >= FLUSH_THRESHOLD:
            await self._flush()

    async def record_report(self, report: ReconcileReport) -> None:
        """Emit the outcome counter and duration of one reconciliation."""
        dimensions = {"Action": str(report.action)}
        await self.emit(OUTCOME_METRICS[str(report.outcome)], 1, **dimensions)
        await self.emit("ReconcileDuration", report.duration_seconds, unit="Seconds", **dimensions)

    async def _flush(self) -> None:
        """Flush buffered metrics to CloudWatch."""
        if not self._metrics_buffer:
            return

        try:
            session = aioboto3.Session(region_name=self.region)
            async with session.client("cloudwatch") as client:
                await client.put_metric_data(
                    Namespace=self.namespace,
                    MetricData=self._metrics_buffer,
                )
            self._metrics_buffer.clear()
        except Exception as exc:
            logger.error("metrics_flush_failed", error=str(exc))

    async def close(self) -> None:
        """Flush remaining metrics on shutdown."""
        await self._flush()
