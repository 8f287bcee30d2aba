"""
Operator process: register the watched type once, then reconcile events.

Each event runs as its own task with its own provider clients. Events for the
same cluster are handled one at a time, in arrival order; events for different
clusters run concurrently, bounded by ``max_concurrent_events``.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import AsyncIterable, Awaitable, Callable

import structlog

from clusteroperator.config import Settings
from clusteroperator.events.types import ClusterEvent
from clusteroperator.service.reconciler import ClusterReconciler
from clusteroperator.service.results import ReconcileReport

logger = structlog.get_logger()

RegisterFn = Callable[[bool], Awaitable[bool]]


class Operator:
    def __init__(
        self,
        settings: Settings,
        reconciler: ClusterReconciler,
        events: AsyncIterable[ClusterEvent],
        register: RegisterFn,
    ) -> None:
        self._settings = settings
        self._reconciler = reconciler
        self._events = events
        self._register = register
        self._registered = False
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_events)
        self._tasks: set[asyncio.Task[ReconcileReport | None]] = set()
        self._cluster_locks: dict[str, asyncio.Lock] = {}
        self._pending: Counter[str] = Counter()

    @property
    def registered(self) -> bool:
        return self._registered

    async def start(self) -> None:
        """Register the watched resource type; later calls are no-ops."""
        self._registered = await self._register(self._registered)
        logger.info("operator_started", max_concurrent_events=self._settings.max_concurrent_events)

    async def run(self) -> None:
        """Consume events until the source is exhausted, then drain in-flight tasks."""
        await self.start()
        async for event in self._events:
            task = asyncio.create_task(self._reconcile(event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks)
        logger.info("operator_stopped")

    async def _reconcile(self, event: ClusterEvent) -> ReconcileReport | None:
        cluster_id = event.spec.cluster_id
        lock = self._cluster_locks.setdefault(cluster_id, asyncio.Lock())
        self._pending[cluster_id] += 1
        try:
            # Events waiting on a busy cluster hold no concurrency slot.
            async with lock, self._semaphore:
                return await self._handle(event)
        finally:
            self._pending[cluster_id] -= 1
            if not self._pending[cluster_id]:
                del self._pending[cluster_id]
                del self._cluster_locks[cluster_id]

    async def _handle(self, event: ClusterEvent) -> ReconcileReport | None:
        try:
            return await self._reconciler.handle(event)
        except Exception as e:
            logger.error(
                "event_handling_failed",
                event_type=type(event).__name__,
                cluster_id=event.spec.cluster_id,
                error=str(e),
                exc_info=True,
            )
            return None
