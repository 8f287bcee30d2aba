"""Watch cluster custom objects and yield decoded lifecycle events."""

from __future__ import annotations

from typing import Any, AsyncIterator

import structlog
from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from clusteroperator.config import Settings
from clusteroperator.core.errors import ValidationError
from clusteroperator.events.types import ClusterEvent, decode_event
from clusteroperator.resources.kubernetes import run_sync

logger = structlog.get_logger()

WATCH_TIMEOUT_SECONDS = 300

# The API server has compacted away the requested resource version.
HTTP_GONE = 410

_END = object()


def _log_watch_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "watch_stream_failed",
        attempt=retry_state.attempt_number,
        status=getattr(exc, "status", None),
        error=str(exc),
        retry_in=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class KubernetesClusterWatcher:
    """
    Async iterator over cluster events from the Kubernetes API.

    The watch stream is blocking, so each item is pulled in the executor. When
    a stream times out it is reopened from the last seen resource version. An
    expired resource version (410) restarts the watch with a fresh list; other
    API errors reopen the stream after an exponential backoff.
    """

    def __init__(self, api_client: client.ApiClient, settings: Settings) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._settings = settings
        self._watch: watch.Watch | None = None
        self._stream: Any = None
        self._resource_version: str | None = None
        self._stopped = False
        self._retrying = AsyncRetrying(
            retry=retry_if_exception_type(ApiException),
            wait=wait_exponential(multiplier=settings.watch_retry_initial, max=settings.watch_retry_max),
            before_sleep=_log_watch_retry,
            reraise=True,
        )

    def stop(self) -> None:
        self._stopped = True
        if self._watch is not None:
            self._watch.stop()

    def _open_stream(self) -> Any:
        self._watch = watch.Watch()
        kwargs: dict[str, Any] = {"timeout_seconds": WATCH_TIMEOUT_SECONDS}
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version
        return self._watch.stream(
            self._api.list_cluster_custom_object,
            self._settings.crd_group,
            self._settings.crd_version,
            self._settings.crd_plural,
            **kwargs,
        )

    async def _pull(self) -> Any:
        if self._stream is None:
            self._stream = await run_sync(self._open_stream)
        try:
            return await run_sync(next, self._stream, _END)
        except ApiException as e:
            self._stream = None
            if e.status != HTTP_GONE:
                raise
            logger.info("watch_resource_version_expired", resource_version=self._resource_version)
            self._resource_version = None
            return _END

    async def _next_raw(self) -> Any:
        async for attempt in self._retrying:
            with attempt:
                return await self._pull()
        raise AssertionError("unreachable")  # pragma: no cover

    async def __aiter__(self) -> AsyncIterator[ClusterEvent]:
        while not self._stopped:
            raw = await self._next_raw()
            if raw is _END:
                self._stream = None
                logger.debug("watch_stream_reopened", resource_version=self._resource_version)
                continue
            self._remember_version(raw)
            try:
                event = decode_event(raw)
            except ValidationError as e:
                logger.error("watch_event_invalid", error=e.message, **e.details)
                continue
            if event is not None:
                yield event

    def _remember_version(self, raw: dict[str, Any]) -> None:
        obj = raw.get("object")
        if isinstance(obj, dict):
            version = (obj.get("metadata") or {}).get("resourceVersion")
            if version:
                self._resource_version = version
