"""Cluster lifecycle events, decoded once at the event-source boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

import structlog

from clusteroperator.core.errors import ValidationError
from clusteroperator.specs.models import ClusterSpec

logger = structlog.get_logger()

WATCH_ADDED = "ADDED"
WATCH_DELETED = "DELETED"


@dataclass(frozen=True)
class AddCluster:
    spec: ClusterSpec


@dataclass(frozen=True)
class DeleteCluster:
    spec: ClusterSpec


ClusterEvent = Union[AddCluster, DeleteCluster]


def decode_event(raw: dict[str, Any]) -> ClusterEvent | None:
    """
    Decode a watch notification into a cluster event.

    Args:
        raw: Watch event with ``type`` and ``object`` keys

    Returns:
        AddCluster or DeleteCluster, or None for notifications that carry no
        lifecycle transition (MODIFIED, BOOKMARK)

    Raises:
        ValidationError: if the object is not a valid cluster document
    """
    event_type = raw.get("type")
    if event_type not in (WATCH_ADDED, WATCH_DELETED):
        logger.debug("watch_event_ignored", event_type=event_type)
        return None

    obj = raw.get("object")
    if hasattr(obj, "to_dict"):
        obj = obj.to_dict()
    if not isinstance(obj, dict):
        raise ValidationError(f"{event_type} event carries no cluster object")

    spec = ClusterSpec.from_custom_object(obj)
    if event_type == WATCH_ADDED:
        return AddCluster(spec)
    return DeleteCluster(spec)
