"""EC2 tag and filter helpers."""

from __future__ import annotations

from typing import Any

from clusteroperator.resources.naming import TAG_CLUSTER, TAG_NAME


def tag_filter(key: str, *values: str) -> dict[str, Any]:
    return {"Name": f"tag:{key}", "Values": list(values)}


def name_filter(name: str) -> dict[str, Any]:
    return tag_filter(TAG_NAME, name)


def cluster_tags(name: str, cluster_id: str | None = None) -> list[dict[str, str]]:
    tags = [{"Key": TAG_NAME, "Value": name}]
    if cluster_id:
        tags.append({"Key": TAG_CLUSTER, "Value": cluster_id})
    return tags
