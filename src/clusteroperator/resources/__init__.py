"""Provisionable cluster resources."""

from clusteroperator.resources.base import (
    ArnResource,
    DNSNamedResource,
    FetchableResource,
    FindOrCreate,
    NamedResource,
    Resource,
    ResourceKind,
    ResourceWithID,
    ReusableResource,
)
from clusteroperator.resources.retry import RetryPolicy, poll_until

__all__ = [
    "ArnResource",
    "DNSNamedResource",
    "FetchableResource",
    "FindOrCreate",
    "NamedResource",
    "Resource",
    "ResourceKind",
    "ResourceWithID",
    "RetryPolicy",
    "ReusableResource",
    "poll_until",
]
