"""Per-event AWS client sets built on aioboto3."""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Callable

import aioboto3
import structlog

logger = structlog.get_logger()

SERVICES = ("ec2", "elb", "iam", "kms", "s3", "route53")


@dataclass
class AWSClients:
    """The service clients one reconciliation run talks to."""

    region: str
    ec2: Any
    elb: Any
    iam: Any
    kms: Any
    s3: Any
    route53: Any


ClientsFactory = Callable[[str], AsyncContextManager[AWSClients]]


@asynccontextmanager
async def open_clients(region: str) -> AsyncIterator[AWSClients]:
    """Open a fresh session and client set for ``region``.

    Each event gets its own session; clients are closed when the block exits.
    """
    session = aioboto3.Session(region_name=region)
    async with AsyncExitStack() as stack:
        clients = {}
        for service in SERVICES:
            clients[service] = await stack.enter_async_context(session.client(service))
        logger.debug("aws_clients_opened", region=region)
        yield AWSClients(region=region, **clients)
