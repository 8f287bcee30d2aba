"""Root test configuration."""

import logging

import pytest
import structlog
from fakes import ZONE_NAME, FakeAWS, FakeNamespaces, cluster_object

from clusteroperator.config import Settings
from clusteroperator.specs.models import ClusterSpec
from clusteroperator.tls.assets import BUNDLE_KEYS


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def cluster_spec():
    return ClusterSpec.from_custom_object(cluster_object())


@pytest.fixture
def certs_dir(tmp_path):
    directory = tmp_path / "certs"
    directory.mkdir()
    for key in BUNDLE_KEYS:
        (directory / key.filename).write_bytes(f"-----BEGIN {key.component} {key.type}-----".encode())
    return directory


@pytest.fixture
def settings(certs_dir):
    return Settings(
        certs_dir=str(certs_dir),
        profile_wait_timeout=2.0,
        profile_wait_initial=0.0,
        profile_wait_max=0.0,
        wait_for_termination=True,
        watch_retry_initial=0.0,
        watch_retry_max=0.0,
        _env_file=None,
    )


@pytest.fixture
def fake_aws():
    aws = FakeAWS()
    aws.route53.add_zone(ZONE_NAME)
    return aws


@pytest.fixture
def aws_clients(fake_aws):
    return fake_aws.clients


@pytest.fixture
def namespaces():
    return FakeNamespaces()
