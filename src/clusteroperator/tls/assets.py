"""
TLS assets of a cluster.

Raw PEM files are read from a directory, encrypted under the cluster's KMS key
and compacted (gzip + base64) for embedding into boot configuration. Files are
named ``<component>-<type>.pem``, e.g. ``apiserver-crt.pem``.
"""

from __future__ import annotations

import base64
import gzip
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol

import structlog

from clusteroperator.core.errors import ConfigurationError

logger = structlog.get_logger()


class Component(StrEnum):
    APISERVER = "apiserver"
    CALICO = "calico"
    ETCD = "etcd"
    SERVICE_ACCOUNT = "serviceaccount"
    WORKER = "worker"


class AssetType(StrEnum):
    CA = "ca"
    CRT = "crt"
    KEY = "key"


@dataclass(frozen=True)
class AssetsBundleKey:
    component: Component
    type: AssetType

    @property
    def filename(self) -> str:
        return f"{self.component}-{self.type}.pem"


AssetsBundle = dict[AssetsBundleKey, bytes]

BUNDLE_KEYS = tuple(AssetsBundleKey(c, t) for c in Component for t in AssetType)


class KeyEncryptor(Protocol):
    async def encrypt(self, key_ref: str, plaintext: bytes) -> bytes:
        ...


def read_raw_assets(certs_dir: str | Path) -> AssetsBundle:
    """Read every component's ca, crt and key from ``certs_dir``.

    Raises:
        ConfigurationError: if the directory or any expected file is missing
    """
    directory = Path(certs_dir)
    if not directory.is_dir():
        raise ConfigurationError(
            f"Certificates directory not found: {directory}",
            details={"certs_dir": str(directory)},
        )

    bundle: AssetsBundle = {}
    missing = []
    for key in BUNDLE_KEYS:
        path = directory / key.filename
        if not path.is_file():
            missing.append(key.filename)
            continue
        bundle[key] = path.read_bytes()

    if missing:
        raise ConfigurationError(
            f"Missing TLS assets in {directory}: {', '.join(missing)}",
            details={"certs_dir": str(directory), "missing": missing},
        )

    logger.debug("tls_assets_read", certs_dir=str(directory), count=len(bundle))
    return bundle


def compact(data: bytes) -> str:
    """Gzip then base64 encode, as cloud-config ``gzip+base64`` files expect."""
    return base64.b64encode(gzip.compress(data)).decode("ascii")


async def encrypt_assets(bundle: AssetsBundle, encryptor: KeyEncryptor, key_ref: str) -> dict[AssetsBundleKey, str]:
    """Encrypt each asset under ``key_ref`` and compact the ciphertext."""
    encrypted = {}
    for key in BUNDLE_KEYS:
        ciphertext = await encryptor.encrypt(key_ref, bundle[key])
        encrypted[key] = compact(ciphertext)
    logger.info("tls_assets_encrypted", count=len(encrypted))
    return encrypted
