"""Tests for TLS asset loading and encryption."""

import base64
import gzip

import pytest

from clusteroperator.core.errors import ConfigurationError
from clusteroperator.tls import (
    BUNDLE_KEYS,
    AssetsBundleKey,
    AssetType,
    Component,
    compact,
    encrypt_assets,
    read_raw_assets,
)


class RecordingEncryptor:
    def __init__(self):
        self.calls = []

    async def encrypt(self, key_ref, plaintext):
        self.calls.append((key_ref, plaintext))
        return b"cipher:" + plaintext


class TestBundleKeys:
    def test_every_component_has_three_files(self):
        assert len(BUNDLE_KEYS) == len(Component) * len(AssetType) == 15

    def test_filename(self):
        assert AssetsBundleKey(Component.APISERVER, AssetType.CRT).filename == "apiserver-crt.pem"
        assert AssetsBundleKey(Component.SERVICE_ACCOUNT, AssetType.KEY).filename == "serviceaccount-key.pem"


class TestReadRawAssets:
    def test_reads_all_files(self, certs_dir):
        bundle = read_raw_assets(certs_dir)

        assert set(bundle) == set(BUNDLE_KEYS)
        assert bundle[AssetsBundleKey(Component.ETCD, AssetType.CA)] == b"-----BEGIN etcd ca-----"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            read_raw_assets(tmp_path / "missing")

    def test_lists_missing_files(self, certs_dir):
        (certs_dir / "worker-key.pem").unlink()
        (certs_dir / "etcd-ca.pem").unlink()

        with pytest.raises(ConfigurationError) as exc_info:
            read_raw_assets(certs_dir)

        assert sorted(exc_info.value.details["missing"]) == ["etcd-ca.pem", "worker-key.pem"]


class TestEncryptAssets:
    """Assets are encrypted under the cluster key, then compacted."""

    def test_compact_is_gzip_base64(self):
        assert gzip.decompress(base64.b64decode(compact(b"payload"))) == b"payload"

    @pytest.mark.asyncio
    async def test_encrypts_each_asset(self, certs_dir):
        bundle = read_raw_assets(certs_dir)
        encryptor = RecordingEncryptor()

        encrypted = await encrypt_assets(bundle, encryptor, "arn:aws:kms:key/1")

        assert len(encryptor.calls) == 15
        assert {ref for ref, _ in encryptor.calls} == {"arn:aws:kms:key/1"}
        key = AssetsBundleKey(Component.WORKER, AssetType.CRT)
        assert gzip.decompress(base64.b64decode(encrypted[key])) == b"cipher:" + bundle[key]
