"""TLS asset loading and encryption."""

from clusteroperator.tls.assets import (
    BUNDLE_KEYS,
    AssetsBundle,
    AssetsBundleKey,
    AssetType,
    Component,
    KeyEncryptor,
    compact,
    encrypt_assets,
    read_raw_assets,
)

__all__ = [
    "BUNDLE_KEYS",
    "AssetType",
    "AssetsBundle",
    "AssetsBundleKey",
    "Component",
    "KeyEncryptor",
    "compact",
    "encrypt_assets",
    "read_raw_assets",
]
