"""
Boot configuration for cluster machines.

Machines boot from a small bootstrap that downloads their role's full
``#cloud-config`` document from the cluster bucket. The full document carries
the role's TLS assets, still encrypted under the cluster's KMS key, plus a
unit that decrypts them on first boot.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog
import yaml

from clusteroperator.specs.models import ClusterSpec, MachineRole
from clusteroperator.tls.assets import AssetsBundleKey, AssetType, Component

logger = structlog.get_logger()

CLOUD_CONFIG_HEADER = "#cloud-config\n"
SSL_DIR = "/etc/kubernetes/ssl"
AWS_CLI_IMAGE = "quay.io/coreos/awscli"
CLUSTER_ENVIRONMENT_PATH = "/etc/cluster-environment"

# Where each component's assets land on a machine, per role.
MASTER_ASSET_DIRS = {
    Component.APISERVER: (SSL_DIR, "apiserver"),
    Component.SERVICE_ACCOUNT: (SSL_DIR, "service-account"),
    Component.CALICO: (f"{SSL_DIR}/calico", "client"),
    Component.ETCD: (f"{SSL_DIR}/etcd", "server"),
}

WORKER_ASSET_DIRS = {
    Component.WORKER: (SSL_DIR, "worker"),
    Component.CALICO: (f"{SSL_DIR}/calico", "client"),
    Component.ETCD: (f"{SSL_DIR}/etcd", "client"),
}

DECRYPT_TLS_ASSETS_SCRIPT = """#!/bin/bash -e

rkt run \\
  --volume=ssl,kind=host,source={ssl_dir},readOnly=false \\
  --mount=volume=ssl,target={ssl_dir} \\
  --uuid-file-save=/var/run/coreos/decrypt-tls-assets.uuid \\
  --volume=dns,kind=host,source=/etc/resolv.conf,readOnly=true --mount volume=dns,target=/etc/resolv.conf \\
  --net=host \\
  --trust-keys-from-https \\
  {image} --exec=/bin/bash -- \\
    -ec \\
    'echo decrypting tls assets
    shopt -s nullglob
    for encKey in $(find {ssl_dir} -name "*.pem.enc"); do
      echo decrypting $encKey
      f=$(mktemp $encKey.XXXXXXXX)
      /usr/bin/aws \\
        --region {region} kms decrypt \\
        --ciphertext-blob fileb://$encKey \\
        --output text \\
        --query Plaintext \\
      | base64 -d > $f
      mv -f $f ${{encKey%.enc}}
    done;
    echo done.'

rkt rm --uuid-file=/var/run/coreos/decrypt-tls-assets.uuid || :
"""

DECRYPT_TLS_ASSETS_UNIT = """[Unit]
Description=Decrypt TLS certificates

[Service]
Type=oneshot
RemainAfterExit=yes
ExecStart=/opt/bin/decrypt-tls-assets
"""

BOOTSTRAP_UNIT = """[Unit]
Description=Fetch and apply the full boot configuration
Requires=network-online.target
After=network-online.target

[Service]
Type=oneshot
RemainAfterExit=yes
ExecStartPre=/usr/bin/rkt run --net=host --trust-keys-from-https \\
  --volume=tmp,kind=host,source=/tmp --mount=volume=tmp,target=/tmp \\
  {image} --exec=/usr/bin/aws -- --region {region} s3 cp s3://{bucket}/{key} /tmp/cloudconfig
ExecStart=/usr/bin/coreos-cloudinit --from-file=/tmp/cloudconfig
"""


class CloudConfigRenderer(Protocol):
    def render(
        self,
        role: MachineRole,
        spec: ClusterSpec,
        encrypted_assets: dict[AssetsBundleKey, str],
    ) -> bytes:
        ...


def _dump(document: dict[str, Any]) -> str:
    return CLOUD_CONFIG_HEADER + yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


def cluster_environment(role: MachineRole, spec: ClusterSpec) -> str:
    """``KEY=value`` lines that machine units load through ``EnvironmentFile``."""
    values = {
        "CLUSTER_ID": spec.cluster_id,
        "CUSTOMER_ID": spec.customer_id,
        "MACHINE_ROLE": str(role),
        "K8S_API_DOMAIN": spec.api_domain,
        "ETCD_DOMAIN": spec.etcd_domain,
    }
    return "".join(f"{key}={value}\n" for key, value in values.items() if value)


class CoreOSCloudConfigRenderer:
    """Render a CoreOS ``#cloud-config`` document per machine role."""

    def asset_files(
        self,
        role: MachineRole,
        encrypted_assets: dict[AssetsBundleKey, str],
    ) -> list[dict[str, Any]]:
        dirs = MASTER_ASSET_DIRS if role == MachineRole.MASTER else WORKER_ASSET_DIRS
        files = []
        for component, (directory, prefix) in dirs.items():
            for asset_type in AssetType:
                files.append(
                    {
                        "path": f"{directory}/{prefix}-{asset_type}.pem.enc",
                        "owner": "root:root",
                        "permissions": "0700",
                        "encoding": "gzip+base64",
                        "content": encrypted_assets[AssetsBundleKey(component, asset_type)],
                    }
                )
        return files

    def render(
        self,
        role: MachineRole,
        spec: ClusterSpec,
        encrypted_assets: dict[AssetsBundleKey, str],
    ) -> bytes:
        files = [
            {
                "path": "/opt/bin/decrypt-tls-assets",
                "owner": "root:root",
                "permissions": "0700",
                "content": DECRYPT_TLS_ASSETS_SCRIPT.format(
                    ssl_dir=SSL_DIR, image=AWS_CLI_IMAGE, region=spec.region
                ),
            },
            {
                "path": CLUSTER_ENVIRONMENT_PATH,
                "owner": "root:root",
                "permissions": "0644",
                "content": cluster_environment(role, spec),
            },
            *self.asset_files(role, encrypted_assets),
        ]
        document = {
            "write_files": files,
            "coreos": {
                "units": [
                    {
                        "name": "decrypt-tls-assets.service",
                        "enable": True,
                        "command": "start",
                        "content": DECRYPT_TLS_ASSETS_UNIT,
                    }
                ]
            },
        }
        content = _dump(document)
        logger.debug("cloud_config_rendered", role=str(role), cluster_id=spec.cluster_id, size=len(content))
        return content.encode("utf-8")


def bootstrap_user_data(bucket: str, key: str, region: str) -> str:
    """User data that makes a machine fetch its boot configuration from the bucket."""
    return _dump(
        {
            "coreos": {
                "units": [
                    {
                        "name": "bootstrap-cloudconfig.service",
                        "command": "start",
                        "content": BOOTSTRAP_UNIT.format(
                            image=AWS_CLI_IMAGE, region=region, bucket=bucket, key=key
                        ),
                    }
                ]
            }
        }
    )
