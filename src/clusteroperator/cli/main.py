"""
Command line entry point.

Usage:
    clusteroperator run
    clusteroperator create -f cluster.yml
    clusteroperator delete -f cluster.yml
    clusteroperator hosted-zone etcd.abc12.g8s.eu-west-1.example.aws.example.com
"""

from __future__ import annotations

import argparse
from typing import Sequence

from clusteroperator.cli.commands import (
    create_command,
    delete_command,
    hosted_zone_command,
    run_command,
)
from clusteroperator.config import get_settings
from clusteroperator.core.errors import main_with_error_handling
from clusteroperator.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clusteroperator", description="Cluster operator for AWS")
    parser.add_argument("--log-level", default=None, help="Log level (default: from settings)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Watch cluster objects and reconcile them")

    create_parser = subparsers.add_parser("create", help="Provision a cluster from a file")
    create_parser.add_argument("-f", "--file", required=True, help="Path to cluster YAML")

    delete_parser = subparsers.add_parser("delete", help="Tear down a cluster from a file")
    delete_parser.add_argument("-f", "--file", required=True, help="Path to cluster YAML")

    zone_parser = subparsers.add_parser("hosted-zone", help="Derive the hosted zone of a domain")
    zone_parser.add_argument("domain", help="Component domain, e.g. etcd.<id>.g8s.<region>.<...>")
    zone_parser.add_argument("--lookup", action="store_true", help="Resolve the zone id in Route53")

    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "run":
        return run_command(settings)
    if args.command == "create":
        return create_command(settings, args.file)
    if args.command == "delete":
        return delete_command(settings, args.file)
    if args.command == "hosted-zone":
        return hosted_zone_command(settings, args.domain, lookup=args.lookup)

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
