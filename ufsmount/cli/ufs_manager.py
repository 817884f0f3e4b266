#!/usr/bin/env python3
"""
CLI tool for running UFS reconciliation by hand

Usage:
    python -m ufsmount.cli.ufs_manager --help
    python -m ufsmount.cli.ufs_manager init-db
    python -m ufsmount.cli.ufs_manager create --namespace default --name demo --spec mounts.json
    python -m ufsmount.cli.ufs_manager diff --namespace default --name demo
    python -m ufsmount.cli.ufs_manager reconcile --namespace default --name demo
    python -m ufsmount.cli.ufs_manager ensure --namespace default --name demo
    python -m ufsmount.cli.ufs_manager status --namespace default --name demo
"""

import argparse
import json
import logging
import sys

from ufsmount.config import setup_logging
from ufsmount.exceptions import UFSError
from ufsmount.ufs.types import ResourceId

logger = logging.getLogger(__name__)


def init_db():
    """Create the resource tables"""
    from ufsmount.config import init_db

    init_db()
    print("Database initialized")


def create_dataset(resource_id: ResourceId, spec_file: str):
    """Create a dataset and its runtime from a JSON file holding {"mounts": [...]}"""
    from ufsmount.db.ops import ClusterStateOps
    from ufsmount.ufs.types import DatasetSpec

    with open(spec_file) as f:
        spec = DatasetSpec.model_validate(json.load(f))

    store = ClusterStateOps()
    store.create_dataset(resource_id, spec)
    store.create_runtime(resource_id)
    print(f"Created dataset {resource_id} with {len(spec.mounts)} mounts")


def show_diff(resource_id: ResourceId):
    """Show what a reconciliation pass would change"""
    from ufsmount.tasks.ufs_tasks import build_reconciler

    diff = build_reconciler(resource_id).compute_update()
    print(json.dumps({"to_add": list(diff.to_add), "to_remove": sorted(diff.to_remove)}, indent=2))


def run_reconciliation(resource_id: ResourceId):
    """Run one reconciliation pass"""
    from ufsmount.tasks.ufs_tasks import build_reconciler

    logger.info(f"Starting manual reconciliation of {resource_id}...")
    diff = build_reconciler(resource_id).reconcile()
    logger.info(f"Reconciliation completed, mounted {len(diff.to_add)}, unmounted {len(diff.to_remove)}")


def ensure_mounted(resource_id: ResourceId):
    """Mount every declared UFS that is missing, without unmounting anything"""
    from ufsmount.tasks.ufs_tasks import build_reconciler

    mounted = build_reconciler(resource_id).ensure_mounted()
    print(f"Mounted {len(mounted)} paths: {', '.join(mounted) if mounted else '-'}")


def show_status(resource_id: ResourceId):
    from ufsmount.tasks.ufs_tasks import build_reconciler

    status = build_reconciler(resource_id).get_status()
    print(json.dumps(status, indent=2, ensure_ascii=False))


def main(argv=None):
    parser = argparse.ArgumentParser(description="UFS Mount Manager CLI")
    parser.add_argument("--log-level", default=None, help="Log level (default: from settings)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create the resource tables")

    create_parser = subparsers.add_parser("create", help="Create a dataset and its runtime")
    create_parser.add_argument("--spec", required=True, help='JSON file with {"mounts": [...]}')

    subparsers.add_parser("diff", help="Show mounts to add and paths to remove")
    subparsers.add_parser("reconcile", help="Run a reconciliation pass")
    subparsers.add_parser("ensure", help="Mount missing UFS without removing any")
    subparsers.add_parser("status", help="Show dataset and runtime status")

    for name, sub in subparsers.choices.items():
        if name != "init-db":
            sub.add_argument("--namespace", default="default", help="Dataset namespace")
            sub.add_argument("--name", required=True, help="Dataset name")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "init-db":
            init_db()
            return 0

        resource_id = ResourceId(args.namespace, args.name)
        if args.command == "create":
            create_dataset(resource_id, args.spec)
        elif args.command == "diff":
            show_diff(resource_id)
        elif args.command == "reconcile":
            run_reconciliation(resource_id)
        elif args.command == "ensure":
            ensure_mounted(resource_id)
        elif args.command == "status":
            show_status(resource_id)
    except UFSError as e:
        logger.error(f"Command {args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
