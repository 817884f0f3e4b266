# Copyright 2025 ApeCloud, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Celery tasks entry points
This module only handles task orchestration and error handling
All reconciliation logic is delegated to ufsmount.ufs
"""

import logging
from typing import Optional

from celery import current_app

from ufsmount.config import settings
from ufsmount.db.ops import ClusterStateOps, SecretOps
from ufsmount.tasks.scheduler import create_metadata_sync_scheduler, sync_metadata
from ufsmount.ufs.bridge import FileBridge, create_file_bridge
from ufsmount.ufs.context import ReconcileContext
from ufsmount.ufs.reconciler import UFSReconciler
from ufsmount.ufs.status import RetryPolicy
from ufsmount.ufs.types import ResourceId

logger = logging.getLogger(__name__)


def build_reconciler(
    resource_id: ResourceId, bridge: Optional[FileBridge] = None, scheduler_type: Optional[str] = None
) -> UFSReconciler:
    """Wire a reconciler for one dataset from the configured store, bridge and scheduler"""
    store = ClusterStateOps()
    bridge = bridge or create_file_bridge(resource_id)
    policy = RetryPolicy.from_settings(settings)
    scheduler = create_metadata_sync_scheduler(
        scheduler_type or settings.metadata_sync_scheduler, store=store, bridge=bridge, policy=policy
    )
    context = ReconcileContext(
        resource_id=resource_id,
        store=store,
        secret_store=SecretOps(),
        bridge=bridge,
        metadata_sync=scheduler,
        retry_policy=policy,
    )
    return UFSReconciler(context)


@current_app.task
def reconcile_ufs_task(namespace: str, name: str):
    """Periodic task to converge the UFS mounts of one dataset"""
    resource_id = ResourceId(namespace, name)
    try:
        logger.info(f"Starting UFS reconciliation for dataset {resource_id}")
        diff = build_reconciler(resource_id).reconcile()
        logger.info(f"UFS reconciliation completed for dataset {resource_id}")
        return {"mounted": list(diff.to_add), "unmounted": sorted(diff.to_remove)}
    except Exception as e:
        logger.error(f"UFS reconciliation failed for dataset {resource_id}: {e}", exc_info=True)
        raise


@current_app.task
def sync_metadata_task(namespace: str, name: str):
    """Recompute the usage statistics of a dataset after its mount set changed"""
    resource_id = ResourceId(namespace, name)
    try:
        return sync_metadata(
            resource_id, ClusterStateOps(), create_file_bridge(resource_id), RetryPolicy.from_settings(settings)
        )
    except Exception as e:
        logger.error(f"Metadata sync failed for dataset {resource_id}: {e}", exc_info=True)
        raise
