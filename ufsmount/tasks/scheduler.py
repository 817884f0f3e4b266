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

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ufsmount.db.base import ClusterStateStore
from ufsmount.exceptions import MetadataSyncError
from ufsmount.ufs.bridge import FileBridge
from ufsmount.ufs.status import DEFAULT_BACKOFF, DatasetStatusUpdater, RetryPolicy, set_metadata_sync_state
from ufsmount.ufs.types import MetadataSyncState, ResourceId

logger = logging.getLogger(__name__)


class TaskResult:
    """Represents the result of a task execution"""

    def __init__(self, task_id: str, success: bool = True, error: str = None, data: Any = None):
        self.task_id = task_id
        self.success = success
        self.error = error
        self.data = data


def sync_metadata(
    resource_id: ResourceId, store: ClusterStateStore, bridge: FileBridge, policy: RetryPolicy = DEFAULT_BACKOFF
):
    """
    Recompute the usage statistics of a dataset and publish them in its status

    Returns:
        The statistics written, as a dict
    """
    _, _, total_bytes = bridge.count("/")
    file_num = bridge.get_file_count()
    DatasetStatusUpdater(store, policy).update_status(
        resource_id,
        set_metadata_sync_state(MetadataSyncState.from_bytes(total_bytes), total_bytes, file_num),
    )
    logger.info(f"Synced metadata of dataset {resource_id}: {total_bytes} bytes, {file_num} files")
    return {"ufs_total_bytes": total_bytes, "file_num": file_num}


class MetadataSyncScheduler(ABC):
    """Abstract base class for triggering metadata sync after the mount set changed"""

    @abstractmethod
    def schedule_sync(self, resource_id: ResourceId) -> str:
        """
        Schedule recomputation of the dataset usage statistics

        Args:
            resource_id: Dataset to sync

        Returns:
            Task ID for tracking

        Raises:
            MetadataSyncError: if the sync could not be run or dispatched
        """
        pass

    @abstractmethod
    def get_task_status(self, task_id: str) -> Optional[TaskResult]:
        """
        Get task execution status

        Args:
            task_id: Task ID to check

        Returns:
            TaskResult or None if task not found
        """
        pass


class LocalMetadataSyncScheduler(MetadataSyncScheduler):
    """Local synchronous implementation for testing or single-machine deployments"""

    def __init__(self, store: ClusterStateStore, bridge: FileBridge, policy: RetryPolicy = DEFAULT_BACKOFF):
        self._store = store
        self._bridge = bridge
        self._policy = policy
        self._task_counter = 0
        self._results: Dict[str, TaskResult] = {}

    def schedule_sync(self, resource_id: ResourceId) -> str:
        self._task_counter += 1
        task_id = f"local_sync_{self._task_counter}"

        try:
            result = sync_metadata(resource_id, self._store, self._bridge, self._policy)
        except Exception as e:
            self._results[task_id] = TaskResult(task_id, success=False, error=str(e))
            raise MetadataSyncError(resource_id, e) from e

        self._results[task_id] = TaskResult(task_id, success=True, data=result)
        return task_id

    def get_task_status(self, task_id: str) -> Optional[TaskResult]:
        """Get local task status"""
        return self._results.get(task_id)


class CeleryMetadataSyncScheduler(MetadataSyncScheduler):
    """Celery implementation of MetadataSyncScheduler"""

    def schedule_sync(self, resource_id: ResourceId) -> str:
        """Schedule metadata sync task using Celery"""
        from ufsmount.tasks.ufs_tasks import sync_metadata_task

        try:
            task = sync_metadata_task.delay(resource_id.namespace, resource_id.name)
        except Exception as e:
            raise MetadataSyncError(resource_id, e) from e
        logger.debug(f"Scheduled metadata sync task {task.id} for dataset {resource_id}")
        return task.id

    def get_task_status(self, task_id: str) -> Optional[TaskResult]:
        """Get Celery task status"""
        from celery.result import AsyncResult

        result = AsyncResult(task_id)

        if result.state == "PENDING":
            return TaskResult(task_id, success=False, error="Task pending")
        elif result.state == "SUCCESS":
            return TaskResult(task_id, success=True, data=result.result)
        elif result.state == "FAILURE":
            return TaskResult(task_id, success=False, error=str(result.info))
        else:
            return TaskResult(task_id, success=False, error=f"Unknown state: {result.state}")


def create_metadata_sync_scheduler(
    scheduler_type: str,
    store: Optional[ClusterStateStore] = None,
    bridge: Optional[FileBridge] = None,
    policy: RetryPolicy = DEFAULT_BACKOFF,
) -> MetadataSyncScheduler:
    """
    Factory function to create metadata sync scheduler

    Args:
        scheduler_type: Type of scheduler ('local' or 'celery')
        store: Resource store, required by the local scheduler
        bridge: File Bridge of the runtime, required by the local scheduler
        policy: Backoff for the status write of the local scheduler

    Returns:
        MetadataSyncScheduler instance
    """
    if scheduler_type == "local":
        if store is None or bridge is None:
            raise ValueError("Local metadata sync scheduler requires a store and a bridge")
        return LocalMetadataSyncScheduler(store, bridge, policy)
    elif scheduler_type == "celery":
        return CeleryMetadataSyncScheduler()
    else:
        raise ValueError(f"Unknown scheduler type: {scheduler_type}")
