"""
Unit tests for metadata sync schedulers and the scheduler factory.
"""

from unittest.mock import Mock, patch

import pytest

from ufsmount.exceptions import MetadataSyncError
from ufsmount.tasks.scheduler import (
    CeleryMetadataSyncScheduler,
    LocalMetadataSyncScheduler,
    create_metadata_sync_scheduler,
)
from ufsmount.ufs.bridge import InMemoryFileBridge
from ufsmount.ufs.types import DatasetSpec, MetadataSyncState


class TestLocalMetadataSyncScheduler:
    """Test suite for synchronous metadata sync."""

    def test_sync_writes_usage(self, store, resource_id, fast_retry):
        store.create_dataset(resource_id, DatasetSpec())
        bridge = InMemoryFileBridge(resource_id)
        bridge.usage["s3://bucket/b"] = (5, 1, 3 * 1024**3)
        bridge.mount("/b", "s3://bucket/b", {}, False, False)
        scheduler = LocalMetadataSyncScheduler(store, bridge, fast_retry)

        task_id = scheduler.schedule_sync(resource_id)

        assert task_id == "local_sync_1"
        status = store.read_dataset_status(resource_id).status
        assert status.metadata_sync_state == "3.00GiB"
        assert status.file_num == 5
        result = scheduler.get_task_status(task_id)
        assert result.success is True
        assert result.data == {"ufs_total_bytes": 3 * 1024**3, "file_num": 5}

    def test_sync_failure_is_wrapped(self, store, resource_id, fast_retry):
        """Test that any failure surfaces as MetadataSyncError and is recorded."""
        bridge = Mock()
        bridge.count.side_effect = RuntimeError("runtime unreachable")
        scheduler = LocalMetadataSyncScheduler(store, bridge, fast_retry)

        with pytest.raises(MetadataSyncError) as exc_info:
            scheduler.schedule_sync(resource_id)

        assert isinstance(exc_info.value.cause, RuntimeError)
        result = scheduler.get_task_status("local_sync_1")
        assert result.success is False
        assert "runtime unreachable" in result.error

    def test_unknown_task(self, store):
        assert LocalMetadataSyncScheduler(store, InMemoryFileBridge()).get_task_status("missing") is None


class TestCeleryMetadataSyncScheduler:
    """Test suite for dispatching metadata sync to Celery."""

    @patch("ufsmount.tasks.ufs_tasks.sync_metadata_task")
    def test_schedule_sync(self, mock_task, resource_id):
        mock_task.delay.return_value = Mock(id="celery-task-1")

        task_id = CeleryMetadataSyncScheduler().schedule_sync(resource_id)

        assert task_id == "celery-task-1"
        mock_task.delay.assert_called_once_with(resource_id.namespace, resource_id.name)

    @patch("ufsmount.tasks.ufs_tasks.sync_metadata_task")
    def test_dispatch_failure(self, mock_task, resource_id):
        mock_task.delay.side_effect = ConnectionError("broker down")
        with pytest.raises(MetadataSyncError):
            CeleryMetadataSyncScheduler().schedule_sync(resource_id)

    @patch("celery.result.AsyncResult")
    def test_task_status(self, mock_async_result):
        mock_async_result.return_value = Mock(state="SUCCESS", result={"file_num": 1})
        result = CeleryMetadataSyncScheduler().get_task_status("celery-task-1")
        assert result.success is True
        assert result.data == {"file_num": 1}


class TestSchedulerFactory:
    def test_create_local(self, store):
        scheduler = create_metadata_sync_scheduler("local", store=store, bridge=InMemoryFileBridge())
        assert isinstance(scheduler, LocalMetadataSyncScheduler)

    def test_local_requires_store_and_bridge(self):
        with pytest.raises(ValueError, match="requires a store and a bridge"):
            create_metadata_sync_scheduler("local")

    def test_create_celery(self):
        assert isinstance(create_metadata_sync_scheduler("celery"), CeleryMetadataSyncScheduler)

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown scheduler type"):
            create_metadata_sync_scheduler("cron")


class TestMetadataSyncState:
    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0B"), (1023, "1023B"), (1536, "1.50KiB"), (5 * 1024**2, "5.00MiB"), (2 * 1024**5, "2048.00TiB")],
    )
    def test_from_bytes(self, size, expected):
        assert MetadataSyncState.from_bytes(size) == expected
