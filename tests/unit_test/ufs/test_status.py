"""
Unit tests for conditional status writes.

retry_on_conflict is exercised with plain callables; the updaters run both
against a mocked store (to script conflicts) and against the SQLite store.
"""

from unittest.mock import Mock, patch

import pytest

from ufsmount.exceptions import ConflictError, ResourceNotFoundError
from ufsmount.ufs.status import (
    DatasetStatusUpdater,
    RetryPolicy,
    RuntimeStatusUpdater,
    retry_on_conflict,
    set_metadata_sync_state,
    wait_backoff,
)
from ufsmount.ufs.types import DatasetSpec, DatasetStatus, MetadataSyncState, ResourceId, StatusRecord

RID = ResourceId("default", "imagenet")


def conflict(version=1):
    return ConflictError("dataset", RID, version)


class TestRetryOnConflict:
    """Test suite for the conflict retry helper."""

    def test_returns_first_success(self, fast_retry):
        fn = Mock(return_value="ok")
        assert retry_on_conflict(fn, policy=fast_retry) == "ok"
        assert fn.call_count == 1

    def test_retries_conflicts_until_success(self, fast_retry):
        """Test that conflicts are retried and the eventual result returned."""
        fn = Mock(side_effect=[conflict(), conflict(), "ok"])
        assert retry_on_conflict(fn, policy=fast_retry) == "ok"
        assert fn.call_count == 3

    def test_reraises_after_budget(self, fast_retry):
        """Test that the last conflict surfaces once all attempts failed."""
        fn = Mock(side_effect=conflict())
        with pytest.raises(ConflictError):
            retry_on_conflict(fn, policy=fast_retry)
        assert fn.call_count == fast_retry.attempts

    def test_other_errors_not_retried(self, fast_retry):
        """Test that an error the predicate rejects is raised on the first attempt."""
        fn = Mock(side_effect=RuntimeError("boom"))
        with pytest.raises(RuntimeError, match="boom"):
            retry_on_conflict(fn, policy=fast_retry)
        assert fn.call_count == 1

    def test_custom_predicate(self, fast_retry):
        fn = Mock(side_effect=[TimeoutError(), "ok"])
        assert retry_on_conflict(fn, lambda e: isinstance(e, TimeoutError), fast_retry) == "ok"

    def test_policy_from_settings(self):
        settings = Mock(
            status_retry_attempts=6,
            status_retry_initial_delay=0.5,
            status_retry_factor=2.0,
            status_retry_max_delay=3.0,
            status_retry_jitter=0.2,
        )
        assert RetryPolicy.from_settings(settings) == RetryPolicy(6, 0.5, 2.0, 3.0, 0.2)


class TestWaitBackoff:
    """Test suite for the conflict retry backoff."""

    def test_steps_grow_by_factor_and_are_capped(self):
        wait = wait_backoff(RetryPolicy(initial_delay=0.01, factor=5.0, max_delay=1.0, jitter=0))
        delays = [wait(Mock(attempt_number=n)) for n in range(1, 5)]
        assert delays == pytest.approx([0.01, 0.05, 0.25, 1.0])

    def test_jitter_scales_with_step(self):
        """Test that the random spread is a fraction of each step, not of the first one."""
        wait = wait_backoff(RetryPolicy(initial_delay=0.01, factor=5.0, max_delay=1.0, jitter=0.1))
        with patch("ufsmount.ufs.status.random.uniform", side_effect=lambda low, high: high) as mock_uniform:
            assert wait(Mock(attempt_number=1)) == pytest.approx(0.011)
            assert wait(Mock(attempt_number=3)) == pytest.approx(0.275)
            assert wait(Mock(attempt_number=4)) == pytest.approx(1.1)
        assert mock_uniform.call_args_list[1].args == (0, pytest.approx(0.025))


class TestStatusUpdaterWithMockStore:
    """Test suite for the read-mutate-write loop with scripted store responses."""

    def test_no_write_when_unchanged(self, fast_retry):
        """Test that an unchanged status skips the write entirely."""
        store = Mock()
        store.read_dataset_status.return_value = StatusRecord(
            DatasetStatus(metadata_sync_state=MetadataSyncState.CALCULATING), 3
        )

        updated = DatasetStatusUpdater(store, fast_retry).update_status(
            RID, set_metadata_sync_state(MetadataSyncState.CALCULATING)
        )

        assert updated is False
        store.write_dataset_status.assert_not_called()

    def test_rereads_after_conflict(self, fast_retry):
        """Test that each attempt re-reads and writes at the freshly read version."""
        store = Mock()
        store.read_dataset_status.side_effect = [
            StatusRecord(DatasetStatus(), 1),
            StatusRecord(DatasetStatus(file_num=7), 2),
        ]
        store.write_dataset_status.side_effect = [conflict(1), None]

        updated = DatasetStatusUpdater(store, fast_retry).update_status(
            RID, set_metadata_sync_state(MetadataSyncState.CALCULATING)
        )

        assert updated is True
        assert store.read_dataset_status.call_count == 2
        _, version, status = store.write_dataset_status.call_args[0]
        assert version == 2
        # The mutation applies to the state read by the successful attempt
        assert status.file_num == 7
        assert status.metadata_sync_state == MetadataSyncState.CALCULATING

    def test_conflict_budget_exhausted(self, fast_retry):
        store = Mock()
        store.read_dataset_status.return_value = StatusRecord(DatasetStatus(), 1)
        store.write_dataset_status.side_effect = conflict(1)

        with pytest.raises(ConflictError):
            DatasetStatusUpdater(store, fast_retry).update_status(
                RID, set_metadata_sync_state(MetadataSyncState.CALCULATING)
            )
        assert store.write_dataset_status.call_count == fast_retry.attempts

    def test_mutation_receives_a_copy(self, fast_retry):
        """Test that mutating in place cannot alter the status that was read."""
        store = Mock()
        current = DatasetStatus()
        store.read_dataset_status.return_value = StatusRecord(current, 1)

        DatasetStatusUpdater(store, fast_retry).update_status(RID, set_metadata_sync_state(MetadataSyncState.DONE))

        assert current.metadata_sync_state is None


class TestStatusUpdaterWithStore:
    """Test suite for status updates against the SQLite store."""

    def test_dataset_write_bumps_version(self, store, resource_id, fast_retry):
        store.create_dataset(resource_id, DatasetSpec())
        before = store.read_dataset_status(resource_id)

        DatasetStatusUpdater(store, fast_retry).update_status(
            resource_id, set_metadata_sync_state(MetadataSyncState.CALCULATING)
        )

        after = store.read_dataset_status(resource_id)
        assert after.version == before.version + 1
        assert after.status.metadata_sync_state == MetadataSyncState.CALCULATING

    def test_unchanged_status_keeps_version(self, store, resource_id, fast_retry):
        store.create_dataset(resource_id, DatasetSpec())
        updater = DatasetStatusUpdater(store, fast_retry)
        updater.update_status(resource_id, set_metadata_sync_state(MetadataSyncState.CALCULATING))
        version = store.read_dataset_status(resource_id).version

        assert updater.update_status(resource_id, set_metadata_sync_state(MetadataSyncState.CALCULATING)) is False
        assert store.read_dataset_status(resource_id).version == version

    def test_runtime_status_missing(self, store, resource_id, fast_retry):
        with pytest.raises(ResourceNotFoundError):
            RuntimeStatusUpdater(store, fast_retry).update_status(resource_id, lambda status: status)
