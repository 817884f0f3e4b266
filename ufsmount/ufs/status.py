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
Optimistic-concurrency status writes.

A status update re-reads the resource on every attempt, applies the mutation
to a copy, skips the write when nothing changed and otherwise writes
conditionally on the version it read. Version conflicts are retried with a
bounded exponential backoff.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel
from tenacity import RetryCallState, Retrying, before_sleep_log, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from ufsmount.db.base import ClusterStateStore
from ufsmount.exceptions import ConflictError
from ufsmount.ufs.types import DatasetStatus, ResourceId, RuntimeStatus, StatusRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 4
    initial_delay: float = 0.01
    factor: float = 5.0
    max_delay: float = 1.0
    jitter: float = 0.1

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            attempts=settings.status_retry_attempts,
            initial_delay=settings.status_retry_initial_delay,
            factor=settings.status_retry_factor,
            max_delay=settings.status_retry_max_delay,
            jitter=settings.status_retry_jitter,
        )


DEFAULT_BACKOFF = RetryPolicy()


class wait_backoff(wait_base):
    """
    Wait initial_delay * factor^n before retry n (capped at max_delay), plus a random
    jitter of up to jitter times that step.
    """

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        policy = self.policy
        duration = min(policy.initial_delay * policy.factor ** (retry_state.attempt_number - 1), policy.max_delay)
        if policy.jitter > 0:
            duration += random.uniform(0, policy.jitter * duration)
        return duration


def is_conflict(exc: BaseException) -> bool:
    return isinstance(exc, ConflictError)


def retry_on_conflict(
    fn: Callable[[], T],
    is_conflict: Callable[[BaseException], bool] = is_conflict,
    policy: RetryPolicy = DEFAULT_BACKOFF,
) -> T:
    """
    Call fn until it returns, retrying only errors the predicate classifies as conflicts

    The last conflict is re-raised once policy.attempts calls have failed. Any
    other error is raised immediately.
    """
    retryer = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_backoff(policy),
        retry=retry_if_exception(is_conflict),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )
    return retryer(fn)


class StatusUpdater(ABC):
    """Conditional read-mutate-write of one kind of status record"""

    kind = "resource"

    def __init__(self, store: ClusterStateStore, policy: RetryPolicy = DEFAULT_BACKOFF):
        self._store = store
        self._policy = policy

    @abstractmethod
    def _read(self, resource_id: ResourceId) -> StatusRecord:
        pass

    @abstractmethod
    def _write(self, resource_id: ResourceId, version: int, status: BaseModel):
        pass

    def update_status(self, resource_id: ResourceId, mutate: Callable[[BaseModel], BaseModel]) -> bool:
        """
        Apply mutate to the current status and persist the result

        Args:
            resource_id: Resource whose status is updated
            mutate: Receives a private copy of the current status and returns the new status

        Returns:
            True if a write happened, False if the status was already up to date

        Raises:
            ConflictError: if every attempt lost against a concurrent writer
        """

        def attempt() -> bool:
            current = self._read(resource_id)
            new_status = mutate(current.status.model_copy(deep=True))
            if new_status == current.status:
                logger.info(f"Do nothing because the {self.kind} {resource_id} status is not changed.")
                return False
            self._write(resource_id, current.version, new_status)
            return True

        return retry_on_conflict(attempt, is_conflict, self._policy)


class DatasetStatusUpdater(StatusUpdater):
    kind = "dataset"

    def _read(self, resource_id: ResourceId) -> StatusRecord:
        return self._store.read_dataset_status(resource_id)

    def _write(self, resource_id: ResourceId, version: int, status: DatasetStatus):
        self._store.write_dataset_status(resource_id, version, status)


class RuntimeStatusUpdater(StatusUpdater):
    kind = "runtime"

    def _read(self, resource_id: ResourceId) -> StatusRecord:
        return self._store.read_runtime_status(resource_id)

    def _write(self, resource_id: ResourceId, version: int, status: RuntimeStatus):
        self._store.write_runtime_status(resource_id, version, status)


def set_metadata_sync_state(state: str, total_bytes: Optional[int] = None, file_num: Optional[int] = None):
    """Build a dataset status mutation that sets the metadata-sync sentinel"""

    def mutate(status: DatasetStatus) -> DatasetStatus:
        status.metadata_sync_state = state
        if total_bytes is not None:
            status.ufs_total_bytes = total_bytes
        if file_num is not None:
            status.file_num = file_num
        return status

    return mutate
