"""
Shared fixtures for the UFS reconciliation unit tests.

Store-backed tests run against an in-memory SQLite database; bridge-backed
tests use the InMemoryFileBridge so mount state can be inspected directly.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from ufsmount.config import init_db
from ufsmount.db.ops import ClusterStateOps, SecretOps
from ufsmount.ufs.bridge import InMemoryFileBridge
from ufsmount.ufs.context import ReconcileContext
from ufsmount.ufs.status import RetryPolicy
from ufsmount.ufs.types import DatasetSpec, ResourceId

# No sleeping between conflict retries in tests
FAST_RETRY = RetryPolicy(attempts=3, initial_delay=0, factor=1.0, max_delay=0, jitter=0)


@pytest.fixture
def fast_retry():
    return FAST_RETRY


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return ClusterStateOps(engine)


@pytest.fixture
def secret_store(engine):
    return SecretOps(engine)


@pytest.fixture
def resource_id():
    return ResourceId("default", "imagenet")


@pytest.fixture
def bridge(resource_id):
    return InMemoryFileBridge(resource_id=resource_id)


@pytest.fixture
def make_dataset(store, resource_id):
    """Create the dataset and its runtime with the given mounts"""

    def _make(mounts):
        store.create_dataset(resource_id, DatasetSpec(mounts=mounts))
        store.create_runtime(resource_id)

    return _make


@pytest.fixture
def context(resource_id, store, secret_store, bridge):
    return ReconcileContext(
        resource_id=resource_id,
        store=store,
        secret_store=secret_store,
        bridge=bridge,
        retry_policy=FAST_RETRY,
    )
