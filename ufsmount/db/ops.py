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
from typing import Dict, Optional

from pydantic import BaseModel
from sqlalchemy import Engine, update
from sqlalchemy.orm import Session
from sqlmodel import select

from ufsmount.config import get_sync_session
from ufsmount.db.base import ClusterStateStore, SecretStore
from ufsmount.db.models import Dataset, Runtime, Secret, utc_now
from ufsmount.exceptions import ConflictError, ResourceNotFoundError
from ufsmount.ufs.types import DatasetSpec, DatasetStatus, ResourceId, RuntimeStatus, StatusRecord

logger = logging.getLogger(__name__)


class ClusterStateOps(ClusterStateStore):
    """Resource store backed by the dataset and runtime tables"""

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    def _query_resource(self, session: Session, model, kind: str, resource_id: ResourceId):
        stmt = select(model).where(model.namespace == resource_id.namespace, model.name == resource_id.name)
        result = session.execute(stmt)
        instance = result.scalars().first()
        if not instance:
            raise ResourceNotFoundError(kind, resource_id.namespace, resource_id.name)
        return instance

    def _conditional_write(self, model, kind: str, resource_id: ResourceId, version: int, status: BaseModel):
        for session in get_sync_session(self._engine):
            stmt = (
                update(model)
                .where(
                    model.namespace == resource_id.namespace,
                    model.name == resource_id.name,
                    model.version == version,
                )
                .values(status=status.model_dump(mode="json"), version=model.version + 1, gmt_updated=utc_now())
            )
            result = session.execute(stmt)
            if result.rowcount == 0:
                session.rollback()
                # A missing resource is reported as such, not as a lost race
                self._query_resource(session, model, kind, resource_id)
                raise ConflictError(kind, resource_id, version)
            session.commit()
            logger.debug(f"Updated {kind} {resource_id} status at version {version}")

    # Dataset Operations
    def get_dataset(self, resource_id: ResourceId) -> Dataset:
        for session in get_sync_session(self._engine):
            return self._query_resource(session, Dataset, "dataset", resource_id)

    def get_desired_spec(self, resource_id: ResourceId) -> DatasetSpec:
        return self.get_dataset(resource_id).get_spec()

    def read_dataset_status(self, resource_id: ResourceId) -> StatusRecord:
        dataset = self.get_dataset(resource_id)
        return StatusRecord(dataset.get_status(), dataset.version)

    def write_dataset_status(self, resource_id: ResourceId, version: int, status: DatasetStatus):
        self._conditional_write(Dataset, "dataset", resource_id, version, status)

    def create_dataset(self, resource_id: ResourceId, spec: DatasetSpec) -> Dataset:
        for session in get_sync_session(self._engine):
            instance = Dataset(
                namespace=resource_id.namespace,
                name=resource_id.name,
                spec=spec.model_dump(mode="json"),
                status={},
            )
            session.add(instance)
            session.commit()
            session.refresh(instance)
            logger.info(f"Created dataset {resource_id} with {len(spec.mounts)} mounts")
            return instance

    def update_dataset_spec(self, resource_id: ResourceId, spec: DatasetSpec) -> Dataset:
        """Replace the declared mounts of a dataset and bump its version"""
        for session in get_sync_session(self._engine):
            instance = self._query_resource(session, Dataset, "dataset", resource_id)
            instance.spec = spec.model_dump(mode="json")
            instance.version += 1
            instance.gmt_updated = utc_now()
            session.add(instance)
            session.commit()
            session.refresh(instance)
            return instance

    # Runtime Operations
    def get_runtime(self, resource_id: ResourceId) -> Runtime:
        for session in get_sync_session(self._engine):
            return self._query_resource(session, Runtime, "runtime", resource_id)

    def read_runtime_status(self, resource_id: ResourceId) -> StatusRecord:
        runtime = self.get_runtime(resource_id)
        return StatusRecord(runtime.get_status(), runtime.version)

    def write_runtime_status(self, resource_id: ResourceId, version: int, status: RuntimeStatus):
        self._conditional_write(Runtime, "runtime", resource_id, version, status)

    def create_runtime(self, resource_id: ResourceId) -> Runtime:
        for session in get_sync_session(self._engine):
            instance = Runtime(namespace=resource_id.namespace, name=resource_id.name, status={})
            session.add(instance)
            session.commit()
            session.refresh(instance)
            logger.info(f"Created runtime {resource_id}")
            return instance


class SecretOps(SecretStore):
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    def get_secret(self, name: str, namespace: str) -> Dict[str, bytes]:
        for session in get_sync_session(self._engine):
            stmt = select(Secret).where(Secret.namespace == namespace, Secret.name == name)
            result = session.execute(stmt)
            instance = result.scalars().first()
            if not instance:
                raise ResourceNotFoundError("secret", namespace, name)
            return instance.get_data()

    def put_secret(self, name: str, namespace: str, data: Dict[str, bytes]) -> Secret:
        """Create or replace a secret"""
        for session in get_sync_session(self._engine):
            stmt = select(Secret).where(Secret.namespace == namespace, Secret.name == name)
            result = session.execute(stmt)
            instance = result.scalars().first()
            if not instance:
                instance = Secret(namespace=namespace, name=name)
            instance.set_data(data)
            session.add(instance)
            session.commit()
            session.refresh(instance)
            return instance
