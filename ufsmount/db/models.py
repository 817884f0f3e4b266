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

import base64
import random
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel, UniqueConstraint

from ufsmount.ufs.types import DatasetSpec, DatasetStatus, ResourceId, RuntimeStatus


# Helper function for random id generation
def random_id():
    """Generate a random ID string"""
    return "".join(random.sample(uuid.uuid4().hex, 16))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Models
class Dataset(SQLModel, table=True):
    """Declared mounts (spec) and derived status of one dataset"""

    __tablename__ = "dataset"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_dataset_namespace_name"),)

    id: str = Field(default_factory=lambda: "ds" + random_id(), primary_key=True, max_length=24)
    namespace: str = Field(max_length=253)
    name: str = Field(max_length=253)
    spec: Optional[dict] = Field(default_factory=dict, sa_column=Column(JSON))
    status: Optional[dict] = Field(default_factory=dict, sa_column=Column(JSON))
    # Bumped on every write, conditional writes are keyed on it
    version: int = Field(default=1)
    gmt_created: datetime = Field(default_factory=utc_now)
    gmt_updated: datetime = Field(default_factory=utc_now)

    @property
    def resource_id(self) -> ResourceId:
        return ResourceId(self.namespace, self.name)

    def get_spec(self) -> DatasetSpec:
        return DatasetSpec.model_validate(self.spec or {})

    def get_status(self) -> DatasetStatus:
        return DatasetStatus.model_validate(self.status or {})


class Runtime(SQLModel, table=True):
    """Cache runtime serving a dataset of the same namespace and name"""

    __tablename__ = "runtime"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_runtime_namespace_name"),)

    id: str = Field(default_factory=lambda: "rt" + random_id(), primary_key=True, max_length=24)
    namespace: str = Field(max_length=253)
    name: str = Field(max_length=253)
    status: Optional[dict] = Field(default_factory=dict, sa_column=Column(JSON))
    version: int = Field(default=1)
    gmt_created: datetime = Field(default_factory=utc_now)
    gmt_updated: datetime = Field(default_factory=utc_now)

    def get_status(self) -> RuntimeStatus:
        return RuntimeStatus.model_validate(self.status or {})


class Secret(SQLModel, table=True):
    """Credential material, values are stored base64 encoded"""

    __tablename__ = "secret"
    __table_args__ = (UniqueConstraint("namespace", "name", name="uq_secret_namespace_name"),)

    id: str = Field(default_factory=lambda: "sec" + random_id(), primary_key=True, max_length=24)
    namespace: str = Field(max_length=253)
    name: str = Field(max_length=253)
    data: Optional[dict] = Field(default_factory=dict, sa_column=Column(JSON))
    gmt_created: datetime = Field(default_factory=utc_now)

    def get_data(self) -> Dict[str, bytes]:
        return {key: base64.b64decode(value) for key, value in (self.data or {}).items()}

    def set_data(self, data: Dict[str, bytes]):
        self.data = {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}
