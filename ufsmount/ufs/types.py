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

import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator

# Mount points with these schemes are served without bridging into the cache runtime
LOCAL_SCHEME = "local://"
PVC_SCHEME = "pvc://"
NATIVE_SCHEMES = (LOCAL_SCHEME, PVC_SCHEME)


def is_native_scheme(mount_point: str) -> bool:
    return mount_point.startswith(NATIVE_SCHEMES)


def normalize_path(path: str) -> str:
    normalized = posixpath.normpath("/" + path.strip())
    # normpath keeps a leading "//" as is
    return "/" + normalized.lstrip("/")


def has_parent_reference(path: str) -> bool:
    return ".." in path.split("/")


@dataclass(frozen=True)
class ResourceId:
    """Identity shared by a dataset and its runtime"""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class SecretKeyRef(BaseModel):
    name: str
    key: str


class EncryptOption(BaseModel):
    name: str
    secret_ref: SecretKeyRef


class MountSpec(BaseModel):
    """One declared UFS mount of a dataset"""

    name: str
    mount_point: str
    path: Optional[str] = None
    options: Dict[str, str] = Field(default_factory=dict)
    encrypt_options: List[EncryptOption] = Field(default_factory=list)
    read_only: bool = False
    shared: bool = False

    @field_validator("name", "path")
    @classmethod
    def check_no_parent_reference(cls, value: Optional[str]) -> Optional[str]:
        # Resolved paths must stay inside the cache namespace
        if value is not None and has_parent_reference(value):
            raise ValueError(f"Parent references (..) are not allowed in mount names or paths: {value!r}")
        return value

    def is_native(self) -> bool:
        return is_native_scheme(self.mount_point)


class DatasetSpec(BaseModel):
    mounts: List[MountSpec] = Field(default_factory=list)

    @field_validator("mounts")
    @classmethod
    def check_unique(cls, mounts: List[MountSpec]) -> List[MountSpec]:
        names = [m.name for m in mounts]
        if len(set(names)) != len(names):
            raise ValueError("Duplicate mount names are not allowed")
        paths = [normalize_path(m.path) for m in mounts if m.path]
        if len(set(paths)) != len(paths):
            raise ValueError("Duplicate mount paths are not allowed")
        return mounts


class MetadataSyncState:
    """
    Values of the metadata-sync sentinel.

    DONE and CALCULATING are markers; any other value is the human readable
    total size reported by the last metadata sync.
    """

    DONE = "[Done]"
    CALCULATING = "[Calculating]"

    @staticmethod
    def from_bytes(size: int) -> str:
        value = float(size)
        for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
            if value < 1024 or unit == "TiB":
                break
            value /= 1024
        if unit == "B":
            return f"{int(value)}B"
        return f"{value:.2f}{unit}"


class DatasetStatus(BaseModel):
    metadata_sync_state: Optional[str] = None
    ufs_total_bytes: Optional[int] = None
    file_num: Optional[int] = None


class RuntimeStatus(BaseModel):
    mount_time: Optional[datetime] = None


class StatusRecord(NamedTuple):
    """A status read together with the resource version it was read at"""

    status: BaseModel
    version: int
