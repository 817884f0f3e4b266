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

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ufsmount.exceptions import FileBridgeError, MountOperationError, UnmountOperationError
from ufsmount.ufs.types import ResourceId

logger = logging.getLogger(__name__)


class FileBridge(ABC):
    """Abstract base class for executing mount operations inside the cache runtime"""

    @abstractmethod
    def ready(self) -> bool:
        """Whether bridging operations may be attempted; no side effects"""
        pass

    @abstractmethod
    def is_mounted(self, path: str) -> bool:
        """
        Check whether a resolved path is currently bridged

        Raises:
            FileBridgeError: if the runtime cannot be queried
        """
        pass

    @abstractmethod
    def mount(self, path: str, target: str, options: Dict[str, str], read_only: bool, shared: bool):
        """
        Bridge a UFS into the cache namespace. Mounting an already mounted path
        with the same parameters is a no-op.

        Args:
            path: Resolved path inside the cache namespace
            target: UFS mount point URI
            options: Merged mount options
            read_only: Mount read only
            shared: Mount shared between runtimes

        Raises:
            MountOperationError: if the mount fails
        """
        pass

    @abstractmethod
    def unmount(self, path: str):
        """
        Remove a bridge mount. Unmounting an absent path is a no-op.

        Raises:
            UnmountOperationError: if the unmount fails
        """
        pass

    @abstractmethod
    def find_unmounted_paths(self, paths: List[str]) -> List[str]:
        """Return the subset of paths that are not mounted, in input order"""
        pass

    @abstractmethod
    def list_mounted_paths(self) -> List[str]:
        """Return every path currently bridged"""
        pass

    @abstractmethod
    def count(self, path: str) -> Tuple[int, int, int]:
        """Return (files, directories, bytes) below a path"""
        pass

    @abstractmethod
    def get_file_count(self) -> int:
        """Return the total number of files cached by the runtime"""
        pass


@dataclass
class MountRecord:
    target: str
    options: Dict[str, str] = field(default_factory=dict)
    read_only: bool = False
    shared: bool = False


class InMemoryFileBridge(FileBridge):
    """Local in-process implementation for testing or single-machine deployments"""

    def __init__(self, resource_id: Optional[ResourceId] = None, is_ready: bool = True):
        self.resource_id = resource_id
        self.is_ready = is_ready
        self.mounts: Dict[str, MountRecord] = {}
        # (files, directories, bytes) per UFS target
        self.usage: Dict[str, Tuple[int, int, int]] = {}

    def ready(self) -> bool:
        return self.is_ready

    def is_mounted(self, path: str) -> bool:
        return path in self.mounts

    def mount(self, path: str, target: str, options: Dict[str, str], read_only: bool, shared: bool):
        if not self.is_ready:
            raise MountOperationError(path, target, FileBridgeError("runtime is not ready"))
        record = MountRecord(target=target, options=dict(options), read_only=read_only, shared=shared)
        existing = self.mounts.get(path)
        if existing is not None and existing != record:
            raise MountOperationError(path, target, FileBridgeError(f"{path} is already mounted to {existing.target}"))
        self.mounts[path] = record
        logger.debug(f"Mounted {target} at {path}")

    def unmount(self, path: str):
        if not self.is_ready:
            raise UnmountOperationError(path, FileBridgeError("runtime is not ready"))
        if self.mounts.pop(path, None) is not None:
            logger.debug(f"Unmounted {path}")

    def find_unmounted_paths(self, paths: List[str]) -> List[str]:
        return [path for path in paths if path not in self.mounts]

    def list_mounted_paths(self) -> List[str]:
        return list(self.mounts)

    def count(self, path: str) -> Tuple[int, int, int]:
        files = dirs = size = 0
        prefix = path.rstrip("/") + "/"
        for mount_path, record in self.mounts.items():
            if mount_path == path or mount_path.startswith(prefix):
                f, d, s = self.usage.get(record.target, (0, 0, 0))
                files, dirs, size = files + f, dirs + d, size + s
        return files, dirs, size

    def get_file_count(self) -> int:
        files, _, _ = self.count("/")
        return files


def create_file_bridge(resource_id: ResourceId, bridge_path: Optional[str] = None) -> FileBridge:
    """Instantiate the configured File Bridge ("module:Class") for a resource"""
    from ufsmount.config import settings

    module_name, _, class_name = (bridge_path or settings.file_bridge).partition(":")
    bridge_class = getattr(importlib.import_module(module_name), class_name)
    return bridge_class(resource_id=resource_id)
