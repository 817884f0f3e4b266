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

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from ufsmount.ufs.path_builder import UFSPathBuilder, ufs_path_builder
from ufsmount.ufs.types import MountSpec


@dataclass
class MountDiff:
    """Mounts to establish (keyed by their resolved path) and bridge paths to tear down"""

    to_add: Dict[str, MountSpec] = field(default_factory=dict)
    to_remove: Set[str] = field(default_factory=set)

    def __post_init__(self):
        overlap = set(self.to_add) & self.to_remove
        if overlap:
            raise ValueError(f"Paths cannot be both added and removed: {sorted(overlap)}")

    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class MountSetDiffer:
    def __init__(self, path_builder: UFSPathBuilder = ufs_path_builder):
        self._path_builder = path_builder

    def desired_paths(self, desired: List[MountSpec]) -> Dict[str, MountSpec]:
        """Resolved paths of all mounts that need bridging, in declaration order"""
        paths = self._path_builder.build_paths(desired)
        return {paths[mount.name]: mount for mount in desired if not mount.is_native()}

    def diff(self, desired: List[MountSpec], mounted_paths: Iterable[str]) -> MountDiff:
        mounted = set(mounted_paths)
        wanted = self.desired_paths(desired)
        to_add = {path: mount for path, mount in wanted.items() if path not in mounted}
        to_remove = mounted - set(wanted)
        return MountDiff(to_add=to_add, to_remove=to_remove)


mount_set_differ = MountSetDiffer()
