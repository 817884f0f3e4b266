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

from typing import Dict, List

from ufsmount.ufs.types import MountSpec, normalize_path


class UFSPathBuilder:
    """
    Derives the path inside the cache namespace that each mount is bridged to.

    A mount with an explicit path keeps it. Any other mount goes to /<name>,
    unless that path is already claimed by an earlier assignment, in which case
    it is disambiguated with its position in the mount list. The result depends
    only on the mount list, so repeated passes over an unchanged dataset always
    produce the same paths.
    """

    def build_paths(self, mounts: List[MountSpec]) -> Dict[str, str]:
        paths = {}
        used = set()
        for mount in mounts:
            if mount.path:
                path = normalize_path(mount.path)
                if path in used:
                    raise ValueError(f"Mount {mount.name} claims path {path}, which another mount already claims")
                paths[mount.name] = path
                used.add(path)

        for index, mount in enumerate(mounts):
            if mount.path:
                continue
            candidate = normalize_path(mount.name)
            suffix = index
            while candidate in used:
                candidate = normalize_path(f"{mount.name}-{suffix}")
                suffix += len(mounts)
            paths[mount.name] = candidate
            used.add(candidate)
        return paths

    def build_path(self, mount: MountSpec, mounts: List[MountSpec]) -> str:
        return self.build_paths(mounts)[mount.name]


ufs_path_builder = UFSPathBuilder()
