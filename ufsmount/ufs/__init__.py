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
Under File System (UFS) mount reconciliation for cache runtimes.

Key components:
- UFSPathBuilder: Derives the cache namespace path of every declared mount
- OptionsResolver: Merges plain mount options with secret-backed ones
- MountSetDiffer: Computes mounts to add and bridge paths to remove
- UFSReconciler: Runs readiness-gated passes against a FileBridge
- StatusUpdater: Optimistic-concurrency status writes with conflict retries

Modules import each other directly; nothing is re-exported here so that the
resource models can depend on the shared types without import cycles.
"""
