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
from dataclasses import dataclass, field
from typing import Optional

from ufsmount.db.base import ClusterStateStore, SecretStore
from ufsmount.tasks.scheduler import MetadataSyncScheduler
from ufsmount.ufs.bridge import FileBridge
from ufsmount.ufs.status import DEFAULT_BACKOFF, RetryPolicy
from ufsmount.ufs.types import ResourceId


@dataclass
class ReconcileContext:
    """Everything a reconciliation pass talks to, passed in explicitly"""

    resource_id: ResourceId
    store: ClusterStateStore
    secret_store: SecretStore
    bridge: FileBridge
    metadata_sync: Optional[MetadataSyncScheduler] = None
    retry_policy: RetryPolicy = DEFAULT_BACKOFF
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("ufsmount.ufs.reconciler"))
