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
Celery Beat configuration for UFS reconciliation tasks

One entry per dataset served by this worker; the beat schedule is the only
thing that triggers passes, so each dataset has at most one pass in flight
as long as a task expires before the next one is due.
"""

from typing import Dict, Iterable, List

from ufsmount.ufs.types import ResourceId


def parse_datasets(value: str) -> List[ResourceId]:
    """Parse "ns/name,ns2/name2" into resource ids"""
    datasets = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        namespace, sep, name = item.partition("/")
        if not sep or not namespace or not name:
            raise ValueError(f"Invalid dataset {item!r}, expected namespace/name")
        datasets.append(ResourceId(namespace, name))
    return datasets


def build_beat_schedule(datasets: Iterable[ResourceId], interval: float = 30.0) -> Dict[str, dict]:
    schedule = {}
    for resource_id in datasets:
        schedule[f"reconcile-ufs-mounts-{resource_id.namespace}-{resource_id.name}"] = {
            "task": "ufsmount.tasks.ufs_tasks.reconcile_ufs_task",
            "schedule": interval,
            "args": (resource_id.namespace, resource_id.name),
            "options": {
                "expires": interval * 0.8,  # Task expires before the next one is due to avoid overlap
            },
        }
    return schedule


# Timezone for the scheduler
CELERY_TIMEZONE = "UTC"
