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
Celery application for UFS reconciliation workers

Usage:
    celery -A config.celery worker -l info
    celery -A config.celery beat -l info
"""

from celery import Celery

from ufsmount.config import settings, setup_logging
from ufsmount.tasks.celery_beat_config import CELERY_TIMEZONE, build_beat_schedule, parse_datasets

setup_logging()

app = Celery(
    "ufsmount",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["ufsmount.tasks.ufs_tasks"],
)

app.conf.update(
    timezone=CELERY_TIMEZONE,
    beat_schedule=build_beat_schedule(
        parse_datasets(settings.reconcile_datasets), interval=settings.reconcile_interval_seconds
    ),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
)
