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
from typing import Iterator, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session


class Settings(BaseSettings):
    # Resource store
    database_url: str = "sqlite:///ufsmount.db"
    database_echo: bool = False

    # Logging
    log_level: str = "INFO"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # Reconciliation
    metadata_sync_scheduler: str = "local"  # local or celery
    file_bridge: str = "ufsmount.ufs.bridge:InMemoryFileBridge"
    reconcile_interval_seconds: float = 30.0
    reconcile_datasets: str = ""  # Comma separated namespace/name pairs, e.g. "default/imagenet,ml/coco"

    # Status write backoff, defaults follow the orchestrator's default backoff
    status_retry_attempts: int = 4
    status_retry_initial_delay: float = 0.01
    status_retry_factor: float = 5.0
    status_retry_max_delay: float = 1.0
    status_retry_jitter: float = 0.1

    model_config = SettingsConfigDict(env_prefix="UFS_", env_file=".env", extra="ignore")


settings = Settings()

_engine: Optional[Engine] = None


def get_sync_engine() -> Engine:
    global _engine
    if _engine is None:
        connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
        _engine = create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)
    return _engine


def get_sync_session(engine: Optional[Engine] = None) -> Iterator[Session]:
    """Yield a session bound to the given engine (or the configured one); callers commit"""
    with Session(engine or get_sync_engine(), expire_on_commit=False) as session:
        yield session


def init_db(engine: Optional[Engine] = None):
    """Create all tables that do not exist yet"""
    from sqlmodel import SQLModel

    import ufsmount.db.models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_sync_engine())


def setup_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
