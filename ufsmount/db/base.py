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

from abc import ABC, abstractmethod
from typing import Dict

from ufsmount.ufs.types import DatasetSpec, DatasetStatus, ResourceId, RuntimeStatus, StatusRecord


class ClusterStateStore(ABC):
    """Abstract access to the declarative resources a reconciliation pass reads and writes"""

    @abstractmethod
    def get_desired_spec(self, resource_id: ResourceId) -> DatasetSpec:
        """
        Read the desired mount set of a dataset

        Raises:
            ResourceNotFoundError: if the dataset does not exist
        """
        pass

    @abstractmethod
    def read_dataset_status(self, resource_id: ResourceId) -> StatusRecord:
        """Read the dataset status together with the current resource version"""
        pass

    @abstractmethod
    def write_dataset_status(self, resource_id: ResourceId, version: int, status: DatasetStatus):
        """
        Write the dataset status only if the resource is still at the given version

        Raises:
            ConflictError: if the resource version has moved on
        """
        pass

    @abstractmethod
    def read_runtime_status(self, resource_id: ResourceId) -> StatusRecord:
        """Read the runtime status together with the current resource version"""
        pass

    @abstractmethod
    def write_runtime_status(self, resource_id: ResourceId, version: int, status: RuntimeStatus):
        """
        Write the runtime status only if the resource is still at the given version

        Raises:
            ConflictError: if the resource version has moved on
        """
        pass


class SecretStore(ABC):
    @abstractmethod
    def get_secret(self, name: str, namespace: str) -> Dict[str, bytes]:
        """
        Read all keys of a secret

        Raises:
            ResourceNotFoundError: if the secret does not exist
        """
        pass
