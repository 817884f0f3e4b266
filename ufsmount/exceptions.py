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
Error taxonomy for UFS reconciliation.

Every fatal error carries enough context (resource id, mount name, path) for the
caller to log or alert. Only metadata sync failures are downgraded by the
reconciler.
"""

from typing import Optional


class UFSError(Exception):
    """Base class for all reconciliation errors"""


class ResourceNotFoundError(UFSError):
    """Raised when a dataset, runtime or secret does not exist in the store"""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class NotReadyError(UFSError):
    """Raised when the File Bridge is not ready; no mutation was attempted"""

    def __init__(self, resource_id):
        self.resource_id = resource_id
        super().__init__(f"the UFS is not ready, resource: {resource_id}")


class SecretResolutionError(UFSError):
    """Raised when an encrypt option cannot be resolved from its secret"""

    def __init__(self, mount_name: str, secret_ref, cause: Optional[BaseException] = None):
        self.mount_name = mount_name
        self.secret_ref = secret_ref
        self.cause = cause
        super().__init__(
            f"failed to resolve secret {secret_ref.name}/{secret_ref.key} for mount {mount_name}: {cause}"
        )


class FileBridgeError(UFSError):
    """Raised by File Bridge implementations for failed inspection calls"""


class MountOperationError(FileBridgeError):
    def __init__(self, path: str, target: str, cause: Optional[BaseException] = None):
        self.path = path
        self.target = target
        self.cause = cause
        super().__init__(f"failed to mount {target} at {path}: {cause}")


class UnmountOperationError(FileBridgeError):
    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"failed to unmount {path}: {cause}")


class ConflictError(UFSError):
    """Raised when a conditional status write loses against a concurrent writer"""

    def __init__(self, kind: str, resource_id, version: int):
        self.kind = kind
        self.resource_id = resource_id
        self.version = version
        super().__init__(f"conflict writing {kind} {resource_id} status at version {version}")


class MetadataSyncError(UFSError):
    """Raised when the metadata sync step fails; never fatal to a reconciliation pass"""

    def __init__(self, resource_id, cause: Optional[BaseException] = None):
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"metadata sync failed for {resource_id}: {cause}")
