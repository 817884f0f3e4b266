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
from typing import Dict, Optional

from ufsmount.db.base import SecretStore
from ufsmount.exceptions import SecretResolutionError
from ufsmount.ufs.types import MountSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedOptions:
    """
    Mount options in two layers: the plain options of the mount and the values
    resolved from its encrypt options. A key present in both layers takes the
    secret value.
    """

    base: Dict[str, str] = field(default_factory=dict)
    secret_overrides: Dict[str, str] = field(default_factory=dict)

    def merged(self) -> Dict[str, str]:
        return {**self.base, **self.secret_overrides}


class OptionsResolver:
    """Resolves the options a mount is bridged with, reading secrets from the dataset namespace"""

    def __init__(self, secret_store: SecretStore, namespace: str, log: Optional[logging.Logger] = None):
        self._secret_store = secret_store
        self._namespace = namespace
        self._log = log or logger

    def resolve(self, mount: MountSpec) -> ResolvedOptions:
        """
        Resolve all options of a mount

        Encrypt options are applied in declaration order, so when two of them
        target the same key the last one wins.

        Raises:
            SecretResolutionError: on the first secret that cannot be read, lacks
                the referenced key or holds a value that is not UTF-8; nothing is
                returned in that case
        """
        overrides = {}
        for item in mount.encrypt_options:
            ref = item.secret_ref
            try:
                secret = self._secret_store.get_secret(ref.name, self._namespace)
            except Exception as e:
                self._log.error(
                    f"Get secret by mount encrypt options failed, mount: {mount.name}, option: {item.name}, "
                    f"secret: {self._namespace}/{ref.name}"
                )
                raise SecretResolutionError(mount.name, ref, e) from e

            if ref.key not in secret:
                raise SecretResolutionError(mount.name, ref, KeyError(ref.key))

            try:
                overrides[item.name] = secret[ref.key].decode("utf-8")
            except UnicodeDecodeError as e:
                raise SecretResolutionError(mount.name, ref, e) from e
            self._log.info(f"Get value from secret, mount: {mount.name}, secret: {ref.name}, key: {ref.key}")

        return ResolvedOptions(base=dict(mount.options), secret_overrides=overrides)
