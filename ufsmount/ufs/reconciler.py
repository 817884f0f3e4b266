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

from typing import List

from ufsmount.db.models import utc_now
from ufsmount.exceptions import NotReadyError
from ufsmount.ufs.context import ReconcileContext
from ufsmount.ufs.differ import MountDiff, MountSetDiffer, mount_set_differ
from ufsmount.ufs.options import OptionsResolver
from ufsmount.ufs.status import DatasetStatusUpdater, RuntimeStatusUpdater, set_metadata_sync_state
from ufsmount.ufs.types import DatasetStatus, MetadataSyncState, MountSpec, RuntimeStatus


class UFSReconciler:
    """
    Converges the UFS mounts bridged into a cache runtime to the mounts declared by its dataset.

    Every pass reads the desired mounts and the bridge state fresh, mutates
    nothing unless the bridge is ready, and applies operations one at a time.
    A failed pass is not rolled back: mount and unmount are idempotent, so the
    next pass resumes from whatever state this one left behind.
    """

    def __init__(self, context: ReconcileContext, differ: MountSetDiffer = mount_set_differ):
        self.ctx = context
        self.log = context.log
        self._differ = differ
        self._options = OptionsResolver(context.secret_store, context.resource_id.namespace, context.log)
        self._dataset_status = DatasetStatusUpdater(context.store, context.retry_policy)
        self._runtime_status = RuntimeStatusUpdater(context.store, context.retry_policy)

    def _get_desired_mounts(self) -> List[MountSpec]:
        spec = self.ctx.store.get_desired_spec(self.ctx.resource_id)
        self.log.info(f"Get dataset info, dataset: {self.ctx.resource_id}, mounts: {len(spec.mounts)}")
        return spec.mounts

    def _check_ready(self):
        if not self.ctx.bridge.ready():
            raise NotReadyError(self.ctx.resource_id)

    def _mount(self, path: str, mount: MountSpec):
        options = self._options.resolve(mount).merged()
        self.ctx.bridge.mount(path, mount.mount_point, options, mount.read_only, mount.shared)
        self.log.info(f"Mounted {mount.mount_point} at {path}, dataset: {self.ctx.resource_id}, mount: {mount.name}")

    def should_mount_ufs(self) -> bool:
        """Check if there's any UFS that needs to be mounted"""
        mounts = self._get_desired_mounts()
        self._check_ready()

        for path, mount in self._differ.desired_paths(mounts).items():
            if not self.ctx.bridge.is_mounted(path):
                self.log.info(f"Found UFS that is not mounted, dataset: {self.ctx.resource_id}, mount: {mount.name}")
                return True
        return False

    def find_unmounted_ufs(self) -> List[str]:
        """Return the resolved paths of declared mounts that are not bridged yet"""
        mounts = self._get_desired_mounts()
        self._check_ready()

        paths = list(self._differ.desired_paths(mounts))
        # Native mounts only, nothing to ask the bridge
        if not paths:
            return []
        return self.ctx.bridge.find_unmounted_paths(paths)

    def ensure_mounted(self) -> List[str]:
        """
        Mount every declared UFS that is not mounted yet. Never unmounts anything.

        Returns:
            Paths mounted during this pass

        Raises:
            NotReadyError: if the bridge is not ready; nothing was mounted
            SecretResolutionError, MountOperationError: the pass stops at the
                failing mount, earlier mounts of the pass stay in place
        """
        mounts = self._get_desired_mounts()
        self._check_ready()

        mounted = []
        for path, mount in self._differ.desired_paths(mounts).items():
            is_mounted = self.ctx.bridge.is_mounted(path)
            self.log.debug(f"Check if the path is mounted, path: {path}, mounted: {is_mounted}")
            if is_mounted:
                continue
            self._mount(path, mount)
            mounted.append(path)

        if mounted:
            self.update_mount_time()
        return mounted

    def compute_update(self) -> MountDiff:
        """Diff the declared mounts against the paths the bridge reports as mounted"""
        mounts = self._get_desired_mounts()
        self._check_ready()
        return self._differ.diff(mounts, self.ctx.bridge.list_mounted_paths())

    def apply_update(self, diff: MountDiff):
        """
        Apply a computed delta: all additions first, then all removals.

        Afterwards the metadata-sync sentinel is reset when the mount set changed
        and metadata sync is triggered; a metadata sync failure is logged only.
        """
        self._check_ready()

        for path, mount in diff.to_add.items():
            self._mount(path, mount)

        for path in sorted(diff.to_remove):
            self.ctx.bridge.unmount(path)
            self.log.info(f"Unmounted {path}, dataset: {self.ctx.resource_id}")

        if not diff.is_empty():
            self.reset_metadata_sync()

        self.sync_metadata()

        if diff.to_add:
            self.update_mount_time()

    def reconcile(self) -> MountDiff:
        """Run one full pass: compute the delta and apply it if there is one"""
        diff = self.compute_update()
        if diff.is_empty():
            self.log.debug(f"No UFS changes for dataset {self.ctx.resource_id}")
            return diff

        self.log.info(
            f"Reconciling dataset {self.ctx.resource_id}: "
            f"{len(diff.to_add)} to mount, {len(diff.to_remove)} to unmount"
        )
        self.apply_update(diff)
        return diff

    def reset_metadata_sync(self) -> bool:
        """Mark the usage statistics of the dataset as stale, returns whether a write happened"""
        return self._dataset_status.update_status(
            self.ctx.resource_id, set_metadata_sync_state(MetadataSyncState.CALCULATING)
        )

    def sync_metadata(self):
        if self.ctx.metadata_sync is None:
            self.log.debug(f"No metadata sync configured for dataset {self.ctx.resource_id}")
            return
        try:
            self.ctx.metadata_sync.schedule_sync(self.ctx.resource_id)
        except Exception as e:
            # not on the critical path of a pass, the mounts are already in place
            self.log.error(f"SyncMetadata failed, dataset: {self.ctx.resource_id}: {e}", exc_info=True)

    def update_mount_time(self) -> bool:
        now = utc_now()

        def mutate(status: RuntimeStatus) -> RuntimeStatus:
            status.mount_time = now
            return status

        return self._runtime_status.update_status(self.ctx.resource_id, mutate)

    def used_storage_bytes(self) -> int:
        return 0

    def free_storage_bytes(self) -> int:
        return 0

    def total_storage_bytes(self) -> int:
        _, _, total = self.ctx.bridge.count("/")
        return total

    def total_file_nums(self) -> int:
        return self.ctx.bridge.get_file_count()

    def get_status(self) -> dict:
        """Dataset and runtime status, for display"""
        dataset_status: DatasetStatus = self.ctx.store.read_dataset_status(self.ctx.resource_id).status
        runtime_status: RuntimeStatus = self.ctx.store.read_runtime_status(self.ctx.resource_id).status
        return {
            "dataset": str(self.ctx.resource_id),
            "metadata_sync_state": dataset_status.metadata_sync_state,
            "ufs_total_bytes": dataset_status.ufs_total_bytes,
            "file_num": dataset_status.file_num,
            "mount_time": runtime_status.mount_time.isoformat() if runtime_status.mount_time else None,
        }
