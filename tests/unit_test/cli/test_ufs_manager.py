"""
Unit tests for the ufs-manager CLI.
"""

import json
from unittest.mock import patch

from ufsmount.cli.ufs_manager import main
from ufsmount.exceptions import NotReadyError
from ufsmount.ufs.differ import MountDiff
from ufsmount.ufs.types import DatasetSpec, ResourceId


class TestUFSManagerCLI:
    """Test suite for command dispatch and exit codes."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "UFS Mount Manager CLI" in capsys.readouterr().out

    @patch("ufsmount.tasks.ufs_tasks.build_reconciler")
    def test_diff(self, mock_build, capsys):
        mock_build.return_value.compute_update.return_value = MountDiff(to_remove={"/c"})

        assert main(["diff", "--namespace", "ml", "--name", "coco"]) == 0

        mock_build.assert_called_once_with(ResourceId("ml", "coco"))
        assert json.loads(capsys.readouterr().out) == {"to_add": [], "to_remove": ["/c"]}

    @patch("ufsmount.tasks.ufs_tasks.build_reconciler")
    def test_reconciliation_error_exit_code(self, mock_build):
        """Test that reconciliation errors are reported with a non-zero exit code."""
        mock_build.return_value.reconcile.side_effect = NotReadyError(ResourceId("default", "imagenet"))
        assert main(["reconcile", "--name", "imagenet"]) == 1

    @patch("ufsmount.db.ops.ClusterStateOps")
    def test_create_from_spec_file(self, mock_ops, tmp_path):
        spec_file = tmp_path / "mounts.json"
        spec_file.write_text(json.dumps({"mounts": [{"name": "b", "mount_point": "s3://bucket/b"}]}))

        assert main(["create", "--name", "imagenet", "--spec", str(spec_file)]) == 0

        resource_id, spec = mock_ops.return_value.create_dataset.call_args[0]
        assert resource_id == ResourceId("default", "imagenet")
        assert isinstance(spec, DatasetSpec)
        assert spec.mounts[0].name == "b"
        mock_ops.return_value.create_runtime.assert_called_once_with(resource_id)
