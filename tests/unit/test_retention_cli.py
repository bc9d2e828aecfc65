"""
Unit tests for the command-line interface.

The manager is built over an in-memory storage so no zfs is needed.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from autosnap import __version__
from autosnap.config.autosnap_config import AutosnapConfig
from autosnap.retention.errors import ConfigError
from autosnap.retention.retention_models import SnapshotRecord
from autosnap.retention_cli import build_manager, build_parser, main
from autosnap.storage.retention_manager import RetentionManager
from autosnap.storage.zfs import ZfsStorage
from tests.utils.fake_storage import FakeStorage

NOW = datetime(2024, 1, 2, 12, tzinfo=timezone.utc)


@pytest.fixture
def storage():
    storage = FakeStorage()
    storage.now = NOW
    storage.add_dataset("tank/data", "h2")
    for hours_ago in (5, 4, 3, 1):
        storage.add_snapshot("tank/data", f"s{hours_ago}", NOW - timedelta(hours=hours_ago))
    return storage


@pytest.fixture
def cli(storage):
    """Run main() against the fake storage, with logging left alone."""
    manager = RetentionManager(storage, clock=lambda: NOW)
    with patch('autosnap.retention_cli.load_autosnap_config', return_value=AutosnapConfig()), \
            patch('autosnap.retention_cli.setup_logging'), \
            patch('autosnap.retention_cli.build_manager', return_value=manager):
        yield main


class TestRetentionCli:
    """Test cases for main()."""

    def test_snap(self, cli, storage, capsys):
        assert cli(['snap']) == 0

        out = capsys.readouterr().out
        assert "snapshot: tank/data@2024-01-02T12:00:00Z-autosnap" in out
        assert storage.created == ["tank/data@2024-01-02T12:00:00Z-autosnap"]

    def test_gc(self, cli, storage, capsys):
        assert cli(['gc']) == 0

        out = capsys.readouterr().out
        assert "destroy: tank/data@s5" in out
        assert "destroy: tank/data@s4" in out
        assert sorted(storage.snapshot_names("tank/data")) == ["tank/data@s1", "tank/data@s3"]

    def test_gc_with_destroy_failure(self, cli, storage, capsys):
        storage.fail_destroy.add("tank/data@s5")

        assert cli(['gc']) == 1

        err = capsys.readouterr().err
        assert "error: destroy tank/data@s5: failed" in err

    def test_gc_safety_violation(self, cli, storage, capsys):
        storage.extra_records["tank/data"] = [
            SnapshotRecord("tank/other@sneaky", str(int((NOW - timedelta(days=3)).timestamp())))
        ]

        assert cli(['gc']) == 3

        err = capsys.readouterr().err
        assert "SAFETY VIOLATION" in err
        assert "tank/other@sneaky" not in storage.destroyed

    def test_status_text(self, cli, storage, capsys):
        assert cli(['status']) == 0

        out = capsys.readouterr().out
        assert "dataset: tank/data" in out
        assert "snapshots: 4 (keep 2, destroy 2, protected 0)" in out
        assert storage.destroyed == []
        assert storage.created == []

    def test_status_json(self, cli, capsys):
        assert cli(['status', '--json']) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["datasets"][0]["destroy"] == ["tank/data@s4", "tank/data@s5"]

    def test_status_scope(self, cli, storage, capsys):
        storage.add_dataset("pool/other", "d1")

        assert cli(['status', 'pool']) == 0

        out = capsys.readouterr().out
        assert "dataset: pool/other" in out
        assert "dataset: tank/data" not in out

    def test_protect(self, cli, storage, capsys):
        assert cli(['protect', 'tank/data@s5']) == 0
        assert cli(['gc']) == 0

        assert "tank/data@s5" in storage.snapshot_names("tank/data")
        assert "tank/data@s4" in storage.destroyed

    def test_protect_rejects_dataset(self, cli, storage, capsys):
        assert cli(['protect', 'tank/data']) == 1

        assert "Error:" in capsys.readouterr().err
        assert storage.property_writes == []

    def test_set_policy(self, cli, storage, capsys):
        assert cli(['set-policy', 'tank/data', 'y1h24']) == 0

        assert "policy: tank/data h24y1" in capsys.readouterr().out
        assert storage.datasets["tank/data"] == "h24y1"

    def test_set_policy_invalid(self, cli, storage, capsys):
        assert cli(['set-policy', 'tank/data', 'h24x']) == 1

        assert "Invalid retention policy" in capsys.readouterr().err
        assert storage.datasets["tank/data"] == "h2"

    def test_listing_failure(self, cli, storage, capsys):
        storage.fail_list_datasets = True

        assert cli(['gc']) == 1

        assert "listing datasets failed" in capsys.readouterr().err


class TestCliWithoutManager:
    """Paths that never reach the storage subsystem."""

    def test_version(self, capsys):
        assert main(['version']) == 0

        assert f"autosnap v{__version__}" in capsys.readouterr().out

    def test_no_command_prints_help_and_succeeds(self, capsys):
        assert main([]) == 0

        assert "usage:" in capsys.readouterr().out

    def test_unknown_command(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['prune'])

        assert exc_info.value.code == 2

    def test_config_error(self, capsys):
        with patch('autosnap.retention_cli.load_autosnap_config', side_effect=ConfigError("bad config")):
            assert main(['gc']) == 1

        assert "Error: bad config" in capsys.readouterr().err

    def test_parser_scope(self):
        args = build_parser().parse_args(['gc', 'tank/a', 'tank/b'])

        assert args.command == 'gc'
        assert args.scope == ['tank/a', 'tank/b']

    def test_build_manager_uses_config(self, tmp_path):
        config = AutosnapConfig(zfs_binary="/sbin/zfs", property_key="com.example:keep",
                                audit_dir=str(tmp_path), metrics_textfile=str(tmp_path / "m.prom"))

        manager = build_manager(config)

        assert isinstance(manager.storage, ZfsStorage)
        assert manager.storage.zfs_binary == "/sbin/zfs"
        assert manager.storage.property_key == "com.example:keep"
        assert manager.metrics.textfile == str(tmp_path / "m.prom")
