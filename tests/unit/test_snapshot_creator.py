"""
Unit tests for snapshot creation.
"""

from datetime import datetime, timedelta, timezone

from autosnap.storage.snapshot_creator import SnapshotCreator, snapshot_name
from tests.utils.fake_storage import FakeStorage


def test_snapshot_name_is_utc():
    local = datetime(2021, 10, 2, 11, 59, tzinfo=timezone(timedelta(hours=2)))

    assert snapshot_name(local) == "2021-10-02T09:59:00Z-autosnap"


def test_create_records_operation():
    storage = FakeStorage()
    now = datetime(2024, 1, 1, 6, tzinfo=timezone.utc)
    storage.now = now

    operation = SnapshotCreator(storage).create("tank/data", now, policy="h24")

    assert operation.status == 'success'
    assert operation.action == 'create'
    assert operation.identifier == "tank/data@2024-01-01T06:00:00Z-autosnap"
    assert storage.created == [operation.identifier]


def test_create_failure_is_recorded():
    storage = FakeStorage()
    storage.fail_create.add("tank/data")
    now = datetime(2024, 1, 1, 6, tzinfo=timezone.utc)

    operation = SnapshotCreator(storage).create("tank/data", now)

    assert operation.status == 'failed'
    assert "out of space" in operation.error_message
    assert storage.created == []
