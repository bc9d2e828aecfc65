"""
Unit tests for status rendering.
"""

from datetime import datetime, timezone

import pytest

from autosnap.retention.policy_parser import parse_policy
from autosnap.retention.retention_models import DatasetResult, RunReport, Snapshot
from autosnap.retention.selector import select_retention
from autosnap.storage.retention_status import (
    format_age, format_bytes, render_dataset, render_status, status_payload
)

NOW = datetime(2024, 3, 5, 11, 20, tzinfo=timezone.utc)
MIB = 1024 * 1024


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def report():
    snapshots = [
        Snapshot("tank/data@1000", utc(2024, 3, 5, 10, 0), used_bytes=MIB),
        Snapshot("tank/data@1030", utc(2024, 3, 5, 10, 30), used_bytes=2 * MIB),
        Snapshot("tank/data@1115", utc(2024, 3, 5, 11, 15), used_bytes=MIB),
        Snapshot("tank/data@pinned", utc(2024, 3, 1), protected=True),
    ]
    policy = parse_policy("h2d1")
    classification = select_retention(snapshots, policy, NOW)
    return RunReport(command='status', started_at=NOW, results=[
        DatasetResult(dataset="tank/data", policy=policy, classification=classification),
        DatasetResult(dataset="tank/bad", error_type="InvalidPolicy",
                      error_message="Invalid retention policy 'x1'"),
    ])


class TestFormatting:
    """Test cases for the formatting helpers."""

    @pytest.mark.parametrize("size,expected", [
        (None, "-"),
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.0 KiB"),
        (3 * MIB // 2, "1.5 MiB"),
        (5 * 1024 ** 4, "5.0 TiB"),
    ])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    def test_format_age(self):
        assert format_age(utc(2024, 3, 5, 11, 15), NOW) == "5m ago"
        assert format_age(utc(2024, 3, 5, 8, 20), NOW) == "3h ago"
        assert format_age(utc(2024, 3, 1, 11, 20), NOW) == "4d ago"
        assert format_age(utc(2024, 3, 5, 14, 20), NOW) == "in 3h"


class TestRenderStatus:
    """Test cases for text and JSON status output."""

    def test_dataset_section(self, report):
        lines = render_dataset(report.results[0])

        assert lines[0] == "dataset: tank/data"
        assert "  policy: h2d1" in lines
        assert "  snapshots: 4 (keep 3, destroy 1, protected 1)" in lines
        assert "  kept per granularity: hourly 2/2, daily 1/1" in lines
        assert "  keep: 3.0 MiB" in lines
        assert "  destroy: 1.0 MiB" in lines
        destroy_lines = [line for line in lines if line.startswith("  destroy: tank/")]
        assert len(destroy_lines) == 1
        assert destroy_lines[0].startswith("  destroy: tank/data@1000\t2024-03-05T10:00:00Z\t1h ago")

    def test_protected_and_kept_by_tags(self, report):
        text = render_status(report)

        assert "tank/data@pinned" in text
        assert "[protected]" in text
        assert "[h,d]" in text

    def test_dataset_error(self, report):
        lines = render_dataset(report.results[1])

        assert lines == [
            "dataset: tank/bad",
            "  error: InvalidPolicy: Invalid retention policy 'x1'",
        ]

    def test_empty_policy_explained(self):
        classification = select_retention([], parse_policy(""), NOW)
        lines = render_dataset(DatasetResult(dataset="tank/data", classification=classification))

        assert "  policy: (empty: keep protected snapshots only)" in lines

    def test_no_datasets(self):
        assert render_status(RunReport(command='status', started_at=NOW)) == "No managed datasets."

    def test_listing_error(self):
        report = RunReport(command='status', started_at=NOW, error_message="listing datasets failed: boom")

        assert render_status(report) == "error: listing datasets failed: boom"

    def test_status_payload(self, report):
        payload = status_payload(report)

        data, bad = payload["datasets"]
        assert payload["command"] == "status"
        assert data["policy"] == "h2d1"
        assert data["total"] == 4
        assert data["destroy"] == ["tank/data@1000"]
        assert data["protected"] == ["tank/data@pinned"]
        assert data["kept_per_granularity"]["hourly"] == 2
        assert data["destroy_bytes"] == MIB
        assert bad["error"]["type"] == "InvalidPolicy"
