"""
Snapshot creation for managed datasets.
"""

import time
from datetime import datetime, timezone
from typing import Optional

import structlog

from autosnap.retention.errors import SubsystemError
from autosnap.retention.retention_models import SnapshotOperation
from autosnap.storage.interfaces import StorageInterface
from autosnap.storage.retention_logging import RetentionLogger

logger = structlog.get_logger(__name__)

SNAPSHOT_SUFFIX = "autosnap"


def snapshot_name(now: datetime) -> str:
    """Name a snapshot after its creation instant, e.g. 2021-10-02T09:59:00Z-autosnap."""
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{stamp}-{SNAPSHOT_SUFFIX}"


class SnapshotCreator:
    """Takes one new snapshot per managed dataset."""

    def __init__(self, storage: StorageInterface, audit: Optional[RetentionLogger] = None):
        self.storage = storage
        self.audit = audit or RetentionLogger()

    def create(self, dataset: str, now: datetime, policy: Optional[str] = None) -> SnapshotOperation:
        """Request a snapshot of `dataset`; failures are recorded, not raised."""
        name = snapshot_name(now)
        identifier = f"{dataset}@{name}"
        started = time.monotonic()
        status = 'success'
        error_message = None

        try:
            identifier = self.storage.create_snapshot(dataset, name)
        except SubsystemError as e:
            status = 'failed'
            error_message = str(e)

        operation = SnapshotOperation(
            operation_id=f"create_{now.astimezone(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{dataset}",
            timestamp=now,
            action='create',
            dataset=dataset,
            identifier=identifier,
            status=status,
            duration_seconds=time.monotonic() - started,
            error_message=error_message,
        )
        self.audit.log_operation(operation, policy)
        return operation
