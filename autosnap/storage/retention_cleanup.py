"""
Garbage collection of snapshots classified for destruction.

The classification for a dataset is fully computed before this module
issues its first destroy request. Each request is independent: a failure
is recorded and the remaining snapshots are still processed.
"""

import re
import time
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from autosnap.retention.errors import SafetyViolation, SubsystemError
from autosnap.retention.retention_models import Classification, Snapshot, SnapshotOperation
from autosnap.storage.interfaces import StorageInterface
from autosnap.storage.retention_logging import RetentionLogger

logger = structlog.get_logger(__name__)

# Characters zfs accepts in a snapshot component.
SNAPSHOT_NAME_RE = re.compile(r"^[A-Za-z0-9_.: -]+$")


def ensure_snapshot_of(identifier: str, dataset: str) -> None:
    """
    Check that `identifier` names a snapshot taken directly of `dataset`.

    This runs before every destroy request regardless of how the snapshot
    was classified.

    Raises:
        SafetyViolation: If the identifier is anything else.
    """
    if not dataset or dataset.startswith("-") or "@" in dataset:
        raise SafetyViolation(identifier, dataset, "managed dataset name is not valid")
    if identifier.count("@") != 1:
        raise SafetyViolation(identifier, dataset, "expected exactly one '@'")
    parent, _, name = identifier.partition("@")
    if parent != dataset:
        raise SafetyViolation(identifier, dataset, f"snapshot belongs to {parent!r}")
    if not SNAPSHOT_NAME_RE.match(name):
        raise SafetyViolation(identifier, dataset, f"invalid snapshot name {name!r}")


class RetentionCleanup:
    """Destroys the snapshots a classification marks for destruction."""

    def __init__(self, storage: StorageInterface, audit: Optional[RetentionLogger] = None):
        self.storage = storage
        self.audit = audit or RetentionLogger()

    def collect(self, dataset: str, classification: Classification) -> List[SnapshotOperation]:
        """
        Destroy every unprotected snapshot classified DESTROY, oldest first.

        Args:
            dataset: The managed dataset the classification was computed for.
            classification: Output of the retention selector for `dataset`.

        Returns:
            One operation record per destroy request, including refused ones.
        """
        doomed = [s for s in reversed(classification.destroy) if not s.protected]
        if not doomed:
            logger.info("Nothing to destroy", dataset=dataset)
            return []

        logger.info("Destroying snapshots", dataset=dataset, count=len(doomed),
                    policy=str(classification.policy))

        operations = []
        attempted = set()
        for snapshot in doomed:
            if snapshot.identifier in attempted:
                continue
            attempted.add(snapshot.identifier)
            operation = self._destroy(dataset, snapshot, len(operations))
            self.audit.log_operation(operation, str(classification.policy))
            operations.append(operation)

        return operations

    def _destroy(self, dataset: str, snapshot: Snapshot, sequence: int) -> SnapshotOperation:
        """Issue a single guarded destroy request."""
        start_time = datetime.now(timezone.utc)
        started = time.monotonic()
        status = 'success'
        error_message = None

        try:
            ensure_snapshot_of(snapshot.identifier, dataset)
            self.storage.destroy_snapshot(snapshot.identifier)
        except SafetyViolation as e:
            status = 'refused'
            error_message = str(e)
        except SubsystemError as e:
            status = 'failed'
            error_message = str(e)

        return SnapshotOperation(
            operation_id=f"destroy_{start_time.strftime('%Y%m%d_%H%M%S')}_{dataset}_{sequence}",
            timestamp=start_time,
            action='destroy',
            dataset=dataset,
            identifier=snapshot.identifier,
            status=status,
            duration_seconds=time.monotonic() - started,
            error_message=error_message,
        )
