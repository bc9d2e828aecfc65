"""
Snapshot catalog - normalizes raw snapshot rows into Snapshot values.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import structlog

from autosnap.retention.errors import CatalogError
from autosnap.retention.retention_models import Snapshot, SnapshotRecord

logger = structlog.get_logger(__name__)

PROTECTED_VALUE = "-"

# What `zfs list` prints without -p, e.g. "Sat Oct  2  9:59 2021".
ZFS_CREATION_FORMAT = "%a %b %d %H:%M %Y"

_SIZE_SUFFIXES = "KMGTPEZ"
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)([KMGTPEZ]?)(?:i?B)?$")


def parse_creation(value: str) -> datetime:
    """
    Parse a snapshot creation time into an aware UTC datetime.

    Accepts Unix epoch seconds (`zfs list -p`) or the human-readable zfs
    format, which is taken to be UTC.

    Raises:
        ValueError: If the value matches neither form.
    """
    text = " ".join(value.split())
    if text.isdigit():
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    return datetime.strptime(text, ZFS_CREATION_FORMAT).replace(tzinfo=timezone.utc)


def parse_used(value: Optional[str]) -> Optional[int]:
    """
    Parse a zfs size into bytes.

    The zfs tool prints e.g. 1.2M but means 1.2 MiB. Returns None for
    anything it cannot read ("-", empty, garbage); sizes are informational.
    """
    if value is None:
        return None
    match = _SIZE_RE.match(value.strip())
    if not match:
        return None
    number, suffix = match.groups()
    multiplier = 1024 ** (_SIZE_SUFFIXES.index(suffix) + 1) if suffix else 1
    return int(float(number) * multiplier)


def build_catalog(dataset: str, records: Iterable[SnapshotRecord]) -> List[Snapshot]:
    """
    Build the snapshot list for one dataset.

    A snapshot is protected iff its own property value is literally "-".

    Raises:
        CatalogError: If a creation time cannot be parsed or an identifier
            appears twice. The whole dataset is rejected.
    """
    snapshots: List[Snapshot] = []
    seen = set()
    for record in records:
        if record.identifier in seen:
            raise CatalogError(dataset, f"snapshot {record.identifier!r} listed twice")
        seen.add(record.identifier)

        try:
            created_at = parse_creation(record.creation)
        except (ValueError, OverflowError, OSError) as e:
            raise CatalogError(
                dataset,
                f"cannot parse creation time {record.creation!r} of {record.identifier!r}: {e}"
            ) from e

        snapshots.append(Snapshot(
            identifier=record.identifier,
            created_at=created_at,
            protected=record.property_value == PROTECTED_VALUE,
            used_bytes=parse_used(record.used),
        ))

    logger.debug("Catalog built", dataset=dataset, snapshots=len(snapshots),
                 protected=sum(1 for s in snapshots if s.protected))
    return snapshots
