"""
Data models for the retention system.

This module contains the data classes and enums shared by the policy
parser, the snapshot catalog, the retention selector and the executors.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SAFETY_VIOLATION = 3


class Granularity(Enum):
    """Retention time-scales, in canonical policy order."""
    HOURLY = "h"
    DAILY = "d"
    WEEKLY = "w"
    MONTHLY = "m"
    YEARLY = "y"

    @property
    def label(self) -> str:
        return self.name.lower()

    def bucket(self, instant: datetime) -> datetime:
        """
        Truncate an instant to the start of its bucket.

        Buckets are computed in UTC; weeks start on Monday 00:00. Naive
        datetimes are taken to be UTC already.
        """
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        else:
            instant = instant.astimezone(timezone.utc)

        hour = instant.replace(minute=0, second=0, microsecond=0)
        if self is Granularity.HOURLY:
            return hour
        day = hour.replace(hour=0)
        if self is Granularity.DAILY:
            return day
        if self is Granularity.WEEKLY:
            return day - timedelta(days=day.weekday())
        if self is Granularity.MONTHLY:
            return day.replace(day=1)
        return day.replace(month=1, day=1)


@dataclass(frozen=True)
class RetentionPolicy:
    """Number of snapshots to keep for each granularity; 0 disables it."""
    hourly: int = 0
    daily: int = 0
    weekly: int = 0
    monthly: int = 0
    yearly: int = 0

    @classmethod
    def from_counts(cls, counts: Mapping[Granularity, int]) -> "RetentionPolicy":
        return cls(**{g.label: int(n) for g, n in counts.items()})

    def count(self, granularity: Granularity) -> int:
        return getattr(self, granularity.label)

    def items(self) -> List[Tuple[Granularity, int]]:
        """Counts in canonical order (hourly first)."""
        return [(g, self.count(g)) for g in Granularity]

    @property
    def is_noop(self) -> bool:
        return all(n == 0 for _, n in self.items())

    def __str__(self) -> str:
        return "".join(f"{g.value}{n}" for g, n in self.items() if n)


@dataclass(frozen=True)
class Snapshot:
    """One point-in-time capture of a dataset."""
    identifier: str
    created_at: datetime
    protected: bool = False
    used_bytes: Optional[int] = None


class Decision(Enum):
    """Retention decision for one snapshot."""
    KEEP = "keep"
    DESTROY = "destroy"


@dataclass(frozen=True)
class Classification:
    """
    Keep/destroy decision for every snapshot of one dataset.

    `snapshots` is ordered newest first; `kept_by` lists the granularities
    whose window retained each snapshot (empty for protected snapshots that
    no granularity picked, and for destroyed ones).
    """
    policy: RetentionPolicy
    evaluated_at: datetime
    snapshots: List[Snapshot]
    decisions: Dict[str, Decision]
    kept_by: Dict[str, Tuple[Granularity, ...]]

    def decision_for(self, identifier: str) -> Decision:
        return self.decisions[identifier]

    @property
    def keep(self) -> List[Snapshot]:
        return [s for s in self.snapshots if self.decisions[s.identifier] is Decision.KEEP]

    @property
    def destroy(self) -> List[Snapshot]:
        return [s for s in self.snapshots if self.decisions[s.identifier] is Decision.DESTROY]

    @property
    def protected(self) -> List[Snapshot]:
        return [s for s in self.snapshots if s.protected]

    @property
    def kept_per_granularity(self) -> Dict[Granularity, int]:
        counts = {g: 0 for g in Granularity}
        for granularities in self.kept_by.values():
            for g in granularities:
                counts[g] += 1
        return counts


@dataclass(frozen=True)
class Dataset:
    """A filesystem or volume and the raw value of its policy property."""
    name: str
    policy_value: Optional[str] = None

    @property
    def is_managed(self) -> bool:
        return self.policy_value is not None and self.policy_value != "-"


@dataclass(frozen=True)
class SnapshotRecord:
    """Raw snapshot row as reported by the storage subsystem."""
    identifier: str
    creation: str
    property_value: Optional[str] = None
    used: Optional[str] = None


@dataclass
class SnapshotOperation:
    """Represents a single create or destroy request."""
    operation_id: str
    timestamp: datetime
    action: str  # 'create', 'destroy'
    dataset: str
    identifier: str
    status: str  # 'success', 'failed', 'refused'
    duration_seconds: float
    error_message: Optional[str] = None


@dataclass
class DatasetResult:
    """Outcome of one command for one dataset."""
    dataset: str
    policy: Optional[RetentionPolicy] = None
    classification: Optional[Classification] = None
    operations: List[SnapshotOperation] = field(default_factory=list)
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_type is None and all(op.status == 'success' for op in self.operations)


@dataclass
class RunReport:
    """Aggregated outcome of one command over all managed datasets."""
    command: str
    started_at: datetime
    results: List[DatasetResult] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def operations(self) -> List[SnapshotOperation]:
        return [op for result in self.results for op in result.operations]

    @property
    def safety_violations(self) -> List[SnapshotOperation]:
        return [op for op in self.operations if op.status == 'refused']

    @property
    def failures(self) -> List[str]:
        """Human-readable description of everything that went wrong."""
        messages = []
        if self.error_message:
            messages.append(self.error_message)
        for result in self.results:
            if result.error_type:
                messages.append(f"{result.dataset}: {result.error_type}: {result.error_message}")
            for op in result.operations:
                if op.status != 'success':
                    messages.append(f"{op.action} {op.identifier}: {op.status}: {op.error_message}")
        return messages

    @property
    def exit_code(self) -> int:
        if self.safety_violations:
            return EXIT_SAFETY_VIOLATION
        if self.failures:
            return EXIT_FAILURE
        return EXIT_OK
