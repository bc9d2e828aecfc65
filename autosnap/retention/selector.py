"""
Retention selector - decides which snapshots to keep.

For each enabled granularity the snapshots are walked newest first and
dropped into buckets (the UTC hour, day, Monday-start week, month or year
they were created in). The newest snapshot of a bucket represents it, and
the representatives of the N most recent buckets are kept. A snapshot
survives if any granularity keeps it or if it is protected.

Nothing is persisted between runs: the decision is recomputed from the
creation timestamps every time, so running twice on the same snapshots
yields the same classification. Monotonicity under insertion does not
hold: a new snapshot landing in an existing bucket becomes that bucket's
representative and the previous one may be destroyed.
"""

from datetime import datetime
from typing import Dict, Iterable, List

import structlog

from autosnap.retention.retention_models import (
    Classification, Decision, Granularity, RetentionPolicy, Snapshot
)

logger = structlog.get_logger(__name__)


def newest_first(snapshots: Iterable[Snapshot]) -> List[Snapshot]:
    """Sort by creation time, newest first; ties broken by identifier."""
    return sorted(snapshots, key=lambda s: (s.created_at, s.identifier), reverse=True)


def bucket_representatives(snapshots: List[Snapshot], granularity: Granularity,
                           limit: int) -> List[Snapshot]:
    """
    Return the newest snapshot of each of the `limit` most recent buckets.

    `snapshots` must already be ordered newest first.
    """
    representatives: List[Snapshot] = []
    if limit <= 0:
        return representatives

    last_bucket = None
    for snapshot in snapshots:
        bucket = granularity.bucket(snapshot.created_at)
        # Sorted input means a bucket's snapshots are contiguous.
        if bucket == last_bucket:
            continue
        last_bucket = bucket
        representatives.append(snapshot)
        if len(representatives) == limit:
            break
    return representatives


def select_retention(snapshots: Iterable[Snapshot], policy: RetentionPolicy,
                     now: datetime) -> Classification:
    """
    Classify every snapshot as keep or destroy.

    Args:
        snapshots: All snapshots of one dataset, in any order.
        policy: Parsed retention policy.
        now: Evaluation instant, recorded on the result; snapshots dated
            after it are taken at face value.

    Returns:
        Classification covering every input snapshot exactly once.
    """
    ordered = newest_first(snapshots)
    # Protected snapshots are opted out of rotation entirely.
    candidates = [s for s in ordered if not s.protected]

    kept_by: Dict[str, List[Granularity]] = {s.identifier: [] for s in ordered}
    for granularity, limit in policy.items():
        for snapshot in bucket_representatives(candidates, granularity, limit):
            kept_by[snapshot.identifier].append(granularity)

    decisions: Dict[str, Decision] = {}
    for snapshot in ordered:
        keep = snapshot.protected or bool(kept_by[snapshot.identifier])
        decisions[snapshot.identifier] = Decision.KEEP if keep else Decision.DESTROY

    destroy_count = sum(1 for d in decisions.values() if d is Decision.DESTROY)
    logger.debug("Retention selected", policy=str(policy), snapshots=len(ordered),
                 keep=len(ordered) - destroy_count, destroy=destroy_count)

    return Classification(
        policy=policy,
        evaluated_at=now,
        snapshots=ordered,
        decisions=decisions,
        kept_by={ident: tuple(gs) for ident, gs in kept_by.items()},
    )

