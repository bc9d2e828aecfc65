"""
Status reporting for the retention system.

Renders the classification computed by a `status` run, per dataset:
policy in effect, snapshot counts, how many snapshots each granularity
keeps, what is pending destruction and which snapshots are protected.
Nothing here touches the storage subsystem.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from autosnap.retention.retention_models import (
    Classification, DatasetResult, RunReport, Snapshot
)

_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB"]


def format_bytes(size: Optional[int]) -> str:
    """Human readable binary size; '-' when unknown."""
    if size is None:
        return "-"
    value = float(size)
    for unit in _UNITS:
        if abs(value) < 1024 or unit == _UNITS[-1]:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_UNITS[-1]}"


def format_age(created_at: datetime, now: datetime) -> str:
    """Coarse age of a snapshot relative to the evaluation instant."""
    delta = now - created_at
    future = delta < timedelta(0)
    seconds = abs(delta.total_seconds())
    if seconds < 3600:
        text = f"{int(seconds // 60)}m"
    elif seconds < 86400 * 2:
        text = f"{int(seconds // 3600)}h"
    else:
        text = f"{int(seconds // 86400)}d"
    return f"in {text}" if future else f"{text} ago"


def total_bytes(snapshots: Iterable[Snapshot]) -> Optional[int]:
    sizes = [s.used_bytes for s in snapshots if s.used_bytes is not None]
    return sum(sizes) if sizes else None


def _snapshot_line(label: str, snapshot: Snapshot, classification: Classification) -> str:
    kept_by = ",".join(g.value for g in classification.kept_by.get(snapshot.identifier, ()))
    tags = []
    if kept_by:
        tags.append(kept_by)
    if snapshot.protected:
        tags.append("protected")
    suffix = f"\t[{' '.join(tags)}]" if tags else ""
    return (
        f"  {label}: {snapshot.identifier}\t"
        f"{snapshot.created_at.strftime('%Y-%m-%dT%H:%M:%SZ')}\t"
        f"{format_age(snapshot.created_at, classification.evaluated_at)}\t"
        f"{format_bytes(snapshot.used_bytes)}{suffix}"
    )


def render_dataset(result: DatasetResult) -> List[str]:
    """Render one dataset's section of the status report."""
    lines = [f"dataset: {result.dataset}"]
    if result.error_type:
        lines.append(f"  error: {result.error_type}: {result.error_message}")
        return lines

    classification = result.classification
    if classification is None:
        return lines

    policy_text = str(classification.policy) or "(empty: keep protected snapshots only)"
    keep = classification.keep
    destroy = classification.destroy
    protected = classification.protected
    per_granularity = classification.kept_per_granularity

    lines.append(f"  policy: {policy_text}")
    lines.append(
        f"  snapshots: {len(classification.snapshots)} "
        f"(keep {len(keep)}, destroy {len(destroy)}, protected {len(protected)})"
    )
    enabled = [g for g, n in classification.policy.items() if n]
    if enabled:
        kept = ", ".join(
            f"{g.label} {per_granularity[g]}/{classification.policy.count(g)}" for g in enabled
        )
        lines.append(f"  kept per granularity: {kept}")

    if keep:
        lines.append(f"  keep: {format_bytes(total_bytes(keep))}")
        lines.extend(_snapshot_line("keep", s, classification) for s in keep)
    if destroy:
        lines.append(f"  destroy: {format_bytes(total_bytes(destroy))}")
        lines.extend(_snapshot_line("destroy", s, classification) for s in destroy)
    return lines


def render_status(report: RunReport) -> str:
    """Render a whole status run as text."""
    lines: List[str] = []
    if report.error_message:
        lines.append(f"error: {report.error_message}")
    if not report.results and not report.error_message:
        lines.append("No managed datasets.")
    for result in report.results:
        lines.extend(render_dataset(result))
    return "\n".join(lines)


def status_payload(report: RunReport) -> Dict[str, Any]:
    """Machine readable form of a status run."""
    datasets = []
    for result in report.results:
        entry: Dict[str, Any] = {"dataset": result.dataset}
        if result.error_type:
            entry["error"] = {"type": result.error_type, "message": result.error_message}
        elif result.classification is not None:
            classification = result.classification
            entry.update({
                "policy": str(classification.policy),
                "evaluated_at": classification.evaluated_at.isoformat(),
                "total": len(classification.snapshots),
                "kept_per_granularity": {
                    g.label: n for g, n in classification.kept_per_granularity.items()
                },
                "keep": [s.identifier for s in classification.keep],
                "destroy": [s.identifier for s in classification.destroy],
                "protected": [s.identifier for s in classification.protected],
                "destroy_bytes": total_bytes(classification.destroy),
            })
        datasets.append(entry)

    return {
        "command": report.command,
        "started_at": report.started_at.isoformat(),
        "error": report.error_message,
        "datasets": datasets,
    }
