"""
Logging and audit trail for the retention system.

Every create/destroy request is logged through structlog. When an audit
directory is configured, each one is also appended as a JSON line to a
per-day file, and each run appends a summary record.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from autosnap.retention.retention_models import DatasetResult, RunReport, SnapshotOperation

logger = structlog.get_logger(__name__)


class RetentionLogger:
    """Handles logging and the audit trail for snapshot operations."""

    def __init__(self, audit_dir: Optional[str] = None):
        self.audit_dir = Path(audit_dir) if audit_dir else None

    def log_operation(self, operation: SnapshotOperation, policy: Optional[str] = None):
        """Log one create/destroy request and store it in the audit trail."""
        log_entry = {
            "record": "operation",
            "operation_id": operation.operation_id,
            "timestamp": operation.timestamp.isoformat(),
            "action": operation.action,
            "dataset": operation.dataset,
            "identifier": operation.identifier,
            "status": operation.status,
            "duration_seconds": round(operation.duration_seconds, 3),
            "error_message": operation.error_message,
            "policy": policy,
        }

        if operation.status == 'success':
            logger.info(f"Snapshot {operation.action} done", identifier=operation.identifier,
                        duration=self._format_duration(operation.duration_seconds))
        elif operation.status == 'refused':
            logger.critical("SAFETY VIOLATION: destroy request refused",
                            identifier=operation.identifier, dataset=operation.dataset,
                            error=operation.error_message)
        else:
            logger.error(f"Snapshot {operation.action} failed", identifier=operation.identifier,
                         error=operation.error_message)

        self._store_log_entry(log_entry)

    def log_dataset_error(self, result: DatasetResult):
        """Log a dataset that was skipped because of an error."""
        logger.error("Dataset skipped", dataset=result.dataset,
                     error_type=result.error_type, error=result.error_message)
        self._store_log_entry({
            "record": "dataset_error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "dataset": result.dataset,
            "error_type": result.error_type,
            "error_message": result.error_message,
        })

    def create_run_summary(self, report: RunReport) -> Dict[str, Any]:
        """Summarize a run, log it and store it in the audit trail."""
        operations = report.operations
        duration = 0.0
        if report.finished_at:
            duration = (report.finished_at - report.started_at).total_seconds()

        summary = {
            "record": "run_summary",
            "command": report.command,
            "started_at": report.started_at.isoformat(),
            "duration_seconds": round(duration, 3),
            "datasets": len(report.results),
            "dataset_errors": len([r for r in report.results if r.error_type]),
            "operations": len(operations),
            "successful_operations": len([op for op in operations if op.status == 'success']),
            "failed_operations": len([op for op in operations if op.status == 'failed']),
            "refused_operations": len(report.safety_violations),
            "exit_code": report.exit_code,
        }

        if report.exit_code == 0:
            logger.info(f"{report.command} completed", datasets=summary["datasets"],
                        operations=summary["operations"], duration=self._format_duration(duration))
        else:
            logger.warning(f"{report.command} completed with failures",
                           failures=len(report.failures), exit_code=report.exit_code)

        self._store_log_entry(summary)
        return summary

    def _format_duration(self, duration_seconds: float) -> str:
        """Format duration in a human-readable format."""
        if duration_seconds < 60:
            return f"{duration_seconds:.2f}s"
        elif duration_seconds < 3600:
            return f"{duration_seconds / 60:.1f}m"
        else:
            return f"{duration_seconds / 3600:.1f}h"

    def _store_log_entry(self, log_entry: Dict[str, Any]):
        """Append an entry to today's audit file, if auditing is enabled."""
        if self.audit_dir is None:
            return
        try:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
            log_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
            log_file = self.audit_dir / f"autosnap_operations_{log_date}.jsonl"
            with open(log_file, 'a') as f:
                f.write(json.dumps(log_entry) + '\n')
        except OSError as e:
            logger.error("Failed to store audit log entry", audit_dir=str(self.audit_dir), error=str(e))
