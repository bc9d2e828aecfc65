"""
Prometheus metrics for autosnap runs.

autosnap is run from cron, so there is no endpoint to scrape; the metrics
are written to a file for the node_exporter textfile collector instead.
"""

import time
from pathlib import Path
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, write_to_textfile

from autosnap.retention.retention_models import RunReport

logger = structlog.get_logger(__name__)


class RunMetrics:
    """Collects per-run metrics into a private registry."""

    def __init__(self, textfile: Optional[str] = None, registry: Optional[CollectorRegistry] = None):
        self.textfile = textfile
        self.registry = registry or CollectorRegistry()

        self.snapshots = Gauge(
            'autosnap_snapshots',
            'Snapshots per dataset by retention decision',
            ['dataset', 'decision'],
            registry=self.registry
        )
        self.operations = Counter(
            'autosnap_operations_total',
            'Snapshot create/destroy requests by outcome',
            ['action', 'status'],
            registry=self.registry
        )
        self.dataset_errors = Counter(
            'autosnap_dataset_errors_total',
            'Datasets skipped because of an error',
            ['error_type'],
            registry=self.registry
        )
        self.last_run = Gauge(
            'autosnap_last_run_timestamp_seconds',
            'Unix time the command last finished',
            ['command'],
            registry=self.registry
        )
        self.last_exit_code = Gauge(
            'autosnap_last_run_exit_code',
            'Exit code of the last run',
            ['command'],
            registry=self.registry
        )

    def observe_run(self, report: RunReport) -> None:
        """Record the outcome of a finished run."""
        for result in report.results:
            if result.error_type:
                self.dataset_errors.labels(error_type=result.error_type).inc()
            if result.classification is not None:
                classification = result.classification
                self.snapshots.labels(dataset=result.dataset, decision='keep').set(len(classification.keep))
                self.snapshots.labels(dataset=result.dataset, decision='destroy').set(len(classification.destroy))
                self.snapshots.labels(dataset=result.dataset, decision='protected').set(len(classification.protected))
            for op in result.operations:
                self.operations.labels(action=op.action, status=op.status).inc()

        finished = report.finished_at.timestamp() if report.finished_at else time.time()
        self.last_run.labels(command=report.command).set(finished)
        self.last_exit_code.labels(command=report.command).set(report.exit_code)

    def textfile_for(self, command: Optional[str] = None) -> Optional[Path]:
        """
        Path the metrics of `command` are written to.

        Each command gets its own file next to the configured one, e.g.
        autosnap.prom -> autosnap_gc.prom.
        """
        if not self.textfile:
            return None
        path = Path(self.textfile)
        if command is None:
            return path
        return path.with_name(f"{path.stem}_{command}{path.suffix or '.prom'}")

    def write(self, command: Optional[str] = None) -> None:
        """Write the registry to the command's textfile, if one is configured."""
        path = self.textfile_for(command)
        if path is None:
            return
        try:
            write_to_textfile(str(path), self.registry)
            logger.debug("Metrics written", path=str(path))
        except OSError as e:
            logger.error("Failed to write metrics textfile", path=str(path), error=str(e))
