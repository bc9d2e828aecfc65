"""
Main retention manager - orchestrates the retention system.

This is the entry point behind the `snap`, `gc` and `status` commands.
Datasets are processed one at a time and independently: an error on one
dataset is recorded on its result and the run moves on.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import structlog

from autosnap.retention.catalog import build_catalog
from autosnap.retention.errors import (
    AutosnapError, CatalogError, InvalidPolicy, SubsystemError
)
from autosnap.retention.policy_parser import format_policy, parse_policy
from autosnap.retention.retention_models import (
    Dataset, DatasetResult, RetentionPolicy, RunReport
)
from autosnap.retention.selector import select_retention
from autosnap.monitoring.run_metrics import RunMetrics
from autosnap.storage.interfaces import StorageInterface
from autosnap.storage.retention_cleanup import RetentionCleanup
from autosnap.storage.retention_logging import RetentionLogger
from autosnap.storage.snapshot_creator import SnapshotCreator

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RetentionManager:
    """
    Orchestrates snapshot creation, garbage collection and status reports.

    The storage subsystem is injected, as is the clock, so that a run can
    be replayed against a fake storage at a fixed instant.
    """

    def __init__(self, storage: StorageInterface, audit: Optional[RetentionLogger] = None,
                 metrics: Optional[RunMetrics] = None, clock: Clock = utc_now):
        self.storage = storage
        self.audit = audit or RetentionLogger()
        self.metrics = metrics
        self.clock = clock
        self.cleanup = RetentionCleanup(storage, self.audit)
        self.creator = SnapshotCreator(storage, self.audit)

    def managed_datasets(self, scope: Optional[Sequence[str]] = None) -> List[Dataset]:
        """Datasets carrying a policy property other than "-"."""
        datasets = [d for d in self.storage.list_datasets(scope) if d.is_managed]
        logger.debug("Managed datasets", count=len(datasets), scope=list(scope or []))
        return datasets

    def evaluate(self, dataset: Dataset, now: datetime) -> DatasetResult:
        """
        Run catalog, parser and selector for one dataset.

        Never raises for per-dataset problems; they are recorded on the
        returned result instead.
        """
        result = DatasetResult(dataset=dataset.name)
        try:
            result.policy = parse_policy(dataset.policy_value or "")
            snapshots = build_catalog(dataset.name, self.storage.list_snapshots(dataset.name))
        except (InvalidPolicy, CatalogError, SubsystemError) as e:
            self._record_error(result, e)
            return result

        result.classification = select_retention(snapshots, result.policy, now)
        return result

    def run_snap(self, scope: Optional[Sequence[str]] = None) -> RunReport:
        """Take one new snapshot of every managed dataset."""
        report = RunReport(command='snap', started_at=self.clock())
        datasets = self._list_managed(report, scope)

        for dataset in datasets:
            result = DatasetResult(dataset=dataset.name)
            try:
                result.policy = parse_policy(dataset.policy_value or "")
            except InvalidPolicy as e:
                self._record_error(result, e)
            else:
                result.operations.append(
                    self.creator.create(dataset.name, report.started_at, str(result.policy))
                )
            report.results.append(result)

        return self._finish(report)

    def run_gc(self, scope: Optional[Sequence[str]] = None) -> RunReport:
        """Destroy every snapshot the retention policies no longer keep."""
        report = RunReport(command='gc', started_at=self.clock())
        datasets = self._list_managed(report, scope)

        for dataset in datasets:
            result = self.evaluate(dataset, report.started_at)
            if result.classification is not None:
                result.operations = self.cleanup.collect(dataset.name, result.classification)
            report.results.append(result)

        return self._finish(report)

    def run_status(self, scope: Optional[Sequence[str]] = None) -> RunReport:
        """Classify every managed dataset's snapshots without changing anything."""
        report = RunReport(command='status', started_at=self.clock())
        datasets = self._list_managed(report, scope)

        for dataset in datasets:
            report.results.append(self.evaluate(dataset, report.started_at))

        return self._finish(report)

    def protect(self, identifier: str) -> None:
        """Opt a single snapshot out of garbage collection."""
        if identifier.count("@") != 1 or identifier.startswith("-"):
            raise AutosnapError(f"{identifier!r} is not a snapshot name")
        self.storage.set_property(identifier, self.storage.property_key, "-")
        logger.info("Snapshot protected", identifier=identifier)

    def set_policy(self, dataset: str, policy_text: str) -> RetentionPolicy:
        """Validate a policy string and attach it to a dataset."""
        if "@" in dataset or dataset.startswith("-"):
            raise AutosnapError(f"{dataset!r} is not a dataset name")
        policy = parse_policy(policy_text)
        self.storage.set_property(dataset, self.storage.property_key, format_policy(policy))
        logger.info("Retention policy set", dataset=dataset, policy=format_policy(policy))
        return policy

    def _list_managed(self, report: RunReport, scope: Optional[Sequence[str]]) -> List[Dataset]:
        try:
            return self.managed_datasets(scope)
        except SubsystemError as e:
            logger.error("Failed to list datasets", error=str(e))
            report.error_message = f"listing datasets failed: {e}"
            return []

    def _record_error(self, result: DatasetResult, error: AutosnapError) -> None:
        result.error_type = type(error).__name__
        result.error_message = str(error)
        self.audit.log_dataset_error(result)

    def _finish(self, report: RunReport) -> RunReport:
        report.finished_at = self.clock()
        self.audit.create_run_summary(report)
        if self.metrics is not None:
            self.metrics.observe_run(report)
            self.metrics.write(report.command)
        return report
