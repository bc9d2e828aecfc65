"""
Command-line interface for autosnap.

    autosnap snap      take a snapshot of every managed dataset (cron.hourly)
    autosnap gc        destroy snapshots the policies no longer keep (cron.daily)
    autosnap status    show what gc would keep and destroy
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from autosnap import __url__, __version__
from autosnap.config.autosnap_config import AutosnapConfig, load_autosnap_config
from autosnap.monitoring.run_metrics import RunMetrics
from autosnap.retention.errors import AutosnapError
from autosnap.retention.retention_models import EXIT_FAILURE, EXIT_OK, RunReport
from autosnap.storage.retention_logging import RetentionLogger
from autosnap.storage.retention_manager import RetentionManager
from autosnap.storage.retention_status import render_status, status_payload
from autosnap.storage.zfs import ZfsStorage

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", fmt: str = "console", verbose: bool = False):
    """Setup logging configuration."""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(message)s',
        stream=sys.stderr,
        force=True,
    )
    renderer = (
        structlog.processors.JSONRenderer() if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def build_manager(config: AutosnapConfig) -> RetentionManager:
    """Wire the storage adapter, audit trail and metrics from configuration."""
    storage = ZfsStorage(property_key=config.property_key, zfs_binary=config.zfs_binary)
    metrics = RunMetrics(config.metrics_textfile) if config.metrics_textfile else None
    return RetentionManager(storage, audit=RetentionLogger(config.audit_dir), metrics=metrics)


def print_failures(report: RunReport):
    """Print a summary of failures to stderr."""
    for failure in report.failures:
        print(f"error: {failure}", file=sys.stderr)
    if report.safety_violations:
        print(f"SAFETY VIOLATION: {len(report.safety_violations)} destroy request(s) refused; "
              f"the targets were not snapshots of the dataset being collected", file=sys.stderr)


def run_snap(manager: RetentionManager, args) -> int:
    """Take a snapshot of each managed dataset."""
    report = manager.run_snap(args.scope)
    for op in report.operations:
        if op.status == 'success':
            print(f"snapshot: {op.identifier}")
    print_failures(report)
    return report.exit_code


def run_gc(manager: RetentionManager, args) -> int:
    """Garbage collection: destroy everything the policies no longer keep, without asking twice."""
    report = manager.run_gc(args.scope)
    for op in report.operations:
        if op.status == 'success':
            print(f"destroy: {op.identifier}")
    print_failures(report)
    return report.exit_code


def show_status(manager: RetentionManager, args) -> int:
    """Show what gc would do."""
    report = manager.run_status(args.scope)
    if args.json:
        print(json.dumps(status_payload(report), indent=2))
    else:
        print(render_status(report))
    return report.exit_code


def protect_snapshot(manager: RetentionManager, args) -> int:
    """Exclude one snapshot from garbage collection."""
    manager.protect(args.snapshot)
    print(f"protected: {args.snapshot}")
    return EXIT_OK


def set_policy(manager: RetentionManager, args) -> int:
    """Validate and set a dataset's retention policy."""
    policy = manager.set_policy(args.dataset, args.policy)
    print(f"policy: {args.dataset} {policy}")
    return EXIT_OK


COMMANDS = {
    'snap': run_snap,
    'gc': run_gc,
    'status': show_status,
    'protect': protect_snapshot,
    'set-policy': set_policy,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autosnap",
        description="Time-based retention of ZFS snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Enable snapshots on a dataset
  zfs set at.rollc.at:snapkeep=h24d30w8m6y1 some/dataset

  # Keep a snapshot forever
  zfs set at.rollc.at:snapkeep=- some/dataset@some-snap

  # Add to crontab
  autosnap snap   (cron.hourly)
  autosnap gc     (cron.daily)
        """
    )

    parser.add_argument('--config', type=Path, default=None,
                        help='Path to configuration file (default: /etc/autosnap.yaml if present)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    for name, help_text in (('snap', 'Snapshot every managed dataset'),
                            ('gc', 'Destroy snapshots no longer kept by policy'),
                            ('status', 'Show what gc would keep and destroy')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('scope', nargs='*',
                         help='Only consider these datasets and their children')
        if name == 'status':
            sub.add_argument('--json', action='store_true', help='Print status as JSON')

    protect_parser = subparsers.add_parser('protect', help='Exclude a snapshot from gc')
    protect_parser.add_argument('snapshot', help='Snapshot name (dataset@snap)')

    policy_parser = subparsers.add_parser('set-policy', help="Set a dataset's retention policy")
    policy_parser.add_argument('dataset', help='Dataset name')
    policy_parser.add_argument('policy', help='Policy string, e.g. h24d30w8m6y1')

    subparsers.add_parser('version', help='Show version')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    if args.command == 'version':
        print(f"autosnap v{__version__} <{__url__}>")
        return EXIT_OK

    try:
        config = load_autosnap_config(args.config)
    except AutosnapError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.log_level, config.log_format, args.verbose)
    manager = build_manager(config)

    try:
        return COMMANDS[args.command](manager, args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return EXIT_FAILURE
    except AutosnapError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        logger.exception("Unexpected error", command=args.command)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
