"""
Retention core for autosnap.

This package holds the pure parts of the system:
- Policy parsing (`h24d30w8m6y1` strings)
- Snapshot catalog normalization
- Retention selection (keep/destroy classification)
"""

from .errors import (
    AutosnapError, InvalidPolicy, CatalogError, SubsystemError, SafetyViolation, ConfigError
)
from .retention_models import (
    Granularity, RetentionPolicy, Snapshot, Decision, Classification, Dataset, SnapshotRecord
)
from .policy_parser import parse_policy, format_policy
from .catalog import build_catalog
from .selector import select_retention

__all__ = [
    'AutosnapError',
    'InvalidPolicy',
    'CatalogError',
    'SubsystemError',
    'SafetyViolation',
    'ConfigError',
    'Granularity',
    'RetentionPolicy',
    'Snapshot',
    'Decision',
    'Classification',
    'Dataset',
    'SnapshotRecord',
    'parse_policy',
    'format_policy',
    'build_catalog',
    'select_retention'
]
