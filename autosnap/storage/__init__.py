"""
Storage layer for autosnap.

This package talks to the storage subsystem and applies retention
decisions:
- ZFS command adapter
- Snapshot creation and garbage collection
- Status reporting and the operation audit trail
"""

from .interfaces import StorageInterface
from .zfs import ZfsStorage, PROPERTY_SNAPKEEP
from .retention_manager import RetentionManager

__all__ = [
    'StorageInterface',
    'ZfsStorage',
    'PROPERTY_SNAPKEEP',
    'RetentionManager'
]
