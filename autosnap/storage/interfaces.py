"""
Storage interfaces for snapshot management.

This module provides the abstract interface the retention system needs
from the storage subsystem. All calls are blocking.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from autosnap.retention.retention_models import Dataset, SnapshotRecord


class StorageInterface(ABC):
    """Abstract interface for a snapshotting storage subsystem."""

    property_key: str

    @abstractmethod
    def list_datasets(self, scope: Optional[Sequence[str]] = None) -> List[Dataset]:
        """
        List filesystems and volumes with the raw value of the policy property.

        Args:
            scope: Dataset roots to restrict the listing to (recursively).
                None lists every dataset.
        """
        pass

    @abstractmethod
    def get_property(self, target: str, key: str) -> Optional[str]:
        """Get a property of a dataset or snapshot; None when it is not set."""
        pass

    @abstractmethod
    def set_property(self, target: str, key: str, value: str) -> None:
        """Set a property on a dataset or snapshot."""
        pass

    @abstractmethod
    def list_snapshots(self, dataset: str) -> List[SnapshotRecord]:
        """List the snapshots taken directly of `dataset` (not of its children)."""
        pass

    @abstractmethod
    def create_snapshot(self, dataset: str, name: str) -> str:
        """Create `dataset@name` and return its identifier."""
        pass

    @abstractmethod
    def destroy_snapshot(self, identifier: str) -> None:
        """Destroy a snapshot. Must fail loudly if the target is not a snapshot."""
        pass
