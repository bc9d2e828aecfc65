"""
Error taxonomy for the retention system.

Per-dataset errors (InvalidPolicy, CatalogError, SubsystemError) are
recorded and the run moves on to the next dataset. SafetyViolation is
never downgraded to a skip.
"""

from typing import Optional, Sequence


class AutosnapError(Exception):
    """Base class for all autosnap errors."""
    pass


class InvalidPolicy(AutosnapError):
    """Raised when a retention policy string is malformed."""

    def __init__(self, policy: str, reason: str, position: Optional[int] = None):
        self.policy = policy
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid retention policy {policy!r}{where}: {reason}")


class CatalogError(AutosnapError):
    """Raised when snapshot metadata for a dataset cannot be normalized."""

    def __init__(self, dataset: str, message: str):
        self.dataset = dataset
        super().__init__(f"{dataset}: {message}")


class SubsystemError(AutosnapError):
    """Raised when a storage subsystem command fails."""

    def __init__(self, message: str, cmd: Optional[Sequence[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        self.cmd = list(cmd) if cmd is not None else None
        self.returncode = returncode
        self.stderr = stderr
        detail = message
        if returncode is not None:
            detail += f" (exit {returncode})"
        if stderr.strip():
            detail += f": {stderr.strip()}"
        super().__init__(detail)


class SafetyViolation(AutosnapError):
    """Raised when a destroy target is not a snapshot of the managed dataset."""

    def __init__(self, identifier: str, dataset: str, reason: str):
        self.identifier = identifier
        self.dataset = dataset
        self.reason = reason
        super().__init__(
            f"Refusing to destroy {identifier!r} (managed dataset {dataset!r}): {reason}"
        )


class ConfigError(AutosnapError):
    """Raised when the autosnap configuration cannot be loaded."""
    pass
