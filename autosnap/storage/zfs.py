"""
ZFS command adapter.

Implements StorageInterface by running the zfs(8) command line tool.
Every call is a blocking subprocess; a non-zero exit becomes a
SubsystemError carrying the command, exit status and stderr.
"""

import shlex
import subprocess
from typing import List, Optional, Sequence

import structlog

from autosnap.retention.errors import SafetyViolation, SubsystemError
from autosnap.retention.retention_models import Dataset, SnapshotRecord
from autosnap.storage.interfaces import StorageInterface

logger = structlog.get_logger(__name__)

# We use this property to control the retention policy on datasets, and to
# mark individual snapshots as protected (value "-").
PROPERTY_SNAPKEEP = "at.rollc.at:snapkeep"

# `zfs get` prints "-" in the source column for properties that are not set.
UNSET_SOURCE = "-"


class ZfsStorage(StorageInterface):
    """Storage subsystem backed by the local zfs command."""

    def __init__(self, property_key: str = PROPERTY_SNAPKEEP, zfs_binary: str = "zfs"):
        self.property_key = property_key
        self.zfs_binary = zfs_binary

    def list_datasets(self, scope: Optional[Sequence[str]] = None) -> List[Dataset]:
        # zfs get -H -t filesystem,volume -o name,value,source at.rollc.at:snapkeep
        args = ["-t", "filesystem,volume", "-o", "name,value,source", self.property_key]
        if scope:
            args = ["-r"] + args + list(scope)

        datasets = []
        seen = set()
        for row in self._call_read("get", args):
            if len(row) != 3:
                raise SubsystemError(f"unexpected 'zfs get' output: {row!r}")
            name, value, source = row
            if name in seen:
                continue
            seen.add(name)
            datasets.append(Dataset(name=name, policy_value=None if source == UNSET_SOURCE else value))
        return datasets

    def get_property(self, target: str, key: str) -> Optional[str]:
        # zfs get -H -o value,source $key $target
        rows = self._call_read("get", ["-o", "value,source", key, target])
        if not rows or len(rows[0]) != 2:
            raise SubsystemError(f"unexpected 'zfs get' output for {target}: {rows!r}")
        value, source = rows[0]
        return None if source == UNSET_SOURCE else value

    def set_property(self, target: str, key: str, value: str) -> None:
        self._call_do("set", [f"{key}={value}", target])

    def list_snapshots(self, dataset: str) -> List[SnapshotRecord]:
        # zfs list -H -p -t snapshot -d 1 -o name,creation,used,at.rollc.at:snapkeep $dataset
        rows = self._call_read(
            "list",
            ["-p", "-t", "snapshot", "-d", "1",
             "-o", f"name,creation,used,{self.property_key}", dataset]
        )
        records = []
        for row in rows:
            if len(row) != 4:
                raise SubsystemError(f"unexpected 'zfs list' output for {dataset}: {row!r}")
            name, creation, used, value = row
            records.append(SnapshotRecord(
                identifier=name,
                creation=creation,
                property_value=value,
                used=used,
            ))
        return records

    def create_snapshot(self, dataset: str, name: str) -> str:
        identifier = f"{dataset}@{name}"
        self._call_do("snapshot", [identifier])
        return identifier

    def destroy_snapshot(self, identifier: str) -> None:
        # zfs has a single verb for destroying anything, so double check that
        # the name we got looks like a snapshot before handing it over.
        dataset, sep, name = identifier.partition("@")
        if not sep or not dataset or not name or identifier.startswith("-"):
            raise SafetyViolation(identifier, dataset, "not a snapshot name")
        self._call_do("destroy", [identifier])

    def _run(self, cmd: List[str]) -> str:
        logger.debug("Running zfs command", cmd=shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise SubsystemError(f"cannot run {cmd[0]!r}: {e}", cmd=cmd) from e
        if result.returncode != 0:
            raise SubsystemError(
                f"command {shlex.join(cmd)!r} failed",
                cmd=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout

    def _call_read(self, action: str, args: List[str]) -> List[List[str]]:
        """Run a read-only zfs command and split its -H output into rows."""
        output = self._run([self.zfs_binary, action, "-H"] + args)
        return [line.split("\t") for line in output.splitlines() if line]

    def _call_do(self, action: str, args: List[str]) -> None:
        """Perform a side effect, like snapshot or destroy."""
        self._run([self.zfs_binary, action] + args)
