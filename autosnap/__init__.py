"""
Autosnap - time-based retention of ZFS snapshots.

This package creates snapshots of datasets tagged with a retention policy
and garbage-collects old snapshots so the survivors follow a
grandfather-father-son schedule.
"""

__version__ = "0.3.0"
__author__ = "rollcat"
__url__ = "https://github.com/rollcat/zfs-autosnap"
