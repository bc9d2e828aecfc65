"""
Retention policy string parser.

A policy is a run of `<unit><count>` pairs with no separators, for
example `h24d30w8m6y1`. Units are h, d, w, m, y; omitted units keep 0
snapshots and the empty string is the all-zero policy.
"""

from typing import Dict

from autosnap.retention.errors import InvalidPolicy
from autosnap.retention.retention_models import Granularity, RetentionPolicy

# Signed 32-bit bound.
MAX_COUNT = 2 ** 31 - 1

_UNITS = {g.value: g for g in Granularity}


def parse_policy(text: str) -> RetentionPolicy:
    """
    Parse a retention policy string.

    Args:
        text: Policy string such as ``h24d30w8m6y1``. Surrounding
            whitespace is ignored.

    Returns:
        The parsed RetentionPolicy.

    Raises:
        InvalidPolicy: On an unknown unit, a missing or out-of-range count,
            or a repeated unit.
    """
    source = text.strip()
    counts: Dict[Granularity, int] = {}
    i = 0
    while i < len(source):
        unit = source[i]
        granularity = _UNITS.get(unit)
        if granularity is None:
            raise InvalidPolicy(text, f"unknown unit {unit!r}", i)
        if granularity in counts:
            raise InvalidPolicy(text, f"unit {unit!r} given more than once", i)

        start = i + 1
        end = start
        # str.isdigit() accepts non-ASCII digits; the grammar is 0-9 only.
        while end < len(source) and source[end] in "0123456789":
            end += 1
        if end == start:
            raise InvalidPolicy(text, f"missing count after {unit!r}", start)

        digits = source[start:end].lstrip("0") or "0"
        # Compare lengths first; int() refuses very long digit strings.
        if len(digits) > len(str(MAX_COUNT)) or int(digits) > MAX_COUNT:
            raise InvalidPolicy(text, f"count for {unit!r} exceeds {MAX_COUNT}", start)
        count = int(digits)

        counts[granularity] = count
        i = end

    return RetentionPolicy.from_counts(counts)


def format_policy(policy: RetentionPolicy) -> str:
    """Render a policy in canonical unit order, omitting zero counts."""
    return str(policy)
