"""Sorting, filtering and grouping of process snapshots.

Ordering is a total order: the chosen metric first (non-finite values last
in either direction), then case-insensitive name, then PID. The filter is
applied after sorting so it never changes relative order.
"""

import functools
import math
import sys
import threading
from collections.abc import Callable, Iterable, Sequence

from procpilot.models import SYSTEM_GROUP_NAME, ProcessGroup, ProcessRecord, SortKey

_LARGEST = sys.float_info.max


class SortCancelledError(Exception):
    """A cancellable sort was abandoned because its token was cancelled."""


class CancellationToken:
    """Thread-safe cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SortCancelledError()


# ─────────────────────────────────────────────────────────────────────────────
# Comparators
# ─────────────────────────────────────────────────────────────────────────────


def _normalized(value: float, descending: bool) -> float:
    """Map NaN and infinities to whichever end sorts last."""
    if math.isfinite(value):
        return value
    return -_LARGEST if descending else _LARGEST


def _compare_values(lhs: float, rhs: float, descending: bool) -> int:
    left = _normalized(lhs, descending)
    right = _normalized(rhs, descending)
    if left == right:
        return 0
    if descending:
        return -1 if left > right else 1
    return -1 if left < right else 1


def _cmp(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


def _record_value(record: ProcessRecord, key: SortKey) -> float:
    return record.cpu if key is SortKey.CPU else record.memory_mb


def _group_value(group: ProcessGroup, key: SortKey) -> float:
    return group.total_cpu if key is SortKey.CPU else group.total_memory


def record_comparator(key: SortKey, descending: bool) -> Callable[[ProcessRecord, ProcessRecord], int]:
    """Three-way comparator: metric, then casefolded name, then PID."""

    def compare(a: ProcessRecord, b: ProcessRecord) -> int:
        result = _compare_values(_record_value(a, key), _record_value(b, key), descending)
        if result:
            return result
        result = _cmp(a.name.casefold(), b.name.casefold())
        if result:
            return result
        return _cmp(a.pid, b.pid)

    return compare


def group_comparator(key: SortKey, descending: bool) -> Callable[[ProcessGroup, ProcessGroup], int]:
    """Three-way comparator: aggregate metric, then casefolded group name."""

    def compare(a: ProcessGroup, b: ProcessGroup) -> int:
        result = _compare_values(_group_value(a, key), _group_value(b, key), descending)
        if result:
            return result
        return _cmp(a.app_name.casefold(), b.app_name.casefold())

    return compare


# ─────────────────────────────────────────────────────────────────────────────
# Sorting
# ─────────────────────────────────────────────────────────────────────────────


def filter_processes(records: Iterable[ProcessRecord], filter_text: str) -> list[ProcessRecord]:
    """Keep records whose name or description contains filter_text (any case)."""
    if not filter_text:
        return list(records)
    needle = filter_text.casefold()
    return [
        r for r in records if needle in r.name.casefold() or needle in r.description.casefold()
    ]


def sort_processes(
    records: Sequence[ProcessRecord],
    key: SortKey,
    filter_text: str = "",
    descending: bool = False,
) -> list[ProcessRecord]:
    """Sort records, then filter them."""
    ordered = sorted(records, key=functools.cmp_to_key(record_comparator(key, descending)))
    return filter_processes(ordered, filter_text)


def sort_processes_cancellable(
    records: Sequence[ProcessRecord],
    key: SortKey,
    token: CancellationToken,
    filter_text: str = "",
    descending: bool = False,
    check_every: int = 256,
) -> list[ProcessRecord]:
    """Same ordering as sort_processes(), abandoning work once token is cancelled.

    The token is checked before sorting, every check_every comparisons, and
    before filtering.

    Raises:
        SortCancelledError: If the token is cancelled before completion.
    """
    token.raise_if_cancelled()
    compare = record_comparator(key, descending)
    comparisons = 0

    def checked(a: ProcessRecord, b: ProcessRecord) -> int:
        nonlocal comparisons
        comparisons += 1
        if comparisons % check_every == 0:
            token.raise_if_cancelled()
        return compare(a, b)

    ordered = sorted(records, key=functools.cmp_to_key(checked))
    token.raise_if_cancelled()
    return filter_processes(ordered, filter_text)


# ─────────────────────────────────────────────────────────────────────────────
# Grouping
# ─────────────────────────────────────────────────────────────────────────────


def group_key(record: ProcessRecord) -> str:
    """Parent app, else the system pseudo-group for system processes, else the name."""
    if record.parent_app:
        return record.parent_app
    if record.is_system:
        return SYSTEM_GROUP_NAME
    return record.name


def build_groups(records: Iterable[ProcessRecord]) -> list[ProcessGroup]:
    """Bucket records by group_key(), preserving first-seen order."""
    buckets: dict[str, list[ProcessRecord]] = {}
    for record in records:
        buckets.setdefault(group_key(record), []).append(record)
    return [ProcessGroup(app_name=name, processes=tuple(members)) for name, members in buckets.items()]


def order_groups(
    groups: Sequence[ProcessGroup],
    key: SortKey,
    descending: bool = False,
) -> list[ProcessGroup]:
    """Sort groups by aggregate metric, ties by name."""
    return sorted(groups, key=functools.cmp_to_key(group_comparator(key, descending)))


def group_processes(
    records: Iterable[ProcessRecord],
    key: SortKey,
    descending: bool = False,
) -> list[ProcessGroup]:
    """Build and order groups in one step."""
    return order_groups(build_groups(records), key, descending)
