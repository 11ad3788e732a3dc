"""Per-process CPU usage from cumulative tick deltas.

ps reports a decaying average, not the usage over the last interval. The
calculator here derives the real figure from two readings of each
process's cumulative CPU ticks. It is a pure function of its inputs so the
arithmetic can be tested with synthetic tick/timestamp pairs.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import NamedTuple

from procpilot.models import ProcessRecord

MIN_INTERVAL_NS = 100_000_000  # 100ms


@dataclass(frozen=True)
class CPUUsageDeltaState:
    """Last-seen cumulative ticks per PID and when they were read."""

    ticks_by_pid: Mapping[int, int] = field(default_factory=lambda: MappingProxyType({}))
    sample_timestamp_ns: int | None = None

    @classmethod
    def empty(cls) -> "CPUUsageDeltaState":
        return cls()

    def without(self, pids: set[int]) -> "CPUUsageDeltaState":
        """Drop PIDs, e.g. after they were terminated."""
        kept = {pid: t for pid, t in self.ticks_by_pid.items() if pid not in pids}
        return CPUUsageDeltaState(MappingProxyType(kept), self.sample_timestamp_ns)


class CPUUsageDelta(NamedTuple):
    """Output of calculate_cpu_usage()."""

    records: list[ProcessRecord]
    state: CPUUsageDeltaState
    has_valid_interval: bool


def calculate_cpu_usage(
    records: Sequence[ProcessRecord],
    current_ticks_by_pid: Mapping[int, int],
    previous_state: CPUUsageDeltaState,
    now_ns: int,
    timebase_numer: int,
    timebase_denom: int,
    min_interval_ns: int = MIN_INTERVAL_NS,
) -> CPUUsageDelta:
    """Replace each record's CPU with usage over the interval since the last sample.

    Rules:
    - A PID without a previous tick reading gets 0% and makes the interval
      invalid (cold start or newly observed process).
    - Counters that went backwards (PID reuse) count as no usage.
    - If there is no previous timestamp or the elapsed wall time is below
      min_interval_ns, every record gets 0% and the interval is invalid.

    Records without a current tick reading (gone, or not inspectable) get 0%
    and do not affect validity. Callers should not treat an invalid interval
    as a real sample.

    The new state holds exactly the PIDs in this sample that have a current
    tick reading, plus now_ns.

    Args:
        records: Records for this sample
        current_ticks_by_pid: Cumulative CPU ticks read for this sample
        previous_state: State returned by the previous call
        now_ns: Monotonic timestamp of this sample
        timebase_numer: Tick to nanosecond numerator
        timebase_denom: Tick to nanosecond denominator
        min_interval_ns: Shortest interval that yields real usage

    Returns:
        CPUUsageDelta with updated records, the new state and validity flag.
    """
    previous_ts = previous_state.sample_timestamp_ns
    elapsed_ns = now_ns - previous_ts if previous_ts is not None else 0
    interval_long_enough = previous_ts is not None and elapsed_ns >= min_interval_ns

    updated: list[ProcessRecord] = []
    new_ticks: dict[int, int] = {}
    all_have_previous = True

    for record in records:
        current = current_ticks_by_pid.get(record.pid)
        usage = 0.0

        if current is not None:
            new_ticks[record.pid] = current
            previous = previous_state.ticks_by_pid.get(record.pid)
            if previous is None:
                all_have_previous = False
            elif interval_long_enough:
                delta_ticks = max(0, current - previous)
                cpu_ns = delta_ticks * timebase_numer / timebase_denom
                usage = 100.0 * cpu_ns / elapsed_ns

        updated.append(replace(record, cpu=usage))

    return CPUUsageDelta(
        records=updated,
        state=CPUUsageDeltaState(MappingProxyType(new_ticks), now_ns),
        has_valid_interval=interval_long_enough and all_have_previous,
    )
