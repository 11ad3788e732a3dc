"""Moving-average smoothing for per-process and system-group usage."""

import math
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from procpilot.models import SYSTEM_GROUP_NAME, ProcessGroup, ProcessRecord


@dataclass
class _Window:
    """Recent CPU and memory samples, each capped at the window size."""

    cpu: deque[float]
    memory: deque[float]

    @classmethod
    def create(cls, size: int) -> "_Window":
        return cls(cpu=deque(maxlen=size), memory=deque(maxlen=size))

    def append(self, cpu: float, memory: float) -> None:
        # Non-finite samples are dropped rather than poisoning the mean
        if math.isfinite(cpu):
            self.cpu.append(cpu)
        if math.isfinite(memory):
            self.memory.append(memory)

    @property
    def mean_cpu(self) -> float:
        return sum(self.cpu) / len(self.cpu) if self.cpu else 0.0

    @property
    def mean_memory(self) -> float:
        return sum(self.memory) / len(self.memory) if self.memory else 0.0


@dataclass
class UsageSmoother:
    """Per-process moving average over the last window_size samples.

    History is keyed by (pid, name). A PID reused by a differently named
    process starts fresh, and any key missing from a call is forgotten, so
    a process that disappears and comes back restarts from an unsmoothed
    sample.
    """

    window_size: int = 3
    _history: dict[tuple[int, str], _Window] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.window_size = max(1, self.window_size)

    def __len__(self) -> int:
        return len(self._history)

    def smooth(self, records: Sequence[ProcessRecord]) -> list[ProcessRecord]:
        """Append this sample and return records carrying the window means."""
        active: dict[tuple[int, str], _Window] = {}
        smoothed = []

        for record in records:
            key = (record.pid, record.name)
            window = self._history.get(key) or active.get(key) or _Window.create(self.window_size)
            window.append(record.cpu, record.memory_mb)
            active[key] = window
            smoothed.append(replace(record, cpu=window.mean_cpu, memory_mb=window.mean_memory))

        self._history = active
        return smoothed

    def remove_history(self, pids: Iterable[int]) -> None:
        """Forget every window belonging to the given PIDs."""
        drop = set(pids)
        if not drop:
            return
        self._history = {k: w for k, w in self._history.items() if k[0] not in drop}


@dataclass
class SystemGroupSmoother:
    """Moving average of the system pseudo-group's CPU and memory totals.

    Only the group named group_name is tracked. Other groups pass through
    untouched. When the system group is absent from an input the window
    resets.
    """

    window_size: int = 3
    group_name: str = SYSTEM_GROUP_NAME
    _window: _Window | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.window_size = max(1, self.window_size)

    def smooth(self, groups: Sequence[ProcessGroup]) -> list[ProcessGroup]:
        result = []
        seen = False
        for group in groups:
            if group.app_name != self.group_name:
                result.append(group)
                continue
            seen = True
            if self._window is None:
                self._window = _Window.create(self.window_size)
            self._window.append(group.raw_total_cpu, group.total_memory_raw)
            result.append(
                replace(
                    group,
                    smoothed_total_cpu=self._window.mean_cpu,
                    smoothed_total_memory=self._window.mean_memory,
                )
            )
        if not seen:
            self._window = None
        return result

    def reset(self) -> None:
        self._window = None
