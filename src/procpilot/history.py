"""System-wide CPU and memory figures with rolling history for the bottom bar.

Stores up to max_samples points (default 60) of user CPU, system CPU and
memory pressure. CPU percentages come from deltas of the cumulative CPU time
counters divided by the delta of their sum, so they do not depend on how
long the refresh interval actually was.
"""

from collections import deque
from dataclasses import dataclass

import psutil

from procpilot.sysctl import memory_pressure_percent

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class SystemSample:
    """Raw system counters at one instant.

    CPU fields are cumulative seconds since boot; memory fields are bytes.
    """

    cpu_user: float
    cpu_system: float
    cpu_idle: float
    cpu_nice: float = 0.0
    physical: int = 0
    used: int = 0
    cached_files: int = 0
    swap_used: int = 0
    app: int = 0
    wired: int = 0
    compressed: int = 0
    pressure_percent: float = 0.0

    @property
    def cpu_total(self) -> float:
        return self.cpu_user + self.cpu_nice + self.cpu_system + self.cpu_idle


def read_system_sample() -> SystemSample:
    """Read CPU and memory counters via psutil (pressure via sysctl on macOS)."""
    cpu = psutil.cpu_times()
    vm = psutil.virtual_memory()
    swap = psutil.swap_memory()

    wired = getattr(vm, "wired", 0)
    # macOS reports file-backed pages as inactive; Linux as cached
    cached = getattr(vm, "cached", None)
    if cached is None:
        cached = getattr(vm, "inactive", 0)
    pressure = memory_pressure_percent()

    return SystemSample(
        cpu_user=cpu.user,
        cpu_system=cpu.system,
        cpu_idle=cpu.idle,
        cpu_nice=getattr(cpu, "nice", 0.0),
        physical=vm.total,
        used=vm.used,
        cached_files=cached,
        swap_used=swap.used,
        app=max(0, vm.used - wired),
        wired=wired,
        compressed=0,
        pressure_percent=pressure if pressure is not None else vm.percent,
    )


@dataclass(frozen=True)
class CPUSection:
    """CPU split and its history, percentages 0-100."""

    user_percent: float
    system_percent: float
    idle_percent: float
    user_history: tuple[float, ...]
    system_history: tuple[float, ...]


@dataclass(frozen=True)
class MemorySection:
    """Memory figures in MB plus pressure history."""

    pressure_percent: float
    pressure_history: tuple[float, ...]
    physical_mb: float
    used_mb: float
    cached_files_mb: float
    swap_used_mb: float
    app_mb: float
    wired_mb: float
    compressed_mb: float


@dataclass(frozen=True)
class BottomBarMetrics:
    """Everything the bottom bar shows for one refresh."""

    cpu: CPUSection
    memory: MemorySection


class BottomBarHistory:
    """Turns successive SystemSamples into percentages and rolling history.

    The very first sample has no baseline, so its percentages are the raw
    cumulative ratios since boot. Later samples use counter deltas. If the
    counters did not advance, the previous percentages are repeated.
    """

    def __init__(self, max_samples: int = 60) -> None:
        self.max_samples = max(1, max_samples)
        self._previous: SystemSample | None = None
        self._last_split = (0.0, 0.0, 0.0)
        self._user_history: deque[float] = deque(maxlen=self.max_samples)
        self._system_history: deque[float] = deque(maxlen=self.max_samples)
        self._pressure_history: deque[float] = deque(maxlen=self.max_samples)

    def __len__(self) -> int:
        """Return number of recorded points."""
        return len(self._user_history)

    def reset(self) -> None:
        self._previous = None
        self._last_split = (0.0, 0.0, 0.0)
        self._user_history.clear()
        self._system_history.clear()
        self._pressure_history.clear()

    def _cpu_split(self, sample: SystemSample) -> tuple[float, float, float]:
        previous = self._previous
        if previous is None:
            user = sample.cpu_user + sample.cpu_nice
            system = sample.cpu_system
            idle = sample.cpu_idle
            total = sample.cpu_total
        else:
            user = (sample.cpu_user + sample.cpu_nice) - (previous.cpu_user + previous.cpu_nice)
            system = sample.cpu_system - previous.cpu_system
            idle = sample.cpu_idle - previous.cpu_idle
            total = sample.cpu_total - previous.cpu_total

        if total <= 0:
            return self._last_split
        return (
            100.0 * max(0.0, user) / total,
            100.0 * max(0.0, system) / total,
            100.0 * max(0.0, idle) / total,
        )

    def next_metrics(self, sample: SystemSample) -> BottomBarMetrics:
        """Fold one sample into the history and return the bottom-bar figures."""
        user, system, idle = self._cpu_split(sample)
        self._previous = sample
        self._last_split = (user, system, idle)

        pressure = max(0.0, min(100.0, sample.pressure_percent))
        self._user_history.append(user)
        self._system_history.append(system)
        self._pressure_history.append(pressure)

        return BottomBarMetrics(
            cpu=CPUSection(
                user_percent=user,
                system_percent=system,
                idle_percent=idle,
                user_history=tuple(self._user_history),
                system_history=tuple(self._system_history),
            ),
            memory=MemorySection(
                pressure_percent=pressure,
                pressure_history=tuple(self._pressure_history),
                physical_mb=sample.physical / BYTES_PER_MB,
                used_mb=sample.used / BYTES_PER_MB,
                cached_files_mb=sample.cached_files / BYTES_PER_MB,
                swap_used_mb=sample.swap_used / BYTES_PER_MB,
                app_mb=sample.app / BYTES_PER_MB,
                wired_mb=sample.wired / BYTES_PER_MB,
                compressed_mb=sample.compressed / BYTES_PER_MB,
            ),
        )
