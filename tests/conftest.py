"""Shared test fixtures for procpilot."""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import replace

import pytest

from procpilot.config import Config
from procpilot.libproc import TimebaseInfo
from procpilot.models import ProcessRecord, Source
from procpilot.monitor import ProcessMonitor


def make_record(
    pid: int = 100,
    name: str = "proc",
    user: str = "tester",
    cpu: float = 0.0,
    memory_mb: float = 10.0,
    description: str = "",
    is_system: bool = False,
    is_critical: bool = False,
    parent_app: str | None = None,
    executable_path: str | None = None,
    source: Source = Source.UNKNOWN,
    command: str = "",
) -> ProcessRecord:
    """Create a ProcessRecord for testing."""
    return ProcessRecord(
        pid=pid,
        name=name,
        user=user,
        cpu=cpu,
        memory_mb=memory_mb,
        description=description,
        is_system=is_system,
        is_critical=is_critical,
        parent_app=parent_app,
        executable_path=executable_path,
        source=source,
        command=command or (executable_path or name),
    )


class StepClock:
    """Monotonic nanosecond clock advancing a fixed step per reading."""

    def __init__(self, start: int = 1_000_000_000, step: int = 1_000_000_000) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> int:
        value = self.current
        self.current += self.step
        return value


class SleepGate:
    """Sleep replacement that blocks until open() is called."""

    def __init__(self) -> None:
        self.is_open = False
        self.calls = 0

    def open(self) -> None:
        self.is_open = True

    async def __call__(self, seconds: float) -> None:
        self.calls += 1
        while not self.is_open:
            await asyncio.sleep(0.001)


async def no_sleep(seconds: float) -> None:
    """Sleep replacement that only yields to the loop."""
    await asyncio.sleep(0)


class FakeFetcher:
    """Counts fetches and returns a fixed record list (or raises)."""

    def __init__(self, records: list[ProcessRecord] | None = None) -> None:
        self.calls = 0
        self.records = records
        self.error: Exception | None = None

    def __call__(self) -> list[ProcessRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.records is not None:
            return [replace(r) for r in self.records]
        return [
            make_record(
                pid=4242,
                name="Mock",
                memory_mb=10.0,
                parent_app="Mock",
                executable_path="/Applications/Mock.app/Contents/MacOS/Mock",
            )
        ]


class TickCounter:
    """Cumulative CPU ticks that grow by a fixed amount per PID each read."""

    def __init__(self, per_read: int = 100_000_000) -> None:
        self.per_read = per_read
        self.reads = 0

    def __call__(self, pids: Iterable[int]) -> dict[int, int]:
        self.reads += 1
        return {pid: self.reads * self.per_read for pid in pids}


@pytest.fixture
def make_monitor() -> Callable[..., ProcessMonitor]:
    """Factory for a ProcessMonitor wired to fakes instead of the host."""

    def factory(**overrides) -> ProcessMonitor:
        kwargs = {
            "fetch": FakeFetcher(),
            "read_ticks": TickCounter(),
            "timebase": lambda: TimebaseInfo(numer=1, denom=1),
            "clock": StepClock(),
            "sleep": no_sleep,
            "sample_system": None,
        }
        kwargs.update(overrides)
        config = kwargs.pop("config", Config())
        return ProcessMonitor(config, **kwargs)

    return factory
