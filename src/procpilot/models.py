"""Process snapshot data model."""

from dataclasses import dataclass, field
from enum import Enum

SYSTEM_GROUP_NAME = "System"

BUNDLE_SUFFIXES = (".app", ".xpc", ".appex")
BUNDLE_MARKERS = (".app/", ".xpc/", ".appex/")


class Source(str, Enum):
    """Where a process comes from."""

    CURRENT_APP = "current_app"
    SYSTEM = "system"
    APPLICATION = "application"
    COMMAND_LINE = "command_line"
    UNKNOWN = "unknown"


class SortKey(str, Enum):
    """Numeric field a snapshot is ordered by."""

    CPU = "cpu"
    MEMORY = "memory"


def looks_like_bundle(path: str) -> bool:
    """Return True if path ends with or passes through a bundle directory."""
    lower = path.lower()
    return lower.endswith(BUNDLE_SUFFIXES) or any(m in lower for m in BUNDLE_MARKERS)


@dataclass(eq=False)
class ProcessRecord:
    """One process observed in a snapshot.

    Identity is the PID alone: two records with the same PID compare equal
    and hash the same even when their metrics differ.
    """

    pid: int
    name: str
    user: str
    cpu: float  # Percent of one core
    memory_mb: float
    description: str = ""
    is_system: bool = False
    is_critical: bool = False
    parent_app: str | None = None
    executable_path: str | None = None
    source: Source = Source.UNKNOWN
    command: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessRecord):
            return NotImplemented
        return self.pid == other.pid

    def __hash__(self) -> int:
        return hash(self.pid)

    @property
    def display_name(self) -> str:
        """Name with the parent app appended when there is one."""
        if self.parent_app:
            return f"{self.name} ({self.parent_app})"
        return self.name

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "pid": self.pid,
            "name": self.name,
            "user": self.user,
            "cpu": self.cpu,
            "memory_mb": self.memory_mb,
            "description": self.description,
            "is_system": self.is_system,
            "is_critical": self.is_critical,
            "parent_app": self.parent_app,
            "executable_path": self.executable_path,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class ProcessGroup:
    """Processes sharing a parent app, the system pseudo-group, or a bare name.

    Rebuilt from the current records every refresh. Smoothed totals are
    attached with dataclasses.replace, never by mutation.
    """

    app_name: str
    processes: tuple[ProcessRecord, ...]
    smoothed_total_cpu: float | None = None
    smoothed_total_memory: float | None = None
    raw_total_cpu: float = field(init=False)
    total_memory_raw: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_total_cpu", sum(p.cpu for p in self.processes))
        object.__setattr__(self, "total_memory_raw", sum(p.memory_mb for p in self.processes))

    @property
    def total_cpu(self) -> float:
        """Smoothed CPU total if available, else the raw sum."""
        if self.smoothed_total_cpu is not None:
            return self.smoothed_total_cpu
        return self.raw_total_cpu

    @property
    def total_memory(self) -> float:
        """Smoothed memory total if available, else the raw sum."""
        if self.smoothed_total_memory is not None:
            return self.smoothed_total_memory
        return self.total_memory_raw

    @property
    def is_system_group(self) -> bool:
        return bool(self.processes) and self.processes[0].is_system

    @property
    def process_count(self) -> int:
        return len(self.processes)

    @property
    def representative_executable_path(self) -> str | None:
        """First member path inside a bundle, else the first known path."""
        paths = [p.executable_path for p in self.processes if p.executable_path]
        for path in paths:
            if looks_like_bundle(path):
                return path
        return paths[0] if paths else None

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "app_name": self.app_name,
            "total_cpu": self.total_cpu,
            "total_memory_mb": self.total_memory,
            "is_system_group": self.is_system_group,
            "process_count": self.process_count,
            "pids": [p.pid for p in self.processes],
        }
