"""Snapshot acquisition: run ps and turn its rows into ProcessRecords.

This stage is a pure OS-to-struct transform. It resolves executable paths,
names, parent apps and memory in MB, but performs no classification and no
smoothing.
"""

import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath

import psutil
import structlog

from procpilot import libproc
from procpilot.models import BUNDLE_MARKERS, ProcessRecord

log = structlog.get_logger()

PS_COMMAND = ("/bin/ps", "-axo", "user=,pid=,%cpu=,%mem=,command=")
PS_LINE_RE = re.compile(r"^\s*(\S+)\s+(\d+)\s+([0-9.]+)\s+([0-9.]+)\s+(.*)$")

BYTES_PER_MB = 1024 * 1024


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


class AcquisitionError(Exception):
    """The process listing could not be obtained."""


class NonZeroExitError(AcquisitionError):
    """ps exited with a non-zero status."""

    def __init__(self, code: int) -> None:
        super().__init__(f"ps exited with status {code}")
        self.code = code


class DecodeFailureError(AcquisitionError):
    """ps output was not valid UTF-8."""

    def __init__(self) -> None:
        super().__init__("ps output is not valid UTF-8")


# ─────────────────────────────────────────────────────────────────────────────
# Line parsing
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PsRow:
    """One parsed row of ps output."""

    user: str
    pid: int
    cpu: float
    mem_percent: float
    command: str


def parse_ps_line(line: str) -> PsRow | None:
    """Parse a ps row into its five fields.

    Returns:
        PsRow, or None for header, malformed, or empty-command lines.
    """
    match = PS_LINE_RE.match(line)
    if match is None:
        return None
    user, pid, cpu, mem, command = match.groups()
    command = command.strip()
    if not user or not command:
        return None
    try:
        return PsRow(user=user, pid=int(pid), cpu=float(cpu), mem_percent=float(mem), command=command)
    except ValueError:
        # "1.2.3" satisfies [0-9.]+ but is not a float
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Path and name extraction
# ─────────────────────────────────────────────────────────────────────────────


def extract_executable_path(command: str) -> str | None:
    """Guess the executable path from a command line.

    ps joins argv with spaces, so paths containing spaces are ambiguous. The
    text before " --" is used when it is absolute; an absolute command that
    runs through a bundle is kept whole; otherwise the first token wins.
    """
    trimmed = command.strip()
    if not trimmed:
        return None

    if " --" in trimmed:
        candidate = trimmed.split(" --", 1)[0].strip()
        if candidate.startswith("/"):
            return candidate

    if " " not in trimmed:
        return trimmed

    lower = trimmed.lower()
    if trimmed.startswith("/") and any(marker in lower for marker in BUNDLE_MARKERS):
        return trimmed

    return trimmed.split()[0]


def resolve_executable_path(
    pid: int,
    command: str,
    path_lookup: Callable[[int], str | None] = libproc.pid_path,
) -> str | None:
    """Prefer the kernel's PID to path answer, fall back to the command line."""
    from_pid = path_lookup(pid)
    if from_pid:
        return from_pid
    return extract_executable_path(command)


def _strip_app_suffix(name: str) -> str:
    return name[: -len(".app")] if name.endswith(".app") else name


def process_name_from_path(path: str) -> str:
    """Last path component, without a trailing .app."""
    name = PurePosixPath(path).name or path
    return _strip_app_suffix(name)


def process_name_from_command(command: str) -> str:
    """Last component of the first command token, without a trailing .app."""
    tokens = command.split()
    first = tokens[0] if tokens else command
    return _strip_app_suffix(first.rsplit("/", 1)[-1])


def extract_parent_app(path_or_command: str) -> str | None:
    """Name of the app bundle a path runs from.

    "/Applications/Safari.app/Contents/MacOS/Safari" gives "Safari". The
    match is on the first ".app" occurrence, which also covers ".appex".
    """
    index = path_or_command.find(".app")
    if index < 0:
        return None
    name = path_or_command[:index].rsplit("/", 1)[-1]
    return name or None


def memory_mb(mem_percent: float, physical_bytes: int) -> float:
    """Convert a percent-of-physical-memory figure to megabytes."""
    return mem_percent / 100.0 * physical_bytes / BYTES_PER_MB


def physical_memory_bytes() -> int:
    """Total installed RAM."""
    return psutil.virtual_memory().total


# ─────────────────────────────────────────────────────────────────────────────
# Acquirer
# ─────────────────────────────────────────────────────────────────────────────


class SnapshotAcquirer:
    """Runs the process listing and parses it into ProcessRecords.

    The path lookup, memory size and command are injectable so parsing can
    be exercised without touching the host.
    """

    def __init__(
        self,
        path_lookup: Callable[[int], str | None] = libproc.pid_path,
        physical_memory: Callable[[], int] = physical_memory_bytes,
        command: tuple[str, ...] = PS_COMMAND,
        timeout: float = 10.0,
    ) -> None:
        self.path_lookup = path_lookup
        self.physical_memory = physical_memory
        self.command = command
        self.timeout = timeout

    def run_ps(self) -> str:
        """Run the listing command and return its decoded output.

        Raises:
            NonZeroExitError: If the command exits non-zero.
            DecodeFailureError: If the output is not valid UTF-8.
            AcquisitionError: If the command cannot be run at all.
        """
        try:
            result = subprocess.run(
                list(self.command),
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise AcquisitionError(f"Failed to run {self.command[0]}: {e}") from e

        if result.returncode != 0:
            log.warning(
                "ps_failed",
                returncode=result.returncode,
                stderr=result.stderr.decode("utf-8", errors="replace")[:200],
            )
            raise NonZeroExitError(result.returncode)

        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeFailureError() from e

    def parse(self, output: str) -> list[ProcessRecord]:
        """Parse ps output into unclassified records, skipping bad lines."""
        total_bytes = self.physical_memory()
        records: list[ProcessRecord] = []

        for line in output.splitlines():
            row = parse_ps_line(line)
            if row is None:
                continue

            path = resolve_executable_path(row.pid, row.command, self.path_lookup)
            if path:
                name = process_name_from_path(path)
            else:
                name = process_name_from_command(row.command)

            records.append(
                ProcessRecord(
                    pid=row.pid,
                    name=name,
                    user=row.user,
                    cpu=row.cpu,
                    memory_mb=memory_mb(row.mem_percent, total_bytes),
                    parent_app=extract_parent_app(path or row.command),
                    executable_path=path,
                    command=row.command,
                )
            )

        return records

    def fetch(self) -> list[ProcessRecord]:
        """Run ps and parse its output (blocking)."""
        return self.parse(self.run_ps())
