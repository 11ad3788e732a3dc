"""Low-level libproc interface for macOS process metrics.

Uses ctypes to call libproc.dylib directly - no subprocess overhead.

This module provides access to:
- proc_pidpath: Executable path for a PID
- proc_pid_rusage: Cumulative CPU time in mach ticks
- mach_timebase_info: Tick to nanosecond ratio

The library is loaded on first use. Where libproc is unavailable (Linux CI,
containers) the same functions are served by psutil, with CPU time reported
in nanoseconds and a 1/1 timebase.
"""

import ctypes
import functools
from collections.abc import Iterable
from ctypes import POINTER, Structure, byref, c_int, c_uint8, c_uint32, c_uint64
from dataclasses import dataclass

import psutil

LIBPROC_PATH = "/usr/lib/libproc.dylib"

# proc_pid_rusage flavor
RUSAGE_INFO_V2 = 2

# Buffer size for proc_pidpath
PROC_PIDPATHINFO_MAXSIZE = 4096


# ─────────────────────────────────────────────────────────────────────────────
# Structures
# ─────────────────────────────────────────────────────────────────────────────


class MachTimebaseInfo(Structure):
    """mach_timebase_info for converting mach_absolute_time to nanoseconds."""

    _fields_ = [
        ("numer", c_uint32),
        ("denom", c_uint32),
    ]


class RusageInfoV2(Structure):
    """rusage_info_v2 from sys/resource.h (leading fields of every later version)."""

    _fields_ = [
        ("ri_uuid", c_uint8 * 16),
        # CPU time (in mach_absolute_time units on Apple Silicon)
        ("ri_user_time", c_uint64),
        ("ri_system_time", c_uint64),
        ("ri_pkg_idle_wkups", c_uint64),
        ("ri_interrupt_wkups", c_uint64),
        ("ri_pageins", c_uint64),
        ("ri_wired_size", c_uint64),
        ("ri_resident_size", c_uint64),
        ("ri_phys_footprint", c_uint64),
        ("ri_proc_start_abstime", c_uint64),
        ("ri_proc_exit_abstime", c_uint64),
        ("ri_child_user_time", c_uint64),
        ("ri_child_system_time", c_uint64),
        ("ri_child_pkg_idle_wkups", c_uint64),
        ("ri_child_interrupt_wkups", c_uint64),
        ("ri_child_pageins", c_uint64),
        ("ri_child_elapsed_abstime", c_uint64),
        ("ri_diskio_bytesread", c_uint64),
        ("ri_diskio_byteswritten", c_uint64),
    ]


@dataclass(frozen=True)
class TimebaseInfo:
    """Mach timebase info for converting absolute time to nanoseconds."""

    numer: int
    denom: int


# ─────────────────────────────────────────────────────────────────────────────
# Library loading
# ─────────────────────────────────────────────────────────────────────────────


@functools.cache
def _libproc() -> ctypes.CDLL | None:
    """Load libproc.dylib with signatures bound, or None when absent."""
    try:
        lib = ctypes.CDLL(LIBPROC_PATH, use_errno=True)
    except OSError:
        return None

    # int proc_pidpath(int pid, void *buffer, uint32_t buffersize)
    lib.proc_pidpath.argtypes = [c_int, ctypes.c_void_p, c_uint32]
    lib.proc_pidpath.restype = c_int

    # int proc_pid_rusage(pid_t pid, int flavor, rusage_info_t *buffer)
    lib.proc_pid_rusage.argtypes = [c_int, c_int, ctypes.c_void_p]
    lib.proc_pid_rusage.restype = c_int
    return lib


@functools.cache
def _libc() -> ctypes.CDLL | None:
    """Load libc with mach_timebase_info bound, or None when absent."""
    libc = ctypes.CDLL(None, use_errno=True)
    try:
        fn = libc.mach_timebase_info
    except AttributeError:
        return None
    fn.argtypes = [POINTER(MachTimebaseInfo)]
    fn.restype = c_int
    return libc


def is_available() -> bool:
    """Return True if libproc.dylib could be loaded."""
    return _libproc() is not None


# ─────────────────────────────────────────────────────────────────────────────
# Time conversion
# ─────────────────────────────────────────────────────────────────────────────


@functools.cache
def get_timebase_info() -> TimebaseInfo:
    """Get mach_timebase_info for time conversion.

    Returns:
        TimebaseInfo with numer/denom for conversion.

    Note:
        Intel: (1, 1) - mach_absolute_time is already nanoseconds
        Apple Silicon: (125, 3) - ~41.67ns per tick
        Without libproc the psutil fallback already reports nanoseconds: (1, 1)
    """
    libc = _libc()
    if libc is None or not is_available():
        return TimebaseInfo(numer=1, denom=1)
    info = MachTimebaseInfo()
    if libc.mach_timebase_info(byref(info)) != 0 or info.denom == 0:
        return TimebaseInfo(numer=1, denom=1)
    return TimebaseInfo(numer=info.numer, denom=info.denom)


def abs_to_ns(abstime: int, timebase: TimebaseInfo) -> int:
    """Convert mach_absolute_time to nanoseconds."""
    return (abstime * timebase.numer) // timebase.denom


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def pid_path(pid: int) -> str | None:
    """Return the executable path of a process.

    Args:
        pid: Process ID

    Returns:
        Absolute path, or None if the process is gone or not inspectable.
    """
    lib = _libproc()
    if lib is None:
        try:
            return psutil.Process(pid).exe() or None
        except (psutil.Error, OSError):
            return None

    buffer = ctypes.create_string_buffer(PROC_PIDPATHINFO_MAXSIZE)
    length = lib.proc_pidpath(pid, buffer, PROC_PIDPATHINFO_MAXSIZE)
    if length <= 0:
        return None
    path = buffer.raw[:length].decode("utf-8", errors="replace")
    return path or None


def get_rusage(pid: int) -> RusageInfoV2 | None:
    """Get resource usage for a process, None if gone or permission denied."""
    lib = _libproc()
    if lib is None:
        return None
    rusage = RusageInfoV2()
    result = lib.proc_pid_rusage(pid, RUSAGE_INFO_V2, byref(rusage))
    return rusage if result == 0 else None


def cpu_ticks(pid: int) -> int | None:
    """Return cumulative user+system CPU time for a process in ticks."""
    if _libproc() is None:
        try:
            times = psutil.Process(pid).cpu_times()
        except (psutil.Error, OSError):
            return None
        return int((times.user + times.system) * 1_000_000_000)

    rusage = get_rusage(pid)
    if rusage is None:
        return None
    return rusage.ri_user_time + rusage.ri_system_time


def read_cpu_ticks(pids: Iterable[int]) -> dict[int, int]:
    """Read cumulative CPU ticks for many PIDs, skipping vanished processes."""
    ticks: dict[int, int] = {}
    for pid in pids:
        value = cpu_ticks(pid)
        if value is not None:
            ticks[pid] = value
    return ticks
