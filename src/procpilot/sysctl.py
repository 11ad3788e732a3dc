"""Low-level sysctl interface for macOS system metrics.

Uses ctypes to call sysctlbyname() directly - no subprocess overhead (~20us).
On hosts without sysctlbyname (Linux), every read returns None.
"""

import ctypes
import functools
from ctypes import byref, c_int, c_int64, c_size_t


@functools.cache
def _libc() -> ctypes.CDLL | None:
    """Load libc with sysctlbyname bound, or None if the symbol is missing."""
    libc = ctypes.CDLL(None)
    try:
        fn = libc.sysctlbyname
    except AttributeError:
        return None
    fn.argtypes = [
        ctypes.c_char_p,
        ctypes.c_void_p,
        ctypes.POINTER(c_size_t),
        ctypes.c_void_p,
        c_size_t,
    ]
    fn.restype = c_int
    return libc


def sysctl_int(name: str) -> int | None:
    """Read an integer sysctl value by MIB name.

    Args:
        name: sysctl MIB name (e.g., "kern.memorystatus_level")

    Returns:
        Integer value on success, None if sysctl doesn't exist or fails.

    Note:
        Uses c_int64 buffer which handles both 32-bit and 64-bit sysctls.
    """
    libc = _libc()
    if libc is None:
        return None
    value = c_int64()
    size = c_size_t(ctypes.sizeof(value))
    result = libc.sysctlbyname(name.encode(), byref(value), byref(size), None, 0)
    return value.value if result == 0 else None


def memory_pressure_percent() -> float | None:
    """Return memory pressure as a percentage (100 - free level), or None."""
    level = sysctl_int("kern.memorystatus_level")
    if level is None:
        return None
    return float(max(0, min(100, 100 - level)))
