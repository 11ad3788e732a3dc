"""Sending termination signals, with an optional privileged fallback.

Signals go out through os.kill first. When that is refused with EPERM and a
privileged helper is available, the helper gets the same request. Outcomes
are always returned as a TerminationResult; nothing here raises for OS or
helper failures.
"""

import errno
import os
import signal
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog

log = structlog.get_logger()


class TerminationStatus(str, Enum):
    """Outcome of a termination attempt."""

    SUCCESS = "success"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class TerminationResult:
    """Status plus an optional human-readable detail."""

    status: TerminationStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is TerminationStatus.SUCCESS


# ─────────────────────────────────────────────────────────────────────────────
# Privileged helper boundary
# ─────────────────────────────────────────────────────────────────────────────


class HelperError(Exception):
    """The privileged helper could not carry out a request."""


class HelperTimeoutError(HelperError):
    """The helper did not answer in time."""


class HelperUnavailableError(HelperError):
    """No helper is installed or it refused the connection."""


class PrivilegedHelper(Protocol):
    """Out-of-process helper able to signal processes owned by other users."""

    async def send_signal(self, pid: int, signal: int) -> int:
        """Send a signal and return an errno-style code (0 on success)."""
        ...


def result_from_errno(code: int) -> TerminationResult:
    """Map an errno value (0 meaning success) to a TerminationResult."""
    if code == 0:
        return TerminationResult(TerminationStatus.SUCCESS)
    if code == errno.EPERM:
        return TerminationResult(TerminationStatus.PERMISSION_DENIED, os.strerror(code))
    if code == errno.ESRCH:
        return TerminationResult(TerminationStatus.NOT_FOUND, os.strerror(code))
    return TerminationResult(TerminationStatus.FAILED, os.strerror(code))


# ─────────────────────────────────────────────────────────────────────────────
# Direct signalling
# ─────────────────────────────────────────────────────────────────────────────


def send_signal(pid: int, sig: int) -> TerminationResult:
    """Send sig to pid with os.kill and map the outcome."""
    try:
        os.kill(pid, sig)
    except ProcessLookupError:
        return result_from_errno(errno.ESRCH)
    except PermissionError:
        return result_from_errno(errno.EPERM)
    except OSError as e:
        return result_from_errno(e.errno or errno.EIO)
    return TerminationResult(TerminationStatus.SUCCESS)


def terminate_process(pid: int) -> TerminationResult:
    """Ask a process to exit (SIGTERM)."""
    return send_signal(pid, signal.SIGTERM)


def force_terminate_process(pid: int) -> TerminationResult:
    """Kill a process outright (SIGKILL)."""
    return send_signal(pid, signal.SIGKILL)


async def terminate(
    pid: int,
    force: bool = False,
    helper: PrivilegedHelper | None = None,
) -> TerminationResult:
    """Terminate pid, retrying through the helper when direct access is denied.

    Args:
        pid: Target process ID
        force: Use SIGKILL instead of SIGTERM
        helper: Privileged helper used after a permission failure

    Returns:
        TerminationResult describing the final outcome.
    """
    sig = signal.SIGKILL if force else signal.SIGTERM
    result = send_signal(pid, sig)
    log.info("signal_sent", pid=pid, signal=sig.name, status=result.status.value)

    if result.status is not TerminationStatus.PERMISSION_DENIED or helper is None:
        return result

    try:
        code = await helper.send_signal(pid, int(sig))
    except HelperTimeoutError:
        log.warning("helper_timeout", pid=pid)
        return TerminationResult(TerminationStatus.FAILED, "privileged helper timed out")
    except HelperUnavailableError as e:
        log.warning("helper_unavailable", pid=pid, error=str(e))
        return TerminationResult(TerminationStatus.FAILED, f"privileged helper unavailable: {e}")
    except HelperError as e:
        log.warning("helper_failed", pid=pid, error=str(e))
        return TerminationResult(TerminationStatus.FAILED, str(e) or "privileged helper failed")

    helper_result = result_from_errno(code)
    log.info("helper_signal_sent", pid=pid, signal=sig.name, status=helper_result.status.value)
    return helper_result
