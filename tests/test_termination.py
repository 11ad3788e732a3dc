"""Tests for signal delivery and the privileged helper fallback."""

import errno
import signal
from unittest.mock import patch

import pytest

from procpilot.termination import (
    HelperError,
    HelperTimeoutError,
    HelperUnavailableError,
    TerminationStatus,
    force_terminate_process,
    result_from_errno,
    send_signal,
    terminate,
    terminate_process,
)


class FakeHelper:
    """Privileged helper returning a fixed code or raising."""

    def __init__(self, code: int = 0, error: Exception | None = None) -> None:
        self.code = code
        self.error = error
        self.calls: list[tuple[int, int]] = []

    async def send_signal(self, pid: int, signal: int) -> int:
        self.calls.append((pid, signal))
        if self.error is not None:
            raise self.error
        return self.code


class TestResultFromErrno:
    """Tests for errno mapping."""

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (0, TerminationStatus.SUCCESS),
            (errno.EPERM, TerminationStatus.PERMISSION_DENIED),
            (errno.ESRCH, TerminationStatus.NOT_FOUND),
            (errno.EINVAL, TerminationStatus.FAILED),
        ],
    )
    def test_mapping(self, code: int, status: TerminationStatus) -> None:
        """Known errno values map to their statuses."""
        assert result_from_errno(code).status is status

    def test_failure_detail(self) -> None:
        """Failures carry the errno text."""
        assert result_from_errno(errno.EINVAL).detail


class TestSendSignal:
    """Tests for direct signalling."""

    def test_success(self) -> None:
        """A delivered signal is a success."""
        with patch("procpilot.termination.os.kill") as mock_kill:
            result = send_signal(123, signal.SIGTERM)

        mock_kill.assert_called_once_with(123, signal.SIGTERM)
        assert result.ok

    def test_gone_process(self) -> None:
        """ProcessLookupError maps to not found."""
        with patch("procpilot.termination.os.kill", side_effect=ProcessLookupError):
            assert send_signal(123, signal.SIGTERM).status is TerminationStatus.NOT_FOUND

    def test_permission_denied(self) -> None:
        """PermissionError maps to permission denied."""
        with patch("procpilot.termination.os.kill", side_effect=PermissionError):
            assert send_signal(1, signal.SIGTERM).status is TerminationStatus.PERMISSION_DENIED

    def test_other_os_error(self) -> None:
        """Other OSErrors map to failed."""
        with patch("procpilot.termination.os.kill", side_effect=OSError(errno.EINVAL, "bad")):
            assert send_signal(1, 999).status is TerminationStatus.FAILED

    def test_term_and_kill_wrappers(self) -> None:
        """terminate_process sends SIGTERM; force_terminate_process sends SIGKILL."""
        with patch("procpilot.termination.os.kill") as mock_kill:
            terminate_process(5)
            force_terminate_process(5)

        assert [c.args for c in mock_kill.call_args_list] == [(5, signal.SIGTERM), (5, signal.SIGKILL)]


class TestTerminate:
    """Tests for terminate() with the helper fallback."""

    @pytest.mark.asyncio
    async def test_direct_success_skips_helper(self) -> None:
        """The helper is not asked when os.kill succeeds."""
        helper = FakeHelper()
        with patch("procpilot.termination.os.kill"):
            result = await terminate(42, helper=helper)

        assert result.ok
        assert helper.calls == []

    @pytest.mark.asyncio
    async def test_permission_denied_without_helper(self) -> None:
        """Without a helper the permission failure is returned."""
        with patch("procpilot.termination.os.kill", side_effect=PermissionError):
            result = await terminate(42)

        assert result.status is TerminationStatus.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_helper_success_after_permission_denied(self) -> None:
        """EPERM with a helper returning 0 is a success."""
        helper = FakeHelper(code=0)
        with patch("procpilot.termination.os.kill", side_effect=PermissionError):
            result = await terminate(42, force=True, helper=helper)

        assert result.ok
        assert helper.calls == [(42, int(signal.SIGKILL))]

    @pytest.mark.asyncio
    async def test_helper_errno_mapped(self) -> None:
        """The helper's errno code is mapped like a direct one."""
        helper = FakeHelper(code=errno.ESRCH)
        with patch("procpilot.termination.os.kill", side_effect=PermissionError):
            result = await terminate(42, helper=helper)

        assert result.status is TerminationStatus.NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "detail"),
        [
            (HelperTimeoutError(), "timed out"),
            (HelperUnavailableError("not installed"), "not installed"),
            (HelperError("xpc broke"), "xpc broke"),
        ],
    )
    async def test_helper_errors_fail(self, error: Exception, detail: str) -> None:
        """Helper exceptions become failed results, never raised."""
        helper = FakeHelper(error=error)
        with patch("procpilot.termination.os.kill", side_effect=PermissionError):
            result = await terminate(42, helper=helper)

        assert result.status is TerminationStatus.FAILED
        assert detail in result.detail
