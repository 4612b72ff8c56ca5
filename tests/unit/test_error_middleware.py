"""Tests for core/error_middleware.py - error formatting for the CLI handler."""

from __future__ import annotations

import pytest

from pai_openai.core.error_middleware import (
    ErrorSeverity,
    FormattedError,
    format_error,
    format_for_log,
)
from pai_openai.core.result import (
    ConfigurationError,
    ContextError,
    HookError,
    ProcessError,
    ToolExecutionError,
    ToolSpecError,
)
from pai_openai.providers import AuthenticationError, ProviderError

# ---------------------------------------------------------------------------
# Test _error_code (via format_error)
# ---------------------------------------------------------------------------


class TestErrorCode:
    """Test error code derivation from exception types."""

    @pytest.mark.parametrize(
        "exc,code",
        [
            (ConfigurationError("No prompt provided"), "CONFIG_ERROR"),
            (HookError("Hook failed (false) with exit code 1"), "HOOK_ERROR"),
            (ToolExecutionError("Tool executor exited with 2"), "TOOL_ERROR"),
            (ToolSpecError("bad spec"), "TOOL_ERROR"),
            (AuthenticationError("OPENAI_API_KEY is required"), "PROVIDER_ERROR"),
            (ProviderError("Stream failed: overloaded"), "PROVIDER_ERROR"),
            (ProcessError("Failed to start command"), "PROCESS_ERROR"),
            (ContextError("budget must be positive"), "PAI_ERROR"),
            (FileNotFoundError("prompt.md"), "FILE_NOT_FOUND"),
            (PermissionError("access denied"), "PERMISSION_DENIED"),
            (TimeoutError("operation timed out"), "TIMEOUT"),
            (RuntimeError("something unexpected"), "UNEXPECTED_ERROR"),
        ],
    )
    def test_codes(self, exc: BaseException, code: str) -> None:
        assert format_error(exc).code == code


class TestErrorSeverity:
    def test_configuration_error_is_warning(self) -> None:
        assert format_error(ConfigurationError("bad")).severity == ErrorSeverity.WARNING

    def test_domain_error_is_error(self) -> None:
        assert format_error(HookError("failed")).severity == ErrorSeverity.ERROR

    def test_unknown_exception_is_critical(self) -> None:
        assert format_error(RuntimeError("boom")).severity == ErrorSeverity.CRITICAL


# ---------------------------------------------------------------------------
# Test format_error
# ---------------------------------------------------------------------------


class TestFormatError:
    def test_domain_error_message_excludes_context(self) -> None:
        exc = ToolExecutionError("Tool executor exited with 3", context={"tool": "whoami"})

        formatted = format_error(exc)

        assert formatted.message == "Tool executor exited with 3"
        assert formatted.details == {"tool": "whoami"}

    def test_oserror_includes_filename(self) -> None:
        exc = OSError(2, "No such file", "/path/to/prompt.md")

        formatted = format_error(exc)

        assert formatted.details == {"path": "/path/to/prompt.md", "errno": 2}

    def test_empty_message_falls_back_to_type_name(self) -> None:
        assert format_error(KeyError()).message == "KeyError"

    def test_include_traceback(self) -> None:
        try:
            raise ValueError("test error")
        except ValueError as exc:
            formatted = format_error(exc, include_traceback=True)

        assert formatted.traceback is not None
        assert "ValueError: test error" in formatted.traceback
        assert format_error(ValueError("x")).traceback is None


class TestFormatForLog:
    def test_message_only(self) -> None:
        error = FormattedError(
            message="No prompt provided",
            severity=ErrorSeverity.WARNING,
            code="CONFIG_ERROR",
            details={},
        )

        assert format_for_log(error) == "CONFIG_ERROR: No prompt provided"

    def test_details_and_traceback(self) -> None:
        error = FormattedError(
            message="Stream failed",
            severity=ErrorSeverity.ERROR,
            code="PROVIDER_ERROR",
            details={"code": "server_error"},
            traceback="Traceback...\n",
        )

        assert format_for_log(error) == (
            "PROVIDER_ERROR: Stream failed\n  code: server_error\nTraceback..."
        )
