"""
Centralized error formatting for the CLI's top-level handler.

Every fatal path in pai-openai ends in ``main``'s single exception handler,
which formats the exception here before logging it and exiting non-zero.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from pai_openai.core.result import (
    ConfigurationError,
    HookError,
    ModelProviderError,
    PaiError,
    ProcessError,
    ToolExecutionError,
    ToolSpecError,
)


class ErrorSeverity(Enum):
    """Severity levels for error display."""

    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass(frozen=True, slots=True)
class FormattedError:
    """A formatted error ready for display."""

    message: str
    severity: ErrorSeverity
    code: str
    details: dict[str, Any]
    traceback: str | None = None


def _error_code(exc: BaseException) -> str:
    """Derive an error code from exception type."""
    if isinstance(exc, ConfigurationError):
        return "CONFIG_ERROR"
    if isinstance(exc, HookError):
        return "HOOK_ERROR"
    if isinstance(exc, (ToolExecutionError, ToolSpecError)):
        return "TOOL_ERROR"
    if isinstance(exc, ModelProviderError):
        return "PROVIDER_ERROR"
    if isinstance(exc, ProcessError):
        return "PROCESS_ERROR"
    if isinstance(exc, PaiError):
        return "PAI_ERROR"
    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND"
    if isinstance(exc, PermissionError):
        return "PERMISSION_DENIED"
    if isinstance(exc, TimeoutError):
        return "TIMEOUT"
    return "UNEXPECTED_ERROR"


def _severity(exc: BaseException) -> ErrorSeverity:
    if isinstance(exc, (ConfigurationError, FileNotFoundError)):
        return ErrorSeverity.WARNING
    if isinstance(exc, PaiError):
        return ErrorSeverity.ERROR
    return ErrorSeverity.CRITICAL


def format_error(exc: BaseException, *, include_traceback: bool = False) -> FormattedError:
    """Format an exception into a structured error.

    Args:
        exc: The exception to format
        include_traceback: Whether to include full traceback (for debugging)

    Returns:
        FormattedError ready for display
    """
    details: dict[str, Any] = {}
    if isinstance(exc, PaiError):
        details = exc.context.copy()

    if isinstance(exc, OSError):
        if exc.filename:
            details["path"] = str(exc.filename)
        if exc.errno:
            details["errno"] = exc.errno

    message = exc.message if isinstance(exc, PaiError) else str(exc)

    tb = None
    if include_traceback:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return FormattedError(
        message=message or type(exc).__name__,
        severity=_severity(exc),
        code=_error_code(exc),
        details=details,
        traceback=tb,
    )


def format_for_log(error: FormattedError) -> str:
    """Render a FormattedError as plain text for the stderr log handler."""
    parts = [f"{error.code}: {error.message}"]

    if error.details:
        parts.extend(f"  {k}: {v}" for k, v in error.details.items())

    if error.traceback:
        parts.append(error.traceback.rstrip())

    return "\n".join(parts)


__all__ = [
    "ErrorSeverity",
    "FormattedError",
    "format_error",
    "format_for_log",
]
