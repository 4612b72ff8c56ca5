"""
Unified Result types and error hierarchy for pai-openai.

This module provides:
1. Result[T, E] type for explicit error handling at subprocess boundaries
2. Domain-specific exception hierarchy

Usage:
    from pai_openai.core.result import Ok, Err, Result, ProcessError

    def spawn() -> Result[CommandResult, ProcessError]:
        if failed:
            return Err(ProcessError("Failed to start command"))
        return Ok(result)

    # Re-type the failure for the caller, then raise it or take the value
    completed = spawn().map_err(lambda err: HookError(err.message)).unwrap()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Exception)
F = TypeVar("F", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Represents a successful result containing a value."""

    value: T

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def map_err(self, fn: Callable[[Any], Exception]) -> Ok[T]:
        return self


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Represents a failed result containing an error."""

    error: E

    def unwrap(self) -> Any:
        """Raise the contained error."""
        raise self.error

    def map_err(self, fn: Callable[[E], F]) -> Err[F]:
        """Replace the error, chaining the original as its cause."""
        mapped = fn(self.error)
        mapped.__cause__ = self.error
        return Err(mapped)


# Type alias for Result
Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class PaiError(Exception):
    """Base exception for all pai-openai errors.

    Carries an optional ``context`` mapping that is rendered alongside the
    message and surfaced as details by the error middleware.
    """

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class ConfigurationError(PaiError):
    """Raised for configuration issues.

    Examples:
    - Missing credential
    - Invalid config values
    - No prompt supplied
    """


class ContextError(PaiError):
    """Raised when context assembly cannot proceed at all."""


class ProcessError(PaiError):
    """Raised when a subprocess cannot be spawned or driven."""


class ToolExecutionError(PaiError):
    """Raised when the tool executor fails.

    Examples:
    - Executor exited non-zero
    - Executor binary not found
    """


class ToolSpecError(PaiError):
    """Raised when a tool spec file is missing, malformed or invalid."""


class HookError(PaiError):
    """Raised when a pre/post hook exits non-zero or cannot be spawned."""


class ModelProviderError(PaiError):
    """Raised when the LLM provider fails.

    Examples:
    - API authentication failed
    - Rate limit exceeded
    - Model not available
    - Stream reported an error event
    """


__all__ = [
    # Result types
    "Ok",
    "Err",
    "Result",
    # Error hierarchy
    "PaiError",
    "ConfigurationError",
    "ContextError",
    "ProcessError",
    "ToolExecutionError",
    "ToolSpecError",
    "HookError",
    "ModelProviderError",
]
