"""
LLM provider types for pai-openai.

This module holds the provider-neutral shapes that flow between the adapter
and a concrete backend: tool definitions and calls, the normalized response,
and the streaming events.

Streaming is modelled as an async iterator of discriminated event variants
rather than callback registration:

    async for event in backend.stream(request):
        match event:
            case TextDelta(text=text): ...
            case ToolCallCreated(call=call): ...
            case StreamFailed(message=message): ...
            case StreamCompleted(response_id=rid, output_text=text): ...

Tests substitute any object satisfying ``ResponsesBackend``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pai_openai.core.result import ModelProviderError


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Definition of a function tool the model may call."""

    name: str
    description: str | None
    parameters: dict[str, Any] | None  # JSON Schema, passed through verbatim


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool call requested by the model.

    ``arguments`` is the serialized payload exactly as the API sent it.
    """

    id: str
    name: str
    arguments: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """The executor's answer to a ToolCall, sent back to the model."""

    call_id: str
    output: str


@dataclass(frozen=True, slots=True)
class ResponseRequest:
    """Everything a backend needs for one request."""

    model: str
    prompt: str | None = None
    context: str | None = None
    tools: tuple[ToolDefinition, ...] | None = None
    json_mode: bool = False
    previous_response_id: str | None = None
    tool_outputs: tuple[ToolOutput, ...] = ()


@dataclass(slots=True)
class ModelResponse:
    """Normalized non-streaming response."""

    id: str | None
    output_text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw_response: Any = None


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextDelta:
    """A fragment of output text."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolCallCreated:
    """The model finished emitting a function call."""

    call: ToolCall


@dataclass(frozen=True, slots=True)
class StreamFailed:
    """The API reported an error mid-stream."""

    message: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class StreamCompleted:
    """The stream finished; carries the response id for follow-ups."""

    response_id: str | None
    output_text: str | None = None


StreamEvent = TextDelta | ToolCallCreated | StreamFailed | StreamCompleted


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ProviderError(ModelProviderError):
    """Base exception for provider errors."""


class AuthenticationError(ProviderError):
    """Raised when the credential is missing or rejected."""


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ModelNotFoundError(ProviderError):
    """Raised when the requested model is not available."""


class ContentFilterError(ProviderError):
    """Raised when content is blocked by safety filters."""


class ContextLengthError(ProviderError):
    """Raised when input exceeds model's context length."""


# ---------------------------------------------------------------------------
# Backend protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ResponsesBackend(Protocol):
    """Interface the adapter drives. Implemented by OpenAIResponsesBackend."""

    async def create(self, request: ResponseRequest) -> ModelResponse:
        """Send one request and return the complete response.

        Raises:
            ProviderError: On API errors
        """
        ...

    def stream(self, request: ResponseRequest) -> AsyncIterator[StreamEvent]:
        """Send one request and yield events as they arrive.

        Raises:
            ProviderError: On API errors
        """
        ...


__all__ = [
    # Types
    "ToolDefinition",
    "ToolCall",
    "ToolOutput",
    "ResponseRequest",
    "ModelResponse",
    # Events
    "TextDelta",
    "ToolCallCreated",
    "StreamFailed",
    "StreamCompleted",
    "StreamEvent",
    # Errors
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ModelNotFoundError",
    "ContentFilterError",
    "ContextLengthError",
    # Protocol
    "ResponsesBackend",
]
