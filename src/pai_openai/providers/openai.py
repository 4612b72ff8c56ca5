"""
OpenAI Responses API backend.

This module translates between pai-openai's provider types and the `openai`
SDK: it builds ``responses.create`` payloads, normalizes responses, turns the
SDK's raw stream events into ``StreamEvent`` variants, and maps SDK
exceptions onto the provider error hierarchy.

Usage:
    from pai_openai.providers.openai import OpenAIResponsesBackend

    backend = OpenAIResponsesBackend(api_key="sk-...", timeout_ms=180_000)
    response = await backend.create(ResponseRequest(model="gpt-4.1", prompt="Hello"))
"""

from __future__ import annotations

import os
import re
from collections.abc import AsyncIterator
from typing import Any, NoReturn

import openai

from pai_openai.core.config import DEFAULT_BASE_URL
from pai_openai.core.console import get_logger
from pai_openai.providers import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ModelNotFoundError,
    ModelResponse,
    ProviderError,
    RateLimitError,
    ResponseRequest,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    ToolCall,
    ToolCallCreated,
    ToolDefinition,
)

logger = get_logger(__name__)

# Pattern to match potential API keys in error messages
_API_KEY_PATTERN = re.compile(
    r"""
    # OpenAI key pattern: sk-[base64 chars]
    sk-[A-Za-z0-9_\-]{20,}|
    # Generic API key patterns that might appear in error messages
    (?:api[_-]?key|secret|token|password|credential)
    \s*[=:]\s*
    ['"]?[A-Za-z0-9_\-]{16,}['"]?
    """,
    re.IGNORECASE | re.VERBOSE,
)

_EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


def _redact_api_key(message: str, api_key: str | None = None) -> str:
    """Remove potential API keys from error messages to prevent leaking secrets."""
    for candidate in (api_key, os.environ.get("OPENAI_API_KEY", "")):
        if candidate and candidate in message:
            message = message.replace(candidate, "[REDACTED]")

    return _API_KEY_PATTERN.sub("[REDACTED]", message)


def _convert_tools_to_openai(
    tools: tuple[ToolDefinition, ...] | None,
) -> list[dict[str, object]] | None:
    """Convert our ToolDefinition format to the Responses function-tool shape."""
    if not tools:
        return None

    converted: list[dict[str, object]] = []
    for tool in tools:
        entry: dict[str, object] = {
            "type": "function",
            "name": tool.name,
            "parameters": tool.parameters if tool.parameters is not None else _EMPTY_PARAMETERS,
            # User schemas are arbitrary; strict mode would reject most of them.
            "strict": False,
        }
        if tool.description:
            entry["description"] = tool.description
        converted.append(entry)
    return converted


def _build_input(request: ResponseRequest) -> list[dict[str, object]]:
    """Build the ``input`` list: a user turn, or tool outputs for a follow-up."""
    if request.tool_outputs:
        return [
            {"type": "function_call_output", "call_id": out.call_id, "output": out.output}
            for out in request.tool_outputs
        ]

    content: list[dict[str, str]] = [{"type": "input_text", "text": request.prompt or ""}]
    if request.context:
        content.append({"type": "input_text", "text": request.context})
    return [{"role": "user", "content": content}]


def build_request_params(request: ResponseRequest, *, stream: bool = False) -> dict[str, object]:
    """Build keyword arguments for ``client.responses.create``.

    Consolidates parameter building shared between create() and stream().
    """
    params: dict[str, object] = {
        "model": request.model,
        "input": _build_input(request),
    }

    if stream:
        params["stream"] = True

    tools = _convert_tools_to_openai(request.tools)
    if tools:
        params["tools"] = tools

    if request.json_mode:
        params["text"] = {"format": {"type": "json_object"}}

    if request.previous_response_id:
        params["previous_response_id"] = request.previous_response_id

    return params


def _parse_tool_calls(output: list[Any] | None) -> list[ToolCall]:
    """Collect function-call items from a response's output list, in order."""
    calls: list[ToolCall] = []
    for item in output or []:
        if getattr(item, "type", None) != "function_call":
            continue
        calls.append(
            ToolCall(
                id=item.call_id,
                name=item.name,
                arguments=item.arguments or "",
            )
        )
    return calls


def parse_response(response: Any) -> ModelResponse:
    """Normalize an SDK ``Response`` object."""
    return ModelResponse(
        id=getattr(response, "id", None),
        output_text=getattr(response, "output_text", None) or "",
        tool_calls=_parse_tool_calls(getattr(response, "output", None)),
        raw_response=response,
    )


def translate_stream_event(event: Any) -> StreamEvent | None:
    """Map one raw SDK stream event onto a StreamEvent variant.

    Events that carry nothing the adapter needs map to None. A function call
    is reported once its item is done, when its arguments are complete.
    """
    kind = getattr(event, "type", None)

    if kind == "response.output_text.delta":
        delta = getattr(event, "delta", "")
        return TextDelta(text=delta) if delta else None

    if kind == "response.output_item.done":
        item = getattr(event, "item", None)
        if getattr(item, "type", None) == "function_call":
            return ToolCallCreated(
                call=ToolCall(id=item.call_id, name=item.name, arguments=item.arguments or "")
            )
        return None

    if kind == "error":
        return StreamFailed(
            message=getattr(event, "message", None) or "stream error",
            code=getattr(event, "code", None),
        )

    if kind in ("response.failed", "response.incomplete"):
        response = getattr(event, "response", None)
        error = getattr(response, "error", None)
        details = getattr(response, "incomplete_details", None)
        message = (
            getattr(error, "message", None)
            or getattr(details, "reason", None)
            or kind.removeprefix("response.")
        )
        return StreamFailed(message=f"Response {kind.removeprefix('response.')}: {message}")

    if kind == "response.completed":
        response = getattr(event, "response", None)
        return StreamCompleted(
            response_id=getattr(response, "id", None),
            output_text=getattr(response, "output_text", None),
        )

    return None


class OpenAIResponsesBackend:
    """ResponsesBackend implementation over ``openai.AsyncOpenAI``.

    The client is created lazily so constructing a backend never touches the
    network.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_ms: int = 180_000,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_ms = timeout_ms
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AuthenticationError("OPENAI_API_KEY is required")
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_ms / 1000,
            )
        return self._client

    async def create(self, request: ResponseRequest) -> ModelResponse:
        """Send a non-streaming request to the Responses API."""
        client = self._get_client()
        params = build_request_params(request)
        logger.debug("responses.create model=%s keys=%s", request.model, sorted(params))

        try:
            response = await client.responses.create(**params)  # type: ignore[call-overload]
        except Exception as exc:
            self._handle_api_error(exc)

        return parse_response(response)

    async def stream(self, request: ResponseRequest) -> AsyncIterator[StreamEvent]:
        """Stream a response, yielding translated events in arrival order."""
        client = self._get_client()
        params = build_request_params(request, stream=True)
        logger.debug("responses.create(stream) model=%s keys=%s", request.model, sorted(params))

        try:
            raw_stream = await client.responses.create(**params)  # type: ignore[call-overload]
            async with raw_stream:
                async for raw_event in raw_stream:
                    event = translate_stream_event(raw_event)
                    if event is not None:
                        yield event
        except Exception as exc:
            self._handle_api_error(exc)

    def _handle_api_error(self, exc: Exception) -> NoReturn:
        """Convert OpenAI exceptions to our error types.

        All error messages are redacted to prevent API key leakage.
        """
        if isinstance(exc, ProviderError):
            raise exc

        safe_msg = _redact_api_key(str(exc), self._api_key)

        if isinstance(exc, openai.AuthenticationError):
            raise AuthenticationError(safe_msg) from exc
        if isinstance(exc, openai.RateLimitError):
            retry_after = exc.response.headers.get("retry-after") if exc.response else None
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            raise RateLimitError(safe_msg, retry_after=retry_seconds) from exc
        if isinstance(exc, openai.NotFoundError):
            raise ModelNotFoundError(safe_msg) from exc
        if isinstance(exc, openai.BadRequestError):
            msg_lower = safe_msg.lower()
            if "context" in msg_lower or "token" in msg_lower or "length" in msg_lower:
                raise ContextLengthError(safe_msg) from exc
            if "content" in msg_lower or "filter" in msg_lower or "policy" in msg_lower:
                raise ContentFilterError(safe_msg) from exc
            raise ProviderError(safe_msg) from exc
        if isinstance(exc, openai.APITimeoutError):
            raise ProviderError(
                f"Request timed out after {self._timeout_ms}ms", context={"error": safe_msg}
            ) from exc
        if isinstance(exc, openai.APIError):
            raise ProviderError(safe_msg) from exc

        raise ProviderError(safe_msg) from exc


__all__ = [
    "OpenAIResponsesBackend",
    "build_request_params",
    "parse_response",
    "translate_stream_event",
]
