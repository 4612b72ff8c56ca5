"""Provider adapter: one prompt in, one CallResult out.

``call_openai`` builds the request, dispatches it streaming or not, and
reconciles a possible tool call:

    - no tool call: the final text is on stdout, exit code 0
    - tool call + executor: run the executor, send its output back, put the
      follow-up text on stdout, exit code 0
    - tool call, no executor: exit code 10 with the call attached so the
      caller can resolve it and re-invoke

Only the first tool call of a response is handled.

Standard output is written directly and flushed as data arrives; callers pipe
it, so nothing else may be written there.
"""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TextIO

from pai_openai.core.config import AppConfig
from pai_openai.core.console import get_logger
from pai_openai.providers import (
    AuthenticationError,
    ProviderError,
    ResponseRequest,
    ResponsesBackend,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    ToolCall,
    ToolCallCreated,
    ToolDefinition,
    ToolOutput,
)
from pai_openai.providers.openai import OpenAIResponsesBackend
from pai_openai.tools import execute_tool, load_tool_specs

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_TOOL_PENDING = 10


@dataclass(frozen=True, slots=True)
class CallArgs:
    """Per-invocation request options."""

    prompt: str
    context: str
    model: str
    json_mode: bool
    stream: bool
    timeout_ms: int
    tool_spec_path: str | None = None
    tool_exec: str | None = None


@dataclass(frozen=True, slots=True)
class CallResult:
    """Terminal value of an adapter call."""

    exit_code: int
    text: str
    needs_tool: bool
    tool: ToolCall | None = None


@dataclass(slots=True)
class StreamOutcome:
    """What a consumed stream left behind."""

    text: str
    response_id: str | None
    tool: ToolCall | None


def _write(out: TextIO, text: str) -> None:
    if text:
        out.write(text)
        out.flush()


async def consume_stream(events: AsyncIterator[StreamEvent], out: TextIO) -> StreamOutcome:
    """Drain a stream: echo text deltas, capture the first tool call.

    Events are handled strictly in arrival order, so a tool call can never
    interleave with a partially written delta.

    Raises:
        ProviderError: When the stream reports a failure
    """
    buffer: list[str] = []
    pending: ToolCall | None = None
    response_id: str | None = None
    final_text: str | None = None

    async for event in events:
        match event:
            case TextDelta(text=text):
                buffer.append(text)
                _write(out, text)
            case ToolCallCreated(call=call):
                if pending is None:
                    pending = call
                    logger.info("Tool requested: %s", call.name)
                else:
                    logger.debug("Ignoring additional tool call %s (%s)", call.name, call.id)
            case StreamFailed(message=message, code=code):
                raise ProviderError(
                    f"Stream failed: {message}", context={"code": code} if code else None
                )
            case StreamCompleted(response_id=rid, output_text=text):
                response_id = rid
                final_text = text

    accumulated = "".join(buffer)
    return StreamOutcome(text=final_text or accumulated, response_id=response_id, tool=pending)


def _tool_request(
    args: CallArgs,
    tools: tuple[ToolDefinition, ...] | None,
    response_id: str | None,
    call: ToolCall,
    output: str,
) -> ResponseRequest:
    if not response_id:
        raise ProviderError(
            "Cannot submit tool output: response id missing", context={"tool": call.name}
        )
    return ResponseRequest(
        model=args.model,
        tools=tools,
        json_mode=args.json_mode,
        previous_response_id=response_id,
        tool_outputs=(ToolOutput(call_id=call.id, output=output),),
    )


def _warn_unhandled_follow_up(call: ToolCall) -> None:
    logger.warning(
        "Follow-up response requested another tool call (%s); only one tool round is run.",
        call.name,
    )


def _pending_result(call: ToolCall, text: str, *, streaming: bool) -> CallResult:
    hint = " Rerun with --tool-exec to satisfy." if streaming else ""
    logger.warning("Tool call required (%s).%s", call.name, hint)
    return CallResult(exit_code=EXIT_TOOL_PENDING, text=text, needs_tool=True, tool=call)


async def handle_non_stream(
    backend: ResponsesBackend,
    request: ResponseRequest,
    args: CallArgs,
    out: TextIO,
) -> CallResult:
    response = await backend.create(request)

    if response.tool_calls:
        first = response.tool_calls[0]
        if len(response.tool_calls) > 1:
            logger.debug(
                "Response requested %d tool calls; handling only %s",
                len(response.tool_calls),
                first.name,
            )
        if not args.tool_exec:
            return _pending_result(first, response.output_text, streaming=False)

        tool_output = await execute_tool(args.tool_exec, first)
        follow_up = await backend.create(
            _tool_request(args, request.tools, response.id, first, tool_output.output)
        )
        if follow_up.tool_calls:
            _warn_unhandled_follow_up(follow_up.tool_calls[0])
        final = follow_up.output_text
        _write(out, final)
        return CallResult(exit_code=EXIT_OK, text=final, needs_tool=False)

    _write(out, response.output_text)
    return CallResult(exit_code=EXIT_OK, text=response.output_text, needs_tool=False)


async def handle_stream(
    backend: ResponsesBackend,
    request: ResponseRequest,
    args: CallArgs,
    out: TextIO,
) -> CallResult:
    outcome = await consume_stream(backend.stream(request), out)

    if outcome.tool is None:
        return CallResult(exit_code=EXIT_OK, text=outcome.text, needs_tool=False)

    if not args.tool_exec:
        return _pending_result(outcome.tool, outcome.text, streaming=True)

    tool_output = await execute_tool(args.tool_exec, outcome.tool)
    follow_up = await consume_stream(
        backend.stream(
            _tool_request(args, request.tools, outcome.response_id, outcome.tool, tool_output.output)
        ),
        out,
    )
    if follow_up.tool is not None:
        _warn_unhandled_follow_up(follow_up.tool)
    out.write("\n")
    out.flush()
    return CallResult(exit_code=EXIT_OK, text=follow_up.text or outcome.text, needs_tool=False)


async def call_openai(
    args: CallArgs,
    config: AppConfig,
    *,
    backend: ResponsesBackend | None = None,
    out: TextIO | None = None,
) -> CallResult:
    """Send the prompt and context to OpenAI and reconcile any tool call.

    Args:
        args: Prompt, context and per-call options
        config: Loaded configuration (credential and endpoint)
        backend: Backend override, used by tests
        out: Stream for model output, defaults to sys.stdout

    Raises:
        AuthenticationError: If no credential is configured; raised before
            anything is sent
        ProviderError: On API failures
        ToolSpecError, ToolExecutionError: On tool failures
    """
    if not config.has_credential:
        raise AuthenticationError("OPENAI_API_KEY is required")

    if backend is None:
        assert config.api_key is not None
        backend = OpenAIResponsesBackend(
            config.api_key.get_secret_value(),
            base_url=config.base_url,
            timeout_ms=args.timeout_ms,
        )
    stream_out = out if out is not None else sys.stdout

    tools = await load_tool_specs(args.tool_spec_path)
    request = ResponseRequest(
        model=args.model,
        prompt=args.prompt,
        context=args.context or None,
        tools=tools,
        json_mode=args.json_mode,
    )
    logger.debug(
        "Calling %s (stream=%s, json=%s, tools=%d, context=%d chars)",
        args.model,
        args.stream,
        args.json_mode,
        len(tools or ()),
        len(args.context),
    )

    if args.stream:
        return await handle_stream(backend, request, args, stream_out)
    return await handle_non_stream(backend, request, args, stream_out)


__all__ = [
    "EXIT_OK",
    "EXIT_TOOL_PENDING",
    "CallArgs",
    "CallResult",
    "StreamOutcome",
    "call_openai",
    "consume_stream",
    "handle_non_stream",
    "handle_stream",
]
