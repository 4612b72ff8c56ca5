"""Function tools: spec loading and external execution.

A tool spec file is a JSON document holding one tool object or an array of
them::

    {"name": "whoami", "description": "Describe user", "parameters": {"type": "object"}}

A tool executor is any shell command. It receives the call's name, arguments
and id as ``TOOL_NAME``, ``TOOL_ARGS`` and ``TOOL_CALL_ID``, the raw
argument payload on stdin, and must print its result to stdout and exit 0.
Its stderr goes straight to ours.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from pai_openai.core.console import get_logger
from pai_openai.core.process import run_shell
from pai_openai.core.result import ToolExecutionError, ToolSpecError
from pai_openai.providers import ToolCall, ToolDefinition

logger = get_logger(__name__)


class ToolSpec(BaseModel):
    """One entry of a tool spec file."""

    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


_SPEC_FILE_ADAPTER: TypeAdapter[ToolSpec | list[ToolSpec]] = TypeAdapter(ToolSpec | list[ToolSpec])


class ToolExecutionResult(BaseModel):
    """Output captured from a tool executor."""

    model_config = ConfigDict(frozen=True)

    output: str
    is_json: bool


def _parse_tool_specs(raw: str, source: Path) -> tuple[ToolDefinition, ...]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolSpecError(f"Tool spec {source} is not valid JSON: {exc}") from exc

    try:
        parsed = _SPEC_FILE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ToolSpecError(
            f"Tool spec {source} is invalid", context={"errors": exc.error_count()}
        ) from exc

    specs = parsed if isinstance(parsed, list) else [parsed]
    return tuple(
        ToolDefinition(name=spec.name, description=spec.description, parameters=spec.parameters)
        for spec in specs
    )


async def load_tool_specs(tool_spec_path: str | Path | None) -> tuple[ToolDefinition, ...] | None:
    """Load and normalize a tool spec file. Returns None when no path is given."""
    if not tool_spec_path:
        return None

    absolute = Path(tool_spec_path).expanduser().resolve()
    try:
        raw = await asyncio.to_thread(absolute.read_text, encoding="utf-8")
    except OSError as exc:
        raise ToolSpecError(f"Cannot read tool spec {absolute}: {exc.strerror or exc}") from exc

    tools = _parse_tool_specs(raw, absolute)
    logger.debug("Loaded %d tool spec(s) from %s", len(tools), absolute)
    return tools


async def execute_tool(tool_exec: str, call: ToolCall) -> ToolExecutionResult:
    """Pipe ``call.arguments`` into ``tool_exec`` and capture its stdout.

    Raises:
        ToolExecutionError: If the executor cannot be spawned or exits non-zero
    """
    logger.info("Executing tool handler %s for %s", tool_exec, call.name)

    result = await run_shell(
        tool_exec,
        env={
            "TOOL_NAME": call.name,
            "TOOL_ARGS": call.arguments,
            "TOOL_CALL_ID": call.id,
        },
        input_data=call.arguments,
        capture_stdout=True,
    )
    completed = result.map_err(
        lambda err: ToolExecutionError(
            f"Tool executor failed to start ({tool_exec})", context=err.context
        )
    ).unwrap()

    code = completed.returncode
    if code != 0:
        raise ToolExecutionError(f"Tool executor exited with {code}", context={"tool": call.name})

    trimmed = completed.stdout.strip()
    is_json = trimmed.startswith(("{", "["))
    return ToolExecutionResult(output=trimmed, is_json=is_json)


__all__ = [
    "ToolExecutionResult",
    "ToolSpec",
    "execute_tool",
    "load_tool_specs",
]
