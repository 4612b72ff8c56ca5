"""Tests for tool spec loading and the external tool executor."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pai_openai.core.result import ToolExecutionError, ToolSpecError
from pai_openai.providers import ToolCall, ToolDefinition
from pai_openai.tools import execute_tool, load_tool_specs

ECHO_SCRIPT = """
import json, os, sys
payload = sys.stdin.read()
print(json.dumps({
    "name": os.environ["TOOL_NAME"],
    "args": os.environ["TOOL_ARGS"],
    "call_id": os.environ["TOOL_CALL_ID"],
    "stdin": payload,
}))
"""


def _write_script(tmp_path: Path, name: str, body: str) -> Path:
    script = tmp_path / name
    script.write_text(body, encoding="utf-8")
    return script


class TestLoadToolSpecs:
    @pytest.mark.asyncio
    async def test_no_path_means_no_tools(self) -> None:
        assert await load_tool_specs(None) is None

    @pytest.mark.asyncio
    async def test_single_object(self, tmp_path: Path) -> None:
        spec = tmp_path / "whoami.json"
        spec.write_text(
            json.dumps(
                {"name": "whoami", "description": "Describe user", "parameters": {"type": "object"}}
            ),
            encoding="utf-8",
        )

        tools = await load_tool_specs(str(spec))

        assert tools == (
            ToolDefinition(
                name="whoami", description="Describe user", parameters={"type": "object"}
            ),
        )

    @pytest.mark.asyncio
    async def test_array_preserves_order(self, tmp_path: Path) -> None:
        spec = tmp_path / "tools.json"
        spec.write_text(json.dumps([{"name": "b"}, {"name": "a"}]), encoding="utf-8")

        tools = await load_tool_specs(spec)

        assert tools is not None
        assert [tool.name for tool in tools] == ["b", "a"]
        assert tools[0].description is None
        assert tools[0].parameters is None

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path: Path) -> None:
        spec = tmp_path / "broken.json"
        spec.write_text("{name: whoami", encoding="utf-8")

        with pytest.raises(ToolSpecError, match="not valid JSON"):
            await load_tool_specs(spec)

    @pytest.mark.asyncio
    async def test_entry_without_name(self, tmp_path: Path) -> None:
        spec = tmp_path / "nameless.json"
        spec.write_text(json.dumps([{"description": "no name"}]), encoding="utf-8")

        with pytest.raises(ToolSpecError, match="invalid"):
            await load_tool_specs(spec)

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ToolSpecError, match="Cannot read tool spec"):
            await load_tool_specs(tmp_path / "absent.json")


class TestExecuteTool:
    @pytest.mark.asyncio
    async def test_executor_sees_env_and_stdin(self, tmp_path: Path, python_cmd: str) -> None:
        script = _write_script(tmp_path, "echo_tool.py", ECHO_SCRIPT)
        call = ToolCall(id="call_7", name="whoami", arguments='{"verbose":true}')

        result = await execute_tool(f'{python_cmd} "{script}"', call)

        assert result.is_json is True
        payload = json.loads(result.output)
        assert payload == {
            "name": "whoami",
            "args": '{"verbose":true}',
            "call_id": "call_7",
            "stdin": '{"verbose":true}',
        }

    @pytest.mark.asyncio
    async def test_plain_text_output_is_trimmed(self, tmp_path: Path, python_cmd: str) -> None:
        script = _write_script(tmp_path, "plain.py", "print('  hello there  ')\nprint()\n")
        call = ToolCall(id="c", name="greet", arguments="{}")

        result = await execute_tool(f'{python_cmd} "{script}"', call)

        assert result.output == "hello there"
        assert result.is_json is False

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_an_error(self, tmp_path: Path, python_cmd: str) -> None:
        script = _write_script(tmp_path, "fail.py", "import sys\nsys.exit(3)\n")
        call = ToolCall(id="c", name="broken", arguments="{}")

        with pytest.raises(ToolExecutionError, match="exited with 3"):
            await execute_tool(f'{python_cmd} "{script}"', call)
