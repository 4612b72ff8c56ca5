from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TextIO
from uuid import uuid4

import typer

from . import __version__
from .adapter import CallArgs, call_openai
from .context import build_context
from .core.config import AppConfig, load_config
from .core.console import get_logger, setup_logging
from .core.error_middleware import format_error, format_for_log
from .core.result import ConfigurationError
from .hooks import run_hook
from .providers import AuthenticationError

app = typer.Typer(
    help="pai-openai: send a prompt plus file context to OpenAI.",
    add_completion=False,
    pretty_exceptions_enable=False,
)
logger = get_logger(__name__)

EXIT_FAILURE = 1


class LogLevelChoice(str, Enum):
    silent = "silent"
    error = "error"
    warn = "warn"
    info = "info"
    debug = "debug"


@dataclass
class RunOptions:
    """Flags for one invocation, before config defaults are applied."""

    prompt: str | None = None
    file: Path | None = None
    context: list[str] = field(default_factory=list)
    stdin: bool = False
    model: str | None = None
    json_mode: bool | None = None
    stream: bool = True
    tool_spec: str | None = None
    tool_exec: str | None = None
    pre: str | None = None
    post: str | None = None
    out: Path | None = None
    timeout: int | None = None
    max_context_bytes: int | None = None
    max_file_bytes: int | None = None
    skip_oversized: bool | None = None


def resolve_log_level(
    config: AppConfig,
    log_level: LogLevelChoice | None,
    quiet: bool,
    debug: bool,
) -> str:
    if quiet:
        return "silent"
    if log_level is not None:
        return log_level.value
    if debug:
        return "debug"
    return config.log_level


def read_stdin(stream: TextIO | None = None) -> str:
    """Read piped standard input; an interactive terminal yields ''."""
    source = stream if stream is not None else sys.stdin
    if source is None or source.isatty():
        return ""
    return "\n".join(source.read().splitlines())


def read_prompt_file(path: Path | None) -> str:
    if path is None:
        return ""
    return path.expanduser().read_text(encoding="utf-8").rstrip()


def _print_pending_tool(payload: dict[str, str]) -> None:
    sys.stdout.write("\n")
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    sys.stdout.flush()


async def run(options: RunOptions, config: AppConfig, run_id: str) -> int:
    """Gather prompt and context, run hooks around the request, return the exit code."""
    prompt_arg = options.prompt or ""
    file_prompt = await asyncio.to_thread(read_prompt_file, options.file)
    stdin_text = await asyncio.to_thread(read_stdin) if options.stdin else ""

    prompt = prompt_arg or file_prompt or stdin_text
    if not prompt:
        raise ConfigurationError(
            "No prompt provided. Pass an argument, -f file, or supply --stdin."
        )
    if not config.has_credential:
        raise AuthenticationError("OPENAI_API_KEY is required")

    use_stdin_as_context = options.stdin and bool(prompt_arg or file_prompt)
    budgets = config.context
    context = await build_context(
        options.context,
        stdin_text if use_stdin_as_context else None,
        max_total_bytes=options.max_context_bytes or budgets.max_total_bytes,
        max_file_bytes=options.max_file_bytes or budgets.max_file_bytes,
        include_extensions=budgets.include_extensions,
        skip_oversized=(
            budgets.skip_oversized if options.skip_oversized is None else options.skip_oversized
        ),
    )

    model = options.model or config.model
    json_mode = config.json_mode if options.json_mode is None else options.json_mode

    if options.pre:
        await run_hook(
            options.pre,
            {
                "PROMPT": prompt,
                "MODEL": model,
                "RUN_ID": run_id,
                "CONTEXT_PATHS": ",".join(context.paths),
            },
        )

    result = await call_openai(
        CallArgs(
            prompt=prompt,
            context=context.text,
            model=model,
            json_mode=json_mode,
            stream=options.stream,
            timeout_ms=options.timeout or config.timeout_ms,
            tool_spec_path=options.tool_spec,
            tool_exec=options.tool_exec,
        ),
        config,
    )

    if options.out and result.text:
        await asyncio.to_thread(options.out.write_text, result.text, encoding="utf-8")
        logger.info("Wrote output to %s", options.out)

    if options.post:
        await run_hook(
            options.post,
            {
                "PROMPT": prompt,
                "MODEL": model,
                "RUN_ID": run_id,
                "OUTPUT_FILE": str(options.out) if options.out else "",
                "OUTPUT_TEXT": result.text,
                "TOOL_NAME": result.tool.name if result.tool else None,
                "TOOL_ARGS": result.tool.arguments if result.tool else None,
                "EXIT_CODE": str(result.exit_code),
            },
        )

    if result.needs_tool and result.tool is not None:
        _print_pending_tool(result.tool.to_dict())

    return result.exit_code


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command(
    epilog=(
        "Examples:\n\n"
        "  pai-openai 'Summarize repo risks' --context 'src/**/*.ts' --context README.md\n\n"
        "  git diff | pai-openai --stdin 'Write tests for changed files' --json\n\n"
        "  pai-openai -f prompts/refactor.md --tool-spec tools/whoami.json --post scripts/create-pr.sh"
    )
)
def main(
    prompt: str | None = typer.Argument(None, help="Prompt text."),
    file: Path | None = typer.Option(None, "--file", "-f", help="Prompt file path."),
    context: list[str] | None = typer.Option(
        None, "--context", help="File path or glob to attach as context (repeatable)."
    ),
    stdin: bool = typer.Option(False, "--stdin", help="Treat STDIN as prompt or extra context."),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to use."),
    json_mode: bool | None = typer.Option(
        None, "--json/--no-json", help="Force JSON-mode output (default from OPENAI_JSON_MODE)."
    ),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream tokens to stdout."),
    tool_spec: str | None = typer.Option(
        None, "--tool-spec", help="Path to JSON schema describing function tools."
    ),
    tool_exec: str | None = typer.Option(
        None, "--tool-exec", help="Executable to resolve tool calls."
    ),
    pre: str | None = typer.Option(None, "--pre", help="Command to run before the request."),
    post: str | None = typer.Option(None, "--post", help="Command to run after the request."),
    out: Path | None = typer.Option(None, "--out", help="Write final output to a file."),
    timeout: int | None = typer.Option(
        None, "--timeout", min=1, help="Request timeout in milliseconds."
    ),
    base_url: str | None = typer.Option(None, "--base-url", help="API endpoint override."),
    log_level: LogLevelChoice | None = typer.Option(
        None, "--log-level", case_sensitive=False, help="Override log level."
    ),
    quiet: bool = typer.Option(False, "--quiet", help="Silence logs."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
    max_context_bytes: int | None = typer.Option(
        None, "--max-context-bytes", min=1, help="Max bytes for combined context."
    ),
    max_file_bytes: int | None = typer.Option(
        None, "--max-file-bytes", min=1, help="Max bytes per context file."
    ),
    skip_oversized: bool | None = typer.Option(
        None,
        "--skip-oversized/--truncate-oversized",
        help="Skip files over --max-file-bytes instead of truncating them.",
    ),
    config_path: Path | None = typer.Option(
        None, "--config", "-c", help="Path to a pai-openai config file (TOML or JSON)."
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version."
    ),
) -> None:
    """Send a prompt (plus optional file/STDIN context) to OpenAI.

    Exit codes: 0 success, 10 tool call pending (rerun with --tool-exec), 1 error.
    """
    try:
        loaded_config, meta = load_config(config_path=config_path)
    except ConfigurationError as exc:
        setup_logging("info")
        logger.error(format_for_log(format_error(exc)))
        raise typer.Exit(code=EXIT_FAILURE) from exc

    if base_url:
        loaded_config = loaded_config.model_copy(update={"base_url": base_url})

    level = resolve_log_level(loaded_config, log_level, quiet, debug)
    setup_logging(level)

    if meta.error:
        logger.warning(
            "Configuration error in %s, using defaults and environment: %s", meta.path, meta.error
        )
    else:
        logger.debug(
            "Loaded configuration from %s (file: %s, env overrides: %s)",
            meta.path,
            meta.file_loaded,
            sorted(meta.env_overrides),
        )

    options = RunOptions(
        prompt=prompt,
        file=file,
        context=list(context or []),
        stdin=stdin,
        model=model,
        json_mode=json_mode,
        stream=stream,
        tool_spec=tool_spec,
        tool_exec=tool_exec,
        pre=pre,
        post=post,
        out=out,
        timeout=timeout,
        max_context_bytes=max_context_bytes,
        max_file_bytes=max_file_bytes,
        skip_oversized=skip_oversized,
    )
    run_id = f"run-{uuid4().hex[:8]}"

    try:
        exit_code = asyncio.run(run(options, loaded_config, run_id))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        raise typer.Exit(code=130)
    except Exception as exc:
        formatted = format_error(exc, include_traceback=level == "debug")
        logger.error(format_for_log(formatted))
        raise typer.Exit(code=EXIT_FAILURE) from exc

    raise typer.Exit(code=exit_code)


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
