"""Pre/post request hooks.

A hook is a user-supplied shell command. It inherits the CLI's standard
streams and sees request/response metadata as environment variables
(``PROMPT``, ``MODEL``, ``RUN_ID``, ...). Only its exit status matters.
"""

from __future__ import annotations

from collections.abc import Mapping

from pai_openai.core.console import get_logger
from pai_openai.core.process import run_shell
from pai_openai.core.result import HookError

logger = get_logger(__name__)

HookEnv = Mapping[str, str | None]


async def run_hook(command: str, env: HookEnv) -> None:
    """Run ``command`` through the shell with ``env`` merged over os.environ.

    Raises:
        HookError: If the hook cannot be spawned or exits non-zero
    """
    logger.debug("Running hook: %s", command)
    result = await run_shell(command, env=env)
    completed = result.map_err(
        lambda err: HookError(f"Hook failed to start ({command})", context=err.context)
    ).unwrap()

    code = completed.returncode
    if code != 0:
        raise HookError(f"Hook failed ({command}) with exit code {code}")


__all__ = ["HookEnv", "run_hook"]
