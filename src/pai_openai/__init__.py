"""pai_openai - prompt + context adapter for the OpenAI Responses API.

This package provides the `pai-openai` command-line tool: it gathers a prompt
and file context, sends it to OpenAI, optionally streams tokens and resolves
a single tool call through an external executable.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
