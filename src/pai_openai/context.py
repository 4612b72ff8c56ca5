"""Context assembly for prompts.

Collects file context matched by glob patterns plus optional piped standard
input and renders it into one text block, enforcing two byte budgets:

    - max_file_bytes: no single entry's text exceeds it
    - max_total_bytes: the sum of entry texts never exceeds it

Files are visited in discovery order (each pattern's matches sorted, patterns
in the order given). Once a file would push the running total past the
budget, it and every file after it are dropped. Standard input is always the
last entry.
"""

from __future__ import annotations

import asyncio
import glob
import math
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

import pathspec
from pydantic import BaseModel, ConfigDict

from pai_openai.core.console import get_logger
from pai_openai.core.result import ContextError

logger = get_logger(__name__)

DEFAULT_MAX_TOTAL_BYTES = 900_000
DEFAULT_MAX_FILE_BYTES = 512 * 1024
DEFAULT_EXTENSIONS: tuple[str, ...] = (
    ".md",
    ".txt",
    ".json",
    ".yaml",
    ".yml",
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".rb",
    ".go",
    ".java",
)
IGNORED_DIRS: tuple[str, ...] = ("node_modules", ".git", ".next", "dist")
STDIN_PATH = "STDIN"

_IGNORE_SPEC = pathspec.PathSpec.from_lines("gitwildmatch", [f"{name}/" for name in IGNORED_DIRS])


class ContextEntry(BaseModel):
    """One source attached to the prompt."""

    model_config = ConfigDict(frozen=True)

    path: str
    original_size: int
    text: str
    truncated: bool

    @property
    def byte_length(self) -> int:
        return len(self.text.encode("utf-8"))


class ContextResult(BaseModel):
    """Entries in discovery order plus the rendered context block."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[ContextEntry, ...]
    text: str

    @property
    def total_bytes(self) -> int:
        return sum(entry.byte_length for entry in self.entries)

    @property
    def paths(self) -> list[str]:
        return [entry.path for entry in self.entries]


def _kb(size: int) -> int:
    # Half-up rounding, not banker's rounding.
    return math.floor(size / 1024 + 0.5)


def truncate_utf8(text: str, max_bytes: int) -> tuple[str, bool]:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes.

    A multi-byte character split by the cut is dropped whole, so a truncated
    result can be up to three bytes shorter than ``max_bytes``. Returns the
    (possibly shortened) text and whether anything was removed.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[: max(max_bytes, 0)].decode("utf-8", errors="ignore"), True


def _wildcard_root(pattern: str) -> str:
    """Directory holding everything ``pattern`` can match.

    This is the run of leading components without glob magic; for a literal
    path it is the parent directory.
    """
    parts = pattern.split(os.sep)
    fixed: list[str] = []
    for part in parts[:-1]:
        if glob.has_magic(part):
            break
        fixed.append(part)
    if not fixed:
        return "."
    return os.sep.join(fixed) or os.sep


def expand_globs(patterns: Iterable[str]) -> list[str]:
    """Expand glob patterns into an ordered, deduplicated list of regular files.

    Files under dependency, build and version-control directories found
    below a pattern's fixed prefix are excluded; directories named in the
    prefix itself do not count. Two matches naming the same file (``./a.md``
    and ``a.md``, a relative and an absolute path) are kept once, at first
    discovery.
    """
    seen: set[Path] = set()
    ordered: list[str] = []

    for pattern in patterns:
        expanded = os.path.normpath(os.path.expanduser(pattern))
        root = _wildcard_root(expanded)
        for match in sorted(glob.glob(expanded, recursive=True)):
            normalized = os.path.normpath(match)
            if _IGNORE_SPEC.match_file(os.path.relpath(normalized, root)):
                continue
            if not os.path.isfile(normalized):
                continue
            try:
                key = Path(normalized).resolve()
            except OSError:
                continue
            if key in seen:
                continue
            seen.add(key)
            ordered.append(normalized)

    return ordered


def _read_text(path: str) -> str:
    # Bytes, not read_text(): newline translation would change byte counts.
    # Invalid UTF-8 sequences become U+FFFD rather than failing the read.
    return Path(path).read_bytes().decode("utf-8", errors="replace")


def render_context(entries: Sequence[ContextEntry], max_total_bytes: int) -> str:
    """Render the header and one delimited block per entry, capped to the budget."""
    total_bytes = sum(entry.byte_length for entry in entries)
    header = f"Context summary ({len(entries)} sources, {total_bytes / 1024:.1f}KB)\n"

    blocks: list[str] = []
    for entry in entries:
        marker = ", truncated" if entry.truncated else ""
        info = f"{entry.path} ({_kb(entry.original_size)}KB{marker})"
        blocks.append(f"\n===== {info} =====\n{entry.text}")

    combined = header + "\n".join(blocks)
    return truncate_utf8(combined, max_total_bytes)[0]


async def build_context(
    globs: Iterable[str],
    stdin_text: str | None = None,
    *,
    max_total_bytes: int = DEFAULT_MAX_TOTAL_BYTES,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    include_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    skip_oversized: bool = False,
) -> ContextResult:
    """Collect matching files and optional stdin text into a budgeted context.

    Args:
        globs: File paths or glob patterns (``**`` is recursive)
        stdin_text: Piped input to append as the final ``STDIN`` entry
        max_total_bytes: Budget for the sum of entry texts and the rendered block
        max_file_bytes: Budget for any single entry
        include_extensions: Allowed file suffixes (case-insensitive)
        skip_oversized: Drop files larger than max_file_bytes instead of
            truncating them

    Returns:
        ContextResult with entries in discovery order and the rendered text

    Raises:
        ContextError: If either budget is not positive
    """
    if max_total_bytes <= 0 or max_file_bytes <= 0:
        raise ContextError(
            "Context budgets must be positive",
            context={"max_total_bytes": max_total_bytes, "max_file_bytes": max_file_bytes},
        )

    allowed = {ext.lower() for ext in include_extensions}
    patterns = list(globs)
    files = await asyncio.to_thread(expand_globs, patterns) if patterns else []
    logger.debug("Context globs %s matched %d file(s)", patterns, len(files))

    entries: list[ContextEntry] = []
    total_bytes = 0

    for file in files:
        try:
            size = (await asyncio.to_thread(os.stat, file)).st_size
        except OSError as exc:
            logger.warning("Failed to read context file %s: %s", file, exc.strerror or exc)
            continue

        if size == 0:
            continue
        if Path(file).suffix.lower() not in allowed:
            continue
        if size > max_file_bytes:
            if skip_oversized:
                logger.warning("Skipping %s (>%dKB)", file, _kb(max_file_bytes))
                continue
            logger.warning("Truncating %s to %d bytes (file is %d bytes)", file, max_file_bytes, size)
        if total_bytes + min(size, max_file_bytes) > max_total_bytes:
            logger.warning(
                "Context budget reached; skipping remaining files (last attempted %s).", file
            )
            break

        try:
            raw = await asyncio.to_thread(_read_text, file)
        except OSError as exc:
            logger.warning("Failed to read context file %s: %s", file, exc.strerror or exc)
            continue

        text, truncated = truncate_utf8(raw, max_file_bytes)
        text_bytes = len(text.encode("utf-8"))
        if text_bytes == 0:
            continue
        if total_bytes + text_bytes > max_total_bytes:
            # The file grew after stat, or replacement characters widened it.
            logger.warning(
                "Context budget reached; skipping remaining files (last attempted %s).", file
            )
            break

        total_bytes += text_bytes
        entries.append(
            ContextEntry(
                path=file,
                original_size=len(raw.encode("utf-8")),
                text=text,
                truncated=truncated,
            )
        )

    stdin = (stdin_text or "").rstrip()
    if stdin:
        budget = min(max_file_bytes, max_total_bytes - total_bytes)
        chunk, truncated = truncate_utf8(stdin, budget)
        if truncated:
            logger.warning("Truncating STDIN context to %d bytes", budget)
        total_bytes += len(chunk.encode("utf-8"))
        entries.append(
            ContextEntry(
                path=STDIN_PATH,
                original_size=len(stdin.encode("utf-8")),
                text=chunk,
                truncated=truncated,
            )
        )

    logger.debug("Context assembled: %d source(s), %d bytes", len(entries), total_bytes)
    return ContextResult(entries=tuple(entries), text=render_context(entries, max_total_bytes))


__all__ = [
    "DEFAULT_EXTENSIONS",
    "DEFAULT_MAX_FILE_BYTES",
    "DEFAULT_MAX_TOTAL_BYTES",
    "IGNORED_DIRS",
    "STDIN_PATH",
    "ContextEntry",
    "ContextResult",
    "build_context",
    "expand_globs",
    "render_context",
    "truncate_utf8",
]
