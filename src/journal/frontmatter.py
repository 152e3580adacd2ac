"""Frontmatter extraction with line-scan fallback.

Enriched entries start with a YAML block delimited by ``---`` lines. Raw
exports have no such block and carry their metadata as labelled Markdown
lines instead (``# Title``, ``**Time**: ...``, ``**Project**: ...``).
"""

from __future__ import annotations

import logging
import re

import yaml
from pydantic import ValidationError

from sessionpress.journal.models import Frontmatter
from sessionpress.journal.patterns import CLAUDE_TAG_RE, FRONTMATTER_DELIMITER

logger = logging.getLogger(__name__)

H1_PREFIX = "# "
TIME_LABEL = "**Time**:"
PROJECT_LABEL = "**Project**:"

_UNQUOTED_CLOCK_RE = re.compile(r"^time:[ \t]*(\d{1,2}):(\d{2})(?::(\d{2}))?[ \t]*$", re.MULTILINE)


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split ``text`` into its raw frontmatter block and the rest.

    The block must open on line 1 with a bare ``---`` and close on a later
    ``---`` line. Returns ``(None, text)`` when there is no complete block.
    The body is always a suffix of ``text``, so
    ``text[: len(text) - len(body)]`` is the block including delimiters.
    """
    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != FRONTMATTER_DELIMITER:
        return None, text

    for i in range(1, len(lines)):
        if lines[i].rstrip("\r") == FRONTMATTER_DELIMITER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])
    return None, text


def frontmatter_line_count(lines: list[str]) -> int:
    """Number of leading lines (delimiters included) that form the frontmatter."""
    if not lines or lines[0].rstrip("\r") != FRONTMATTER_DELIMITER:
        return 0
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r") == FRONTMATTER_DELIMITER:
            return i + 1
    return 0


def frontmatter_length(text: str) -> int:
    """Number of leading characters occupied by the frontmatter block (0 if none)."""
    raw, body = split_frontmatter(text)
    if raw is None:
        return 0
    return len(text) - len(body)


def parse_frontmatter(text: str) -> Frontmatter | None:
    """Parse the leading YAML block of ``text``.

    Absent blocks, YAML errors, non-mapping documents and values that fail
    validation all return ``None`` so callers fall back to line scanning.
    """
    raw, _ = split_frontmatter(text)
    if raw is None:
        return None
    return parse_frontmatter_block(raw)


def parse_frontmatter_block(raw: str) -> Frontmatter | None:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        logger.debug("Unparseable frontmatter: %s", exc)
        return None
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("time"), int):
        clock = _unquoted_clock(raw)
        if clock is not None:
            data["time"] = clock
    try:
        return Frontmatter.model_validate(data)
    except ValidationError as exc:
        logger.debug("Invalid frontmatter fields: %s", exc)
        return None


def _unquoted_clock(raw: str) -> str | None:
    """Recover ``HH:MM[:SS]`` from a block where YAML read the time as base 60.

    ``14:30`` loads as 870, which reads the same as 14 minutes 30 seconds, so
    the literal decides.
    """
    match = _UNQUOTED_CLOCK_RE.search(raw)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return f"{int(hours):02d}:{minutes}:{seconds or '00'}"


def scan_metadata_lines(
    text: str,
    *,
    title: str = "",
    time: str = "",
    project: str = "",
) -> tuple[str, str, str]:
    """Fill in title, time and project from labelled lines.

    Values passed in (typically from frontmatter) are never overwritten.
    Scanning stops as soon as all three are known.
    """
    for raw_line in text.split("\n"):
        if title and time and project:
            break
        line = raw_line.strip()
        if not title and line.startswith(H1_PREFIX):
            title = line[len(H1_PREFIX) :].strip()
        elif not time and line.startswith(TIME_LABEL):
            time = line[len(TIME_LABEL) :].strip()
        elif not project and line.startswith(PROJECT_LABEL):
            project = line[len(PROJECT_LABEL) :].strip()
    return title, time, project


def sanitize_title(title: str) -> str:
    """Make a title safe to use as Markdown link text."""
    title = CLAUDE_TAG_RE.sub("", title).strip()
    title = title.replace("<", "&lt;").replace(">", "&gt;")
    title = title.replace("`", "").replace("#", "")
    return title.strip()
