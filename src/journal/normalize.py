"""Source normalization passes for exported transcripts.

Each pass is a pure ``str -> str`` function and is safe to run on its own
output. ``NORMALIZE_PASSES`` fixes their order; ``run_passes`` composes them.
The site pipeline writes the result back to the journal file, the vault
pipeline only reads it.
"""

from __future__ import annotations

import functools
import logging
import textwrap
from collections.abc import Callable, Iterable

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from sessionpress.journal.frontmatter import frontmatter_line_count
from sessionpress.journal.patterns import (
    FenceLineMatch,
    TurnHeaderMatch,
    is_fence_line,
    is_list_start,
    is_setext_underline,
    is_table_row,
    match_heading,
    tool_use_name,
)

logger = logging.getLogger(__name__)

DEFAULT_WRAP_WIDTH = 80
CONSOLIDATE_MIN_RUN = 3

REMINDER_OPEN = "<system-reminder>"
REMINDER_CLOSE = "</system-reminder>"
BOLD_REMINDER_LABEL = "**System Reminder**"
COMPACTION_OPEN = "<summary>"
COMPACTION_CLOSE = "</summary>"
COMPACTION_BOILERPLATE = "If you need specific details from before compaction"

TextPass = Callable[[str], str]


class Turn(BaseModel):
    """One conversational turn: its header line and the body below it."""

    header_line: str
    header: TurnHeaderMatch
    body: list[str]

    def trimmed_body(self) -> list[str]:
        return trim_blank_lines(self.body)


class _ContentBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: str


_CONTENT_BLOCKS = TypeAdapter(list[_ContentBlock])


def trim_blank_lines(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def scan_turn_headers(lines: list[str]) -> list[tuple[int, TurnHeaderMatch]]:
    """Every line that looks like a turn header, with its index."""
    headers = []
    for idx, line in enumerate(lines):
        header = TurnHeaderMatch.parse(line)
        if header is not None:
            headers.append((idx, header))
    return headers


def find_turn_boundary(
    headers: list[tuple[int, TurnHeaderMatch]],
    start: int,
    current: TurnHeaderMatch,
    end: int,
) -> int:
    """Index of the header that ends the turn whose body starts at ``start``.

    The real next turn carries the smallest number above ``current`` found
    anywhere in the document. Quoted transcripts can repeat that number
    inside the body, so the last occurrence wins, preferring occurrences not
    earlier in the day than ``current``. Fence markers play no part: they
    are too often nested or unbalanced in exports. Returns ``end`` when no
    later turn exists.
    """
    later = [header.number for _, header in headers if header.number > current.number]
    if not later:
        return end
    expected = min(later)

    candidates = [
        (idx, header) for idx, header in headers if idx >= start and header.number == expected
    ]
    if not candidates:
        return end
    same_day = [idx for idx, header in candidates if header.time >= current.time]
    if same_day:
        return same_day[-1]
    # Session crossed midnight
    return candidates[0][0]


def split_turns(lines: list[str]) -> tuple[list[str], list[Turn]]:
    """Split transcript lines into a preamble and a list of turns.

    The first header opens the first turn; each following turn starts at
    ``find_turn_boundary``. Header-looking lines that do not fit the
    numbering stay in the body they appear in.
    """
    headers = scan_turn_headers(lines)
    if not headers:
        return list(lines), []
    i = headers[0][0]

    by_index = dict(headers)
    preamble = list(lines[:i])
    turns: list[Turn] = []
    while i < len(lines):
        header = by_index[i]
        boundary = find_turn_boundary(headers, i + 1, header, len(lines))
        turns.append(Turn(header_line=lines[i], header=header, body=list(lines[i + 1 : boundary])))
        i = boundary

    return preamble, turns


def join_turns(preamble: list[str], turns: Iterable[Turn]) -> str:
    out = list(preamble)
    for turn in turns:
        out.append(turn.header_line)
        out.extend(turn.body)
    return "\n".join(out)


def strip_system_reminders(text: str) -> str:
    """Remove internal reminder and compaction blocks.

    Handles ``<system-reminder>`` blocks (an unclosed block runs to the end
    of the file), ``**System Reminder**`` paragraphs, standalone multi-line
    ``<summary>`` compaction summaries and the compaction boilerplate
    paragraph. A one-line ``<summary>...</summary>`` is ordinary content.
    """
    out: list[str] = []
    closing: str | None = None
    in_paragraph = False

    for line in text.split("\n"):
        stripped = line.strip()

        if closing is not None:
            if closing in stripped:
                closing = None
            continue
        if in_paragraph:
            if not stripped:
                in_paragraph = False
            continue

        if stripped.startswith(REMINDER_OPEN):
            if REMINDER_CLOSE not in stripped:
                closing = REMINDER_CLOSE
            continue
        if stripped == COMPACTION_OPEN:
            closing = COMPACTION_CLOSE
            continue
        if stripped.startswith(BOLD_REMINDER_LABEL) or stripped.startswith(
            COMPACTION_BOILERPLATE
        ):
            in_paragraph = True
            continue

        out.append(line)

    return "\n".join(out)


def _json_content_text(body: list[str]) -> list[str] | None:
    joined = " ".join(
        line.strip() for line in body if line.strip() and not is_fence_line(line)
    )
    if not joined.startswith("[{"):
        return None
    try:
        blocks = _CONTENT_BLOCKS.validate_json(joined)
    except ValidationError:
        logger.debug("Tool output looks like JSON but does not parse; leaving as is")
        return None
    if not blocks:
        return None
    return [block.text for block in blocks]


def clean_tool_output_json(text: str) -> str:
    """Unwrap ``[{"type": "text", "text": ...}]`` tool output bodies."""
    preamble, turns = split_turns(text.split("\n"))
    changed = False
    for turn in turns:
        if not turn.header.is_tool_output:
            continue
        texts = _json_content_text(turn.body)
        if texts is None:
            continue
        turn.body = ["", *texts, ""]
        changed = True
    return join_turns(preamble, turns) if changed else text


def _tool_signature(turn: Turn) -> tuple[str, str] | None:
    if turn.header.is_tool_output:
        return turn.header.role, ""
    body = turn.trimmed_body()
    if not body:
        return None
    name = tool_use_name(body[0])
    if name is None:
        return None
    return turn.header.role, name


def _annotate_count(body: list[str], count: int) -> list[str]:
    marker = f"(×{count})"
    annotated = list(body)
    for i in range(len(annotated) - 1, -1, -1):
        line = annotated[i]
        if line.strip() and not is_fence_line(line):
            annotated[i] = f"{line.rstrip()} {marker}"
            return annotated
    return [*annotated, marker, ""]


def consolidate_tool_runs(text: str) -> str:
    """Collapse 3+ consecutive identical tool turns into one with a ``(×N)`` count.

    Turns qualify when they are Tool Output turns or start with a tool-use
    line, share the same role and tool label, and have byte-identical bodies.
    The count goes on the last body line that is not a fence marker.
    """
    preamble, turns = split_turns(text.split("\n"))
    result: list[Turn] = []
    changed = False
    i = 0
    while i < len(turns):
        first = turns[i]
        signature = _tool_signature(first)
        j = i + 1
        if signature is not None:
            body = first.trimmed_body()
            while (
                j < len(turns)
                and _tool_signature(turns[j]) == signature
                and turns[j].trimmed_body() == body
            ):
                j += 1
        run = j - i
        if run >= CONSOLIDATE_MIN_RUN:
            first.body = _annotate_count(first.body, run)
            result.append(first)
            changed = True
            i = j
        else:
            result.extend(turns[i:j])
            i = j
    return join_turns(preamble, result) if changed else text


def merge_consecutive_turns(text: str) -> str:
    """Drop the header of any turn whose role repeats the previous turn's."""
    preamble, turns = split_turns(text.split("\n"))
    out = list(preamble)
    previous_role: str | None = None
    changed = False
    for turn in turns:
        if turn.header.role == previous_role:
            changed = True
        else:
            out.append(turn.header_line)
        out.extend(turn.body)
        previous_role = turn.header.role
    return "\n".join(out) if changed else text


def _wrappable(line: str, width: int) -> bool:
    if len(line) <= width:
        return False
    stripped = line.lstrip()
    indent = len(line) - len(stripped)
    if indent >= 4 or line.startswith("\t"):
        return False
    if match_heading(stripped) is not None or is_table_row(line):
        return False
    if stripped.startswith("<"):
        return False
    return " " in stripped.strip()


def soft_wrap_content(text: str, width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Wrap long prose lines at word boundaries.

    Frontmatter, fenced blocks, headings, table rows, HTML lines and
    indented code are left alone. Continuation lines keep the original
    leading indentation.
    """
    lines = text.split("\n")
    head = frontmatter_line_count(lines)
    out: list[str] = lines[:head]
    fence: FenceLineMatch | None = None

    for line in lines[head:]:
        fence_match = FenceLineMatch.parse(line)
        if fence is not None:
            if fence_match is not None and fence_match.closes(fence):
                fence = None
            out.append(line)
            continue
        if fence_match is not None:
            fence = fence_match
            out.append(line)
            continue

        if not _wrappable(line, width):
            out.append(line)
            continue

        indent = line[: len(line) - len(line.lstrip())]
        wrapped = textwrap.wrap(
            line.strip(),
            width=width,
            initial_indent=indent,
            subsequent_indent=indent,
            break_long_words=False,
            break_on_hyphens=False,
        )
        if _breaks_structure(wrapped):
            out.append(line)
        else:
            out.extend(wrapped)

    return "\n".join(out)


def _breaks_structure(wrapped: list[str]) -> bool:
    """True when wrapping would strand a list marker or start a new block.

    A continuation line must not read as a heading, list item, quote, fence,
    setext underline, table row or HTML block, or the next pass would parse
    a different document.
    """
    if len(wrapped) < 2:
        return True
    if is_list_start(wrapped[0] + " x") and not is_list_start(wrapped[0]):
        return True
    for continuation in wrapped[1:]:
        stripped = continuation.lstrip()
        if (
            match_heading(stripped) is not None
            or is_list_start(stripped)
            or is_fence_line(stripped)
            or is_setext_underline(stripped)
            or is_table_row(stripped)
            or stripped.startswith((">", "<"))
        ):
            return True
    return False


NORMALIZE_PASSES: tuple[TextPass, ...] = (
    strip_system_reminders,
    clean_tool_output_json,
    consolidate_tool_runs,
    merge_consecutive_turns,
    soft_wrap_content,
)


def run_passes(text: str, passes: Iterable[TextPass]) -> str:
    """Apply ``passes`` to ``text`` in order."""
    return functools.reduce(lambda acc, step: step(acc), passes, text)


def source_passes(wrap_width: int = DEFAULT_WRAP_WIDTH) -> tuple[TextPass, ...]:
    """The normalization chain with the wrap width bound."""
    if wrap_width == DEFAULT_WRAP_WIDTH:
        return NORMALIZE_PASSES
    return (
        *NORMALIZE_PASSES[:-1],
        functools.partial(soft_wrap_content, width=wrap_width),
    )


def normalize_source(text: str, wrap_width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Run the full source normalization chain."""
    return run_passes(text, source_passes(wrap_width))
