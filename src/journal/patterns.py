"""Named pattern matchers for exported session transcripts.

Transcripts are line-oriented Markdown. Every structural decision the
normalizers make (where a turn starts, whether a line opens a fence, whether
a tool output is worth keeping) goes through one of the matchers here, so the
rules can be tested without the surrounding line-scanning loops.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

# Role labels used in turn headers
ROLE_USER = "User"
ROLE_ASSISTANT = "Assistant"
ROLE_TOOL_OUTPUT = "Tool Output"

FRONTMATTER_DELIMITER = "---"
SEPARATOR = "---"
TOOL_USE_MARKER = "🔧"

_TURN_HEADER_RE = re.compile(r"^### (\d+)\. (.+?) \((\d{2}:\d{2}:\d{2})\)$")
_FENCE_LINE_RE = re.compile(r"^\s*(`{3,}|~{3,})(.*)$")
_TOOL_USE_RE = re.compile(r"^🔧\s*(?:\*\*(.+?)\*\*|(.+))$")
_MARKDOWN_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_LIST_START_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\S")
_TABLE_ROW_RE = re.compile(r"^\s*\|.*\|\s*$")
_SETEXT_UNDERLINE_RE = re.compile(r"^\s*(?:=+|-+)\s*$")
_MULTIPART_RE = re.compile(r"-p\d+\.md$")
_BACKTICK_RUN_RE = re.compile(r"`+")

# Tags Claude Code injects into prompts; never useful in a title
CLAUDE_TAG_RE = re.compile(
    r"</?(?:command-message|command-name|command-args|local-command-stdout"
    r"|local-command-stderr|local-command-caveat|user-prompt-submit-hook"
    r"|bash-input|bash-stdout|bash-stderr)>"
)

NO_MATCHES = "No matches found"
FILE_UPDATED_PREFIX = "The file "
FILE_UPDATED_SUFFIX = "has been updated successfully."
HOOK_DENIED = "denied this tool"


class TurnHeaderMatch(BaseModel):
    """A ``### N. Role (HH:MM:SS)`` turn header."""

    model_config = ConfigDict(frozen=True)

    number: int
    role: str
    time: str

    @classmethod
    def parse(cls, line: str) -> TurnHeaderMatch | None:
        match = _TURN_HEADER_RE.match(line.strip())
        if match is None:
            return None
        return cls(number=int(match.group(1)), role=match.group(2), time=match.group(3))

    @property
    def is_tool_output(self) -> bool:
        return self.role == ROLE_TOOL_OUTPUT


class FenceLineMatch(BaseModel):
    """An opening or closing code fence line (3+ backticks or tildes)."""

    model_config = ConfigDict(frozen=True)

    marker: str
    info: str = ""

    @classmethod
    def parse(cls, line: str) -> FenceLineMatch | None:
        match = _FENCE_LINE_RE.match(line)
        if match is None:
            return None
        return cls(marker=match.group(1), info=match.group(2).strip())

    def closes(self, opening: FenceLineMatch) -> bool:
        """Whether this line closes a block opened by ``opening``.

        CommonMark rules: same fence character, at least as long, and no
        info string on the closing line.
        """
        return (
            self.marker[0] == opening.marker[0]
            and len(self.marker) >= len(opening.marker)
            and not self.info
        )


def is_turn_header(line: str) -> bool:
    return _TURN_HEADER_RE.match(line.strip()) is not None


def is_fence_line(line: str) -> bool:
    return _FENCE_LINE_RE.match(line) is not None


def match_heading(line: str) -> tuple[str, str] | None:
    """Return ``(hashes, text)`` for an ATX heading line."""
    match = _MARKDOWN_HEADING_RE.match(line)
    if match is None:
        return None
    return match.group(1), match.group(2)


def is_list_start(line: str) -> bool:
    return _LIST_START_RE.match(line) is not None


def is_table_row(line: str) -> bool:
    return _TABLE_ROW_RE.match(line) is not None


def is_setext_underline(line: str) -> bool:
    """A run of ``=`` or ``-`` that turns the line above it into a heading."""
    return _SETEXT_UNDERLINE_RE.match(line) is not None


def tool_use_name(line: str) -> str | None:
    """Return the tool/action label of a ``🔧 **Name**`` line, if it is one."""
    match = _TOOL_USE_RE.match(line.strip())
    if match is None:
        return None
    return (match.group(1) or match.group(2)).strip()


def is_multipart_continuation(filename: str) -> bool:
    """True for part 2+ of a split session (``...-p2.md``)."""
    return _MULTIPART_RE.search(filename) is not None


def longest_backtick_run(lines: list[str]) -> int:
    longest = 0
    for line in lines:
        for run in _BACKTICK_RUN_RE.findall(line):
            longest = max(longest, len(run))
    return longest


def is_boilerplate_tool_output(lines: list[str]) -> bool:
    """Detect tool output bodies that carry no information.

    Matches empty bodies, zero-result searches, edit confirmations, and hook
    denials. Non-blank lines are joined first because soft-wrapping can split
    a single confirmation over several lines.
    """
    non_blank = [line.strip() for line in lines if line.strip()]
    if not non_blank:
        return True

    joined = " ".join(non_blank)
    if joined == NO_MATCHES:
        return True
    if joined.startswith(FILE_UPDATED_PREFIX) and joined.endswith(FILE_UPDATED_SUFFIX):
        return True
    return HOOK_DENIED in joined
