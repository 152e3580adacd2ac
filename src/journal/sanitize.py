"""Read-only normalization of generated site pages.

These passes only ever touch the copy written to the site's ``docs/``
tree. Fence markers in raw exports are unreliable (nested, unclosed,
mismatched), so unless the sidecar says a file's fences were verified they
are dropped wholesale and every tool output is re-fenced from scratch.
User turns are fenced too, so whatever the user typed renders verbatim.
"""

from __future__ import annotations

import html
import re

from sessionpress.journal.frontmatter import frontmatter_line_count
from sessionpress.journal.normalize import (
    find_turn_boundary,
    join_turns,
    scan_turn_headers,
    split_turns,
    trim_blank_lines,
)
from sessionpress.journal.patterns import (
    CLAUDE_TAG_RE,
    ROLE_USER,
    SEPARATOR,
    FenceLineMatch,
    is_boilerplate_tool_output,
    is_fence_line,
    is_list_start,
    is_turn_header,
    longest_backtick_run,
    match_heading,
)

DEFAULT_MAX_TITLE_LEN = 75

PART_LABEL_PREFIX = "**Part "
INDENTED_CODE_PREFIX = "    "

_TOOL_BOLD_RE = re.compile(r"🔧\s*\*\*(.+?)\*\*")
_GLOB_STAR_RE = re.compile(r"(?<!\\)\*(\.\w+|[/)])")
_INLINE_CODE_RE = re.compile(r"(`[^`\n]*`)")
_INLINE_CODE_ANGLE_RE = re.compile(r"`([^`\n]*[<>][^`\n]*)`")

_EXPORT_WRAPPER_LINES = frozenset({"<details>", "</details>"})
_PRE_LINES = frozenset({"<pre>", "</pre>"})


def strip_fences(text: str, fences_verified: bool = False) -> str:
    """Drop every fence marker line outside the frontmatter.

    Files whose fences were verified in the sidecar come back unchanged.
    """
    if fences_verified:
        return text
    lines = text.split("\n")
    head = frontmatter_line_count(lines)
    body = [line for line in lines[head:] if not is_fence_line(line)]
    return "\n".join(lines[:head] + body)


def split_trailing_footer(body: list[str]) -> tuple[list[str], list[str]]:
    """Split a multi-part navigation footer (``---`` then ``**Part N of M**``) off the end."""
    sep_idx = None
    for j in range(len(body) - 1, -1, -1):
        if body[j].strip() == SEPARATOR:
            sep_idx = j
            break
    if sep_idx is None:
        return body, []
    if not any(line.strip().startswith(PART_LABEL_PREFIX) for line in body[sep_idx + 1 :]):
        return body, []

    cut = sep_idx
    while cut > 0 and not body[cut - 1].strip():
        cut -= 1
    return body[:cut], body[sep_idx:]


def strip_pre_wrapper(body: list[str]) -> list[str]:
    """Remove ``<details>``/``<summary>``/``<pre>`` export wrappers.

    Content inside ``<pre>`` was HTML-escaped by the exporter, so it is
    unescaped when a ``<pre>`` line was present.
    """
    inner: list[str] = []
    had_pre = False
    for line in body:
        stripped = line.strip()
        if stripped in _EXPORT_WRAPPER_LINES:
            continue
        if stripped in _PRE_LINES:
            had_pre = True
            continue
        if stripped.startswith("<summary>") and stripped.endswith("</summary>"):
            continue
        inner.append(line)
    if had_pre:
        inner = [html.unescape(line) for line in inner]
    return inner


def unwrap_outer_fence(lines: list[str]) -> list[str]:
    """Remove one fence pair enclosing the whole (blank-trimmed) body, if there is one."""
    if len(lines) < 2:
        return lines
    opening = FenceLineMatch.parse(lines[0])
    closing = FenceLineMatch.parse(lines[-1])
    if opening is None or closing is None or not closing.closes(opening):
        return lines
    for line in lines[1:-1]:
        inner = FenceLineMatch.parse(line)
        if inner is not None and inner.closes(opening):
            return lines
    return lines[1:-1]


def fence_block(lines: list[str]) -> list[str]:
    """Enclose ``lines`` in a backtick fence longer than any run inside them."""
    fence = "`" * max(3, longest_backtick_run(lines) + 1)
    return [fence, *lines, fence]


def wrap_tool_outputs(text: str) -> str:
    """Re-fence every Tool Output body and drop boilerplate ones.

    A trailing multi-part footer at end of file stays outside the fence so
    its navigation links keep working.
    """
    lines = text.split("\n")
    headers = scan_turn_headers(lines)
    by_index = dict(headers)
    out: list[str] = []
    i = 0

    while i < len(lines):
        header = by_index.get(i)
        if header is None or not header.is_tool_output:
            out.append(lines[i])
            i += 1
            continue

        header_line = lines[i]
        boundary = find_turn_boundary(headers, i + 1, header, len(lines))
        body = lines[i + 1 : boundary]
        footer: list[str] = []
        if boundary >= len(lines):
            body, footer = split_trailing_footer(body)
        i = boundary

        content = unwrap_outer_fence(trim_blank_lines(strip_pre_wrapper(body)))
        content = trim_blank_lines(content)
        if is_boilerplate_tool_output(content):
            out.extend(footer)
            continue

        out.append(header_line)
        out.append("")
        out.extend(fence_block(content))
        out.append("")
        out.extend(footer)

    return "\n".join(out)


def wrap_user_turns(text: str) -> str:
    """Fence every non-empty User turn body so it renders verbatim.

    User input carries stray fences, headings and HTML that would otherwise
    break the page. A body already enclosed by a single outer fence is left
    as it is; empty bodies pass through untouched. A trailing multi-part
    footer at end of file stays outside the fence.
    """
    preamble, turns = split_turns(text.split("\n"))
    for pos, turn in enumerate(turns):
        if turn.header.role != ROLE_USER:
            continue
        body, footer = turn.body, []
        if pos == len(turns) - 1:
            body, footer = split_trailing_footer(body)
        content = trim_blank_lines(body)
        if not content or unwrap_outer_fence(content) != content:
            continue
        turn.body = ["", *fence_block(content), "", *footer]
    return join_turns(preamble, turns)


def _truncate_heading(heading: str, max_len: int) -> str:
    if len(heading) <= max_len:
        return heading
    truncated = heading[:max_len]
    idx = truncated.rfind(" ")
    if idx > 0:
        truncated = truncated[:idx]
    return truncated.rstrip()


def _quote_angle_code(match: re.Match[str]) -> str:
    inner = match.group(1).replace("<", "&lt;").replace(">", "&gt;")
    return f'"{inner}"'


def _escape_globs(line: str) -> str:
    parts = _INLINE_CODE_RE.split(line)
    for idx in range(0, len(parts), 2):
        parts[idx] = _GLOB_STAR_RE.sub(r"\\*\1", parts[idx])
    return "".join(parts)


def _sanitize_line(line: str, max_title_len: int) -> str:
    if line.startswith("# "):
        # Escaping would push the title past max_title_len on the next run
        heading = CLAUDE_TAG_RE.sub("", line[2:]).strip()
        heading = " ".join(heading.split())
        return "# " + _truncate_heading(heading, max_title_len)

    heading_match = match_heading(line)
    if heading_match is not None and not is_turn_header(line):
        line = f"**{heading_match[1].strip().rstrip('#').strip()}**"

    line = _TOOL_BOLD_RE.sub(r"🔧 \1", line)
    line = _INLINE_CODE_ANGLE_RE.sub(_quote_angle_code, line)
    if not line.startswith(INDENTED_CODE_PREFIX):
        line = _escape_globs(line)
    return line


def sanitize_markdown(text: str, max_title_len: int = DEFAULT_MAX_TITLE_LEN) -> str:
    """Make a page safe for the static site renderer.

    Outside frontmatter and fenced blocks: the H1 loses Claude tags and is
    cut at a word boundary, other non-turn headings become bold text, list
    items get the blank line Python-Markdown needs, tool-use bold is
    flattened, glob stars are escaped and inline code containing angle
    brackets becomes quoted entities.
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

        if is_list_start(line) and len(out) > head:
            previous = out[-1]
            if previous.strip() and not is_list_start(previous) and not previous[:1].isspace():
                out.append("")

        out.append(_sanitize_line(line, max_title_len))

    return "\n".join(out)


def normalize_site_content(
    text: str,
    fences_verified: bool = False,
    max_title_len: int = DEFAULT_MAX_TITLE_LEN,
) -> str:
    """Full read-only chain: strip fences, re-fence tool output and user turns, sanitize."""
    text = strip_fences(text, fences_verified)
    text = wrap_tool_outputs(text)
    text = wrap_user_turns(text)
    return sanitize_markdown(text, max_title_len)
