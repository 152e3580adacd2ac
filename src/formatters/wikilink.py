"""Markdown link to Obsidian wikilink conversion."""

from __future__ import annotations

import re

from sessionpress.journal.models import MARKDOWN_EXT, JournalEntry

_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

EXTERNAL_PREFIXES = ("http://", "https://", "file://", "mailto:")


def format_wikilink(target: str, display: str = "") -> str:
    """``[[target|display]]``, or ``[[target]]`` when the two are the same."""
    if not display or display == target:
        return f"[[{target}]]"
    return f"[[{target}|{display}]]"


def format_wikilink_entry(entry: JournalEntry) -> str:
    """List item for an entry: ``- [[stem|Title]] — `type` · `outcome```."""
    line = f"- {format_wikilink(entry.slug, entry.title)}"
    meta = [f"`{value}`" for value in (entry.type, entry.outcome) if value]
    if meta:
        line += " — " + " · ".join(meta)
    return line


def _link_target(target: str) -> str:
    name = target.rsplit("/", 1)[-1]
    return name.removesuffix(MARKDOWN_EXT)


def _replace_link(match: re.Match[str]) -> str:
    display, target = match.group(1), match.group(2)
    if target.startswith(EXTERNAL_PREFIXES):
        return match.group(0)
    return format_wikilink(_link_target(target), display)


def convert_markdown_links(text: str) -> str:
    """Rewrite internal ``[text](path/file.md)`` links as wikilinks.

    External targets (web, file and mail URLs) are left as Markdown links.
    """
    return _MARKDOWN_LINK_RE.sub(_replace_link, text)
