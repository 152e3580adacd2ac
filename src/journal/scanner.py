"""Journal directory scanning."""

from __future__ import annotations

import logging
from pathlib import Path

from sessionpress.errors import PipelineReport
from sessionpress.journal.frontmatter import (
    parse_frontmatter,
    sanitize_title,
    scan_metadata_lines,
)
from sessionpress.journal.models import DATE_PREFIX_LEN, MARKDOWN_EXT, JournalEntry

logger = logging.getLogger(__name__)

SUGGESTION_MARKER = "SUGGESTION MODE:"

STAGE = "scan"


def decode_entry(data: bytes) -> tuple[str, bool]:
    """Decode session bytes as UTF-8.

    The flag is False when invalid bytes had to be replaced with U+FFFD; such
    text must never be written back over the source.
    """
    try:
        return data.decode("utf-8"), True
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="replace"), False


def read_entry_text(path: Path) -> tuple[str, int]:
    """Read a session file, returning its text and byte length."""
    data = path.read_bytes()
    text, _ = decode_entry(data)
    return text, len(data)


def parse_journal_entry(path: Path, report: PipelineReport | None = None) -> JournalEntry:
    """Build a JournalEntry for one session file.

    An unreadable file still yields an entry (title from the filename, size 0)
    so one bad file never hides the rest of the journal.
    """
    filename = path.name
    entry = JournalEntry(filename=filename, path=path)
    if len(filename) >= DATE_PREFIX_LEN:
        entry.date = filename[:DATE_PREFIX_LEN]

    try:
        text, size = read_entry_text(path)
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
        if report is not None:
            report.add_error(STAGE, str(exc), source=filename, error_type="read_error")
        entry.title = filename.removesuffix(MARKDOWN_EXT)
        return entry

    entry.size = size

    fm = parse_frontmatter(text)
    title = time = project = ""
    if fm is not None:
        title, time, project = fm.title, fm.time, fm.project
        entry.session_id = fm.session_id
        entry.topics = fm.topics
        entry.type = fm.type
        entry.outcome = fm.outcome
        entry.key_files = fm.key_files
        entry.summary = fm.summary

    entry.suggestive = SUGGESTION_MARKER in text

    title, time, project = scan_metadata_lines(
        text, title=title, time=time, project=project
    )
    entry.time = time
    entry.project = project

    entry.title = sanitize_title(title or filename.removesuffix(MARKDOWN_EXT))
    if not entry.title:
        entry.title = filename.removesuffix(MARKDOWN_EXT)
    return entry


def scan_journal_entries(
    journal_dir: Path, report: PipelineReport | None = None
) -> list[JournalEntry]:
    """Scan ``journal_dir`` for ``*.md`` session files.

    Entries come back newest first, compared as ``"date time"`` strings so
    malformed dates sort lexically instead of raising.
    """
    entries = [
        parse_journal_entry(path, report)
        for path in sorted(journal_dir.iterdir())
        if path.suffix == MARKDOWN_EXT and path.is_file()
    ]
    entries.sort(key=lambda e: e.sort_key, reverse=True)
    if report is not None:
        report.items_processed["entries"] = len(entries)
        report.mark_stage_complete(STAGE)
    return entries
