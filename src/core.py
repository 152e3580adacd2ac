"""Pipeline orchestration: journal directory in, site or vault tree out."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from collections.abc import Iterable
from pathlib import Path

from sessionpress.config import SessionpressConfig
from sessionpress.errors import (
    JournalDirNotFoundError,
    NoJournalEntriesError,
    PipelineReport,
    SiteToolNotFoundError,
    UnknownStageError,
)
from sessionpress.formatters.obsidian import (
    APP_CONFIG_DIR,
    APP_CONFIG_FILE,
    ENTRIES_DIR,
    FILES_MOC,
    HOME_NOTE,
    TOPICS_MOC,
    TYPES_MOC,
    ObsidianFormatter,
)
from sessionpress.formatters.site import (
    FILES_DIR,
    INDEX_FILENAME,
    SOURCE_DIR,
    TOPICS_DIR,
    TYPES_DIR,
    SiteFormatter,
    inject_source_link,
    inject_summary,
)
from sessionpress.formatters.templates import OBSIDIAN_APP_CONFIG
from sessionpress.journal.index import (
    build_key_file_index,
    build_topic_index,
    build_topic_lookup,
    build_type_index,
    filter_entries_with_key_files,
    filter_entries_with_topics,
    filter_entries_with_type,
    filter_regular_entries,
    key_file_slug,
)
from sessionpress.journal.models import MARKDOWN_EXT, JournalEntry
from sessionpress.journal.normalize import normalize_source
from sessionpress.journal.sanitize import normalize_site_content
from sessionpress.journal.scanner import decode_entry, scan_journal_entries
from sessionpress.journal.state import VALID_STAGES, JournalState

logger = logging.getLogger(__name__)

SITE_STAGE = "site"
VAULT_STAGE = "vault"
DOCS_DIR = "docs"
README_FILENAME = "README.md"
ZENSICAL_TOML = "zensical.toml"
SITE_TOOL = "zensical"


def _atomic_write(target: Path, text: str) -> None:
    """Write ``text`` to ``target`` through a temp file in the same directory.

    On failure the temp file is removed and ``target`` keeps its old content.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _write_output(path: Path, text: str, report: PipelineReport, stage: str) -> bool:
    """Write one generated page; a failure is recorded and the run goes on."""
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to write %s: %s", path, exc)
        report.add_error(stage, str(exc), source=str(path), error_type="write_error")
        return False
    report.record_output(path)
    return True


def _read_entry(
    entry: JournalEntry, report: PipelineReport, stage: str
) -> tuple[str, bool] | None:
    """Entry text plus whether it decoded without replacement characters."""
    try:
        data = entry.path.read_bytes()
    except OSError as exc:
        logger.warning("Failed to read %s: %s", entry.path, exc)
        report.add_error(stage, str(exc), source=entry.filename, error_type="read_error")
        return None
    return decode_entry(data)


def _write_section(
    section_dir: Path,
    index_path: Path,
    index_text: str,
    pages: Iterable[tuple[str, str]],
    report: PipelineReport,
    stage: str,
) -> None:
    section_dir.mkdir(parents=True, exist_ok=True)
    _write_output(index_path, index_text, report, stage)
    for filename, text in pages:
        _write_output(section_dir / filename, text, report, stage)


def _load_entries(
    journal_dir: Path, report: PipelineReport
) -> list[JournalEntry]:
    if not journal_dir.is_dir():
        raise JournalDirNotFoundError(journal_dir)
    entries = scan_journal_entries(journal_dir, report)
    if not entries:
        raise NoJournalEntriesError(journal_dir)
    return entries


def generate_site(
    journal_dir: Path,
    output: Path,
    *,
    config: SessionpressConfig | None = None,
    report: PipelineReport | None = None,
) -> PipelineReport:
    """Build the zensical site tree under ``output``.

    Each journal file is run through the normalizer chain and written back
    in place when that changes it; the site copy additionally gets a source
    link, its summary and the site-only sanitizing passes.

    Raises:
        JournalDirNotFoundError: ``journal_dir`` does not exist.
        NoJournalEntriesError: no ``*.md`` entries were found.
    """
    config = config or SessionpressConfig()
    report = report or PipelineReport()
    entries = _load_entries(journal_dir, report)
    state = JournalState.load(journal_dir)

    formatter = SiteFormatter(
        site_name=config.site.site_name,
        max_recent_sessions=config.site.max_recent_sessions,
        max_nav_title_len=config.site.max_nav_title_len,
    )
    docs_dir = output / DOCS_DIR
    docs_dir.mkdir(parents=True, exist_ok=True)

    _write_output(
        output / README_FILENAME, formatter.format_readme(journal_dir, output), report, SITE_STAGE
    )

    pages = 0
    for entry in entries:
        read = _read_entry(entry, report, SITE_STAGE)
        if read is None:
            continue
        text, clean = read

        normalized = normalize_source(text, config.normalize.wrap_width)
        on_disk = True
        if normalized != text and not clean:
            logger.warning("Not rewriting %s: it is not valid UTF-8", entry.path)
            report.add_error(
                SITE_STAGE,
                "invalid UTF-8, source left unnormalized",
                source=entry.filename,
                error_type="decode_error",
            )
            on_disk = False
        elif normalized != text:
            try:
                _atomic_write(entry.path, normalized)
            except OSError as exc:
                logger.warning("Failed to rewrite %s: %s", entry.path, exc)
                report.add_error(
                    SITE_STAGE, str(exc), source=entry.filename, error_type="write_error"
                )
                on_disk = False
            else:
                logger.debug("Normalized %s in place", entry.filename)
        if on_disk and not state.is_normalized(entry.filename):
            state.mark_normalized(entry.filename)

        page = inject_summary(inject_source_link(normalized, entry.path), entry.summary)
        page = normalize_site_content(
            page,
            fences_verified=state.is_fences_verified(entry.filename),
            max_title_len=config.normalize.max_title_len,
        )
        if _write_output(docs_dir / entry.filename, page, report, SITE_STAGE):
            pages += 1

    _write_output(docs_dir / INDEX_FILENAME, formatter.format_index(entries), report, SITE_STAGE)

    topics = build_topic_index(filter_entries_with_topics(entries))
    key_files = build_key_file_index(filter_entries_with_key_files(entries))
    types = build_type_index(filter_entries_with_type(entries))

    if topics:
        _write_section(
            docs_dir / TOPICS_DIR,
            docs_dir / TOPICS_DIR / INDEX_FILENAME,
            formatter.format_topics_index(topics),
            ((t.name + MARKDOWN_EXT, formatter.format_topic_page(t)) for t in topics if t.popular),
            report,
            SITE_STAGE,
        )
    if key_files:
        _write_section(
            docs_dir / FILES_DIR,
            docs_dir / FILES_DIR / INDEX_FILENAME,
            formatter.format_files_index(key_files),
            (
                (key_file_slug(kf.path) + MARKDOWN_EXT, formatter.format_file_page(kf))
                for kf in key_files
                if kf.popular
            ),
            report,
            SITE_STAGE,
        )
    if types:
        _write_section(
            docs_dir / TYPES_DIR,
            docs_dir / TYPES_DIR / INDEX_FILENAME,
            formatter.format_types_index(types),
            ((t.name + MARKDOWN_EXT, formatter.format_type_page(t)) for t in types if t.popular),
            report,
            SITE_STAGE,
        )

    _write_output(
        output / ZENSICAL_TOML,
        formatter.format_zensical_toml(entries, topics, key_files, types),
        report,
        SITE_STAGE,
    )

    _save_state(state, journal_dir, report, SITE_STAGE)

    report.items_processed["pages"] = pages
    report.mark_stage_complete(SITE_STAGE)
    report.finish()
    logger.info("Generated site with %d entries in %s", len(entries), output)
    logger.debug("%s", report.summary_text())
    return report


def generate_vault(
    journal_dir: Path,
    output: Path,
    *,
    config: SessionpressConfig | None = None,
    report: PipelineReport | None = None,
) -> PipelineReport:
    """Build an Obsidian vault under ``output``.

    Journal files are normalized in memory only; the vault never writes
    back to the journal.

    Raises:
        JournalDirNotFoundError: ``journal_dir`` does not exist.
        NoJournalEntriesError: no ``*.md`` entries were found.
    """
    config = config or SessionpressConfig()
    report = report or PipelineReport()
    entries = _load_entries(journal_dir, report)

    formatter = ObsidianFormatter(
        max_related=config.vault.max_related,
        max_recent_sessions=config.vault.max_recent_sessions,
    )
    entries_dir = output / ENTRIES_DIR
    app_dir = output / APP_CONFIG_DIR
    for directory in (output, entries_dir, app_dir):
        directory.mkdir(parents=True, exist_ok=True)

    _write_output(app_dir / APP_CONFIG_FILE, OBSIDIAN_APP_CONFIG, report, VAULT_STAGE)
    _write_output(output / README_FILENAME, formatter.format_readme(journal_dir), report, VAULT_STAGE)

    topic_entries = filter_entries_with_topics(entries)
    topics = build_topic_index(topic_entries)
    key_files = build_key_file_index(filter_entries_with_key_files(entries))
    types = build_type_index(filter_entries_with_type(entries))
    topic_lookup = build_topic_lookup(topic_entries)

    pages = 0
    for entry in entries:
        read = _read_entry(entry, report, VAULT_STAGE)
        if read is None:
            continue
        text, _ = read
        normalized = normalize_source(text, config.normalize.wrap_width)
        page = formatter.format_entry(
            normalized, entry, topic_lookup, f"{SOURCE_DIR}/{entry.filename}"
        )
        if _write_output(entries_dir / entry.filename, page, report, VAULT_STAGE):
            pages += 1

    if topics:
        _write_section(
            output / TOPICS_DIR,
            output / (TOPICS_MOC + MARKDOWN_EXT),
            formatter.format_topics_moc(topics),
            ((t.name + MARKDOWN_EXT, formatter.format_topic_page(t)) for t in topics if t.popular),
            report,
            VAULT_STAGE,
        )
    if key_files:
        _write_section(
            output / FILES_DIR,
            output / (FILES_MOC + MARKDOWN_EXT),
            formatter.format_files_moc(key_files),
            (
                (key_file_slug(kf.path) + MARKDOWN_EXT, formatter.format_file_page(kf))
                for kf in key_files
                if kf.popular
            ),
            report,
            VAULT_STAGE,
        )
    if types:
        _write_section(
            output / TYPES_DIR,
            output / (TYPES_MOC + MARKDOWN_EXT),
            formatter.format_types_moc(types),
            ((t.name + MARKDOWN_EXT, formatter.format_type_page(t)) for t in types if t.popular),
            report,
            VAULT_STAGE,
        )

    home = formatter.format_home(
        filter_regular_entries(entries), bool(topics), bool(key_files), bool(types)
    )
    _write_output(output / (HOME_NOTE + MARKDOWN_EXT), home, report, VAULT_STAGE)

    report.items_processed["pages"] = pages
    report.mark_stage_complete(VAULT_STAGE)
    report.finish()
    logger.info("Generated Obsidian vault with %d entries in %s", len(entries), output)
    logger.debug("%s", report.summary_text())
    return report


def _save_state(state: JournalState, journal_dir: Path, report: PipelineReport, stage: str) -> None:
    try:
        state.save(journal_dir)
    except OSError as exc:
        logger.warning("Failed to save journal state in %s: %s", journal_dir, exc)
        report.add_error(stage, str(exc), source=str(journal_dir), error_type="state_error")


def run_site_tool(output: Path, command: str) -> int:
    """Run ``zensical <command>`` (``build`` or ``serve``) inside ``output``.

    Returns the tool's exit code.

    Raises:
        SiteToolNotFoundError: ``zensical`` is not on ``PATH``.
    """
    binary = shutil.which(SITE_TOOL)
    if binary is None:
        raise SiteToolNotFoundError(SITE_TOOL)
    logger.info("Running %s %s in %s", SITE_TOOL, command, output)
    result = subprocess.run([binary, command], cwd=output, check=False)
    return result.returncode


def mark_stage(journal_dir: Path, filename: str, stage: str) -> str:
    """Record ``stage`` as done today for ``filename`` and persist the sidecar.

    Returns the stored date.
    """
    if stage not in VALID_STAGES:
        raise UnknownStageError(stage, VALID_STAGES)
    if not journal_dir.is_dir():
        raise JournalDirNotFoundError(journal_dir)
    state = JournalState.load(journal_dir)
    state.mark(filename, stage)
    state.save(journal_dir)
    return state.stage_value(filename, stage)


def stage_value(journal_dir: Path, filename: str, stage: str) -> str:
    """The stored completion date for ``stage`` of ``filename``, or ``""``."""
    if stage not in VALID_STAGES:
        raise UnknownStageError(stage, VALID_STAGES)
    if not journal_dir.is_dir():
        raise JournalDirNotFoundError(journal_dir)
    return JournalState.load(journal_dir).stage_value(filename, stage)
