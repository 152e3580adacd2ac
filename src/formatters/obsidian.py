"""Obsidian vault formatter.

Entry pages get Obsidian-flavoured frontmatter, wikilinks in place of
Markdown links and a "Related Sessions" footer. Hub pages (MOCs) tie the
entries together by topic, touched file and session type.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from sessionpress.formatters.templates import VAULT_README
from sessionpress.formatters.wikilink import (
    convert_markdown_links,
    format_wikilink,
    format_wikilink_entry,
)
from sessionpress.journal.frontmatter import split_frontmatter
from sessionpress.journal.index import (
    count_unique_sessions,
    group_by_month,
    key_file_slug,
    split_popular,
)
from sessionpress.journal.models import JournalEntry, KeyFileData, TopicData, TypeData
from sessionpress.journal.patterns import FRONTMATTER_DELIMITER

logger = logging.getLogger(__name__)

DEFAULT_MAX_RELATED = 5

HOME_NOTE = "Home"
TOPICS_MOC = "_Topics"
FILES_MOC = "_Key Files"
TYPES_MOC = "_Session Types"
ENTRIES_DIR = "entries"
APP_CONFIG_DIR = ".obsidian"
APP_CONFIG_FILE = "app.json"

_STRING_FIELDS = ("title", "date", "type", "outcome")
_LIST_FIELDS = (("topics", "tags"), ("technologies", "technologies"), ("key_files", "key_files"))


def _string_list(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return []


def transform_frontmatter(content: str, source_path: str) -> str:
    """Rewrite the YAML block for Obsidian.

    ``topics`` becomes ``tags``, the title is added as an alias and
    ``source_file`` points back at the journal copy. Content without a
    parseable block is returned unchanged.
    """
    raw, body = split_frontmatter(content)
    if raw is None:
        return content
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        logger.debug("Leaving unparseable frontmatter as is: %s", exc)
        return content
    if not isinstance(data, dict):
        return content

    out: dict[str, object] = {}
    for key in _STRING_FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            out[key] = value
        elif key in ("title", "date"):
            out[key] = "" if value is None else str(value)

    for src, dst in _LIST_FIELDS:
        values = _string_list(data.get(src))
        if values:
            out[dst] = values

    if out.get("title"):
        out["aliases"] = [out["title"]]
    if source_path:
        out["source_file"] = source_path

    dumped = yaml.safe_dump(out, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"{FRONTMATTER_DELIMITER}\n{dumped}{FRONTMATTER_DELIMITER}\n{body}"


def collect_related(
    entry: JournalEntry,
    topic_index: dict[str, list[JournalEntry]],
    max_related: int = DEFAULT_MAX_RELATED,
) -> list[JournalEntry]:
    """Other entries sharing topics with ``entry``, most shared topics first.

    Ties break on filename. The entry itself is never included.
    """
    scores: dict[str, int] = {}
    candidates: dict[str, JournalEntry] = {}
    for topic in dict.fromkeys(entry.topics):
        for other in topic_index.get(topic, []):
            if other.filename == entry.filename:
                continue
            scores[other.filename] = scores.get(other.filename, 0) + 1
            candidates[other.filename] = other

    ranked = sorted(candidates, key=lambda name: (-scores[name], name))
    return [candidates[name] for name in ranked[:max_related]]


def generate_related_footer(
    entry: JournalEntry,
    topic_index: dict[str, list[JournalEntry]],
    max_related: int = DEFAULT_MAX_RELATED,
) -> str:
    """Footer linking an entry to its topic and type notes and related sessions.

    Entries with neither topics nor a type get no footer at all.
    """
    if not entry.topics and not entry.type:
        return ""

    lines = ["", "---", "", "## Related Sessions", ""]
    if entry.topics:
        links = [format_wikilink(TOPICS_MOC, "Topics MOC")]
        links.extend(format_wikilink(topic) for topic in entry.topics)
        lines.extend([f"**Topics**: {' · '.join(links)}", ""])
    if entry.type:
        lines.extend([f"**Type**: {format_wikilink(entry.type)}", ""])

    related = collect_related(entry, topic_index, max_related)
    if related:
        lines.append("**See also**:")
        lines.extend(f"- {format_wikilink(rel.slug, rel.title)}" for rel in related)
        lines.append("")

    return "\n".join(lines) + "\n"


def _longtail_link(entry: JournalEntry) -> str:
    return format_wikilink(entry.slug, entry.title)


class ObsidianFormatter:
    """Formatter for the pages of an Obsidian vault built from the journal."""

    def __init__(
        self,
        max_related: int = DEFAULT_MAX_RELATED,
        max_recent_sessions: int = 20,
    ) -> None:
        self.max_related = max_related
        self.max_recent_sessions = max_recent_sessions

    def format_entry(
        self,
        content: str,
        entry: JournalEntry,
        topic_index: dict[str, list[JournalEntry]],
        source_path: str,
    ) -> str:
        """Vault page for one entry, from its normalized Markdown."""
        transformed = transform_frontmatter(content, source_path)
        transformed = convert_markdown_links(transformed)
        return transformed + generate_related_footer(entry, topic_index, self.max_related)

    def format_home(
        self,
        entries: list[JournalEntry],
        has_topics: bool,
        has_files: bool,
        has_types: bool,
    ) -> str:
        """Root hub linking each non-empty MOC and the most recent sessions."""
        lines = [
            "# Session Journal",
            "",
            "Navigation hub for all journal entries.",
            "",
            "## Browse by",
            "",
        ]
        if has_topics:
            lines.append(f"- {format_wikilink(TOPICS_MOC, 'Topics')} — sessions grouped by topic")
        if has_files:
            lines.append(
                f"- {format_wikilink(FILES_MOC, 'Key Files')} — sessions grouped by file touched"
            )
        if has_types:
            lines.append(
                f"- {format_wikilink(TYPES_MOC, 'Session Types')} — sessions grouped by type"
            )
        lines.extend(["", "## Recent Sessions", ""])
        lines.extend(format_wikilink_entry(e) for e in entries[: self.max_recent_sessions])
        lines.append("")
        return "\n".join(lines) + "\n"

    def format_topics_moc(self, topics: list[TopicData]) -> str:
        popular, longtail = split_popular(topics)
        lines = [
            "# Topics",
            "",
            f"**{len(topics)} topics** across **{count_unique_sessions(topics)} sessions**"
            f" — **{len(popular)} popular**, **{len(longtail)} long-tail**",
            "",
        ]
        if popular:
            lines.extend(["## Popular Topics", ""])
            for topic in popular:
                lines.append(f"- {format_wikilink(topic.name)} ({len(topic.entries)} sessions)")
            lines.append("")
        if longtail:
            lines.extend(["## Long-tail Topics", ""])
            for topic in longtail:
                lines.append(f"- **{topic.name}** — {_longtail_link(topic.entries[0])}")
            lines.append("")
        return "\n".join(lines)

    def format_files_moc(self, key_files: list[KeyFileData]) -> str:
        popular, longtail = split_popular(key_files)
        lines = [
            "# Key Files",
            "",
            f"**{len(key_files)} files** across **{count_unique_sessions(key_files)} sessions**"
            f" — **{len(popular)} popular**, **{len(longtail)} long-tail**",
            "",
        ]
        if popular:
            lines.extend(["## Frequently Touched", ""])
            for kf in popular:
                link = format_wikilink(key_file_slug(kf.path), f"`{kf.path}`")
                lines.append(f"- {link} ({len(kf.entries)} sessions)")
            lines.append("")
        if longtail:
            lines.extend(["## Single Session", ""])
            for kf in longtail:
                lines.append(f"- `{kf.path}` — {_longtail_link(kf.entries[0])}")
            lines.append("")
        return "\n".join(lines)

    def format_types_moc(self, types: list[TypeData]) -> str:
        popular, longtail = split_popular(types)
        lines = [
            "# Session Types",
            "",
            f"**{len(types)} types** across **{count_unique_sessions(types)} sessions**",
            "",
        ]
        for st in popular:
            lines.append(f"- {format_wikilink(st.name)} ({len(st.entries)} sessions)")
        for st in longtail:
            lines.append(f"- **{st.name}** — {_longtail_link(st.entries[0])}")
        lines.append("")
        return "\n".join(lines)

    def format_topic_page(self, topic: TopicData) -> str:
        return self._grouped_page(
            f"# {topic.name}",
            f"**{len(topic.entries)} sessions** with this topic.",
            topic.entries,
        )

    def format_file_page(self, key_file: KeyFileData) -> str:
        return self._grouped_page(
            f"# `{key_file.path}`",
            f"**{len(key_file.entries)} sessions** touching this file.",
            key_file.entries,
        )

    def format_type_page(self, session_type: TypeData) -> str:
        return self._grouped_page(
            f"# {session_type.name}",
            f"**{len(session_type.entries)} sessions** of type *{session_type.name}*.",
            session_type.entries,
        )

    def format_readme(self, journal_dir: Path) -> str:
        return VAULT_README.substitute(journal_dir=journal_dir)

    def _grouped_page(self, heading: str, stats: str, entries: list[JournalEntry]) -> str:
        lines = [heading, "", stats, ""]
        months, order = group_by_month(entries)
        for month in order:
            lines.extend([f"## {month}", ""])
            lines.extend(format_wikilink_entry(e) for e in months[month])
            lines.append("")
        return "\n".join(lines)
