"""Static-site page builders for the journal.

Every builder returns Markdown (or TOML) text; writing it to disk is the
caller's job.
"""

from __future__ import annotations

from pathlib import Path

from sessionpress.formatters.templates import (
    INDEX_INTRO,
    SITE_README,
    SOURCE_LINK,
    SUGGESTIONS_NOTE,
    SUMMARY_LINE,
    ZENSICAL_PROJECT,
    ZENSICAL_THEME,
    format_size,
    toml_escape,
    truncate,
)
from sessionpress.journal.frontmatter import frontmatter_length
from sessionpress.journal.index import (
    count_unique_sessions,
    filter_regular_entries,
    group_by_month,
    key_file_slug,
    split_popular,
)
from sessionpress.journal.models import JournalEntry, KeyFileData, TopicData, TypeData

INDEX_FILENAME = "index.md"
TOPICS_DIR = "topics"
FILES_DIR = "files"
TYPES_DIR = "types"
PARENT_PREFIX = "../"
SOURCE_DIR = ".context/journal"


def format_index_entry(entry: JournalEntry) -> str:
    """One home-index line: ``- 14:30 [Title](file.md) (project) `1.2KB```."""
    time_str = f"{entry.short_time} " if entry.short_time else ""
    project = f" ({entry.project})" if entry.project else ""
    return (
        f"- {time_str}[{entry.title}]({entry.filename}){project} "
        f"`{format_size(entry.size)}`"
    )


def _month_sections(entries: list[JournalEntry], link_prefix: str = "") -> list[str]:
    lines: list[str] = []
    months, order = group_by_month(entries)
    for month in order:
        lines.extend([f"## {month}", ""])
        for entry in months[month]:
            time_str = f"{entry.short_time} " if entry.short_time else ""
            lines.append(f"- {time_str}[{entry.title}]({link_prefix}{entry.filename})")
            if entry.summary:
                lines.append(f"  > {entry.summary}")
        lines.append("")
    return lines


def _grouped_page(heading: str, stats: str, entries: list[JournalEntry]) -> str:
    lines = [heading, "", stats, ""]
    lines.extend(_month_sections(entries, PARENT_PREFIX))
    return "\n".join(lines)


def _longtail_link(entry: JournalEntry) -> str:
    return f"[{entry.title}]({PARENT_PREFIX}{entry.filename})"


def inject_source_link(content: str, source_path: Path) -> str:
    """Insert a "View source" line after the frontmatter, or at the top.

    The line points at the absolute path of the journal file and shows its
    project-relative location.
    """
    abs_path = source_path.absolute()
    link = SOURCE_LINK.substitute(
        abs_path=abs_path.as_posix(),
        rel_path=f"{SOURCE_DIR}/{source_path.name}",
    )
    split_at = frontmatter_length(content)
    if not split_at:
        return f"{link}\n\n{content}"
    head, body = content[:split_at], content[split_at:]
    if not head.endswith("\n"):
        head += "\n"
    return f"{head}\n{link}\n\n{body}"


def inject_summary(content: str, summary: str) -> str:
    """Add a ``> **Summary**:`` line right after the "View source" line."""
    if not summary:
        return content
    marker = "*[View source]("
    start = content.find(marker)
    if start < 0:
        return content
    end = content.find("\n", start)
    if end < 0:
        return f"{content}\n\n{SUMMARY_LINE.substitute(summary=summary)}\n"
    line = SUMMARY_LINE.substitute(summary=summary)
    return f"{content[:end]}\n\n{line}{content[end:]}"


class SiteFormatter:
    """Builds the pages and config of the zensical journal site."""

    def __init__(
        self,
        site_name: str = "Session Journal",
        max_recent_sessions: int = 20,
        max_nav_title_len: int = 40,
    ) -> None:
        self.site_name = site_name
        self.max_recent_sessions = max_recent_sessions
        self.max_nav_title_len = max_nav_title_len

    def format_index(self, entries: list[JournalEntry]) -> str:
        """Home page: month-grouped sessions, then suggestion runs.

        Continuation parts of split sessions are left out; they are
        reachable from their first part.
        """
        regular = filter_regular_entries(entries)
        suggestions = [e for e in entries if e.suggestive]

        lines = [
            f"# {self.site_name}",
            "",
            INDEX_INTRO,
            "",
            f"**Sessions**: {len(regular)} | **Suggestions**: {len(suggestions)}",
            "",
        ]

        months, order = group_by_month(regular)
        for month in order:
            lines.extend([f"## {month}", ""])
            lines.extend(format_index_entry(e) for e in months[month])
            lines.append("")

        if suggestions:
            lines.extend(["---", "", "## Suggestions", "", SUGGESTIONS_NOTE, ""])
            lines.extend(format_index_entry(e) for e in suggestions)
            lines.append("")

        return "\n".join(lines)

    def format_topics_index(self, topics: list[TopicData]) -> str:
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
                lines.append(f"- [{topic.name}]({topic.name}.md) ({len(topic.entries)} sessions)")
            lines.append("")
        if longtail:
            lines.extend(["## Long-tail Topics", ""])
            for topic in longtail:
                lines.append(f"- **{topic.name}** — {_longtail_link(topic.entries[0])}")
            lines.append("")
        return "\n".join(lines)

    def format_topic_page(self, topic: TopicData) -> str:
        return _grouped_page(
            f"# {topic.name}",
            f"**{len(topic.entries)} sessions** with this topic.",
            topic.entries,
        )

    def format_files_index(self, key_files: list[KeyFileData]) -> str:
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
                lines.append(
                    f"- [`{kf.path}`]({key_file_slug(kf.path)}.md) ({len(kf.entries)} sessions)"
                )
            lines.append("")
        if longtail:
            lines.extend(["## Single Session", ""])
            for kf in longtail:
                lines.append(f"- `{kf.path}` — {_longtail_link(kf.entries[0])}")
            lines.append("")
        return "\n".join(lines)

    def format_file_page(self, key_file: KeyFileData) -> str:
        return _grouped_page(
            f"# `{key_file.path}`",
            f"**{len(key_file.entries)} sessions** touching this file.",
            key_file.entries,
        )

    def format_types_index(self, types: list[TypeData]) -> str:
        popular, longtail = split_popular(types)
        lines = [
            "# Session Types",
            "",
            f"**{len(types)} types** across **{count_unique_sessions(types)} sessions**",
            "",
        ]
        for st in popular:
            lines.append(f"- [{st.name}]({st.name}.md) ({len(st.entries)} sessions)")
        for st in longtail:
            lines.append(f"- **{st.name}** — {_longtail_link(st.entries[0])}")
        lines.append("")
        return "\n".join(lines)

    def format_type_page(self, session_type: TypeData) -> str:
        return _grouped_page(
            f"# {session_type.name}",
            f"**{len(session_type.entries)} sessions** of type *{session_type.name}*.",
            session_type.entries,
        )

    def format_zensical_toml(
        self,
        entries: list[JournalEntry],
        topics: list[TopicData],
        key_files: list[KeyFileData],
        types: list[TypeData],
    ) -> str:
        """Site config with navigation for every non-empty section.

        The "Recent Sessions" block lists the newest regular entries with
        titles cut to fit the sidebar.
        """
        lines = [ZENSICAL_PROJECT.substitute(site_name=toml_escape(self.site_name))]
        lines.append("nav = [")
        lines.append(f'  {{ "Home" = "{INDEX_FILENAME}" }},')
        sections = (
            ("Topics", TOPICS_DIR, topics),
            ("Files", FILES_DIR, key_files),
            ("Types", TYPES_DIR, types),
        )
        for label, subdir, groups in sections:
            if groups:
                lines.append(f'  {{ "{label}" = "{subdir}/{INDEX_FILENAME}" }},')

        recent = filter_regular_entries(entries)[: self.max_recent_sessions]
        lines.append('  { "Recent Sessions" = [')
        for entry in recent:
            title = toml_escape(truncate(entry.title, self.max_nav_title_len))
            lines.append(f'    {{ "{title}" = "{entry.filename}" }},')
        lines.append("  ]}")
        lines.append("]")
        lines.append("")
        lines.append(ZENSICAL_THEME)
        return "\n".join(lines)

    def format_readme(self, journal_dir: Path, output_dir: Path) -> str:
        return SITE_README.substitute(journal_dir=journal_dir, output_dir=output_dir)
