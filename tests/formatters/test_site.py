"""Tests for the static-site page builders."""

import tomllib
from pathlib import Path

import pytest

from sessionpress.formatters.site import (
    SiteFormatter,
    format_index_entry,
    inject_source_link,
    inject_summary,
)
from sessionpress.formatters.templates import format_size, truncate
from sessionpress.journal.index import (
    build_key_file_index,
    build_topic_index,
    build_type_index,
)
from sessionpress.journal.models import JournalEntry


def _entry(filename: str, **kwargs) -> JournalEntry:
    kwargs.setdefault("title", filename.removesuffix(".md"))
    kwargs.setdefault("date", filename[:10])
    return JournalEntry(filename=filename, path=Path("/j") / filename, **kwargs)


@pytest.fixture
def formatter() -> SiteFormatter:
    return SiteFormatter()


@pytest.fixture
def entries() -> list[JournalEntry]:
    return [
        _entry(
            "2026-02-01-cache-aaa.md",
            title="Cache layer",
            time="14:30:00",
            project="ctx",
            size=1536,
            topics=["caching"],
            type="feature",
            key_files=["cache.go"],
            summary="Added LRU.",
        ),
        _entry(
            "2026-01-20-evict-bbb.md",
            title="Eviction",
            time="09:05:00",
            size=200,
            topics=["caching", "memory"],
            type="bugfix",
            key_files=["cache.go"],
        ),
        _entry("2026-01-19-idea-ccc.md", title="Idea", suggestive=True),
        _entry("2026-01-18-long-ddd-p2.md", title="Part two"),
    ]


class TestHelpers:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0B"), (1023, "1023B"), (1536, "1.5KB"), (3 * 1024 * 1024, "3.0MB")],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 12, 10) == "a" * 10 + "..."

    def test_format_index_entry(self, entries):
        assert format_index_entry(entries[0]) == (
            "- 14:30 [Cache layer](2026-02-01-cache-aaa.md) (ctx) `1.5KB`"
        )

    def test_format_index_entry_without_time_or_project(self):
        entry = _entry("2026-01-01-x.md", title="X", size=10)
        assert format_index_entry(entry) == "- [X](2026-01-01-x.md) `10B`"


class TestInjection:
    def test_source_link_after_frontmatter(self, tmp_path: Path):
        source = tmp_path / "2026-01-01-x.md"
        content = "---\ntitle: X\n---\n\n# X\n"
        result = inject_source_link(content, source)
        head, rest = result.split("---\n\n", 1)
        assert head == "---\ntitle: X\n"
        assert rest.startswith(f"*[View source](file://{source.as_posix()})*")
        assert "`.context/journal/2026-01-01-x.md`" in rest
        assert rest.endswith("\n\n\n# X\n")

    def test_source_link_at_top_without_frontmatter(self, tmp_path: Path):
        source = tmp_path / "2026-01-01-x.md"
        result = inject_source_link("# X\n", source)
        assert result.startswith("*[View source](file://")
        assert result.endswith("\n\n# X\n")

    def test_summary_follows_source_link(self, tmp_path: Path):
        source = tmp_path / "2026-01-01-x.md"
        with_link = inject_source_link("# X\n", source)
        result = inject_summary(with_link, "Short recap.")
        lines = result.split("\n")
        assert lines[0].startswith("*[View source]")
        assert lines[2] == "> **Summary**: Short recap."
        assert lines[-2] == "# X"

    def test_empty_summary_is_noop(self):
        assert inject_summary("text", "") == "text"


class TestIndexPage:
    def test_stats_and_months(self, formatter, entries):
        page = formatter.format_index(entries)
        assert page.startswith("# Session Journal\n\nBrowse your AI session history.")
        assert "**Sessions**: 2 | **Suggestions**: 1" in page
        assert page.index("## 2026-02") < page.index("## 2026-01")

    def test_continuations_omitted(self, formatter, entries):
        assert "Part two" not in formatter.format_index(entries)

    def test_suggestions_section(self, formatter, entries):
        page = formatter.format_index(entries)
        suggestions = page.split("## Suggestions", 1)[1]
        assert "*Auto-generated suggestion prompts from Claude Code.*" in suggestions
        assert "[Idea](2026-01-19-idea-ccc.md)" in suggestions


class TestSectionPages:
    def test_topics_index_popular_and_longtail(self, formatter, entries):
        page = formatter.format_topics_index(build_topic_index(entries[:2]))
        assert "**2 topics** across **2 sessions** — **1 popular**, **1 long-tail**" in page
        assert "- [caching](caching.md) (2 sessions)" in page
        assert "- **memory** — [Eviction](../2026-01-20-evict-bbb.md)" in page

    def test_topic_page(self, formatter, entries):
        topic = build_topic_index(entries[:2])[0]
        page = formatter.format_topic_page(topic)
        assert page.startswith("# caching\n\n**2 sessions** with this topic.")
        assert "- 14:30 [Cache layer](../2026-02-01-cache-aaa.md)" in page
        assert "  > Added LRU." in page

    def test_files_index(self, formatter, entries):
        page = formatter.format_files_index(build_key_file_index(entries[:2]))
        assert "## Frequently Touched" in page
        assert "- [`cache.go`](cache_go.md) (2 sessions)" in page

    def test_file_page(self, formatter, entries):
        page = formatter.format_file_page(build_key_file_index(entries[:2])[0])
        assert page.startswith("# `cache.go`\n\n**2 sessions** touching this file.")

    def test_types_index(self, formatter, entries):
        page = formatter.format_types_index(build_type_index(entries[:2]))
        assert "**2 types** across **2 sessions**" in page
        assert "- **bugfix** — [Eviction](../2026-01-20-evict-bbb.md)" in page

    def test_type_page(self, formatter, entries):
        st = build_type_index(entries[:2])[0]
        assert "of type *" in formatter.format_type_page(st)


class TestZensicalToml:
    def test_valid_toml_with_nav(self, formatter, entries):
        toml_text = formatter.format_zensical_toml(
            entries,
            build_topic_index(entries[:2]),
            [],
            build_type_index(entries[:2]),
        )
        data = tomllib.loads(toml_text)
        project = data["project"]
        assert project["site_name"] == "Session Journal"
        labels = [next(iter(item)) for item in project["nav"]]
        assert labels == ["Home", "Topics", "Types", "Recent Sessions"]
        recent = project["nav"][-1]["Recent Sessions"]
        assert [next(iter(item.values())) for item in recent] == [
            "2026-02-01-cache-aaa.md",
            "2026-01-20-evict-bbb.md",
        ]
        assert project["theme"]["language"] == "en"
        assert len(project["theme"]["palette"]) == 2

    def test_titles_truncated_and_escaped(self, formatter):
        entry = _entry("2026-01-01-q.md", title='Say "hi" ' + "x" * 60)
        data = tomllib.loads(formatter.format_zensical_toml([entry], [], [], []))
        recent = data["project"]["nav"][-1]["Recent Sessions"]
        title = next(iter(recent[0]))
        assert title.startswith('Say "hi"')
        assert title.endswith("...")
        assert len(title) == 43

    def test_recent_limit(self):
        formatter = SiteFormatter(max_recent_sessions=1)
        entries = [_entry("2026-01-02-a.md"), _entry("2026-01-01-b.md")]
        data = tomllib.loads(formatter.format_zensical_toml(entries, [], [], []))
        assert len(data["project"]["nav"][-1]["Recent Sessions"]) == 1
