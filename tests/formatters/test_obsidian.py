"""Tests for the Obsidian vault formatter."""

from pathlib import Path

import pytest
import yaml

from sessionpress.formatters.obsidian import (
    ObsidianFormatter,
    collect_related,
    generate_related_footer,
    transform_frontmatter,
)
from sessionpress.journal.frontmatter import split_frontmatter
from sessionpress.journal.index import (
    build_key_file_index,
    build_topic_index,
    build_topic_lookup,
    build_type_index,
)
from sessionpress.journal.models import JournalEntry


def _entry(filename: str, **kwargs) -> JournalEntry:
    kwargs.setdefault("title", filename.removesuffix(".md"))
    return JournalEntry(
        filename=filename,
        path=Path("/journal") / filename,
        date=filename[:10],
        **kwargs,
    )


ENRICHED = """\
---
title: Fix cache
date: 2026-01-23
project: ctx
type: bugfix
topics:
  - caching
  - go
key_files:
  - cache.go
---

# Fix cache

See [the follow-up](2026-01-24-more-bbb.md).
"""


@pytest.fixture
def formatter() -> ObsidianFormatter:
    return ObsidianFormatter()


@pytest.fixture
def entries() -> list[JournalEntry]:
    return [
        _entry(
            "2026-01-24-more-bbb.md",
            title="More caching",
            topics=["caching"],
            type="feature",
            key_files=["cache.go"],
        ),
        _entry(
            "2026-01-23-fix-aaa.md",
            title="Fix cache",
            topics=["caching", "go"],
            type="bugfix",
            outcome="completed",
            key_files=["cache.go"],
        ),
    ]


class TestTransformFrontmatter:
    def test_obsidian_fields(self):
        result = transform_frontmatter(ENRICHED, ".context/journal/2026-01-23-fix-aaa.md")
        raw, body = split_frontmatter(result)
        data = yaml.safe_load(raw)
        assert list(data) == [
            "title",
            "date",
            "type",
            "tags",
            "key_files",
            "aliases",
            "source_file",
        ]
        assert data["date"] == "2026-01-23"
        assert data["tags"] == ["caching", "go"]
        assert data["aliases"] == ["Fix cache"]
        assert data["source_file"] == ".context/journal/2026-01-23-fix-aaa.md"
        assert "project" not in data
        assert body.startswith("\n# Fix cache\n")

    @pytest.mark.parametrize(
        "content",
        [
            "# No frontmatter\n",
            "---\ntitle: [unclosed\n---\nbody\n",
            "---\n- a\n- b\n---\nbody\n",
        ],
    )
    def test_unusable_block_unchanged(self, content):
        assert transform_frontmatter(content, "src.md") == content


class TestRelated:
    def test_ranked_by_shared_topics_then_filename(self):
        entry = _entry("2026-01-01-me.md", topics=["a", "b"])
        one = _entry("2026-01-03-one.md", topics=["a"])
        both = _entry("2026-01-04-both.md", topics=["a", "b"])
        other = _entry("2026-01-02-other.md", topics=["b"])
        lookup = build_topic_lookup([entry, one, both, other])

        related = collect_related(entry, lookup)
        assert [e.filename for e in related] == [
            "2026-01-04-both.md",
            "2026-01-02-other.md",
            "2026-01-03-one.md",
        ]

    def test_limit(self):
        entry = _entry("2026-01-01-me.md", topics=["a"])
        others = [_entry(f"2026-01-0{i}-x.md", topics=["a"]) for i in range(2, 9)]
        lookup = build_topic_lookup([entry, *others])
        assert len(collect_related(entry, lookup, max_related=3)) == 3

    def test_footer(self, entries):
        lookup = build_topic_lookup(entries)
        footer = generate_related_footer(entries[1], lookup)
        assert footer == (
            "\n---\n\n## Related Sessions\n\n"
            "**Topics**: [[_Topics|Topics MOC]] · [[caching]] · [[go]]\n\n"
            "**Type**: [[bugfix]]\n\n"
            "**See also**:\n- [[2026-01-24-more-bbb|More caching]]\n\n"
        )

    def test_no_footer_without_topics_or_type(self):
        assert generate_related_footer(_entry("2026-01-01-x.md"), {}) == ""

    def test_footer_without_related(self):
        entry = _entry("2026-01-01-x.md", type="feature")
        footer = generate_related_footer(entry, {})
        assert "**Type**: [[feature]]" in footer
        assert "See also" not in footer


class TestFormatEntry:
    def test_links_converted_and_footer_added(self, formatter, entries):
        page = formatter.format_entry(
            ENRICHED,
            entries[1],
            build_topic_lookup(entries),
            ".context/journal/2026-01-23-fix-aaa.md",
        )
        assert "See [[2026-01-24-more-bbb|the follow-up]]." in page
        assert "tags:" in page
        assert page.rstrip().endswith("- [[2026-01-24-more-bbb|More caching]]")


class TestHubPages:
    def test_home_links_only_present_mocs(self, formatter, entries):
        home = formatter.format_home(entries, has_topics=True, has_files=False, has_types=True)
        assert "[[_Topics|Topics]]" in home
        assert "[[_Session Types|Session Types]]" in home
        assert "_Key Files" not in home
        assert "- [[2026-01-23-fix-aaa|Fix cache]] — `bugfix` · `completed`" in home

    def test_topics_moc(self, formatter, entries):
        moc = formatter.format_topics_moc(build_topic_index(entries))
        assert "- [[caching]] (2 sessions)" in moc
        assert "- **go** — [[2026-01-23-fix-aaa|Fix cache]]" in moc

    def test_files_moc(self, formatter, entries):
        moc = formatter.format_files_moc(build_key_file_index(entries))
        assert "- [[cache_go|`cache.go`]] (2 sessions)" in moc

    def test_types_moc(self, formatter, entries):
        moc = formatter.format_types_moc(build_type_index(entries))
        assert "**2 types** across **2 sessions**" in moc
        assert "- **bugfix** — [[2026-01-23-fix-aaa|Fix cache]]" in moc

    def test_topic_page_groups_by_month(self, formatter, entries):
        page = formatter.format_topic_page(build_topic_index(entries)[0])
        assert page.startswith("# caching\n\n**2 sessions** with this topic.\n\n## 2026-01\n")
        assert "- [[2026-01-24-more-bbb|More caching]] — `feature`" in page

    def test_readme_names_journal(self, formatter, tmp_path: Path):
        assert str(tmp_path) in formatter.format_readme(tmp_path)
