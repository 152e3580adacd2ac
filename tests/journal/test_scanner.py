"""Tests for journal directory scanning."""

from pathlib import Path
from unittest.mock import patch

import pytest

from sessionpress.errors import PipelineReport
from sessionpress.journal.scanner import decode_entry, parse_journal_entry, scan_journal_entries


@pytest.fixture
def journal_dir(tmp_path: Path) -> Path:
    d = tmp_path / "journal"
    d.mkdir()
    (d / "2026-01-20-raw-export-aaa111.md").write_text(
        "# Raw export title\n\n**Time**: 08:00:00\n**Project**: ctx\n\n### 1. User (08:00:00)\n\nhi\n"
    )
    (d / "2026-01-23-enriched-bbb222.md").write_text(
        "---\n"
        "title: Enriched session\n"
        'time: "14:30:00"\n'
        "topics: [caching]\n"
        "type: feature\n"
        "summary: Added a cache.\n"
        "---\n\n"
        "# Enriched session\n\n**Project**: ctx\n"
    )
    (d / "2026-01-22-suggest-ccc333.md").write_text(
        "# Suggestion\n\n**Time**: 10:00:00\n\nSUGGESTION MODE: next steps\n"
    )
    (d / "notes.txt").write_text("not a journal entry")
    (d / "subdir.md").mkdir()
    return d


class TestParseJournalEntry:
    def test_raw_export_uses_line_scan(self, journal_dir: Path):
        entry = parse_journal_entry(journal_dir / "2026-01-20-raw-export-aaa111.md")
        assert entry.title == "Raw export title"
        assert entry.time == "08:00:00"
        assert entry.project == "ctx"
        assert entry.date == "2026-01-20"
        assert entry.topics == []
        assert entry.size > 0

    def test_frontmatter_supplemented_by_scan(self, journal_dir: Path):
        entry = parse_journal_entry(journal_dir / "2026-01-23-enriched-bbb222.md")
        assert entry.title == "Enriched session"
        assert entry.time == "14:30:00"
        assert entry.project == "ctx"
        assert entry.topics == ["caching"]
        assert entry.type == "feature"
        assert entry.summary == "Added a cache."

    def test_suggestion_detected(self, journal_dir: Path):
        entry = parse_journal_entry(journal_dir / "2026-01-22-suggest-ccc333.md")
        assert entry.suggestive is True
        assert entry.is_regular is False

    def test_title_falls_back_to_filename(self, tmp_path: Path):
        path = tmp_path / "2026-02-01-untitled-ddd444.md"
        path.write_text("no heading here\n")
        entry = parse_journal_entry(path)
        assert entry.title == "2026-02-01-untitled-ddd444"
        assert entry.date == "2026-02-01"

    def test_unreadable_file_reported(self, tmp_path: Path):
        path = tmp_path / "2026-02-02-broken-eee555.md"
        path.write_text("# Broken\n")
        report = PipelineReport()
        with patch(
            "sessionpress.journal.scanner.read_entry_text",
            side_effect=PermissionError("denied"),
        ):
            entry = parse_journal_entry(path, report)
        assert entry.title == "2026-02-02-broken-eee555"
        assert entry.date == "2026-02-02"
        assert report.error_count == 1
        assert report.errors[0].error_type == "read_error"

    def test_invalid_utf8_replaced(self, tmp_path: Path):
        path = tmp_path / "2026-02-03-bytes-fff666.md"
        path.write_bytes(b"# Caf\xe9 notes\n")
        entry = parse_journal_entry(path)
        assert entry.title.startswith("Caf")
        assert entry.size == len(b"# Caf\xe9 notes\n")


class TestScanJournalEntries:
    def test_only_markdown_files(self, journal_dir: Path):
        entries = scan_journal_entries(journal_dir)
        assert len(entries) == 3
        assert all(e.filename.endswith(".md") for e in entries)

    def test_sorted_newest_first(self, journal_dir: Path):
        entries = scan_journal_entries(journal_dir)
        assert [e.date for e in entries] == ["2026-01-23", "2026-01-22", "2026-01-20"]

    def test_same_day_sorted_by_time(self, tmp_path: Path):
        (tmp_path / "2026-03-01-a-111.md").write_text("# A\n**Time**: 09:00:00\n")
        (tmp_path / "2026-03-01-b-222.md").write_text("# B\n**Time**: 17:00:00\n")
        entries = scan_journal_entries(tmp_path)
        assert [e.title for e in entries] == ["B", "A"]

    def test_report_counts_entries(self, journal_dir: Path):
        report = PipelineReport()
        scan_journal_entries(journal_dir, report)
        assert report.items_processed["entries"] == 3
        assert "scan" in report.stages_completed

    def test_empty_directory(self, tmp_path: Path):
        assert scan_journal_entries(tmp_path) == []

    def test_date_valued_topic_does_not_abort_scan(self, tmp_path: Path):
        (tmp_path / "2026-04-01-dated-aaa.md").write_text("---\ntitle: Dated\ntopics: 2026-01-01\n---\n")
        (tmp_path / "2026-04-02-plain-bbb.md").write_text("# Plain\n")
        entries = scan_journal_entries(tmp_path)
        assert [e.title for e in entries] == ["Plain", "Dated"]
        assert entries[1].topics == ["2026-01-01"]


class TestDecodeEntry:
    def test_clean_utf8(self):
        assert decode_entry("café".encode()) == ("café", True)

    def test_invalid_bytes_flagged(self):
        assert decode_entry(b"a\xffb") == ("a\ufffdb", False)
