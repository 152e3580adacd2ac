"""Smoke tests for the CLI."""

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from sessionpress.cli import app

ENTRY = """\
---
title: Add cache
date: 2026-01-20
topics:
  - caching
---

# Add cache

### 1. User (10:00:00)

Add a cache please.
"""


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner(env={"NO_COLOR": "1", "FORCE_COLOR": None})


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every command from an empty directory with no global config."""
    for var in ("SESSIONPRESS_JOURNAL_DIR", "SESSIONPRESS_SITE_OUTPUT", "SESSIONPRESS_VAULT_OUTPUT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("sessionpress.config.GLOBAL_CONFIG", tmp_path / "global.toml")
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def journal(tmp_path: Path) -> Path:
    journal_dir = tmp_path / "journal"
    journal_dir.mkdir()
    (journal_dir / "2026-01-20-cache-aaa.md").write_text(ENTRY)
    return journal_dir


class TestCLI:
    """Tests for the CLI entry point."""

    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "site" in result.output
        assert "obsidian" in result.output
        assert "mark" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "sessionpress 0.1.0" in result.output


class TestSiteCommand:
    def test_generates_site(self, runner, journal, tmp_path):
        out = tmp_path / "site"
        result = runner.invoke(app, ["site", "--journal-dir", str(journal), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Generated site with 1 entries" in result.output
        assert "Next steps" in result.output
        assert (out / "docs" / "index.md").exists()

    def test_default_paths_from_cwd(self, runner, tmp_path):
        journal_dir = tmp_path / ".context" / "journal"
        journal_dir.mkdir(parents=True)
        (journal_dir / "2026-01-20-cache-aaa.md").write_text(ENTRY)
        result = runner.invoke(app, ["site"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / ".context" / "journal-site" / "zensical.toml").exists()

    def test_config_file_sets_output(self, runner, journal, tmp_path):
        config = tmp_path / "custom.toml"
        config.write_text(f'[site]\noutput = "{(tmp_path / "from-config").as_posix()}"\n')
        result = runner.invoke(
            app, ["site", "--journal-dir", str(journal), "--config", str(config)]
        )
        assert result.exit_code == 0, result.output
        assert (tmp_path / "from-config" / "docs" / "index.md").exists()

    def test_missing_journal(self, runner, tmp_path):
        result = runner.invoke(app, ["site", "--journal-dir", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "no journal directory found" in result.output

    def test_empty_journal(self, runner, tmp_path):
        (tmp_path / "empty").mkdir()
        result = runner.invoke(app, ["site", "--journal-dir", str(tmp_path / "empty")])
        assert result.exit_code == 1
        assert "no journal entries found" in result.output

    def test_build_without_tool(self, runner, journal, tmp_path):
        with patch("sessionpress.core.shutil.which", return_value=None):
            result = runner.invoke(
                app,
                ["site", "--journal-dir", str(journal), "-o", str(tmp_path / "site"), "--build"],
            )
        assert result.exit_code == 1
        assert "zensical not found" in result.output

    def test_build_passes_tool_exit_code(self, runner, journal, tmp_path):
        with (
            patch("sessionpress.core.shutil.which", return_value="/usr/bin/zensical"),
            patch("sessionpress.core.subprocess.run", return_value=MagicMock(returncode=2)) as run,
        ):
            result = runner.invoke(
                app,
                ["site", "--journal-dir", str(journal), "-o", str(tmp_path / "site"), "--build"],
            )
        assert result.exit_code == 2
        assert run.call_args.args[0] == ["/usr/bin/zensical", "build"]

    def test_serve_runs_serve(self, runner, journal, tmp_path):
        with (
            patch("sessionpress.core.shutil.which", return_value="/usr/bin/zensical"),
            patch("sessionpress.core.subprocess.run", return_value=MagicMock(returncode=0)) as run,
        ):
            result = runner.invoke(
                app,
                ["site", "--journal-dir", str(journal), "-o", str(tmp_path / "site"), "--serve"],
            )
        assert result.exit_code == 0, result.output
        assert "Starting local server" in result.output
        assert run.call_args.args[0] == ["/usr/bin/zensical", "serve"]


class TestObsidianCommand:
    def test_generates_vault(self, runner, journal, tmp_path):
        out = tmp_path / "vault"
        result = runner.invoke(app, ["obsidian", "--journal-dir", str(journal), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Generated Obsidian vault with 1 entries" in result.output
        assert (out / "Home.md").exists()

    def test_missing_journal(self, runner, tmp_path):
        result = runner.invoke(app, ["obsidian", "--journal-dir", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestMarkCommand:
    def test_mark_then_check(self, runner, journal):
        name = "2026-01-20-cache-aaa.md"
        result = runner.invoke(app, ["mark", name, "enriched", "--journal-dir", str(journal)])
        assert result.exit_code == 0, result.output
        assert f"{name}: marked enriched" in result.output

        result = runner.invoke(
            app, ["mark", name, "enriched", "--check", "--journal-dir", str(journal)]
        )
        assert result.exit_code == 0
        assert f"{name}: enriched = {date.today().isoformat()}" in result.output

    def test_check_unset_stage_exits_1(self, runner, journal):
        result = runner.invoke(
            app, ["mark", "x.md", "exported", "--check", "--journal-dir", str(journal)]
        )
        assert result.exit_code == 1
        assert "x.md: exported not set" in result.output

    def test_unknown_stage(self, runner, journal):
        result = runner.invoke(app, ["mark", "x.md", "published", "--journal-dir", str(journal)])
        assert result.exit_code == 1
        assert "unknown stage" in result.output
