"""CLI interface for sessionpress."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from sessionpress.config import SessionpressConfig, load_config, merge_cli_overrides
from sessionpress.core import generate_site, generate_vault, mark_stage, run_site_tool, stage_value
from sessionpress.errors import JournalError, PipelineReport
from sessionpress.formatters.obsidian import HOME_NOTE
from sessionpress.journal.state import VALID_STAGES

app = typer.Typer(
    name="sessionpress",
    help="Turn exported AI session journals into a browsable site or Obsidian vault.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from sessionpress import __version__

        console.print(f"sessionpress {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug output."),
    ] = False,
) -> None:
    """Sessionpress - publish your AI session journal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(
    config_path: Optional[Path],
    **overrides: object,
) -> SessionpressConfig:
    return merge_cli_overrides(load_config(config_path), **overrides)


def _print_problems(report: PipelineReport) -> None:
    if not report.errors:
        return
    console.print(f"[yellow]Warning: {report.error_count} file(s) had problems:[/yellow]")
    for line in report.problem_lines():
        console.print(f"  - {line}", markup=False)


@app.command()
def site(
    journal_dir: Annotated[
        Optional[Path],
        typer.Option("--journal-dir", help="Journal directory to read entries from."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory for the site."),
    ] = None,
    build: Annotated[
        bool,
        typer.Option("--build", help="Run 'zensical build' after generating."),
    ] = False,
    serve: Annotated[
        bool,
        typer.Option("--serve", help="Run 'zensical serve' after generating."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .sessionpress.toml file."),
    ] = None,
) -> None:
    """Generate a zensical site from journal entries."""
    config = _load(config_path, journal_dir=journal_dir, site_output=output)
    out_dir = config.site_output

    try:
        report = generate_site(config.journal_dir, out_dir, config=config)
    except JournalError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    pages = report.items_processed.get("pages", 0)
    console.print(f"[green]✓[/green] Generated site with {pages} entries in {out_dir}")
    _print_problems(report)

    command = "serve" if serve else "build" if build else None
    if command is None:
        console.print()
        console.print("Next steps:")
        console.print(f"  cd {out_dir} && zensical serve")
        return

    console.print()
    console.print("Starting local server..." if serve else "Building site...")
    try:
        code = run_site_tool(out_dir, command)
    except JournalError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    if code != 0:
        raise typer.Exit(code)


@app.command()
def obsidian(
    journal_dir: Annotated[
        Optional[Path],
        typer.Option("--journal-dir", help="Journal directory to read entries from."),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory for the vault."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .sessionpress.toml file."),
    ] = None,
) -> None:
    """Generate an Obsidian vault from journal entries."""
    config = _load(config_path, journal_dir=journal_dir, vault_output=output)
    out_dir = config.vault_output

    try:
        report = generate_vault(config.journal_dir, out_dir, config=config)
    except JournalError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    pages = report.items_processed.get("pages", 0)
    console.print(f"[green]✓[/green] Generated Obsidian vault with {pages} entries in {out_dir}")
    _print_problems(report)
    console.print()
    console.print("Next steps:")
    console.print(f"  Open Obsidian → Open folder as vault → Select {out_dir}")
    console.print(f"  Start from {HOME_NOTE}")


@app.command()
def mark(
    filename: Annotated[str, typer.Argument(help="Journal file name, e.g. 2026-01-23-fix-abc123.md.")],
    stage: Annotated[
        str,
        typer.Argument(help=f"Stage to mark: {', '.join(VALID_STAGES)}."),
    ],
    check: Annotated[
        bool,
        typer.Option("--check", help="Only report whether the stage is set."),
    ] = False,
    journal_dir: Annotated[
        Optional[Path],
        typer.Option("--journal-dir", help="Journal directory holding the state file."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .sessionpress.toml file."),
    ] = None,
) -> None:
    """Mark a processing stage as done for a journal file."""
    config = _load(config_path, journal_dir=journal_dir)

    try:
        if check:
            value = stage_value(config.journal_dir, filename, stage)
        else:
            mark_stage(config.journal_dir, filename, stage)
    except JournalError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    if not check:
        console.print(f"{filename}: marked {stage}")
        return
    if not value:
        console.print(f"{filename}: {stage} not set")
        raise typer.Exit(1)
    console.print(f"{filename}: {stage} = {value}")


if __name__ == "__main__":
    app()
