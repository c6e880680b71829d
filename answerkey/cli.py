"""
CLI Interface
=============
Command-line interface for the answer-key scorer.

Usage:
    python -m answerkey score <url> [options]
    python -m answerkey score-file <html_path> [options]
    python -m answerkey saved [options]
    python -m answerkey serve [options]
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import ScoreConfig, ScoreEngine
from .errors import AnswerKeyError
from .models import ScoreResult
from .storage import FileSystemStorage, SavedKeyArchive

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="answerkey")
def cli():
    """Answer Key Scorer: marks calculator for published answer-key pages."""
    pass


def _common_options(func):
    options = [
        click.option(
            "--saved-dir",
            default=None,
            help="Directory for sanitized answer-key copies",
        ),
        click.option(
            "--no-archive",
            is_flag=True,
            default=False,
            help="Do not save a sanitized copy of the page",
        ),
        click.option(
            "--log-level",
            default="WARNING",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
            help="Logging level",
        ),
        click.option("--log-file", default=None, help="Path to log file"),
        click.option(
            "--json-output",
            is_flag=True,
            default=False,
            help="Output only JSON result to stdout (for programmatic use)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@click.argument("url")
@click.option(
    "--timeout",
    default=15.0,
    type=float,
    help="Fetch timeout in seconds",
)
@_common_options
def score(
    url: str,
    timeout: float,
    saved_dir: str,
    no_archive: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Fetch an answer-key URL and compute the score."""
    config = _build_config(saved_dir, no_archive, log_level, log_file, json_output)
    config.fetch_timeout = timeout

    if not json_output:
        _print_banner(f"Scoring: {url}")

    _run(lambda engine: engine.score_url(url), config, json_output)


@cli.command("score-file")
@click.argument("html_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--url",
    default=None,
    help="Original page URL (used for image links and archive naming)",
)
@_common_options
def score_file(
    html_path: str,
    url: str,
    saved_dir: str,
    no_archive: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Score an answer-key page saved to disk."""
    config = _build_config(saved_dir, no_archive, log_level, log_file, json_output)
    path = Path(html_path)
    html = path.read_text(encoding="utf-8", errors="replace")
    source = url or path.absolute().as_uri()

    if not json_output:
        _print_banner(f"Scoring: {path.name}")

    _run(lambda engine: engine.score_html(html, source), config, json_output)


@cli.command()
@click.option("--saved-dir", default=None, help="Saved keys directory")
def saved(saved_dir: str):
    """List sanitized answer keys saved so far."""
    archive = SavedKeyArchive(FileSystemStorage(saved_dir))
    try:
        files = archive.list_files()
    except OSError as e:
        console.print(f"[yellow]Unable to read saved keys:[/] {e}")
        return

    if not files:
        console.print("[yellow]No saved answer keys[/]")
        return

    table = Table(title="Saved Answer Keys", border_style="cyan")
    table.add_column("File", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for f in files:
        table.add_row(f.name, f"{f.size / 1024:.1f} KB", f.created)
    console.print(table)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP scoring service."""
    from .server import run_server

    _print_banner(f"Starting on {host}:{port}", title="Answer Key Scorer Service")
    run_server(host=host, port=port, debug=debug)


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _build_config(saved_dir, no_archive, log_level, log_file, json_output) -> ScoreConfig:
    return ScoreConfig(
        archive_enabled=not no_archive,
        # The process exits right after scoring; archive inline
        background_archive=False,
        saved_keys_dir=saved_dir,
        log_level="ERROR" if json_output else log_level,
        log_file=log_file,
    )


def _run(action, config: ScoreConfig, json_output: bool):
    try:
        result = action(ScoreEngine(config))
    except AnswerKeyError as e:
        console.print(f"[red]Error ({e.status_code}):[/] {e.message}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if config.log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)

    if json_output:
        print(json.dumps(result.to_response(), indent=2, ensure_ascii=False))
    else:
        _display_result(result)


def _print_banner(subtitle: str, title: str = f"Answer Key Scorer v{__version__}"):
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]{title}[/]\n[dim]{subtitle}[/]",
            border_style="cyan",
        )
    )
    console.print()


def _display_result(result: ScoreResult):
    """Display score, sections and candidate info as rich tables."""
    meta = result.meta
    info_rows = [
        ("Candidate", meta.name),
        ("Roll Number", meta.roll_number),
        ("Subject", meta.subject),
        ("Test Date", meta.test_date),
        ("Test Time", meta.test_time),
        ("Test Centre", meta.test_centre),
    ]
    if any(value for _, value in info_rows):
        table = Table(title="Exam Information", border_style="cyan")
        table.add_column("Property", style="bold")
        table.add_column("Value")
        for label, value in info_rows:
            if value:
                table.add_row(label, value)
        console.print(table)
        console.print()

    table = Table(title="Score", border_style="green")
    table.add_column("Scope", style="bold")
    table.add_column("Questions", justify="right")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Wrong", justify="right", style="red")
    table.add_column("Blank", justify="right")
    table.add_column("Marks", justify="right", style="bold")

    for section in result.sections:
        table.add_row(
            section.name,
            str(section.questions),
            str(section.correct),
            str(section.wrong),
            str(section.blank),
            f"{section.total:.2f}",
        )
    if result.sections:
        table.add_section()
    table.add_row(
        "Overall",
        str(result.questions),
        str(result.correct),
        str(result.wrong),
        str(result.blank),
        f"{result.total:.2f}",
    )
    console.print(table)
    console.print()
    console.print(
        f"[dim]Strategy: {result.strategy} | Attempted: {result.attempted} | "
        f"Rule: +1 correct, -1/3 wrong, 0 blank[/]"
    )
    console.print()


# ─── Entry point (for python -m answerkey.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
