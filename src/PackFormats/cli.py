"""Typer-based CLI for the pack format tracker."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from PackFormats.config import TrackerSettings, load_settings
from PackFormats.errors import PackFormatsError
from PackFormats.lifecycle import LifecycleSupervisor
from PackFormats.logging_utils import setup_logging
from PackFormats.pipeline import UpdateRun, plan_only
from PackFormats.store import MappingStore

console = Console()
app = typer.Typer(help="Track datapack/resourcepack formats per game version")

LOGGER = logging.getLogger("PackFormats.cli")


def _settings(verbose: bool, json_logs: bool, **overrides) -> TrackerSettings:
    try:
        settings = load_settings(**overrides)
    except PackFormatsError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    level = "DEBUG" if verbose else settings.log_level
    fmt = "json" if json_logs else settings.log_format.value
    setup_logging(level=level, fmt=fmt)
    return settings


# ============================================================================
# Commands
# ============================================================================


@app.command()
def run(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Mapping file path"),
    cutoff: Optional[str] = typer.Option(None, "--cutoff", help="Cutoff version id"),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-j", min=0, help="Simultaneous downloads (0 = auto)"
    ),
    manifest_url: Optional[str] = typer.Option(None, "--manifest-url", help="Version manifest URL"),
    publish: Optional[bool] = typer.Option(
        None, "--publish/--no-publish", help="Open or update a pull request with the result"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Resolve pack formats for new versions and update the mapping file."""
    settings = _settings(
        verbose,
        json_logs,
        output_path=output,
        cutoff_version=cutoff,
        concurrency=concurrency,
        manifest_url=manifest_url,
    )

    update = UpdateRun(settings)
    supervisor = LifecycleSupervisor(update.flush)
    with supervisor.supervise():
        report = asyncio.run(update.execute(supervisor=supervisor, publish=publish))

    lines = [
        f"[bold green]✓ {settings.output_path}[/bold green]",
        f"Reference: {report.reference_id}",
        f"Concurrency: {report.concurrency}",
        f"Pending: {len(report.pending)}",
        f"Added: {len(report.added)}",
        f"Failed: {len(report.failures)}",
    ]
    if report.publish_result is not None:
        lines.append(f"Pull request: #{report.publish_result.pr_number}")
    console.print(Panel("\n".join(lines), title="Pack formats"))


@app.command()
def plan(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Mapping file path"),
    cutoff: Optional[str] = typer.Option(None, "--cutoff", help="Cutoff version id"),
    manifest_url: Optional[str] = typer.Option(None, "--manifest-url", help="Version manifest URL"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """List versions that a run would resolve, without downloading archives."""
    settings = _settings(
        verbose, False, output_path=output, cutoff_version=cutoff, manifest_url=manifest_url
    )
    try:
        summary = asyncio.run(plan_only(settings))
    except PackFormatsError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Pending versions (cutoff {summary.reference.id})")
    table.add_column("Version", style="cyan")
    table.add_column("Released")
    for entry in summary.pending:
        table.add_row(entry.id, entry.raw_timestamp)
    console.print(table)
    console.print(
        f"{len(summary.pending)} pending, {summary.known} known, {summary.too_old} before cutoff"
    )


@app.command()
def show(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Mapping file path"),
) -> None:
    """Print the stored mapping."""
    settings = _settings(False, False, output_path=output)
    try:
        store = MappingStore.load(settings.output_path)
    except PackFormatsError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=str(settings.output_path))
    table.add_column("Version", style="cyan")
    table.add_column("Datapack", justify="right")
    table.add_column("Resourcepack", justify="right")
    for key, formats in store.snapshot().items():
        table.add_row(key, str(formats.datapack), str(formats.resourcepack))
    console.print(table)


def main() -> None:
    """Invoke the Typer application."""

    app()


if __name__ == "__main__":  # pragma: no cover - manual CLI invocation helper
    main()
