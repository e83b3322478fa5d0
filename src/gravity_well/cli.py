"""
Command Line Interface for Gravity Well

Imports external files into a vault as notes and manages import settings.
"""

from __future__ import annotations

import signal
from dataclasses import fields
from pathlib import Path
from types import FrameType
from typing import Any, Dict, List, Optional

import typer
from rich import print as rich_print
from rich.console import Console
from rich.markdown import Markdown
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from .config.logging_config import LoggingConfig, setup_logging
from .config.settings import (
    DEFAULT_SETTINGS_FILE,
    ConfigurationError,
    ImportConfig,
    load_settings,
    reset_settings,
    save_settings,
    validate_global_tags,
)
from .importer.history import find_run_logs
from .importer.orchestrator import (
    ImportInProgressError,
    ImportOrchestrator,
    ImportSummary,
    ProgressSink,
    ProgressUpdate,
)
from .notes.vault import DocumentStoreError, FilesystemVault


app = typer.Typer(
    name="gravity-well",
    help="Gravity Well - Import text, markdown and PDF files into your vault as notes",
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()


class ConsoleProgress(ProgressSink):
    """Renders per-file progress with rich and turns Ctrl+C into a cancel request."""

    def __init__(self, progress: Progress) -> None:
        self.progress = progress
        self.task_id = progress.add_task("Importing", total=None)
        self.is_cancelled = False
        self._previous_handler: Any = None

    def update(self, update: ProgressUpdate) -> None:
        self.progress.update(
            self.task_id,
            total=update.total_files,
            completed=update.files_processed,
            description=f"Importing ([red]{update.files_failed} failed[/red])"
        )

    def __enter__(self) -> ConsoleProgress:
        self._previous_handler = signal.signal(signal.SIGINT, self._request_cancel)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        signal.signal(signal.SIGINT, self._previous_handler)

    def _request_cancel(self, signum: int, frame: Optional[FrameType]) -> None:
        if self.is_cancelled:
            raise KeyboardInterrupt
        self.is_cancelled = True
        self.progress.console.print(
            "[yellow]Cancelling after the current file... press Ctrl+C again to force quit[/yellow]"
        )


def _print_summary(summary: ImportSummary) -> None:
    title = f"Import {'Preview' if summary.dry_run else 'Results'}: {summary.run_id}"
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Files Discovered", str(summary.total_files))
    table.add_row("Files Processed", str(summary.files_processed))
    table.add_row("Notes Created", str(summary.notes_created))
    table.add_row("Skipped (already exist)", str(summary.notes_skipped))
    table.add_row("Failures", str(summary.failures))
    table.add_row("Empty Extractions", str(summary.empty_extractions))
    table.add_row("Import Log", summary.log_path or "[red]not written[/red]")

    console.print(table)

    if summary.cancelled:
        rich_print("[yellow]Import has been cancelled.[/yellow]")
    if summary.log_error:
        rich_print(f"[red]Import log could not be written: {summary.log_error}[/red]")


def _coerce_setting(name: str, raw: str) -> Any:
    """Convert a CLI string to the type of the named ImportConfig field."""
    defaults = ImportConfig()
    current = getattr(defaults, name)
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise typer.BadParameter(f"{name} expects true/false, got '{raw}'")
    if name == "max_file_size_mb":
        return float(raw)
    if isinstance(current, int):
        return int(raw)
    return raw


@app.command("import")
def import_files(
    source: Optional[Path] = typer.Argument(None, help="Directory to import from (default: configured import directory)"),
    vault: Optional[Path] = typer.Option(None, "--vault", "-v", help="Vault directory notes are written into"),
    extensions: Optional[str] = typer.Option(None, "--extensions", "-e", help="Comma separated list from txt, md, pdf"),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Max recursion depth (-1 unlimited, 0 root only)"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Prefix added to every note file name"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Preview without creating notes"),
    replicate: Optional[bool] = typer.Option(None, "--replicate-folders/--flat", help="Mirror the source folder structure"),
    urls: Optional[bool] = typer.Option(None, "--urls/--no-urls", help="Turn bare URLs into links"),
    tags: Optional[bool] = typer.Option(None, "--tags/--no-tags", help="Tag notes based on content"),
    max_tags: Optional[int] = typer.Option(None, "--max-tags", help="Maximum detected tags per note"),
    links: Optional[bool] = typer.Option(None, "--links/--no-links", help="Link mentions of other imported notes"),
    file_metadata: Optional[bool] = typer.Option(None, "--metadata/--no-metadata", help="Add file timestamps, size and machine name"),
    extended_metadata: Optional[bool] = typer.Option(None, "--owner/--no-owner", help="Add the file owner"),
    global_tags: Optional[str] = typer.Option(None, "--global-tags", help="Comma separated tags added to every note"),
    max_size: Optional[float] = typer.Option(None, "--max-size", help="Maximum file size in MB"),
    settings_file: Path = typer.Option(DEFAULT_SETTINGS_FILE, "--settings", help="Settings file"),
    show_log: bool = typer.Option(False, "--show-log", help="Print the import log note when done"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging")
) -> None:
    """Import files into the vault as notes."""
    try:
        config = load_settings(settings_file).with_overrides(
            source_root=source,
            vault_root=vault,
            file_extensions=extensions,
            max_recursion_depth=depth,
            file_prefix=prefix,
            dry_run=dry_run,
            replicate_folder_structure=replicate,
            detect_external_urls=urls,
            tag_notes=tags,
            max_tags=max_tags,
            create_internal_links=links,
            add_file_metadata=file_metadata,
            detect_additional_metadata=extended_metadata,
            global_tags=global_tags,
            max_file_size_mb=max_size,
            debug_enabled=True if debug else None
        )
    except ConfigurationError as e:
        rich_print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    structured_logger = setup_logging(LoggingConfig.for_debug(config.debug_enabled))

    rich_print(f"\n[bold blue]{'Previewing' if config.dry_run else 'Importing'} {config.source_root}[/bold blue]")

    store = FilesystemVault(config.vault_root)
    orchestrator = ImportOrchestrator(store, structured_logger=structured_logger)

    try:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True
        ) as progress, ConsoleProgress(progress) as sink:
            summary = orchestrator.run(config, sink)
    except (ConfigurationError, ImportInProgressError) as e:
        rich_print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        rich_print("\n[yellow]Force quit - import terminated[/yellow]")
        raise typer.Exit(130)

    _print_summary(summary)

    if show_log and summary.log_path:
        try:
            console.print(Markdown(store.open_document(summary.log_path)))
        except DocumentStoreError as e:
            rich_print(f"[red]{e}[/red]")

    if summary.log_error:
        raise typer.Exit(1)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    reset: bool = typer.Option(False, "--reset", help="Reset configuration to defaults"),
    set_values: Optional[List[str]] = typer.Option(None, "--set", help="Set a value, e.g. --set max_tags=3"),
    settings_file: Path = typer.Option(DEFAULT_SETTINGS_FILE, "--settings", help="Settings file")
) -> None:
    """Show, change or reset import settings."""
    try:
        if reset:
            if not typer.confirm("Reset all settings to defaults?"):
                rich_print("[yellow]Reset cancelled[/yellow]")
                return
            settings = reset_settings(settings_file)
            rich_print(f"[green]Settings reset to defaults in {settings_file}[/green]")
        else:
            settings = load_settings(settings_file)

        if set_values:
            known = {f.name for f in fields(ImportConfig)}
            changes: Dict[str, Any] = {}
            for assignment in set_values:
                name, sep, raw = assignment.partition('=')
                name = name.strip()
                if not sep or name not in known:
                    rich_print(f"[red]Unknown setting assignment: {assignment}[/red]")
                    raise typer.Exit(1)
                changes[name] = _coerce_setting(name, raw)
            settings = settings.with_overrides(**changes)
            validate_global_tags(settings.global_tags)
            save_settings(settings, settings_file)
            rich_print(f"[green]Updated {', '.join(changes)} in {settings_file}[/green]")
    except (ConfigurationError, ValueError) as e:
        rich_print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if show or not (reset or set_values):
        table = Table(title=f"Settings: {settings_file}", show_header=True, header_style="bold magenta")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        for name, value in settings.to_dict().items():
            table.add_row(name, str(value))
        console.print(table)


@app.command()
def logs(
    vault: Optional[Path] = typer.Option(None, "--vault", "-v", help="Vault directory to search"),
    open_index: Optional[int] = typer.Option(None, "--open", "-o", help="Render the log with this number (1 is the newest)"),
    settings_file: Path = typer.Option(DEFAULT_SETTINGS_FILE, "--settings", help="Settings file")
) -> None:
    """List past import logs, newest first."""
    try:
        settings = load_settings(settings_file).with_overrides(vault_root=vault)
    except ConfigurationError as e:
        rich_print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    store = FilesystemVault(settings.vault_root)
    target = store.resolve_path(settings.target_directory)
    if target is None or not target.is_folder:
        rich_print(f"[yellow]The \"{settings.target_directory}\" folder does not exist in your vault.[/yellow]")
        return

    run_logs = find_run_logs(store, settings.target_directory)
    if not run_logs:
        rich_print("[yellow]No import logs found.[/yellow]")
        return

    if open_index is not None:
        if not 1 <= open_index <= len(run_logs):
            rich_print(f"[red]No import log number {open_index}; choose 1 to {len(run_logs)}[/red]")
            raise typer.Exit(1)
        try:
            console.print(Markdown(store.open_document(run_logs[open_index - 1])))
        except DocumentStoreError as e:
            rich_print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        return

    table = Table(title="Past Imports", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan")
    table.add_column("Import Log", style="green")
    for number, path in enumerate(run_logs, start=1):
        table.add_row(str(number), path)
    console.print(table)


def main() -> None:
    """Main entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
