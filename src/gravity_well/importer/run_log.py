"""Run log entries, status strings and the markdown log note body."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


RUN_LOG_TAG = "gravity_well_import_log"

STATUS_CREATED = "Created note"
STATUS_WOULD_CREATE = "Would create note"
STATUS_SKIPPED = "Skipped existing note"
STATUS_WOULD_SKIP = "Would skip existing note"
STATUS_FAILED = "Failed to create note"
STATUS_DRY_RUN_FAILED = "Dry run failed"


def _format_mb(max_file_size_mb: float) -> str:
    return f"{max_file_size_mb:g}"


def blocked_status(max_file_size_mb: float, dry_run: bool) -> str:
    """Status for a file rejected by the size ceiling."""
    if dry_run:
        return f"Would block importing as exceeds {_format_mb(max_file_size_mb)}MB"
    return f"Blocked importing as exceeds {_format_mb(max_file_size_mb)}MB"


def failed_status(dry_run: bool) -> str:
    return STATUS_DRY_RUN_FAILED if dry_run else STATUS_FAILED


@dataclass(frozen=True)
class LogEntry:
    """One row of the run log."""
    file_path: str
    status: str


def escape_table_cell(value: str) -> str:
    """Escape pipes and flatten newlines so the value fits in a table cell."""
    return value.replace('|', '\\|').replace('\r', ' ').replace('\n', ' ')


def log_file_stem(run_id: str) -> str:
    return f"import_log_{run_id}"


def build_log_content(
    run_id: str,
    entries: Iterable[LogEntry],
    cancelled: bool = False
) -> str:
    """Render the run log as a markdown table of source path and status."""
    lines = [
        f"# Import Log - {run_id}",
        "",
        "| File Path | Status |",
        "| --- | --- |",
    ]
    for entry in entries:
        lines.append(f"| {escape_table_cell(entry.file_path)} | {escape_table_cell(entry.status)} |")

    if cancelled:
        lines.extend(["", "_Import was cancelled before all files were processed._"])

    return '\n'.join(lines) + '\n'
