"""
Import orchestration.

Sequences discovery, conversion, annotation and note writing over a batch of
files, one file at a time, and finishes every run with a log note.
"""

from __future__ import annotations

import contextlib
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, ContextManager, List, Optional, Set, Tuple

from loguru import logger

from ..analysis.link_annotator import LinkAnnotator
from ..analysis.tag_extractor import TagExtractor
from ..config.logging_config import LoggedOperation, StructuredLogger
from ..config.settings import ImportConfig
from ..notes.vault import DocumentStore
from ..notes.writer import NotePlacement, NoteWriter, WriteResult, WriteStatus
from ..scanner.file_scanner import DirectoryScanner, DiscoveredFile
from ..scanner.format_handlers import ContentExtractor
from ..scanner.metadata import STATUS_COMPLETE, STATUS_EMPTY, MetadataCollector, NoteMetadata
from .run_log import (
    RUN_LOG_TAG,
    STATUS_CREATED,
    STATUS_SKIPPED,
    STATUS_WOULD_CREATE,
    STATUS_WOULD_SKIP,
    LogEntry,
    blocked_status,
    build_log_content,
    failed_status,
    log_file_stem,
)


class ImportInProgressError(Exception):
    """Raised when a run is started while another one is still active."""
    pass


class RunState(Enum):
    """Lifecycle of an import run."""
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    WRITING_LOG = "writing_log"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunIdentity:
    """Second-resolution timestamp naming the run directory and log note."""
    token: str
    started_at: datetime

    @classmethod
    def from_datetime(cls, moment: datetime) -> RunIdentity:
        return cls(token=moment.strftime("%Y-%m-%d_%H-%M-%S"), started_at=moment.replace(microsecond=0))


@dataclass(frozen=True)
class ProgressUpdate:
    """Counters pushed to the progress sink once per file."""
    total_files: int
    files_processed: int
    files_failed: int


class ProgressSink:
    """Receives progress updates and reports user-requested cancellation.

    The base implementation ignores updates and never cancels.
    """

    is_cancelled: bool = False

    def update(self, progress: ProgressUpdate) -> None:
        pass


@dataclass
class ImportSession:
    """Mutable state of one run, owned by the orchestrator."""
    run: RunIdentity
    total_files: int = 0
    files_processed: int = 0
    files_failed: int = 0
    notes_created: int = 0
    notes_skipped: int = 0
    empty_extractions: int = 0
    cancelled: bool = False
    entries: List[LogEntry] = field(default_factory=lambda: [])
    reserved_destinations: Set[str] = field(default_factory=lambda: set())

    def record(self, file_path: Path, status: str, failed: bool) -> None:
        self.entries.append(LogEntry(file_path=str(file_path), status=status))
        self.files_processed += 1
        if failed:
            self.files_failed += 1

    @property
    def progress(self) -> ProgressUpdate:
        return ProgressUpdate(
            total_files=self.total_files,
            files_processed=self.files_processed,
            files_failed=self.files_failed
        )


@dataclass(frozen=True)
class ImportSummary:
    """Outcome of a run reported back to the caller."""
    run_id: str
    dry_run: bool
    total_files: int
    files_processed: int
    notes_created: int
    notes_skipped: int
    failures: int
    empty_extractions: int
    cancelled: bool
    log_path: Optional[str]
    log_error: Optional[str] = None
    entries: Tuple[LogEntry, ...] = ()

    @property
    def message(self) -> str:
        lines = [
            "Import cancelled." if self.cancelled else "Import complete.",
            f"Total files discovered: {self.total_files}",
            f"Total notes created: {self.notes_created}",
            f"Total failures: {self.failures}",
        ]
        if self.log_path is not None:
            lines.append(f"Import log created at: {self.log_path}")
        if self.log_error is not None:
            lines.append(f"Import log could not be written: {self.log_error}")
        return '\n'.join(lines)


class ImportOrchestrator:
    """Runs an import batch over the discovered files of one source root."""

    def __init__(
        self,
        store: DocumentStore,
        scanner: Optional[DirectoryScanner] = None,
        metadata_collector: Optional[MetadataCollector] = None,
        content_extractor: Optional[ContentExtractor] = None,
        tag_extractor: Optional[TagExtractor] = None,
        structured_logger: Optional[StructuredLogger] = None,
        clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self.store = store
        self.writer = NoteWriter(store)
        self.scanner = scanner or DirectoryScanner()
        self.metadata_collector = metadata_collector or MetadataCollector()
        self.content_extractor = content_extractor or ContentExtractor()
        self._tag_extractor = tag_extractor
        self.structured_logger = structured_logger
        self.clock = clock

        self.state = RunState.IDLE
        self._cancel_requested = False
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def tag_extractor(self) -> TagExtractor:
        if self._tag_extractor is None:
            self._tag_extractor = TagExtractor()
        return self._tag_extractor

    def cancel_import(self) -> None:
        """Request cancellation; takes effect before the next file."""
        if self._in_progress:
            logger.info("Import cancellation requested")
            self._cancel_requested = True

    def run(self, config: ImportConfig, progress: Optional[ProgressSink] = None) -> ImportSummary:
        """Run one import batch.

        Args:
            config: Run configuration, validated before any file is touched.
            progress: Optional sink for per-file progress and cancellation.

        Returns:
            ImportSummary with counts and the log note location.

        Raises:
            ConfigurationError: If the configuration is invalid. Nothing has
                been read or written at that point.
            ImportInProgressError: If another run is active.
        """
        if self._in_progress:
            raise ImportInProgressError("An import is already in progress.")

        extensions = config.validate()
        sink = progress or ProgressSink()

        self._in_progress = True
        self._cancel_requested = False
        try:
            operation: ContextManager[object] = contextlib.nullcontext()
            if self.structured_logger is not None:
                operation = LoggedOperation(
                    self.structured_logger,
                    "import_run",
                    source_root=str(config.source_root),
                    dry_run=config.dry_run
                )
            with operation:
                return self._run(config, extensions, sink)
        finally:
            self._in_progress = False
            self._cancel_requested = False

    def _run(self, config: ImportConfig, extensions: List[str], sink: ProgressSink) -> ImportSummary:
        run = RunIdentity.from_datetime(self.clock())
        session = ImportSession(run=run)
        run_directory = posixpath.join(config.target_directory, run.token)
        logger.info(
            f"Starting file processing in directory: {config.source_root} "
            f"with extensions: {', '.join(extensions)} (run {run.token}, dry run: {config.dry_run})"
        )

        self.state = RunState.SCANNING
        files = self.scanner.scan(config.source_root, extensions, config.max_recursion_depth)
        session.total_files = len(files)
        sink.update(session.progress)

        placement = NotePlacement(
            target_directory=run_directory,
            source_root=config.source_root,
            replicate_folder_structure=config.replicate_folder_structure,
            file_prefix=config.file_prefix,
            global_tags=config.global_tag_list
        )
        annotator = LinkAnnotator(
            titles=[discovered.title for discovered in files] if config.create_internal_links else (),
            link_prefix=config.file_prefix
        )

        self.state = RunState.PROCESSING
        for index, discovered in enumerate(files):
            if self._cancel_requested or sink.is_cancelled:
                logger.warning(f"Import cancelled after {index} of {len(files)} files")
                session.cancelled = True
                self.state = RunState.CANCELLED
                break

            status, failed = self._process_file(discovered, config, session, placement, annotator)
            session.record(discovered.path, status, failed)
            if self.structured_logger is not None:
                self.structured_logger.log_import_outcome(discovered.path, status, failed)
            sink.update(session.progress)

        self.state = RunState.WRITING_LOG
        log_path, log_error = self._write_log(config, session, run_directory)

        self.state = RunState.CANCELLED if session.cancelled else RunState.DONE
        summary = ImportSummary(
            run_id=run.token,
            dry_run=config.dry_run,
            total_files=session.total_files,
            files_processed=session.files_processed,
            notes_created=session.notes_created,
            notes_skipped=session.notes_skipped,
            failures=session.files_failed,
            empty_extractions=session.empty_extractions,
            cancelled=session.cancelled,
            log_path=log_path,
            log_error=log_error,
            entries=tuple(session.entries)
        )
        logger.info(summary.message.replace('\n', ' | '))
        return summary

    def _process_file(
        self,
        discovered: DiscoveredFile,
        config: ImportConfig,
        session: ImportSession,
        placement: NotePlacement,
        annotator: LinkAnnotator
    ) -> Tuple[str, bool]:
        """Run the per-file pipeline and return (status, counts_as_failure)."""
        if discovered.size_bytes > config.max_file_size_bytes:
            logger.warning(
                f"{'Dry Run: Would block' if config.dry_run else 'Blocked'} importing file "
                f"{discovered.path} as it exceeds {config.max_file_size_mb:g}MB"
            )
            return blocked_status(config.max_file_size_mb, config.dry_run), True

        try:
            metadata = self.metadata_collector.collect(
                discovered.path,
                include_basic=config.add_file_metadata,
                include_extended=config.detect_additional_metadata
            )
            content = self._build_content(discovered, config, metadata, session, annotator)

            if config.dry_run:
                result = self.writer.preview(discovered.path, placement, session.reserved_destinations)
            else:
                result = self.writer.write(discovered.path, content, metadata, placement)
        except Exception as e:
            logger.exception(f"Error processing file {discovered.path}: {e}")
            return failed_status(config.dry_run), True

        if config.dry_run:
            return self._preview_status(discovered, result, session)

        if result.status is WriteStatus.CREATED:
            session.notes_created += 1
            return STATUS_CREATED, False
        if result.status is WriteStatus.SKIPPED:
            session.notes_skipped += 1
            return STATUS_SKIPPED, False
        logger.error(f"Failed to create note for {discovered.path}: {result.reason}")
        return failed_status(config.dry_run), True

    def _preview_status(
        self,
        discovered: DiscoveredFile,
        result: WriteResult,
        session: ImportSession
    ) -> Tuple[str, bool]:
        if result.status is WriteStatus.CREATED:
            logger.info(f"Dry Run: Would create note {result.path} for {discovered.path}")
            return STATUS_WOULD_CREATE, False
        if result.status is WriteStatus.SKIPPED:
            logger.info(f"Dry Run: Would skip existing note {result.path} for {discovered.path}")
            session.notes_skipped += 1
            return STATUS_WOULD_SKIP, False
        logger.error(f"Dry Run: Would fail to create note for {discovered.path}: {result.reason}")
        return failed_status(True), True

    def _build_content(
        self,
        discovered: DiscoveredFile,
        config: ImportConfig,
        metadata: NoteMetadata,
        session: ImportSession,
        annotator: LinkAnnotator
    ) -> str:
        extraction = self.content_extractor.extract(discovered.path)
        content = extraction.text
        if extraction.is_empty:
            session.empty_extractions += 1
            if metadata.get("import_status") == STATUS_COMPLETE:
                metadata["import_status"] = STATUS_EMPTY

        if config.detect_external_urls:
            content = annotator.detect_urls(content)

        if config.tag_notes:
            metadata["tags"] = self.tag_extractor.extract_tags(content, config.max_tags)

        if config.create_internal_links:
            content = annotator.link_titles(content)

        return content

    def _write_log(
        self,
        config: ImportConfig,
        session: ImportSession,
        run_directory: str
    ) -> Tuple[Optional[str], Optional[str]]:
        """Write the run log note; failures are reported, never raised."""
        stem = log_file_stem(session.run.token)
        log_name = f"{config.file_prefix}{stem}.md"
        placement = NotePlacement(
            target_directory=run_directory,
            source_root=config.source_root,
            replicate_folder_structure=False,
            file_prefix=config.file_prefix
        )
        metadata: NoteMetadata = {
            "file_path": log_name,
            "import_date": session.run.started_at,
            "original_extension": ".md",
            "import_status": "complete",
            "tags": [RUN_LOG_TAG],
        }

        try:
            content = build_log_content(session.run.token, session.entries, session.cancelled)
            result = self.writer.write(Path(f"{stem}.md"), content, metadata, placement)
        except Exception as e:
            logger.exception(f"Error creating import log: {e}")
            return None, str(e)

        if result.status is not WriteStatus.CREATED:
            logger.error(f"Error creating import log {result.path}: {result.reason}")
            return None, result.reason

        logger.info(f"Import log created: {result.path}")
        return result.path, None
