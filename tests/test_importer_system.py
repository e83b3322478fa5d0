"""Pytest-based tests for import orchestration and the run log."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import yaml

from gravity_well.analysis.tag_extractor import NlpService, TagExtractor
from gravity_well.config.settings import ConfigurationError, ImportConfig
from gravity_well.importer.history import find_run_logs
from gravity_well.importer.orchestrator import (
    ImportInProgressError,
    ImportOrchestrator,
    ProgressSink,
    ProgressUpdate,
    RunIdentity,
    RunState,
)
from gravity_well.importer.run_log import (
    RUN_LOG_TAG,
    STATUS_CREATED,
    STATUS_DRY_RUN_FAILED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    STATUS_WOULD_CREATE,
    STATUS_WOULD_SKIP,
    LogEntry,
    blocked_status,
    build_log_content,
)
from gravity_well.notes.vault import FilesystemVault
from gravity_well.scanner.format_handlers import ContentExtractor, ExtractionResult
from gravity_well.scanner.metadata import MetadataCollector, NoteMetadata
from tests.conftest import FIXED_RUN, FIXED_RUN_ID, FakeNlp


RUN_DIR = Path("gravity_well") / FIXED_RUN_ID
LOG_NOTE = RUN_DIR / f"import_log_{FIXED_RUN_ID}.md"


def _orchestrator(vault_dir: Path, clock: datetime = FIXED_RUN, **kwargs: Any) -> ImportOrchestrator:
    kwargs.setdefault(
        "tag_extractor",
        TagExtractor(NlpService(nlp=FakeNlp(nouns=("details", "today", "water", "garden"))))
    )
    return ImportOrchestrator(FilesystemVault(vault_dir), clock=lambda: clock, **kwargs)


def _config(source_dir: Path, vault_dir: Path, **kwargs: Any) -> ImportConfig:
    defaults: Dict[str, Any] = {
        "source_root": source_dir,
        "vault_root": vault_dir,
        "file_extensions": "txt,md",
        "dry_run": False,
        "max_tags": 2,
    }
    defaults.update(kwargs)
    return ImportConfig(**defaults)


def _read_note(path: Path) -> tuple[Dict[str, Any], str]:
    header, body = path.read_text(encoding="utf-8")[4:].split("\n---\n\n", 1)
    return yaml.safe_load(header), body


def _statuses(entries: Any) -> List[str]:
    return [entry.status for entry in entries]


class RecordingSink(ProgressSink):
    def __init__(self, cancel_after: Optional[int] = None) -> None:
        self.updates: List[ProgressUpdate] = []
        self.cancel_after = cancel_after
        self.is_cancelled = False

    def update(self, progress: ProgressUpdate) -> None:
        self.updates.append(progress)
        if self.cancel_after is not None and progress.files_processed >= self.cancel_after:
            self.is_cancelled = True


class SpyExtractor(ContentExtractor):
    def __init__(self) -> None:
        super().__init__()
        self.opened: List[Path] = []

    def extract(self, file_path: Any) -> ExtractionResult:
        self.opened.append(Path(file_path))
        return super().extract(file_path)


def test_run_identity_format() -> None:
    identity = RunIdentity.from_datetime(datetime(2024, 1, 2, 3, 4, 5, 999))
    assert identity.token == "2024-01-02_03-04-05"
    assert identity.started_at.microsecond == 0


def test_build_log_content_escapes_pipes() -> None:
    content = build_log_content("run", [LogEntry("/a|b.txt", STATUS_CREATED)])
    assert content.startswith("# Import Log - run\n\n| File Path | Status |\n| --- | --- |\n")
    assert "| /a\\|b.txt | Created note |" in content


def test_blocked_status_text() -> None:
    assert blocked_status(1, dry_run=False) == "Blocked importing as exceeds 1MB"
    assert blocked_status(2.5, dry_run=True) == "Would block importing as exceeds 2.5MB"


def test_url_and_cross_reference_scenario(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("Visit http://example.com today")
    (source_dir / "b.md").write_text("See a for details")
    config = _config(source_dir, vault_dir, detect_external_urls=True, create_internal_links=True)

    summary = _orchestrator(vault_dir).run(config)

    assert summary.notes_created == 2
    assert summary.failures == 0
    _, a_body = _read_note(vault_dir / RUN_DIR / "a.md")
    _, b_body = _read_note(vault_dir / RUN_DIR / "b.md")
    assert "[http://example.com](http://example.com)" in a_body
    assert "[[a]]" in b_body
    assert b_body == "See [[a]] for details"


def test_note_front_matter(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "garden.md").write_text("The garden needs water. The garden is green.")
    config = _config(source_dir, vault_dir, global_tags="imported, inbox")

    _orchestrator(vault_dir).run(config)

    metadata, _ = _read_note(vault_dir / RUN_DIR / "garden.md")
    assert metadata["file_path"] == str((source_dir / "garden.md").resolve())
    assert metadata["original_extension"] == ".md"
    assert metadata["import_status"] == "complete"
    assert metadata["tags"] == ["garden", "water", "imported", "inbox"]
    assert "machine_name" in metadata


def test_oversize_file_is_blocked_and_never_opened(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "big.txt").write_bytes(b"x" * (2 * 1024 * 1024))
    (source_dir / "small.txt").write_text("small")
    spy = SpyExtractor()
    config = _config(source_dir, vault_dir, max_file_size_mb=1)

    summary = _orchestrator(vault_dir, content_extractor=spy).run(config)

    assert [p.name for p in spy.opened] == ["small.txt"]
    assert summary.failures == 1
    assert not (vault_dir / RUN_DIR / "big.md").exists()
    log_text = (vault_dir / LOG_NOTE).read_text()
    assert "Blocked importing as exceeds 1MB" in log_text


def test_oversize_counts_as_failure_in_dry_run(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "big.txt").write_bytes(b"x" * (2 * 1024 * 1024))
    config = _config(source_dir, vault_dir, max_file_size_mb=1, dry_run=True)

    summary = _orchestrator(vault_dir).run(config)

    assert summary.failures == 1
    assert _statuses(summary.entries) == ["Would block importing as exceeds 1MB"]


def test_dry_run_mirrors_real_run(source_dir: Path, vault_dir: Path, temp_dir: Path) -> None:
    (source_dir / "one.txt").write_text("first file")
    (source_dir / "two.md").write_text("second file")
    (source_dir / "big.txt").write_bytes(b"x" * (2 * 1024 * 1024))
    dry_vault = temp_dir / "dry_vault"
    dry_vault.mkdir()

    real = _orchestrator(vault_dir).run(_config(source_dir, vault_dir, max_file_size_mb=1))
    dry = _orchestrator(dry_vault).run(_config(source_dir, dry_vault, max_file_size_mb=1, dry_run=True))

    to_would = {
        STATUS_CREATED: STATUS_WOULD_CREATE,
        blocked_status(1, False): blocked_status(1, True),
        STATUS_SKIPPED: STATUS_WOULD_SKIP,
        STATUS_FAILED: STATUS_DRY_RUN_FAILED,
    }
    assert len(dry.entries) == len(real.entries)
    assert _statuses(dry.entries) == [to_would[status] for status in _statuses(real.entries)]
    assert dry.notes_created == 0
    created = sorted(p.relative_to(dry_vault) for p in dry_vault.rglob("*.md"))
    assert created == [LOG_NOTE]


def test_every_discovered_file_is_logged(source_dir: Path, vault_dir: Path) -> None:
    for name in ("a.txt", "b.txt", "c.md"):
        (source_dir / name).write_text(f"content of {name}")
    (source_dir / "big.md").write_bytes(b"y" * (2 * 1024 * 1024))

    summary = _orchestrator(vault_dir).run(_config(source_dir, vault_dir, max_file_size_mb=1))

    assert len(summary.entries) == summary.total_files == 4
    assert summary.files_processed == 4


def test_same_run_identity_skips_second_write(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("hello")
    config = _config(source_dir, vault_dir)

    first = _orchestrator(vault_dir).run(config)
    second = _orchestrator(vault_dir).run(config)

    assert _statuses(first.entries) == [STATUS_CREATED]
    assert _statuses(second.entries) == [STATUS_SKIPPED]
    assert second.notes_skipped == 1
    assert second.failures == 0
    assert len(list((vault_dir / RUN_DIR).glob("a.md"))) == 1
    assert second.log_error is not None
    assert second.log_path is None


def test_invalid_extensions_abort_without_side_effects(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("hello")
    orchestrator = _orchestrator(vault_dir)

    with pytest.raises(ConfigurationError):
        orchestrator.run(_config(source_dir, vault_dir, file_extensions="txt,docx"))

    assert list(vault_dir.iterdir()) == []
    assert orchestrator.state is RunState.IDLE
    assert not orchestrator.in_progress


def test_missing_source_root_aborts(temp_dir: Path, vault_dir: Path) -> None:
    with pytest.raises(ConfigurationError):
        _orchestrator(vault_dir).run(_config(temp_dir / "missing", vault_dir))
    assert list(vault_dir.iterdir()) == []


def test_progress_reported_once_per_file(source_dir: Path, vault_dir: Path) -> None:
    for name in ("a.txt", "b.txt", "c.txt"):
        (source_dir / name).write_text(name)
    sink = RecordingSink()

    _orchestrator(vault_dir).run(_config(source_dir, vault_dir), sink)

    # one update after scanning, then one per file
    assert [u.files_processed for u in sink.updates] == [0, 1, 2, 3]
    assert all(u.total_files == 3 for u in sink.updates)


def test_cancellation_stops_between_files(source_dir: Path, vault_dir: Path) -> None:
    for name in ("a.txt", "b.txt", "c.txt"):
        (source_dir / name).write_text(name)
    orchestrator = _orchestrator(vault_dir)

    summary = orchestrator.run(_config(source_dir, vault_dir), RecordingSink(cancel_after=1))

    assert summary.cancelled
    assert _statuses(summary.entries) == [STATUS_CREATED]
    assert (vault_dir / RUN_DIR / "a.md").exists()
    assert not (vault_dir / RUN_DIR / "b.md").exists()
    assert "cancelled" in (vault_dir / LOG_NOTE).read_text()
    assert orchestrator.state is RunState.CANCELLED


def test_cancel_import_request(source_dir: Path, vault_dir: Path) -> None:
    for name in ("a.txt", "b.txt"):
        (source_dir / name).write_text(name)
    orchestrator = _orchestrator(vault_dir)

    class CancelOnFirstFile(ProgressSink):
        def update(self, progress: ProgressUpdate) -> None:
            if progress.files_processed == 1:
                orchestrator.cancel_import()

    summary = orchestrator.run(_config(source_dir, vault_dir), CancelOnFirstFile())

    assert summary.cancelled
    assert summary.files_processed == 1

    # the same orchestrator starts the next run with a clear cancellation flag
    orchestrator.clock = lambda: datetime(2024, 5, 1, 13, 0, 0)
    assert not orchestrator.in_progress
    orchestrator.cancel_import()  # no run active, ignored
    second = orchestrator.run(_config(source_dir, vault_dir), RecordingSink())

    assert not second.cancelled
    assert _statuses(second.entries) == [STATUS_CREATED, STATUS_CREATED]
    assert orchestrator.state is RunState.DONE


def test_concurrent_run_is_rejected(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    orchestrator = _orchestrator(vault_dir)
    errors: List[Exception] = []

    class Reentrant(ProgressSink):
        def update(self, progress: ProgressUpdate) -> None:
            try:
                orchestrator.run(_config(source_dir, vault_dir))
            except ImportInProgressError as e:
                errors.append(e)

    orchestrator.run(_config(source_dir, vault_dir), Reentrant())

    assert errors
    assert not orchestrator.in_progress


def test_single_bad_file_does_not_abort_batch(source_dir: Path, vault_dir: Path) -> None:
    for name in ("a.txt", "bad.txt", "c.txt"):
        (source_dir / name).write_text(name)

    class Exploding(MetadataCollector):
        def collect(self, path: Any, include_basic: bool = True, include_extended: bool = False) -> NoteMetadata:
            if Path(path).name == "bad.txt":
                raise RuntimeError("boom")
            return super().collect(path, include_basic, include_extended)

    summary = _orchestrator(vault_dir, metadata_collector=Exploding()).run(_config(source_dir, vault_dir))

    assert _statuses(summary.entries) == [STATUS_CREATED, STATUS_FAILED, STATUS_CREATED]
    assert summary.failures == 1


def test_bad_file_in_dry_run_logs_dry_run_failed(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "bad.txt").write_text("bad")

    class Exploding(MetadataCollector):
        def collect(self, path: Any, include_basic: bool = True, include_extended: bool = False) -> NoteMetadata:
            raise RuntimeError("boom")

    config = _config(source_dir, vault_dir, dry_run=True)
    summary = _orchestrator(vault_dir, metadata_collector=Exploding()).run(config)

    assert _statuses(summary.entries) == [STATUS_DRY_RUN_FAILED]


def test_destination_collision_fails_single_file(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    (source_dir / "sub").mkdir()
    (source_dir / "sub" / "c.txt").write_text("c")
    (vault_dir / RUN_DIR).mkdir(parents=True)
    (vault_dir / RUN_DIR / "sub").write_text("a file where a folder should be")

    summary = _orchestrator(vault_dir).run(_config(source_dir, vault_dir, max_recursion_depth=1))

    assert _statuses(summary.entries) == [STATUS_CREATED, STATUS_FAILED]
    assert summary.log_path == LOG_NOTE.as_posix()


def test_log_note_contents(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    config = _config(source_dir, vault_dir, file_prefix="imp_")

    summary = _orchestrator(vault_dir).run(config)

    log_path = RUN_DIR / f"imp_import_log_{FIXED_RUN_ID}.md"
    assert summary.log_path == log_path.as_posix()
    metadata, body = _read_note(vault_dir / log_path)
    assert metadata["tags"] == [RUN_LOG_TAG]
    assert metadata["original_extension"] == ".md"
    assert body.startswith(f"# Import Log - {FIXED_RUN_ID}")
    assert f"| {(source_dir / 'a.txt').resolve()} | {STATUS_CREATED} |" in body
    assert (vault_dir / RUN_DIR / "imp_a.md").exists()


def test_log_is_written_in_dry_run(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")

    summary = _orchestrator(vault_dir).run(_config(source_dir, vault_dir, dry_run=True))

    assert summary.log_path == LOG_NOTE.as_posix()
    assert STATUS_WOULD_CREATE in (vault_dir / LOG_NOTE).read_text()
    assert not (vault_dir / RUN_DIR / "a.md").exists()


def test_empty_extraction_is_marked(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "empty.txt").write_text("")

    summary = _orchestrator(vault_dir).run(_config(source_dir, vault_dir))

    assert summary.empty_extractions == 1
    assert _statuses(summary.entries) == [STATUS_CREATED]
    metadata, _ = _read_note(vault_dir / RUN_DIR / "empty.md")
    assert metadata["import_status"] == "empty"


def test_flat_placement(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "deep").mkdir()
    (source_dir / "deep" / "n.txt").write_text("n")
    config = _config(source_dir, vault_dir, max_recursion_depth=-1, replicate_folder_structure=False)

    _orchestrator(vault_dir).run(config)

    assert (vault_dir / RUN_DIR / "n.md").exists()
    assert not (vault_dir / RUN_DIR / "deep").exists()


def test_toggles_disable_annotation(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("Visit http://example.com today")
    nlp = FakeNlp(nouns=("today",))
    config = _config(
        source_dir,
        vault_dir,
        detect_external_urls=False,
        tag_notes=False,
        create_internal_links=False,
        add_file_metadata=False
    )

    _orchestrator(vault_dir, tag_extractor=TagExtractor(NlpService(nlp=nlp))).run(config)

    metadata, body = _read_note(vault_dir / RUN_DIR / "a.md")
    assert body == "Visit http://example.com today"
    assert metadata["tags"] == []
    assert "size" not in metadata
    assert nlp.calls == []


def test_base_progress_sink_never_cancels() -> None:
    sink = ProgressSink()
    sink.update(ProgressUpdate(total_files=1, files_processed=1, files_failed=0))
    assert sink.is_cancelled is False


def test_invalid_global_tags_abort_run(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")

    with pytest.raises(ConfigurationError, match="Invalid tags: bad tag!, 9lives"):
        _orchestrator(vault_dir).run(_config(source_dir, vault_dir, global_tags="good, bad tag!, 9lives"))

    assert list(vault_dir.iterdir()) == []


def test_dry_run_matches_real_run_for_same_stem_files(
    source_dir: Path,
    vault_dir: Path,
    temp_dir: Path
) -> None:
    (source_dir / "a.md").write_text("markdown a")
    (source_dir / "a.txt").write_text("text a")
    dry_vault = temp_dir / "dry_vault"
    dry_vault.mkdir()

    real = _orchestrator(vault_dir).run(_config(source_dir, vault_dir))
    dry = _orchestrator(dry_vault).run(_config(source_dir, dry_vault, dry_run=True))

    assert _statuses(real.entries) == [STATUS_CREATED, STATUS_SKIPPED]
    assert _statuses(dry.entries) == [STATUS_WOULD_CREATE, STATUS_WOULD_SKIP]
    assert dry.notes_skipped == real.notes_skipped == 1


def test_dry_run_reports_existing_vault_note(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    (source_dir / "b.txt").write_text("b")
    (vault_dir / RUN_DIR).mkdir(parents=True)
    (vault_dir / RUN_DIR / "a.md").write_text("already here")

    summary = _orchestrator(vault_dir).run(_config(source_dir, vault_dir, dry_run=True))

    assert _statuses(summary.entries) == [STATUS_WOULD_SKIP, STATUS_WOULD_CREATE]
    assert (vault_dir / RUN_DIR / "a.md").read_text() == "already here"
    assert summary.failures == 0


def test_dry_run_reports_folder_collision(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    (source_dir / "sub").mkdir()
    (source_dir / "sub" / "c.txt").write_text("c")
    (vault_dir / RUN_DIR).mkdir(parents=True)
    (vault_dir / RUN_DIR / "sub").write_text("a file where a folder should be")

    config = _config(source_dir, vault_dir, max_recursion_depth=1, dry_run=True)
    summary = _orchestrator(vault_dir).run(config)

    assert _statuses(summary.entries) == [STATUS_WOULD_CREATE, STATUS_DRY_RUN_FAILED]
    assert summary.failures == 1


def test_find_run_logs_newest_first(source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    for hour in (9, 11, 10):
        run = datetime(2024, 5, 1, hour, 0, 0)
        _orchestrator(vault_dir, clock=run).run(_config(source_dir, vault_dir, dry_run=True))
    store = FilesystemVault(vault_dir)
    store.create_document("gravity_well/plain.md", "---\ntags:\n- other\n---\n\nnot a log")
    store.create_document("gravity_well/hashed.md", f"---\ntags:\n- '#{RUN_LOG_TAG}'\n---\n\nlog")

    logs = find_run_logs(store, "gravity_well")

    assert logs == [
        "gravity_well/hashed.md",
        "gravity_well/2024-05-01_11-00-00/import_log_2024-05-01_11-00-00.md",
        "gravity_well/2024-05-01_10-00-00/import_log_2024-05-01_10-00-00.md",
        "gravity_well/2024-05-01_09-00-00/import_log_2024-05-01_09-00-00.md",
    ]


def test_find_run_logs_missing_folder(vault_dir: Path) -> None:
    assert find_run_logs(FilesystemVault(vault_dir), "gravity_well") == []
