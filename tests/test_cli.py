"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Generator

import pytest
from loguru import logger
from typer.testing import CliRunner

from gravity_well.cli import app


runner = CliRunner()


@pytest.fixture
def workdir(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    monkeypatch.chdir(temp_dir)
    yield temp_dir
    # import runs reconfigure loguru with a file sink in the working directory
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level="WARNING")


def test_config_show_defaults(workdir: Path) -> None:
    result = runner.invoke(app, ["config", "--show", "--settings", str(workdir / "s.json")])

    assert result.exit_code == 0
    assert "file_extensions" in result.stdout
    assert "gravity_well" in result.stdout


def test_config_set_persists(workdir: Path) -> None:
    settings_file = workdir / "s.json"

    result = runner.invoke(app, [
        "config", "--settings", str(settings_file), "--set", "max_tags=3", "--set", "dry_run=false"
    ])

    assert result.exit_code == 0
    stored = json.loads(settings_file.read_text())
    assert stored["max_tags"] == 3
    assert stored["dry_run"] is False


def test_config_rejects_unknown_setting(workdir: Path) -> None:
    result = runner.invoke(app, ["config", "--settings", str(workdir / "s.json"), "--set", "colour=blue"])
    assert result.exit_code == 1


def test_config_reset_requires_confirmation(workdir: Path) -> None:
    settings_file = workdir / "s.json"
    settings_file.write_text(json.dumps({"max_tags": 9}))

    declined = runner.invoke(app, ["config", "--settings", str(settings_file), "--reset"], input="n\n")
    assert json.loads(settings_file.read_text())["max_tags"] == 9

    accepted = runner.invoke(app, ["config", "--settings", str(settings_file), "--reset"], input="y\n")
    assert declined.exit_code == 0 and accepted.exit_code == 0
    assert json.loads(settings_file.read_text())["max_tags"] == 5


def test_import_creates_notes_and_log(workdir: Path, source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("Visit http://example.com today")

    result = runner.invoke(app, [
        "import", str(source_dir),
        "--vault", str(vault_dir),
        "--settings", str(workdir / "s.json"),
        "--no-dry-run",
        "--no-tags",
    ])

    assert result.exit_code == 0, result.stdout
    notes = sorted(p.name for p in vault_dir.rglob("*.md"))
    assert len(notes) == 2
    assert "a.md" in notes
    assert any(name.startswith("import_log_") for name in notes)
    assert "Notes Created" in result.stdout


def test_import_rejects_invalid_extensions(workdir: Path, source_dir: Path, vault_dir: Path) -> None:
    result = runner.invoke(app, [
        "import", str(source_dir),
        "--vault", str(vault_dir),
        "--settings", str(workdir / "s.json"),
        "--extensions", "txt,docx",
    ])

    assert result.exit_code == 1
    assert "Invalid file extensions" in result.stdout
    assert list(vault_dir.iterdir()) == []


def test_config_set_rejects_invalid_global_tags(workdir: Path) -> None:
    settings_file = workdir / "s.json"

    result = runner.invoke(app, ["config", "--settings", str(settings_file), "--set", "global_tags=ok,9lives"])

    assert result.exit_code == 1
    assert "Invalid tags" in result.stdout
    assert not settings_file.exists()


def test_logs_lists_and_opens_past_imports(workdir: Path, source_dir: Path, vault_dir: Path) -> None:
    (source_dir / "a.txt").write_text("a")
    settings_file = str(workdir / "s.json")
    imported = runner.invoke(app, [
        "import", str(source_dir), "--vault", str(vault_dir), "--settings", settings_file, "--no-tags",
    ])
    assert imported.exit_code == 0, imported.stdout

    listed = runner.invoke(app, ["logs", "--vault", str(vault_dir), "--settings", settings_file])
    opened = runner.invoke(app, ["logs", "--vault", str(vault_dir), "--settings", settings_file, "--open", "1"])
    missing = runner.invoke(app, ["logs", "--vault", str(vault_dir), "--settings", settings_file, "--open", "2"])

    assert listed.exit_code == 0
    assert "Past Imports" in listed.stdout
    assert opened.exit_code == 0
    assert "Import Log" in opened.stdout
    assert "Would create note" in opened.stdout
    assert missing.exit_code == 1


def test_logs_without_target_folder(workdir: Path, vault_dir: Path) -> None:
    result = runner.invoke(app, ["logs", "--vault", str(vault_dir), "--settings", str(workdir / "s.json")])

    assert result.exit_code == 0
    assert "does not exist in your vault" in result.stdout
