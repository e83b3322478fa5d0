"""
Note materialization: destination paths, front matter and conflict handling.
"""

from __future__ import annotations

import io
import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Set, Union

import yaml
from loguru import logger

from ..scanner.metadata import NoteMetadata
from .vault import (
    DocumentExistsError,
    DocumentStore,
    DocumentStoreError,
    normalize_vault_path,
)


NOTE_EXTENSION = ".md"

FRONT_MATTER_PATTERN = re.compile(r"^\s*---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


class WriteStatus(Enum):
    """Outcome of writing a single note."""
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteResult:
    """Tagged outcome of a write, with the reason for skips and failures."""
    status: WriteStatus
    path: str
    reason: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.status is WriteStatus.CREATED


@dataclass(frozen=True)
class NotePlacement:
    """Where and how notes of one run are placed in the document store."""
    target_directory: str
    source_root: Path
    replicate_folder_structure: bool = True
    file_prefix: str = ""
    global_tags: List[str] = field(default_factory=lambda: [])


def format_tag(tag: str) -> str:
    """Format a tag as a single taggable token."""
    tag = tag.strip().lstrip('#').strip()
    return re.sub(r'\s+', '-', tag)


def merge_tags(tags: Iterable[Any], global_tags: Iterable[str]) -> List[str]:
    """Merge per-file and global tags, formatted and deduplicated in order."""
    merged: List[str] = []
    for tag in [*tags, *global_tags]:
        formatted = format_tag(str(tag))
        if formatted and formatted not in merged:
            merged.append(formatted)
    return merged


def render_note(content: str, metadata: NoteMetadata) -> str:
    """Serialize metadata as YAML front matter followed by the body."""
    fm_buf = io.StringIO()
    yaml.safe_dump(
        dict(metadata),
        fm_buf,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False
    )
    return f"---\n{fm_buf.getvalue()}---\n\n{content}"


def parse_front_matter(text: str) -> NoteMetadata:
    """Return the YAML front matter of a note, or an empty mapping.

    Invalid YAML or a non-mapping header is treated as no front matter.
    """
    fm_match = FRONT_MATTER_PATTERN.match(text)
    if not fm_match:
        return {}
    try:
        meta = yaml.safe_load(io.StringIO(fm_match.group(1))) or {}
    except yaml.YAMLError as e:
        logger.debug(f"Ignoring invalid front matter: {e}")
        return {}
    return meta if isinstance(meta, dict) else {}


class NoteWriter:
    """Writes notes into a document store without ever overwriting."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def compute_destination(self, source_path: Union[str, Path], placement: NotePlacement) -> str:
        """Vault-relative path of the note for a source file."""
        source_path = Path(source_path)
        note_dir = normalize_vault_path(placement.target_directory)

        if placement.replicate_folder_structure:
            try:
                relative = source_path.resolve().relative_to(placement.source_root.resolve())
            except ValueError:
                relative = Path(source_path.name)
            parent = normalize_vault_path(relative.parent.as_posix())
            if parent:
                note_dir = posixpath.join(note_dir, parent) if note_dir else parent

        file_name = f"{placement.file_prefix}{source_path.stem}{NOTE_EXTENSION}"
        return posixpath.join(note_dir, file_name) if note_dir else file_name

    def preview(
        self,
        source_path: Union[str, Path],
        placement: NotePlacement,
        reserved: Set[str]
    ) -> WriteResult:
        """Predict the outcome of write() without touching the store.

        Destinations predicted as created are added to reserved, so a later
        source mapping to the same note is predicted as skipped.
        """
        try:
            note_path = self.compute_destination(source_path, placement)
        except DocumentStoreError as e:
            return WriteResult(WriteStatus.FAILED, str(source_path), str(e))

        segments = posixpath.dirname(note_path).split('/')
        for index in range(1, len(segments) + 1):
            folder = '/'.join(segments[:index])
            if not folder:
                continue
            entry = self.store.resolve_path(folder)
            if entry is None:
                break
            if not entry.is_folder:
                reason = f"Cannot create folder {folder}: a file with the same name already exists."
                return WriteResult(WriteStatus.FAILED, note_path, reason)

        if note_path in reserved or self.store.resolve_path(note_path) is not None:
            return WriteResult(WriteStatus.SKIPPED, note_path, "Destination already exists")

        reserved.add(note_path)
        return WriteResult(WriteStatus.CREATED, note_path)

    def write(
        self,
        source_path: Union[str, Path],
        content: str,
        metadata: NoteMetadata,
        placement: NotePlacement
    ) -> WriteResult:
        """Create the note for a source file.

        Args:
            source_path: Original file the note is built from.
            content: Note body.
            metadata: Metadata for the front matter; its tags are replaced by
                the merged, formatted tag list.
            placement: Placement options of the run.

        Returns:
            WriteResult describing whether the note was created, skipped
            because the destination exists, or failed.
        """
        try:
            note_path = self.compute_destination(source_path, placement)
        except DocumentStoreError as e:
            logger.error(f"Cannot place note for {source_path}: {e}")
            return WriteResult(WriteStatus.FAILED, str(source_path), str(e))

        note_dir = posixpath.dirname(note_path)
        if note_dir:
            existing_dir = self.store.resolve_path(note_dir)
            if existing_dir is None:
                try:
                    self.store.create_folder(note_dir)
                except DocumentStoreError as e:
                    logger.error(str(e))
                    return WriteResult(WriteStatus.FAILED, note_path, str(e))
            elif not existing_dir.is_folder:
                reason = f"Cannot create folder {note_dir}: a file with the same name already exists."
                logger.error(reason)
                return WriteResult(WriteStatus.FAILED, note_path, reason)

        if self.store.resolve_path(note_path) is not None:
            logger.info(f"File {note_path} already exists in the vault. Skipping.")
            return WriteResult(WriteStatus.SKIPPED, note_path, "Destination already exists")

        metadata["tags"] = merge_tags(metadata.get("tags") or [], placement.global_tags)

        try:
            self.store.create_document(note_path, render_note(content, metadata))
        except DocumentExistsError as e:
            logger.info(f"{e}. Skipping.")
            return WriteResult(WriteStatus.SKIPPED, note_path, str(e))
        except (DocumentStoreError, yaml.YAMLError) as e:
            logger.error(f"Failed to create note {note_path}: {e}")
            return WriteResult(WriteStatus.FAILED, note_path, str(e))

        logger.info(f"Created note: {note_path}")
        return WriteResult(WriteStatus.CREATED, note_path)
