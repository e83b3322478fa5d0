"""
Notes Package

Document store boundary and note writing.
"""

from .vault import (
    DocumentExistsError,
    DocumentStore,
    DocumentStoreError,
    FilesystemVault,
    NotAFolderError,
    VaultEntry,
    normalize_vault_path,
)
from .writer import (
    NotePlacement,
    NoteWriter,
    WriteResult,
    WriteStatus,
    format_tag,
    merge_tags,
    parse_front_matter,
    render_note,
)

__all__ = [
    'DocumentExistsError',
    'DocumentStore',
    'DocumentStoreError',
    'FilesystemVault',
    'NotAFolderError',
    'VaultEntry',
    'normalize_vault_path',
    'NotePlacement',
    'NoteWriter',
    'WriteResult',
    'WriteStatus',
    'format_tag',
    'merge_tags',
    'parse_front_matter',
    'render_note',
]
