"""Document store boundary and its local-directory implementation."""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger


class DocumentStoreError(Exception):
    """Base exception for document store operations."""
    pass


class DocumentExistsError(DocumentStoreError):
    """Raised when creating a document at a path that is already taken."""
    pass


class NotAFolderError(DocumentStoreError):
    """Raised when a folder path segment is an existing document."""
    pass


@dataclass(frozen=True)
class VaultEntry:
    """An existing entry in the document store."""
    path: str
    is_folder: bool


def normalize_vault_path(path: Union[str, Path]) -> str:
    """Normalize to a vault-relative POSIX path without leading/trailing slashes.

    Raises:
        DocumentStoreError: If the path escapes the vault root.
    """
    raw = str(path).replace('\\', '/')
    normalized = posixpath.normpath(raw).strip('/')
    if normalized in ('', '.'):
        return ''
    if normalized == '..' or normalized.startswith('../'):
        raise DocumentStoreError(f"Path escapes the vault: {path}")
    return normalized


class DocumentStore(ABC):
    """Abstract document store the notes are written into."""

    @abstractmethod
    def resolve_path(self, path: str) -> Optional[VaultEntry]:
        """Return the entry at path, or None if nothing exists there."""
        pass

    @abstractmethod
    def create_folder(self, path: str) -> None:
        """Create a folder and any missing parents."""
        pass

    @abstractmethod
    def create_document(self, path: str, content: str) -> None:
        """Create a new document. Raises DocumentExistsError if taken."""
        pass

    @abstractmethod
    def open_document(self, path: str) -> str:
        """Return the content of an existing document."""
        pass

    @abstractmethod
    def list_documents(self, folder: str) -> List[str]:
        """Return paths of all markdown documents under folder, recursively."""
        pass


class FilesystemVault(DocumentStore):
    """Document store backed by a directory on the local filesystem."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()
        logger.debug(f"FilesystemVault rooted at {self.root}")

    def _absolute(self, path: str) -> Path:
        normalized = normalize_vault_path(path)
        return self.root / normalized if normalized else self.root

    def resolve_path(self, path: str) -> Optional[VaultEntry]:
        absolute = self._absolute(path)
        if not absolute.exists():
            return None
        return VaultEntry(path=normalize_vault_path(path), is_folder=absolute.is_dir())

    def create_folder(self, path: str) -> None:
        normalized = normalize_vault_path(path)
        current = self.root
        for segment in normalized.split('/') if normalized else []:
            current = current / segment
            if current.exists() and not current.is_dir():
                raise NotAFolderError(
                    f"Cannot create folder {normalized}: a file with the same name already exists."
                )
        try:
            self._absolute(normalized).mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise NotAFolderError(f"Cannot create folder {normalized}: {e}") from e
        except OSError as e:
            raise DocumentStoreError(f"Cannot create folder {normalized}: {e}") from e

    def create_document(self, path: str, content: str) -> None:
        absolute = self._absolute(path)
        try:
            with open(absolute, 'x', encoding='utf-8') as f:
                f.write(content)
        except FileExistsError as e:
            raise DocumentExistsError(f"Document already exists: {path}") from e
        except OSError as e:
            raise DocumentStoreError(f"Cannot create document {path}: {e}") from e

    def open_document(self, path: str) -> str:
        absolute = self._absolute(path)
        try:
            return absolute.read_text(encoding='utf-8')
        except OSError as e:
            raise DocumentStoreError(f"Cannot open document {path}: {e}") from e

    def list_documents(self, folder: str) -> List[str]:
        base = self._absolute(folder)
        if not base.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in base.rglob('*.md')
            if path.is_file()
        )
