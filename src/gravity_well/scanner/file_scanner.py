"""
Directory scanner for import runs.

Walks the import directory depth-first and materializes the list of
candidate files before any of them is processed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger


UNLIMITED_DEPTH = -1


@dataclass(frozen=True)
class DiscoveredFile:
    """A candidate file found under the import directory."""
    path: Path
    extension: str
    size_bytes: int

    @property
    def title(self) -> str:
        """Base name without extension, used as the note title."""
        return self.path.stem


@dataclass
class ScanStats:
    """Statistics from a scanning operation."""
    files_found: int = 0
    directories_visited: int = 0
    directories_failed: int = 0
    hidden_skipped: int = 0
    formats_found: Dict[str, int] = field(default_factory=lambda: {})
    total_size_bytes: int = 0
    scan_duration_seconds: float = 0.0


class DirectoryScanner:
    """Recursive, depth-limited scanner filtered by an extension allow-list."""

    def __init__(self, follow_symlinks: bool = False) -> None:
        self.follow_symlinks = follow_symlinks
        self.stats = ScanStats()

    def scan(
        self,
        root: Union[str, Path],
        allowed_extensions: Iterable[str],
        max_depth: int = UNLIMITED_DEPTH
    ) -> List[DiscoveredFile]:
        """List candidate files under root.

        Args:
            root: Directory to scan.
            allowed_extensions: Extensions to keep, with or without leading dot.
            max_depth: -1 for unlimited, 0 for root only, N for N child levels.

        Returns:
            Discovered files in depth-first, name-sorted order.
        """
        start_time = datetime.now()
        self.stats = ScanStats()
        extensions = {ext.strip().lower().lstrip('.') for ext in allowed_extensions}

        root_path = Path(root).resolve()
        logger.info(f"Starting directory scan: {root_path} (max depth {max_depth})")

        files = self._walk(root_path, extensions, max_depth, 0)

        self.stats.scan_duration_seconds = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Directory scan completed - {self.stats.files_found} files in "
            f"{self.stats.directories_visited} directories"
        )
        return files

    def _walk(
        self,
        directory: Path,
        extensions: set[str],
        max_depth: int,
        depth: int
    ) -> List[DiscoveredFile]:
        files: List[DiscoveredFile] = []

        if max_depth != UNLIMITED_DEPTH and depth > max_depth:
            return files

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.error(f"Error reading directory {directory}: {e}")
            self.stats.directories_failed += 1
            return files

        self.stats.directories_visited += 1

        for entry in entries:
            if entry.name.startswith('.'):
                self.stats.hidden_skipped += 1
                continue

            try:
                if entry.is_symlink() and not self.follow_symlinks:
                    continue

                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    files.extend(self._walk(Path(entry.path), extensions, max_depth, depth + 1))
                elif entry.is_file(follow_symlinks=self.follow_symlinks):
                    discovered = self._discover(entry, extensions)
                    if discovered is not None:
                        files.append(discovered)
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {entry.path}: {e}")

        return files

    def _discover(self, entry: os.DirEntry[str], extensions: set[str]) -> Optional[DiscoveredFile]:
        extension = os.path.splitext(entry.name)[1].lower().lstrip('.')
        if extension not in extensions:
            return None

        size = entry.stat(follow_symlinks=self.follow_symlinks).st_size
        self.stats.files_found += 1
        self.stats.total_size_bytes += size
        self.stats.formats_found[extension] = self.stats.formats_found.get(extension, 0) + 1

        return DiscoveredFile(path=Path(entry.path), extension=extension, size_bytes=size)
