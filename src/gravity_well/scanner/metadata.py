"""Per-file metadata collection from stat data and the host environment."""

from __future__ import annotations

import getpass
import os
import socket
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

try:
    import pwd
except ImportError:  # Windows has no passwd database
    pwd = None  # type: ignore[assignment]


NoteMetadata = Dict[str, Any]

STATUS_COMPLETE = "complete"
STATUS_INCOMPLETE = "incomplete"
STATUS_EMPTY = "empty"
UNKNOWN_OWNER = "unknown"


def _creation_time(stat: os.stat_result) -> datetime:
    try:
        return datetime.fromtimestamp(stat.st_birthtime)  # type: ignore[attr-defined]
    except AttributeError:
        return datetime.fromtimestamp(stat.st_ctime)


def resolve_owner_name(uid: Optional[int]) -> str:
    """Best-effort owner name lookup; returns 'unknown' on any failure."""
    if uid is None:
        return UNKNOWN_OWNER

    if pwd is not None:
        try:
            return pwd.getpwuid(uid).pw_name
        except (KeyError, OverflowError, TypeError):
            return UNKNOWN_OWNER

    try:
        getuid = getattr(os, "getuid", None)
        if getuid is not None and getuid() == uid:
            return getpass.getuser()
    except (OSError, KeyError) as e:
        logger.debug(f"Error getting user info: {e}")
    return UNKNOWN_OWNER


class MetadataCollector:
    """Derives descriptive attributes for a source file."""

    def __init__(self, machine_name: Optional[str] = None) -> None:
        self.machine_name = machine_name or socket.gethostname()

    def collect(
        self,
        path: Union[str, Path],
        include_basic: bool = True,
        include_extended: bool = False
    ) -> NoteMetadata:
        """Collect metadata for a file.

        Never raises: a stat failure marks the metadata as incomplete and the
        file still proceeds with what could be gathered.

        Args:
            path: Source file path.
            include_basic: Add timestamps, size and host machine name.
            include_extended: Add the owner uid and owner name.

        Returns:
            A fresh metadata mapping for this file.
        """
        path = Path(path)
        metadata: NoteMetadata = {
            "file_path": str(path),
            "import_date": datetime.now().replace(microsecond=0),
            "original_extension": path.suffix,
            "import_status": STATUS_COMPLETE,
        }

        if not include_basic and not include_extended:
            return metadata

        try:
            stat = path.stat()
        except OSError as e:
            logger.error(f"Error extracting metadata for file {path}: {e}")
            metadata["import_status"] = STATUS_INCOMPLETE
            if include_extended:
                metadata["owner"] = UNKNOWN_OWNER
            return metadata

        if include_basic:
            metadata["created_at"] = _creation_time(stat).replace(microsecond=0)
            metadata["modified_at"] = datetime.fromtimestamp(stat.st_mtime).replace(microsecond=0)
            metadata["size"] = stat.st_size
            metadata["machine_name"] = self.machine_name

        if include_extended:
            uid = getattr(stat, "st_uid", None)
            metadata["owner_uid"] = uid
            metadata["owner"] = resolve_owner_name(uid)

        return metadata
