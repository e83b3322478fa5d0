"""Lookup of the log notes written by past import runs."""

from __future__ import annotations

from typing import Any, List

from loguru import logger

from ..notes.vault import DocumentStore, DocumentStoreError
from ..notes.writer import parse_front_matter
from .run_log import RUN_LOG_TAG


def _has_run_log_tag(tags: Any) -> bool:
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list):
        return False
    return any(str(tag).lstrip('#') == RUN_LOG_TAG for tag in tags)


def find_run_logs(store: DocumentStore, target_directory: str) -> List[str]:
    """List the run log notes under target_directory, newest first.

    A note counts as a run log when its front matter tags contain the run
    log tag. Run directories and log names embed the run timestamp, so a
    descending path sort puts the latest run first.
    """
    logs: List[str] = []
    for path in store.list_documents(target_directory):
        try:
            metadata = parse_front_matter(store.open_document(path))
        except DocumentStoreError as e:
            logger.warning(f"Skipping unreadable note {path}: {e}")
            continue
        if _has_run_log_tag(metadata.get("tags")):
            logs.append(path)

    logs.sort(reverse=True)
    logger.debug(f"Found {len(logs)} import logs under {target_directory}")
    return logs
