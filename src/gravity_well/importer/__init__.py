"""
Importer Package

Orchestrates import runs and renders their log notes.
"""

from .orchestrator import (
    ImportInProgressError,
    ImportOrchestrator,
    ImportSession,
    ImportSummary,
    ProgressSink,
    ProgressUpdate,
    RunIdentity,
    RunState,
)
from .history import find_run_logs
from .run_log import (
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

__all__ = [
    'find_run_logs',
    'ImportInProgressError',
    'ImportOrchestrator',
    'ImportSession',
    'ImportSummary',
    'ProgressSink',
    'ProgressUpdate',
    'RunIdentity',
    'RunState',
    'RUN_LOG_TAG',
    'STATUS_CREATED',
    'STATUS_DRY_RUN_FAILED',
    'STATUS_FAILED',
    'STATUS_SKIPPED',
    'STATUS_WOULD_CREATE',
    'STATUS_WOULD_SKIP',
    'LogEntry',
    'blocked_status',
    'build_log_content',
]
