"""Commit orchestration for ready packages."""

from __future__ import annotations

from .orchestrator import (
    ALL_RECORDS_FAILED,
    GENERIC_COMMIT_FAILURE,
    CommitOrchestrator,
    build_error_log,
    build_import_summary,
    purge_staging,
)

__all__ = [
    "ALL_RECORDS_FAILED",
    "GENERIC_COMMIT_FAILURE",
    "CommitOrchestrator",
    "build_error_log",
    "build_import_summary",
    "purge_staging",
]
