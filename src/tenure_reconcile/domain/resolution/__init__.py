"""Conflict resolution and merging."""

from __future__ import annotations

from .service import ConflictResolutionService

__all__ = ["ConflictResolutionService"]
