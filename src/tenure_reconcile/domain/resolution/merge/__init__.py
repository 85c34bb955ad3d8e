"""Per-kind merge services and their dispatch table."""

from __future__ import annotations

from .base import MERGE_TYPE_KEY, BaseMergeService
from .contracts import (
    AuthoritativeMasterStagingDiscarded,
    AuthoritativePair,
    MergeOutcome,
    MergeService,
    MergeServiceTable,
    MergeSubject,
    StagingMasterAuthoritativeDiscarded,
    StagingPair,
)
from .dispatch import build_merge_table, merge_service_for
from .person import PersonMergeService
from .property import PropertyUnitMergeService

__all__ = [
    "MERGE_TYPE_KEY",
    "AuthoritativeMasterStagingDiscarded",
    "AuthoritativePair",
    "BaseMergeService",
    "MergeOutcome",
    "MergeService",
    "MergeServiceTable",
    "MergeSubject",
    "PersonMergeService",
    "PropertyUnitMergeService",
    "StagingMasterAuthoritativeDiscarded",
    "StagingPair",
    "build_merge_table",
    "merge_service_for",
]
