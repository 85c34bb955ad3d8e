"""Merge subjects and outcomes.

A merge subject says which storage each side of the pair lives in. The four
variants form a closed union so every merge service handles each case
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from tenure_reconcile.domain.model import EntityKind, RegistryRecord, StagingRecord
    from tenure_reconcile.domain.ports import ReconciliationRepositories


@dataclass(frozen=True, slots=True)
class AuthoritativePair:
    master: RegistryRecord
    discarded: RegistryRecord


@dataclass(frozen=True, slots=True)
class AuthoritativeMasterStagingDiscarded:
    master: RegistryRecord
    discarded: StagingRecord


@dataclass(frozen=True, slots=True)
class StagingMasterAuthoritativeDiscarded:
    master: StagingRecord
    discarded: RegistryRecord


@dataclass(frozen=True, slots=True)
class StagingPair:
    master: StagingRecord
    discarded: StagingRecord


type MergeSubject = (
    AuthoritativePair
    | AuthoritativeMasterStagingDiscarded
    | StagingMasterAuthoritativeDiscarded
    | StagingPair
)


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeOutcome:
    """Result of one merge; ``master_id`` is the record that survives."""

    success: bool
    master_id: UUID
    discarded_id: UUID
    provenance: dict[str, str] = field(default_factory=dict)
    references_updated: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, master_id: UUID, discarded_id: UUID, error: str) -> MergeOutcome:
        return cls(success=False, master_id=master_id, discarded_id=discarded_id, error=error)


class MergeService(Protocol):
    @property
    def kind(self) -> EntityKind: ...

    def merge(
        self,
        repositories: ReconciliationRepositories,
        master_id: UUID,
        discarded_id: UUID,
        *,
        package_id: UUID | None = None,
    ) -> MergeOutcome: ...


type MergeServiceTable = Mapping[EntityKind, MergeService]
