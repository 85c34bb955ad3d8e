"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from tenure_reconcile.domain.model import EntityKind

if TYPE_CHECKING:
    from types import TracebackType

    from tenure_reconcile.domain.model import (
        StagingBuilding,
        StagingClaim,
        StagingEvidence,
        StagingHousehold,
        StagingPerson,
        StagingPropertyUnit,
        StagingRecord,
        StagingRelation,
        StagingSurvey,
    )
    from tenure_reconcile.domain.ports.persistence import (
        BuildingRepository,
        ClaimRepository,
        ConflictRepository,
        EvidenceRepository,
        HouseholdRepository,
        PackageRepository,
        PersonRepository,
        PropertyUnitRepository,
        RegistryRepository,
        RelationRepository,
        StagingRepository,
        SurveyRepository,
    )

_ATTRIBUTE_BY_KIND: Final[dict[EntityKind, str]] = {
    EntityKind.BUILDING: "buildings",
    EntityKind.PROPERTY_UNIT: "property_units",
    EntityKind.PERSON: "persons",
    EntityKind.HOUSEHOLD: "households",
    EntityKind.RELATION: "relations",
    EntityKind.EVIDENCE: "evidences",
    EntityKind.CLAIM: "claims",
    EntityKind.SURVEY: "surveys",
}


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class StagingRepositories:
    buildings: StagingRepository[StagingBuilding]
    property_units: StagingRepository[StagingPropertyUnit]
    persons: StagingRepository[StagingPerson]
    households: StagingRepository[StagingHousehold]
    relations: StagingRepository[StagingRelation]
    evidences: StagingRepository[StagingEvidence]
    claims: StagingRepository[StagingClaim]
    surveys: StagingRepository[StagingSurvey]

    def for_kind(self, kind: EntityKind) -> StagingRepository[StagingRecord]:
        return getattr(self, _ATTRIBUTE_BY_KIND[kind])

    def all(self) -> tuple[StagingRepository[StagingRecord], ...]:
        return tuple(self.for_kind(kind) for kind in EntityKind)


@dataclass(slots=True)
class RegistryRepositories:
    buildings: BuildingRepository
    property_units: PropertyUnitRepository
    persons: PersonRepository
    households: HouseholdRepository
    relations: RelationRepository
    evidences: EvidenceRepository
    claims: ClaimRepository
    surveys: SurveyRepository

    def for_kind(self, kind: EntityKind) -> RegistryRepository:
        return getattr(self, _ATTRIBUTE_BY_KIND[kind])


@dataclass(slots=True)
class ReconciliationRepositories(RepositoryCollection):
    """Everything one workflow step may touch inside a single transaction."""

    packages: PackageRepository
    conflicts: ConflictRepository
    staging: StagingRepositories
    registry: RegistryRepositories


type ReconciliationUnitOfWork = UnitOfWork[ReconciliationRepositories]
