"""Ports for persisting packages, conflicts, staging rows and registry records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tenure_reconcile.domain.model import (
    Building,
    Claim,
    Conflict,
    Evidence,
    Household,
    Package,
    Person,
    PersonPropertyRelation,
    PropertyUnit,
    RegistryRecord,
    StagingRecord,
    Survey,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import ValidationStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class PackageRepository(Repository[Package], Protocol):
    def get(self, package_id: UUID) -> Package | None: ...


@runtime_checkable
class ConflictRepository(Repository[Conflict], Protocol):
    def get(self, conflict_id: UUID) -> Conflict | None: ...

    def list_for_package(self, package_id: UUID) -> Sequence[Conflict]: ...

    def list_open_for_package(self, package_id: UUID) -> Sequence[Conflict]: ...

    def count_open_for_package(self, package_id: UUID) -> int: ...

    def find_by_entity_pair(self, first_id: UUID, second_id: UUID) -> Conflict | None:
        """Return a live (not ignored) conflict linking the two ids in either order."""
        ...


@runtime_checkable
class StagingRepository[TRecord: StagingRecord](Repository[TRecord], Protocol):
    """Staging access; every call is scoped to a single package."""

    def add_many(self, records: Iterable[TRecord]) -> None: ...

    def list_for_package(self, package_id: UUID) -> Sequence[TRecord]: ...

    def list_for_package_by_status(
        self, package_id: UUID, status: ValidationStatus
    ) -> Sequence[TRecord]: ...

    def get(self, package_id: UUID, original_entity_id: UUID) -> TRecord | None: ...

    def delete_for_package(self, package_id: UUID) -> int: ...


@runtime_checkable
class RegistryRepository[TRecord: RegistryRecord](Repository[TRecord], Protocol):
    def get(self, record_id: UUID) -> TRecord | None: ...

    def list_active_referencing(self, attribute: str, record_id: UUID) -> Sequence[TRecord]:
        """Active records whose ``attribute`` foreign key equals ``record_id``."""
        ...


@runtime_checkable
class BuildingRepository(RegistryRepository[Building], Protocol):
    """Repository contract for buildings."""


@runtime_checkable
class PropertyUnitRepository(RegistryRepository[PropertyUnit], Protocol):
    def find_by_composite_key(
        self, building_code: str, unit_identifier: str
    ) -> Sequence[PropertyUnit]: ...


@runtime_checkable
class PersonRepository(RegistryRepository[Person], Protocol):
    def find_by_national_id(self, national_id: str) -> Person | None: ...

    def search_by_family_name(
        self, family_name: str, *, prefix_length: int = 3
    ) -> Sequence[Person]:
        """Active persons sharing the leading characters of ``family_name``."""
        ...


@runtime_checkable
class HouseholdRepository(RegistryRepository[Household], Protocol):
    """Repository contract for households."""


@runtime_checkable
class RelationRepository(RegistryRepository[PersonPropertyRelation], Protocol):
    def find_active(
        self, person_id: UUID, property_unit_id: UUID
    ) -> PersonPropertyRelation | None: ...


@runtime_checkable
class EvidenceRepository(RegistryRepository[Evidence], Protocol):
    def find_by_file_hash(self, file_hash: str) -> Evidence | None: ...


@runtime_checkable
class ClaimRepository(RegistryRepository[Claim], Protocol):
    """Repository contract for claims."""


@runtime_checkable
class SurveyRepository(RegistryRepository[Survey], Protocol):
    """Repository contract for surveys."""
