"""Staging shapes: one isolated holding row per device record, scoped to a package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from tenure_reconcile.domain.errors import StateConflictError

from .attributes import (
    BuildingAttributes,
    ClaimAttributes,
    EvidenceAttributes,
    HouseholdAttributes,
    PersonAttributes,
    PropertyUnitAttributes,
    RelationAttributes,
    SurveyAttributes,
)
from .base import append_all, new_id, utcnow
from .enums import EntityKind, ValidationStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime
    from uuid import UUID


type RecordKey = tuple[EntityKind, UUID]


@dataclass(eq=False, kw_only=True)
class StagingRecord:
    """Common staging state.

    ``(import_package_id, original_entity_id)`` is the within-batch identity; the
    surrogate ``id`` exists only for storage.
    """

    KIND: ClassVar[EntityKind]

    import_package_id: UUID
    original_entity_id: UUID
    id: UUID = field(default_factory=new_id)
    validation_status: ValidationStatus = ValidationStatus.PENDING
    validation_errors: list[str] = field(default_factory=list)
    validation_warnings: list[str] = field(default_factory=list)
    is_approved_for_commit: bool = False
    committed_entity_id: UUID | None = None
    staged_at: datetime = field(default_factory=utcnow)

    @property
    def kind(self) -> EntityKind:
        return self.KIND

    @property
    def key(self) -> RecordKey:
        return (self.KIND, self.original_entity_id)

    @property
    def is_valid(self) -> bool:
        return self.validation_status is ValidationStatus.VALID

    def append_findings(self, errors: Iterable[str] = (), warnings: Iterable[str] = ()) -> None:
        """Append validator output; any error marks the record invalid."""

        new_errors = list(errors)
        new_warnings = list(warnings)
        if new_errors:
            self.validation_errors = append_all(self.validation_errors, new_errors)
            if self.validation_status is not ValidationStatus.SKIPPED:
                self.validation_status = ValidationStatus.INVALID
                self.is_approved_for_commit = False
        if new_warnings:
            self.validation_warnings = append_all(self.validation_warnings, new_warnings)

    def finalize_validation(self) -> None:
        if self.validation_status is ValidationStatus.PENDING and not self.validation_errors:
            self.validation_status = ValidationStatus.VALID

    def approve_for_commit(self) -> None:
        if self.validation_status is not ValidationStatus.VALID:
            raise StateConflictError(
                f"{self.KIND} {self.original_entity_id} cannot be approved while "
                f"{self.validation_status}"
            )
        self.is_approved_for_commit = True

    def revoke_approval(self) -> None:
        self.is_approved_for_commit = False

    def mark_skipped(self, reason: str, *, absorbed_into: UUID | None = None) -> None:
        """Retire the record from commit, optionally pointing at the record that absorbed it."""

        self.validation_status = ValidationStatus.SKIPPED
        self.is_approved_for_commit = False
        self.validation_warnings = append_all(self.validation_warnings, [f"Skipped: {reason}"])
        if absorbed_into is not None:
            self.committed_entity_id = absorbed_into

    def mark_committed(self, entity_id: UUID) -> None:
        self.committed_entity_id = entity_id


@dataclass(eq=False, kw_only=True)
class StagingBuilding(StagingRecord, BuildingAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.BUILDING


@dataclass(eq=False, kw_only=True)
class StagingPropertyUnit(StagingRecord, PropertyUnitAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.PROPERTY_UNIT

    original_building_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingPerson(StagingRecord, PersonAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.PERSON

    original_household_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingHousehold(StagingRecord, HouseholdAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.HOUSEHOLD

    original_property_unit_id: UUID | None = None
    original_head_of_household_person_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingRelation(StagingRecord, RelationAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.RELATION

    original_person_id: UUID | None = None
    original_property_unit_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingEvidence(StagingRecord, EvidenceAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.EVIDENCE

    original_person_id: UUID | None = None
    original_relation_id: UUID | None = None
    original_claim_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingClaim(StagingRecord, ClaimAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.CLAIM

    original_property_unit_id: UUID | None = None
    original_primary_claimant_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class StagingSurvey(StagingRecord, SurveyAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.SURVEY

    original_building_id: UUID | None = None
    original_property_unit_id: UUID | None = None
    original_claim_id: UUID | None = None


STAGING_CLASS_BY_KIND: dict[EntityKind, type[StagingRecord]] = {
    cls.KIND: cls
    for cls in (
        StagingBuilding,
        StagingPropertyUnit,
        StagingPerson,
        StagingHousehold,
        StagingRelation,
        StagingEvidence,
        StagingClaim,
        StagingSurvey,
    )
}


@dataclass(frozen=True, slots=True, kw_only=True)
class StagedBatch:
    """Snapshot of every staging record owned by one package."""

    package_id: UUID
    buildings: tuple[StagingBuilding, ...] = ()
    property_units: tuple[StagingPropertyUnit, ...] = ()
    persons: tuple[StagingPerson, ...] = ()
    households: tuple[StagingHousehold, ...] = ()
    relations: tuple[StagingRelation, ...] = ()
    evidences: tuple[StagingEvidence, ...] = ()
    claims: tuple[StagingClaim, ...] = ()
    surveys: tuple[StagingSurvey, ...] = ()
    # vocabulary name -> version the device captured with, from the package manifest
    vocabulary_versions: Mapping[str, str] = field(default_factory=dict)

    def records(self) -> tuple[StagingRecord, ...]:
        return (
            *self.buildings,
            *self.property_units,
            *self.persons,
            *self.households,
            *self.relations,
            *self.evidences,
            *self.claims,
            *self.surveys,
        )

    def of_kind(self, kind: EntityKind) -> tuple[StagingRecord, ...]:
        return tuple(record for record in self.records() if record.KIND is kind)

    def original_ids(self, kind: EntityKind) -> frozenset[UUID]:
        return frozenset(record.original_entity_id for record in self.of_kind(kind))

    def __len__(self) -> int:
        return len(self.records())
