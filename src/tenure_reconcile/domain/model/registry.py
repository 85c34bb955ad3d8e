"""Authoritative (committed) records of the tenure registry."""

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
from .base import new_id, utcnow
from .enums import EntityKind, RecordStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class RegistryRecord:
    """Soft-deletable record; supersession keeps a traversable lineage."""

    KIND: ClassVar[EntityKind]

    id: UUID = field(default_factory=new_id)
    record_status: RecordStatus = RecordStatus.ACTIVE
    superseded_by_id: UUID | None = None
    source_package_id: UUID | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    @property
    def kind(self) -> EntityKind:
        return self.KIND

    @property
    def is_active(self) -> bool:
        return self.record_status is RecordStatus.ACTIVE

    def supersede(self, superseded_by: UUID) -> None:
        if superseded_by == self.id:
            raise StateConflictError(f"{self.KIND} {self.id} cannot supersede itself")
        if not self.is_active:
            raise StateConflictError(
                f"{self.KIND} {self.id} is already {self.record_status} "
                f"(superseded by {self.superseded_by_id})"
            )
        self.record_status = RecordStatus.SUPERSEDED
        self.superseded_by_id = superseded_by
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()


@dataclass(eq=False, kw_only=True)
class Building(RegistryRecord, BuildingAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.BUILDING


@dataclass(eq=False, kw_only=True)
class PropertyUnit(RegistryRecord, PropertyUnitAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.PROPERTY_UNIT

    building_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class Person(RegistryRecord, PersonAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.PERSON

    household_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class Household(RegistryRecord, HouseholdAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.HOUSEHOLD

    property_unit_id: UUID | None = None
    head_of_household_person_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class PersonPropertyRelation(RegistryRecord, RelationAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.RELATION

    person_id: UUID | None = None
    property_unit_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class Evidence(RegistryRecord, EvidenceAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.EVIDENCE

    person_id: UUID | None = None
    relation_id: UUID | None = None
    claim_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class Claim(RegistryRecord, ClaimAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.CLAIM

    property_unit_id: UUID | None = None
    primary_claimant_id: UUID | None = None


@dataclass(eq=False, kw_only=True)
class Survey(RegistryRecord, SurveyAttributes):
    KIND: ClassVar[EntityKind] = EntityKind.SURVEY

    building_id: UUID | None = None
    property_unit_id: UUID | None = None
    claim_id: UUID | None = None


REGISTRY_CLASS_BY_KIND: dict[EntityKind, type[RegistryRecord]] = {
    cls.KIND: cls
    for cls in (
        Building,
        PropertyUnit,
        Person,
        Household,
        PersonPropertyRelation,
        Evidence,
        Claim,
        Survey,
    )
}
