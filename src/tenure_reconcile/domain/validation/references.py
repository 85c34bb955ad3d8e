"""Level 2: cross-entity referential integrity within one batch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.model import EntityKind, present_id

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from uuid import UUID

    from tenure_reconcile.domain.model import StagedBatch

    from .contracts import Findings


@dataclass(frozen=True, slots=True)
class ForeignKey:
    child: EntityKind
    attribute: str
    parent: EntityKind
    label: str
    parent_label: str


FOREIGN_KEYS: Final[tuple[ForeignKey, ...]] = (
    ForeignKey(EntityKind.PROPERTY_UNIT, "original_building_id", EntityKind.BUILDING,
               "PropertyUnit", "Building"),
    ForeignKey(EntityKind.HOUSEHOLD, "original_property_unit_id", EntityKind.PROPERTY_UNIT,
               "Household", "PropertyUnit"),
    ForeignKey(EntityKind.RELATION, "original_person_id", EntityKind.PERSON,
               "PersonPropertyRelation.PersonId", "Person"),
    ForeignKey(EntityKind.RELATION, "original_property_unit_id", EntityKind.PROPERTY_UNIT,
               "PersonPropertyRelation.PropertyUnitId", "PropertyUnit"),
    ForeignKey(EntityKind.CLAIM, "original_property_unit_id", EntityKind.PROPERTY_UNIT,
               "Claim", "PropertyUnit"),
    ForeignKey(EntityKind.CLAIM, "original_primary_claimant_id", EntityKind.PERSON,
               "Claim.PrimaryClaimantId", "Person"),
    ForeignKey(EntityKind.SURVEY, "original_building_id", EntityKind.BUILDING,
               "Survey", "Building"),
    ForeignKey(EntityKind.SURVEY, "original_property_unit_id", EntityKind.PROPERTY_UNIT,
               "Survey.PropertyUnitId", "PropertyUnit"),
    ForeignKey(EntityKind.SURVEY, "original_claim_id", EntityKind.CLAIM,
               "Survey.ClaimId", "Claim"),
    ForeignKey(EntityKind.EVIDENCE, "original_person_id", EntityKind.PERSON,
               "Evidence.PersonId", "Person"),
    ForeignKey(EntityKind.EVIDENCE, "original_relation_id", EntityKind.RELATION,
               "Evidence.RelationId", "PersonPropertyRelation"),
    ForeignKey(EntityKind.EVIDENCE, "original_claim_id", EntityKind.CLAIM,
               "Evidence.ClaimId", "Claim"),
)  # fmt: skip


def check_references(batch: StagedBatch) -> Findings:
    """Every present foreign key must name a sibling record of the parent kind."""

    known: dict[EntityKind, frozenset[UUID]] = {
        kind: batch.original_ids(kind) for kind in {fk.parent for fk in FOREIGN_KEYS}
    }
    builder = FindingsBuilder()
    for fk in FOREIGN_KEYS:
        for record in batch.of_kind(fk.child):
            value = present_id(getattr(record, fk.attribute))
            if value is None or value in known[fk.parent]:
                continue
            builder.error(
                record,
                f"{fk.label} references {fk.parent_label} id {value} which does not exist in batch",
            )
    return builder.build()
