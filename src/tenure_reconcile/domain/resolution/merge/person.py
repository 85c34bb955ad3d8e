"""Person merges re-point relations, claims, households and evidence."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from tenure_reconcile.domain.model import EntityKind, PersonPropertyRelation

from .base import BaseMergeService

if TYPE_CHECKING:
    from uuid import UUID

    from tenure_reconcile.domain.model import RegistryRecord
    from tenure_reconcile.domain.ports import ReconciliationRepositories


class PersonMergeService(BaseMergeService):
    KIND: ClassVar[EntityKind] = EntityKind.PERSON
    MERGE_FIELDS: ClassVar[tuple[str, ...]] = (
        "first_name_arabic",
        "father_name_arabic",
        "family_name_arabic",
        "mother_name_arabic",
        "national_id",
        "year_of_birth",
        "gender",
        "nationality",
        "email",
        "mobile_number",
        "phone_number",
    )
    REFERENCES: ClassVar[tuple[tuple[EntityKind, str], ...]] = (
        (EntityKind.RELATION, "person_id"),
        (EntityKind.CLAIM, "primary_claimant_id"),
        (EntityKind.HOUSEHOLD, "head_of_household_person_id"),
        (EntityKind.EVIDENCE, "person_id"),
    )

    def _repoint(
        self,
        repositories: ReconciliationRepositories,
        record: RegistryRecord,
        attribute: str,
        master_id: UUID,
    ) -> bool:
        if isinstance(record, PersonPropertyRelation) and record.property_unit_id is not None:
            existing = repositories.registry.relations.find_active(
                master_id, record.property_unit_id
            )
            if existing is not None and existing is not record:
                # master already holds this unit; keep one relation
                record.supersede(existing.id)
                return True
        return super()._repoint(repositories, record, attribute, master_id)
