"""Property unit merges re-point relations, claims, surveys and households."""

from __future__ import annotations

from typing import ClassVar

from tenure_reconcile.domain.model import EntityKind

from .base import BaseMergeService


class PropertyUnitMergeService(BaseMergeService):
    KIND: ClassVar[EntityKind] = EntityKind.PROPERTY_UNIT
    MERGE_FIELDS: ClassVar[tuple[str, ...]] = (
        "unit_type",
        "unit_status",
        "floor_number",
        "number_of_rooms",
        "area_square_meters",
        "description",
    )
    REFERENCES: ClassVar[tuple[tuple[EntityKind, str], ...]] = (
        (EntityKind.RELATION, "property_unit_id"),
        (EntityKind.CLAIM, "property_unit_id"),
        (EntityKind.SURVEY, "property_unit_id"),
        (EntityKind.HOUSEHOLD, "property_unit_id"),
    )
