"""Composite-key property unit matching (building code plus unit identifier)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import ConfidenceLevel, EntitySide

from .contracts import MAX_SCORE, EntityRef, PropertyMatch, keep_best

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import PropertyUnit, StagingBuilding, StagingPropertyUnit
    from tenure_reconcile.domain.ports import PropertyUnitRepository

log = logging.getLogger(__name__)


def unit_key(building_code: str | None, unit_identifier: str | None) -> tuple[str, str] | None:
    if building_code is None or unit_identifier is None or not unit_identifier.strip():
        return None
    return building_code, unit_identifier.strip().lower()


def _identifier(building_code: str, unit_identifier: str | None) -> str:
    return f"{building_code}/{unit_identifier}"


class PropertyMatcher:
    """Exact composite-key matching; any hit scores 100/High, there is no partial credit."""

    def __init__(self, units: PropertyUnitRepository) -> None:
        self._units = units

    def match(
        self,
        staged: Sequence[StagingPropertyUnit],
        buildings: Sequence[StagingBuilding],
    ) -> list[PropertyMatch]:
        codes: Mapping[UUID, str | None] = {
            building.original_entity_id: building.building_code for building in buildings
        }
        keyed: list[tuple[tuple[str, str], StagingPropertyUnit]] = []
        for unit in staged:
            building_id = unit.original_building_id
            code = codes.get(building_id) if building_id is not None else None
            key = unit_key(code, unit.unit_identifier)
            if key is not None:
                keyed.append((key, unit))

        matches: list[PropertyMatch] = []
        for key, unit in keyed:
            for existing in self._units.find_by_composite_key(key[0], key[1]):
                matches.append(_authoritative_match(key, unit, existing))

        for index, (key, first) in enumerate(keyed):
            for other_key, second in keyed[index + 1 :]:
                if other_key == key:
                    matches.append(_within_batch_match(key, first, second))

        result = keep_best(matches)
        log.info(
            "Property matching complete: %s scanned, %s matches found", len(staged), len(result)
        )
        return result


def _authoritative_match(
    key: tuple[str, str], staged: StagingPropertyUnit, existing: PropertyUnit
) -> PropertyMatch:
    building_code, unit_identifier = key
    return PropertyMatch(
        first=EntityRef(
            staged.original_entity_id,
            EntitySide.STAGING,
            _identifier(building_code, staged.unit_identifier),
        ),
        second=EntityRef(
            existing.id,
            EntitySide.AUTHORITATIVE,
            _identifier(building_code, existing.unit_identifier),
        ),
        score=MAX_SCORE,
        confidence=ConfidenceLevel.HIGH,
        criteria={"building_code": building_code, "unit_identifier": unit_identifier},
        building_code=building_code,
        unit_identifier=unit_identifier,
    )


def _within_batch_match(
    key: tuple[str, str], first: StagingPropertyUnit, second: StagingPropertyUnit
) -> PropertyMatch:
    building_code, unit_identifier = key
    return PropertyMatch(
        first=EntityRef(
            first.original_entity_id,
            EntitySide.STAGING,
            _identifier(building_code, first.unit_identifier),
        ),
        second=EntityRef(
            second.original_entity_id,
            EntitySide.STAGING,
            _identifier(building_code, second.unit_identifier),
        ),
        score=MAX_SCORE,
        confidence=ConfidenceLevel.HIGH,
        criteria={"building_code": building_code, "unit_identifier": unit_identifier},
        building_code=building_code,
        unit_identifier=unit_identifier,
    )
