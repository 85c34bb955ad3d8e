from __future__ import annotations

from typing import TYPE_CHECKING

from tenure_reconcile.domain.matching import (
    PropertyMatcher,
    build_conflict,
    unit_key,
)
from tenure_reconcile.domain.model import (
    ConfidenceLevel,
    ConflictType,
    EntityKind,
    EntitySide,
    new_id,
)
from tests.helpers.packages import (
    BUILDING_CODE,
    make_building,
    make_unit,
    registry_building,
    registry_unit,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tenure_reconcile.domain.model import PropertyUnit


class FakePropertyUnitRepository:
    def __init__(self, units: Sequence[tuple[str, PropertyUnit]] = ()) -> None:
        self.units = list(units)

    def find_by_composite_key(self, building_code: str, unit_identifier: str) -> list[PropertyUnit]:
        return [
            unit
            for code, unit in self.units
            if code == building_code
            and unit.unit_identifier is not None
            and unit.unit_identifier.strip().lower() == unit_identifier
        ]


def test_unit_key_normalises_identifier() -> None:
    assert unit_key(BUILDING_CODE, "  A1 ") == (BUILDING_CODE, "a1")
    assert unit_key(None, "1") is None
    assert unit_key(BUILDING_CODE, "  ") is None


def test_two_units_with_same_identifier_in_one_building_conflict_once() -> None:
    package_id = new_id()
    building = make_building(package_id)
    first = make_unit(package_id, building, "1")
    second = make_unit(package_id, building, "1")
    other = make_unit(package_id, building, "2")

    matches = PropertyMatcher(FakePropertyUnitRepository()).match(
        [first, second, other], [building]
    )

    assert len(matches) == 1
    match = matches[0]
    assert match.is_within_batch
    assert match.first.entity_id == first.original_entity_id
    assert match.second.entity_id == second.original_entity_id
    assert match.score == 100.0
    assert match.confidence is ConfidenceLevel.HIGH


def test_registry_match_is_binary() -> None:
    package_id = new_id()
    building = make_building(package_id)
    existing_building = registry_building()
    existing = registry_unit(existing_building, "b-7")
    repository = FakePropertyUnitRepository([(BUILDING_CODE, existing)])
    staged = [
        make_unit(package_id, building, "B-7"),
        make_unit(package_id, building, "B-8"),
        make_unit(package_id, make_building(package_id, building_number="00099"), "B-7"),
    ]

    matches = PropertyMatcher(repository).match(staged, [building])

    assert [match.first.entity_id for match in matches] == [staged[0].original_entity_id]
    assert {match.score for match in matches} == {100.0}
    assert matches[0].second.side is EntitySide.AUTHORITATIVE
    assert matches[0].second.entity_id == existing.id


def test_units_without_a_known_building_code_are_ignored() -> None:
    package_id = new_id()
    incomplete = make_building(package_id, district_code=None)
    units = [make_unit(package_id, incomplete, "1"), make_unit(package_id, incomplete, "1")]

    assert PropertyMatcher(FakePropertyUnitRepository()).match(units, [incomplete]) == []


def test_build_conflict_for_property_match() -> None:
    package_id = new_id()
    building = make_building(package_id)
    first = make_unit(package_id, building, "1")
    second = make_unit(package_id, building, "1")
    (match,) = PropertyMatcher(FakePropertyUnitRepository()).match([first, second], [building])

    conflict = build_conflict(match, package_id=package_id, detected_by=None)

    assert conflict.conflict_type is ConflictType.PROPERTY_DUPLICATE_WITHIN_BATCH
    assert conflict.entity_kind is EntityKind.PROPERTY_UNIT
    assert conflict.similarity_score == 100.0
    assert conflict.import_package_id == package_id
    assert conflict.first_entity_identifier == f"{BUILDING_CODE}/1"
    assert conflict.description == (
        f"PropertyUnit composite key exact match (BuildingCode: {BUILDING_CODE}, UnitIdentifier: 1)"
    )
    assert conflict.matching_criteria == {"building_code": BUILDING_CODE, "unit_identifier": "1"}
