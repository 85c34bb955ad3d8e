"""Level 5: turn person and property matches into reviewable conflicts."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import (
    Conflict,
    ConflictType,
    EntityKind,
    ValidationStatus,
)
from tenure_reconcile.domain.validation import LevelReport

from .contracts import PersonMatch, PropertyMatch
from .person import PersonMatcher
from .property import PropertyMatcher

if TYPE_CHECKING:
    from uuid import UUID

    from tenure_reconcile.domain.ports import ReconciliationRepositories

    from .contracts import MatchResult

log = logging.getLogger(__name__)

DETECTION_LEVEL = 5


@dataclass(frozen=True, slots=True, kw_only=True)
class DetectionResult:
    package_id: UUID
    conflicts: tuple[Conflict, ...]
    person_duplicates: int
    property_duplicates: int
    persons_scanned: int
    units_scanned: int
    buildings_scanned: int
    report: LevelReport

    @property
    def total_conflicts(self) -> int:
        return len(self.conflicts)


class DuplicateDetectionService:
    """Run both matchers for one package and queue a conflict per new match."""

    def detect(
        self,
        repositories: ReconciliationRepositories,
        package_id: UUID,
        *,
        detected_by: UUID | None = None,
    ) -> DetectionResult:
        started = time.perf_counter()
        staging = repositories.staging
        persons = staging.persons.list_for_package_by_status(package_id, ValidationStatus.VALID)
        units = staging.property_units.list_for_package_by_status(
            package_id, ValidationStatus.VALID
        )
        buildings = staging.buildings.list_for_package_by_status(
            package_id, ValidationStatus.VALID
        )

        person_matches = PersonMatcher(repositories.registry.persons).match(persons)
        property_matches = PropertyMatcher(repositories.registry.property_units).match(
            units, buildings
        )

        created: list[Conflict] = []
        for match in (*person_matches, *property_matches):
            existing = repositories.conflicts.find_by_entity_pair(
                match.first.entity_id, match.second.entity_id
            )
            if existing is not None:
                log.debug(
                    "Skipping duplicate conflict %s <-> %s (already exists as %s)",
                    match.first.entity_id,
                    match.second.entity_id,
                    existing.conflict_number,
                )
                continue
            conflict = build_conflict(match, package_id=package_id, detected_by=detected_by)
            repositories.conflicts.add(conflict)
            created.append(conflict)

        person_count = sum(1 for item in created if item.entity_kind is EntityKind.PERSON)
        report = LevelReport(
            level=DETECTION_LEVEL,
            name="duplicate_detection",
            error_count=0,
            warning_count=len(created),
            records_checked=len(persons) + len(units),
            duration=timedelta(seconds=time.perf_counter() - started),
        )
        log.info(
            "Duplicate detection for package %s: %s person, %s property conflicts",
            package_id,
            person_count,
            len(created) - person_count,
        )
        return DetectionResult(
            package_id=package_id,
            conflicts=tuple(created),
            person_duplicates=person_count,
            property_duplicates=len(created) - person_count,
            persons_scanned=len(persons),
            units_scanned=len(units),
            buildings_scanned=len(buildings),
            report=report,
        )


def build_conflict(
    result: MatchResult, *, package_id: UUID | None, detected_by: UUID | None
) -> Conflict:
    match result:
        case PersonMatch():
            kind = EntityKind.PERSON
            conflict_type = (
                ConflictType.PERSON_DUPLICATE_WITHIN_BATCH
                if result.is_within_batch
                else ConflictType.PERSON_DUPLICATE
            )
            if result.national_id_matched:
                description = f"National ID exact match detected (NID: {result.first.identifier})"
            else:
                description = (
                    f"Composite similarity score {result.score}% ({result.confidence} confidence)"
                )
        case PropertyMatch():
            kind = EntityKind.PROPERTY_UNIT
            conflict_type = (
                ConflictType.PROPERTY_DUPLICATE_WITHIN_BATCH
                if result.is_within_batch
                else ConflictType.PROPERTY_DUPLICATE
            )
            description = (
                "PropertyUnit composite key exact match "
                f"(BuildingCode: {result.building_code}, UnitIdentifier: {result.unit_identifier})"
            )

    return Conflict(
        conflict_type=conflict_type,
        entity_kind=kind,
        first_entity_id=result.first.entity_id,
        second_entity_id=result.second.entity_id,
        first_side=result.first.side,
        second_side=result.second.side,
        first_entity_identifier=result.first.identifier,
        second_entity_identifier=result.second.identifier,
        similarity_score=result.score,
        confidence_level=result.confidence,
        description=description,
        matching_criteria=dict(result.criteria),
        import_package_id=package_id,
        detected_by=detected_by,
    )
