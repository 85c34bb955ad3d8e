"""Run every validation level, then apply the accumulated findings once."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import EntityKind, StagedBatch, ValidationStatus

from .claims import check_claim_lifecycle
from .codes import check_building_codes
from .contracts import (
    LevelReport,
    ValidationLevel,
    ValidationSummary,
    count_messages,
    merge_findings,
)
from .fields import check_fields
from .geometry import check_spatial_geometry
from .households import check_household_structure
from .ownership import check_ownership_evidence
from .references import check_references
from .vocabulary import CODED_KINDS, CodedValueCheck, VocabularyVersionCheck

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import RecordKey
    from tenure_reconcile.domain.ports import ReconciliationRepositories

    from .contracts import RecordFindings

log = logging.getLogger(__name__)

DEFAULT_LEVELS: tuple[ValidationLevel, ...] = (
    ValidationLevel(1, "fields", check_fields, frozenset(EntityKind)),
    ValidationLevel(
        2,
        "references",
        check_references,
        frozenset(
            {
                EntityKind.PROPERTY_UNIT,
                EntityKind.HOUSEHOLD,
                EntityKind.RELATION,
                EntityKind.CLAIM,
                EntityKind.SURVEY,
                EntityKind.EVIDENCE,
            }
        ),
    ),
    ValidationLevel(
        3,
        "ownership_evidence",
        check_ownership_evidence,
        frozenset({EntityKind.RELATION, EntityKind.EVIDENCE}),
    ),
    ValidationLevel(
        4, "household_structure", check_household_structure, frozenset({EntityKind.HOUSEHOLD})
    ),
    # level 5 is duplicate detection, run by its own workflow step
    ValidationLevel(
        6, "spatial_geometry", check_spatial_geometry, frozenset({EntityKind.BUILDING})
    ),
    ValidationLevel(7, "claim_lifecycle", check_claim_lifecycle, frozenset({EntityKind.CLAIM})),
    ValidationLevel(8, "vocabulary_version", VocabularyVersionCheck(), CODED_KINDS),
    ValidationLevel(9, "coded_values", CodedValueCheck(), CODED_KINDS),
    ValidationLevel(
        10, "building_codes", check_building_codes, frozenset({EntityKind.BUILDING})
    ),
)


def load_batch(repositories: ReconciliationRepositories, package_id: UUID) -> StagedBatch:
    staging = repositories.staging
    package = repositories.packages.get(package_id)
    return StagedBatch(
        package_id=package_id,
        vocabulary_versions=dict(package.vocabulary_versions) if package is not None else {},
        buildings=tuple(staging.buildings.list_for_package(package_id)),
        property_units=tuple(staging.property_units.list_for_package(package_id)),
        persons=tuple(staging.persons.list_for_package(package_id)),
        households=tuple(staging.households.list_for_package(package_id)),
        relations=tuple(staging.relations.list_for_package(package_id)),
        evidences=tuple(staging.evidences.list_for_package(package_id)),
        claims=tuple(staging.claims.list_for_package(package_id)),
        surveys=tuple(staging.surveys.list_for_package(package_id)),
    )


def run_levels(
    batch: StagedBatch, levels: Sequence[ValidationLevel] = DEFAULT_LEVELS
) -> tuple[dict[RecordKey, RecordFindings], tuple[LevelReport, ...]]:
    """Evaluate ``levels`` in ascending order without mutating the batch."""

    collected: list[dict[RecordKey, RecordFindings]] = []
    reports: list[LevelReport] = []
    for level in sorted(levels, key=lambda item: item.level):
        started = time.perf_counter()
        findings = dict(level.check(batch))
        elapsed = timedelta(seconds=time.perf_counter() - started)
        errors, warnings = count_messages(findings.values())
        checked = sum(len(batch.of_kind(kind)) for kind in level.scope)
        reports.append(
            LevelReport(
                level=level.level,
                name=level.name,
                error_count=errors,
                warning_count=warnings,
                records_checked=checked,
                duration=elapsed,
            )
        )
        log.debug(
            "Validation level %s (%s): %s errors, %s warnings over %s records",
            level.level,
            level.name,
            errors,
            warnings,
            checked,
        )
        collected.append(findings)
    return merge_findings(*collected), tuple(reports)


class ValidationPipeline:
    """Reducer over the configured levels; the caller's unit of work persists the result."""

    def __init__(self, levels: Sequence[ValidationLevel] = DEFAULT_LEVELS) -> None:
        self._levels = tuple(levels)

    @property
    def levels(self) -> tuple[ValidationLevel, ...]:
        return self._levels

    def run(self, batch: StagedBatch) -> ValidationSummary:
        findings, reports = run_levels(batch, self._levels)
        for record in batch.records():
            item = findings.get(record.key)
            if item is not None:
                record.append_findings(item.errors, item.warnings)
            record.finalize_validation()

        statuses = [record.validation_status for record in batch.records()]
        summary = ValidationSummary(
            package_id=batch.package_id,
            levels=reports,
            valid_count=statuses.count(ValidationStatus.VALID),
            invalid_count=statuses.count(ValidationStatus.INVALID),
            skipped_count=statuses.count(ValidationStatus.SKIPPED),
            warning_count=sum(report.warning_count for report in reports),
        )
        log.info(
            "Validated package %s: %s valid, %s invalid, %s skipped",
            batch.package_id,
            summary.valid_count,
            summary.invalid_count,
            summary.skipped_count,
        )
        return summary
