"""Operator-triggered workflow steps for one import package.

Each step opens its own unit of work, checks the package status it needs and
commits once. Unexpected failures during validation or detection mark the
package ``failed`` in a fresh unit of work before the error propagates.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tenure_reconcile.domain.commit import build_error_log, purge_staging
from tenure_reconcile.domain.errors import NotFoundError, StateConflictError, ValidationError
from tenure_reconcile.domain.matching import DuplicateDetectionService
from tenure_reconcile.domain.model import ImportStatus, ValidationStatus
from tenure_reconcile.domain.validation import ValidationPipeline, load_batch

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable
    from uuid import UUID

    from tenure_reconcile.domain.matching import DetectionResult
    from tenure_reconcile.domain.model import Conflict, Package, StagingRecord
    from tenure_reconcile.domain.ports import (
        ReconciliationRepositories,
        ReconciliationUnitOfWork,
    )
    from tenure_reconcile.domain.validation import ValidationSummary

    type UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

log = logging.getLogger(__name__)

RERUN_IGNORE_REASON = "Superseded by re-run of duplicate detection"
DETECTABLE_STATUSES = frozenset(
    {ImportStatus.STAGING, ImportStatus.VALIDATION_FAILED, ImportStatus.REVIEWING_CONFLICTS}
)
APPROVABLE_STATUSES = frozenset(
    {
        ImportStatus.STAGING,
        ImportStatus.VALIDATION_FAILED,
        ImportStatus.REVIEWING_CONFLICTS,
        ImportStatus.READY_TO_COMMIT,
    }
)


@dataclass(frozen=True, slots=True)
class PackageStatusView:
    package: Package
    conflicts: tuple[Conflict, ...]
    validation_counts: dict[str, int]

    @property
    def open_conflicts(self) -> tuple[Conflict, ...]:
        return tuple(conflict for conflict in self.conflicts if conflict.is_open)


def stage_package(
    package: Package,
    records: Iterable[StagingRecord],
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
) -> Package:
    """Persist a parsed package and its staging rows, then move it to ``validating``."""

    staged = _owned_records(package.id, records)
    package.entity_counts = _entity_counts(staged)

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        repositories.packages.add(package)
        for record in staged:
            repositories.staging.for_kind(record.kind).add(record)
        package.mark_imported(by=user)
        uow.commit()
    log.info("Staged package %s with %s records", package.package_number, len(staged))
    return package


def restage_package(
    package_id: UUID,
    records: Iterable[StagingRecord],
    reason: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
) -> Package:
    """Replace the staging rows of a package that failed validation and validate again.

    The previous rows are deleted in the same unit of work that stores the
    corrected ones, so a failure leaves the package untouched in
    ``validation_failed``.
    """

    staged = _owned_records(package_id, records)
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        package = _load_package(repositories, package_id)
        _require_status(package, {ImportStatus.VALIDATION_FAILED}, "re-stage")
        removed = sum(
            repository.delete_for_package(package_id) for repository in repositories.staging.all()
        )
        for record in staged:
            repositories.staging.for_kind(record.kind).add(record)
        package.entity_counts = _entity_counts(staged)
        package.restart_validation(reason, by=user)
        uow.commit()
    log.info(
        "Re-staged package %s: %s rows replaced by %s",
        package.package_number,
        removed,
        len(staged),
    )
    return package


def validate_package(
    package_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    pipeline: ValidationPipeline | None = None,
    user: UUID | None = None,
) -> ValidationSummary:
    pipeline = pipeline or ValidationPipeline()
    with unit_of_work_factory() as uow:
        package = _load_package(uow.repositories, package_id)
        _require_status(package, {ImportStatus.VALIDATING}, "validate")
        try:
            batch = load_batch(uow.repositories, package_id)
            summary = pipeline.run(batch)
            package.record_validation(
                errors=summary.invalid_count, warnings=summary.warning_count, by=user
            )
            uow.commit()
        except Exception as exc:
            uow.rollback()
            _mark_step_failed(unit_of_work_factory, package_id, "Validation", exc, user)
            raise
    log.info("Package %s is now %s", package.package_number, package.status)
    return summary


def detect_duplicates(
    package_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    detector: DuplicateDetectionService | None = None,
    user: UUID | None = None,
) -> DetectionResult:
    detector = detector or DuplicateDetectionService()
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        package = _load_package(repositories, package_id)
        _require_status(package, DETECTABLE_STATUSES, "run duplicate detection on")
        try:
            if package.status is ImportStatus.REVIEWING_CONFLICTS:
                retired = 0
                for conflict in repositories.conflicts.list_open_for_package(package_id):
                    conflict.ignore(RERUN_IGNORE_REASON, by=user)
                    retired += 1
                log.info("Re-run of detection ignored %s open conflicts", retired)
            result = detector.detect(repositories, package_id, detected_by=user)
            package.record_duplicates(
                person_duplicates=result.person_duplicates,
                property_duplicates=result.property_duplicates,
                total_conflicts=result.total_conflicts,
                by=user,
            )
            uow.commit()
        except Exception as exc:
            uow.rollback()
            _mark_step_failed(unit_of_work_factory, package_id, "Duplicate detection", exc, user)
            raise
    log.info(
        "Package %s: %s conflicts created, status %s",
        package.package_number,
        result.total_conflicts,
        package.status,
    )
    return result


def approve_for_commit(
    package_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
    record_ids: Collection[UUID] | None = None,
) -> Package:
    """Approve every valid record, or only ``record_ids`` (original entity ids)."""

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        package = _load_package(repositories, package_id)
        _require_status(package, APPROVABLE_STATUSES, "approve")
        unresolved = repositories.conflicts.count_open_for_package(package_id)
        if unresolved > 0:
            raise StateConflictError(
                f"Cannot approve for commit: {unresolved} unresolved conflict(s) remain."
            )

        approved = 0
        wanted = set(record_ids) if record_ids is not None else None
        for repository in repositories.staging.all():
            if wanted is None:
                records = repository.list_for_package_by_status(package_id, ValidationStatus.VALID)
            else:
                records = [
                    record
                    for record in repository.list_for_package(package_id)
                    if record.original_entity_id in wanted
                ]
            for record in records:
                record.approve_for_commit()
                approved += 1
                if wanted is not None:
                    wanted.discard(record.original_entity_id)
        if wanted:
            missing = ", ".join(sorted(str(item) for item in wanted))
            raise NotFoundError(f"Staging records not found in package: {missing}")

        if package.status is ImportStatus.READY_TO_COMMIT:
            package.touch(by=user)
        else:
            package.mark_conflicts_resolved(by=user)
        uow.commit()
    log.info("Approved %s records in package %s", approved, package.package_number)
    return package


def cancel_package(
    package_id: UUID,
    reason: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
    cleanup_staging: bool = False,
) -> Package:
    with unit_of_work_factory() as uow:
        package = _load_package(uow.repositories, package_id)
        package.cancel(reason, by=user)
        uow.commit()
    log.info("Package %s cancelled: %s", package.package_number, reason)
    if cleanup_staging:
        try:
            purge_staging(unit_of_work_factory, package_id)
        except Exception:
            log.warning(
                "Failed to clean up staging data for cancelled package %s",
                package.package_number,
                exc_info=True,
            )
    return package


def quarantine_package(
    package_id: UUID,
    reason: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
) -> Package:
    with unit_of_work_factory() as uow:
        package = _load_package(uow.repositories, package_id)
        if package.is_terminal:
            raise StateConflictError(
                f"Cannot quarantine package in {package.status} status; "
                "only active imports can be quarantined"
            )
        package.quarantine(reason, by=user)
        uow.commit()
    log.info("Package %s quarantined: %s", package.package_number, reason)
    return package


def reset_commit(
    package_id: UUID,
    reason: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    user: UUID | None = None,
) -> Package:
    """Recover a package stuck in ``committing`` or left ``failed``."""

    with unit_of_work_factory() as uow:
        package = _load_package(uow.repositories, package_id)
        package.reset_to_ready_to_commit(reason, by=user)
        uow.commit()
    log.info("Package %s reset to %s: %s", package.package_number, package.status, reason)
    return package


def package_status(
    package_id: UUID, *, unit_of_work_factory: UnitOfWorkFactory
) -> PackageStatusView:
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        package = _load_package(repositories, package_id)
        conflicts = tuple(repositories.conflicts.list_for_package(package_id))
        counts: Counter[str] = Counter()
        for repository in repositories.staging.all():
            for record in repository.list_for_package(package_id):
                counts[str(record.validation_status)] += 1
    return PackageStatusView(package=package, conflicts=conflicts, validation_counts=dict(counts))


def _owned_records(package_id: UUID, records: Iterable[StagingRecord]) -> list[StagingRecord]:
    staged = list(records)
    for record in staged:
        if record.import_package_id != package_id:
            raise ValidationError(
                f"{record.kind} {record.original_entity_id} belongs to package "
                f"{record.import_package_id}, not {package_id}"
            )
    return staged


def _entity_counts(records: Iterable[StagingRecord]) -> dict[str, int]:
    counts = Counter(record.kind for record in records)
    return {str(kind): count for kind, count in counts.items()}


def _load_package(repositories: ReconciliationRepositories, package_id: UUID) -> Package:
    package = repositories.packages.get(package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")
    return package


def _require_status(package: Package, allowed: Collection[ImportStatus], verb: str) -> None:
    if package.status not in allowed:
        expected = ", ".join(sorted(str(status) for status in allowed))
        raise StateConflictError(
            f"Cannot {verb} package {package.package_number} with status {package.status}; "
            f"expected {expected}"
        )


def _mark_step_failed(
    unit_of_work_factory: UnitOfWorkFactory,
    package_id: UUID,
    step: str,
    exc: BaseException,
    user: UUID | None,
) -> None:
    log.error("%s failed for package %s", step, package_id, exc_info=exc)
    try:
        with unit_of_work_factory() as uow:
            package = _load_package(uow.repositories, package_id)
            package.mark_failed(
                error_message=f"{step} failed.", error_log=build_error_log(exc), by=user
            )
            uow.commit()
    except Exception:
        log.exception("Failed to record failed status for package %s", package_id)
