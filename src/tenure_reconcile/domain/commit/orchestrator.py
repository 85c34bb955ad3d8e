"""Drive one package through ``committing`` to its terminal outcome."""

from __future__ import annotations

import json
import logging
import time
import traceback
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.errors import NotFoundError, StateConflictError
from tenure_reconcile.domain.model import CommitError, CommitReport, EntityKind, ImportStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from tenure_reconcile.domain.model import Package
    from tenure_reconcile.domain.ports import (
        CommitService,
        PackageArchiver,
        ReconciliationRepositories,
        ReconciliationUnitOfWork,
    )

log = logging.getLogger(__name__)

GENERIC_COMMIT_FAILURE: Final[str] = (
    "An error occurred during the commit process. Please check the server logs or contact support."
)
ALL_RECORDS_FAILED: Final[str] = "All records failed during commit."

_SUMMARY_LABELS: Final[dict[EntityKind, str]] = {
    EntityKind.BUILDING: "Buildings",
    EntityKind.PROPERTY_UNIT: "Property Units",
    EntityKind.PERSON: "Persons",
    EntityKind.HOUSEHOLD: "Households",
    EntityKind.RELATION: "Relations",
    EntityKind.EVIDENCE: "Evidence",
    EntityKind.CLAIM: "Claims",
    EntityKind.SURVEY: "Surveys",
}


class CommitOrchestrator:
    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        commit_service: CommitService,
        archiver: PackageArchiver | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._commit_service = commit_service
        self._archiver = archiver

    def commit(
        self, package_id: UUID, *, user: UUID | None, cleanup_staging: bool = False
    ) -> CommitReport:
        """Commit a ready package and return the report; failures are reported, not raised.

        Precondition violations raise :class:`StateConflictError` before anything is written.
        """

        started = time.perf_counter()
        package_number = self._start(package_id, user)
        log.info("Starting commit for package %s (%s)", package_number, package_id)

        try:
            report = self._commit_service.commit(package_id, committed_by=user)
            package = self._record_outcome(package_id, report)
            if report.total_committed > 0:
                self._archive(package, report)
            if cleanup_staging and report.is_fully_successful:
                self._cleanup(package_id, package_number)
        except Exception as exc:
            log.exception("Commit failed for package %s", package_number)
            self._record_failure(package_id, exc, user)
            report = CommitReport(package_id=package_id)
            report.errors.append(CommitError(message=GENERIC_COMMIT_FAILURE))

        report.duration = timedelta(seconds=time.perf_counter() - started)
        return report

    def _start(self, package_id: UUID, user: UUID | None) -> str:
        with self._unit_of_work_factory() as uow:
            package = _load_package(uow.repositories, package_id)
            if package.status is not ImportStatus.READY_TO_COMMIT:
                raise StateConflictError(
                    f"Cannot commit package {package.package_number}: status is {package.status}, "
                    f"expected {ImportStatus.READY_TO_COMMIT}"
                )
            unresolved = uow.repositories.conflicts.count_open_for_package(package_id)
            if unresolved > 0:
                raise StateConflictError(
                    f"Cannot commit: {unresolved} unresolved conflict(s) remain."
                )
            package.start_commit(by=user)
            uow.commit()
            return package.package_number

    def _record_outcome(self, package_id: UUID, report: CommitReport) -> Package:
        with self._unit_of_work_factory() as uow:
            package = _load_package(uow.repositories, package_id)
            summary = build_import_summary(report)
            if report.is_fully_successful:
                package.mark_completed(
                    committed=report.total_committed,
                    skipped=report.total_skipped,
                    summary=summary,
                )
                log.info(
                    "Commit completed for package %s: %s records committed",
                    package.package_number,
                    report.total_committed,
                )
            elif report.total_committed > 0:
                package.mark_partially_completed(
                    committed=report.total_committed,
                    failed=report.total_failed,
                    skipped=report.total_skipped,
                    summary=summary,
                )
                log.warning(
                    "Commit partially completed for package %s: %s committed, %s failed",
                    package.package_number,
                    report.total_committed,
                    report.total_failed,
                )
            else:
                package.import_summary = summary
                package.mark_failed(
                    error_message=ALL_RECORDS_FAILED,
                    error_log=json.dumps(report.to_dict()["errors"]),
                    by=package.committed_by,
                )
                log.error(
                    "Commit failed for package %s: all records failed", package.package_number
                )
            uow.commit()
            return package

    def _archive(self, package: Package, report: CommitReport) -> None:
        if self._archiver is None:
            return
        try:
            path = self._archiver.archive(package)
            with self._unit_of_work_factory() as uow:
                stored = _load_package(uow.repositories, package.id)
                stored.archive(path)
                uow.commit()
        except Exception:
            log.warning(
                "Failed to archive package %s; committed data is unaffected",
                package.package_number,
                exc_info=True,
            )
            return
        report.is_archived = True
        report.archive_path = path
        log.info("Package %s archived to %s", package.package_number, path)

    def _cleanup(self, package_id: UUID, package_number: str) -> None:
        try:
            removed = purge_staging(self._unit_of_work_factory, package_id)
        except Exception:
            log.warning(
                "Failed to clean up staging data for package %s", package_number, exc_info=True
            )
            return
        log.info("Removed %s staging rows for package %s", removed, package_number)

    def _record_failure(self, package_id: UUID, exc: BaseException, user: UUID | None) -> None:
        # a fresh unit of work so the rows that caused the failure are not flushed again
        try:
            with self._unit_of_work_factory() as uow:
                package = _load_package(uow.repositories, package_id)
                package.mark_failed(
                    error_message=GENERIC_COMMIT_FAILURE,
                    error_log=build_error_log(exc),
                    by=user,
                )
                uow.commit()
        except Exception:
            log.exception(
                "Failed to record failed status for package %s; use reset-commit to recover",
                package_id,
            )


def purge_staging(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork], package_id: UUID
) -> int:
    with unit_of_work_factory() as uow:
        removed = sum(
            repository.delete_for_package(package_id)
            for repository in uow.repositories.staging.all()
        )
        uow.commit()
    return removed


def build_import_summary(report: CommitReport) -> str:
    lines = [
        *report.summary_lines(),
        f"Success rate: {report.success_rate}%",
    ]
    for kind, label in _SUMMARY_LABELS.items():
        committed = report.summary(kind).committed
        if committed:
            lines.append(f"  {label}: {committed}")
    return "\n".join(lines)


def build_error_log(exc: BaseException) -> str:
    """Internal diagnostics for a failed commit; never shown outside the service."""

    root = exc
    while (cause := root.__cause__ or root.__context__) is not None:
        root = cause
    return json.dumps(
        {
            "message": str(exc),
            "root_cause": str(root),
            "root_cause_type": f"{type(root).__module__}.{type(root).__qualname__}",
            "traceback": "".join(traceback.format_exception(exc)),
        }
    )


def _load_package(repositories: ReconciliationRepositories, package_id: UUID) -> Package:
    package = repositories.packages.get(package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")
    return package
