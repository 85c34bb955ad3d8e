"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, Final

from tenure_reconcile.adapters.archive import FilesystemPackageArchiver
from tenure_reconcile.adapters.sqlalchemy import (
    SqlAlchemyCommitService,
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from tenure_reconcile.config import get_pipeline_config
from tenure_reconcile.domain import package_workflow
from tenure_reconcile.domain.commit import CommitOrchestrator
from tenure_reconcile.domain.errors import ValidationError
from tenure_reconcile.domain.ports import ReconciliationUnitOfWork
from tenure_reconcile.domain.resolution import ConflictResolutionService
from tenure_reconcile.domain.resolution.merge import build_merge_table

if TYPE_CHECKING:
    from collections.abc import Collection
    from uuid import UUID

    from tenure_reconcile.config import PipelineConfig
    from tenure_reconcile.domain.matching import DetectionResult
    from tenure_reconcile.domain.model import CommitReport, Conflict, Package
    from tenure_reconcile.domain.package_workflow import PackageStatusView
    from tenure_reconcile.domain.validation import ValidationSummary

UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

RESOLUTION_ACTIONS: Final[tuple[str, ...]] = (
    "merge",
    "keep_first",
    "keep_second",
    "keep_both",
    "ignore",
    "escalate",
)

log = getLogger(__name__)


def _unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyReconciliationUnitOfWork


def build_commit_orchestrator(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: PipelineConfig | None = None,
) -> CommitOrchestrator:
    effective_uow = _unit_of_work_factory(unit_of_work_factory)
    pipeline_config = config or get_pipeline_config()
    return CommitOrchestrator(
        unit_of_work_factory=effective_uow,
        commit_service=SqlAlchemyCommitService(),
        archiver=FilesystemPackageArchiver.from_config(pipeline_config),
    )


def build_resolution_service(
    *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> ConflictResolutionService:
    return ConflictResolutionService(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        merge_services=build_merge_table(),
    )


def validate_package(
    package_id: UUID,
    *,
    user: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ValidationSummary:
    log.info("Starting validation for package %s", package_id)
    return package_workflow.validate_package(
        package_id, unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory), user=user
    )


def detect_duplicates(
    package_id: UUID,
    *,
    user: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> DetectionResult:
    log.info("Starting duplicate detection for package %s", package_id)
    return package_workflow.detect_duplicates(
        package_id, unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory), user=user
    )


def approve_package(
    package_id: UUID,
    *,
    user: UUID | None = None,
    record_ids: Collection[UUID] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Package:
    return package_workflow.approve_for_commit(
        package_id,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        user=user,
        record_ids=record_ids,
    )


def resolve_conflict(
    conflict_id: UUID,
    action: str,
    *,
    reason: str,
    user: UUID | None = None,
    notes: str | None = None,
    master_id: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Conflict:
    """Apply one reviewer decision by name."""

    service = build_resolution_service(unit_of_work_factory=unit_of_work_factory)
    match action:
        case "merge":
            return service.merge(
                conflict_id, user=user, reason=reason, notes=notes, master_id=master_id
            )
        case "keep_first":
            return service.keep_first(conflict_id, user=user, reason=reason, notes=notes)
        case "keep_second":
            return service.keep_second(conflict_id, user=user, reason=reason, notes=notes)
        case "keep_both":
            return service.keep_both(conflict_id, user=user, reason=reason, notes=notes)
        case "ignore":
            return service.ignore(conflict_id, user=user, reason=reason)
        case "escalate":
            return service.escalate(conflict_id, user=user, reason=reason)
        case _:
            raise ValidationError(
                f"Unknown resolution action {action!r}; expected one of "
                f"{', '.join(RESOLUTION_ACTIONS)}"
            )


def commit_package(
    package_id: UUID,
    *,
    user: UUID | None = None,
    cleanup_staging: bool | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: PipelineConfig | None = None,
) -> CommitReport:
    pipeline_config = config or get_pipeline_config()
    orchestrator = build_commit_orchestrator(
        unit_of_work_factory=unit_of_work_factory, config=pipeline_config
    )
    cleanup = (
        pipeline_config.cleanup_staging_after_commit if cleanup_staging is None else cleanup_staging
    )
    report = orchestrator.commit(package_id, user=user, cleanup_staging=cleanup)
    log.info(
        "Finished commit of package %s: committed=%s, failed=%s, skipped=%s",
        package_id,
        report.total_committed,
        report.total_failed,
        report.total_skipped,
    )
    return report


def cancel_package(
    package_id: UUID,
    reason: str,
    *,
    user: UUID | None = None,
    cleanup_staging: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Package:
    return package_workflow.cancel_package(
        package_id,
        reason,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        user=user,
        cleanup_staging=cleanup_staging,
    )


def quarantine_package(
    package_id: UUID,
    reason: str,
    *,
    user: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Package:
    return package_workflow.quarantine_package(
        package_id,
        reason,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        user=user,
    )


def reset_commit(
    package_id: UUID,
    reason: str,
    *,
    user: UUID | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Package:
    return package_workflow.reset_commit(
        package_id,
        reason,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        user=user,
    )


def package_status(
    package_id: UUID, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> PackageStatusView:
    return package_workflow.package_status(
        package_id, unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory)
    )
