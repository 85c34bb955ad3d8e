from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tenure_reconcile.domain import package_workflow
from tenure_reconcile.domain.errors import NotFoundError, StateConflictError, ValidationError
from tenure_reconcile.domain.model import (
    ConflictStatus,
    EntityKind,
    ImportStatus,
    Package,
    ValidationStatus,
    new_id,
)
from tenure_reconcile.domain.resolution import ConflictResolutionService
from tenure_reconcile.domain.resolution.merge import build_merge_table
from tests.helpers.packages import (
    make_building,
    make_person,
    make_relation,
    make_unit,
    stage,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from tenure_reconcile.adapters.sqlalchemy.unit_of_work import (
        SqlAlchemyReconciliationUnitOfWork,
    )
    from tenure_reconcile.domain.model import StagingRecord

    type UowFactory = Callable[[], SqlAlchemyReconciliationUnitOfWork]


def _clean_records(package_id: UUID) -> list[StagingRecord]:
    building = make_building(package_id)
    unit = make_unit(package_id, building, "1")
    person = make_person(package_id, index=0)
    return [building, unit, person, make_relation(package_id, person, unit)]


def _duplicate_unit_records(package_id: UUID) -> list[StagingRecord]:
    building = make_building(package_id)
    return [building, make_unit(package_id, building, "1"), make_unit(package_id, building, "1")]


def _staged(uow_factory: UowFactory, records: Callable[[UUID], list[StagingRecord]]) -> Package:
    package = Package()
    return stage(uow_factory, package, records(package.id))


def _validated(uow_factory: UowFactory, records: Callable[[UUID], list[StagingRecord]]) -> Package:
    package = _staged(uow_factory, records)
    package_workflow.validate_package(package.id, unit_of_work_factory=uow_factory)
    return package


def _status(uow_factory: UowFactory, package_id: UUID) -> ImportStatus:
    with uow_factory() as uow:
        package = uow.repositories.packages.get(package_id)
        assert package is not None
        return package.status


def test_stage_package_records_entity_counts(sqlite_unit_of_work: UowFactory) -> None:
    package = _staged(sqlite_unit_of_work, _clean_records)

    assert package.status is ImportStatus.VALIDATING
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.packages.get(package.id)
        assert stored is not None
        assert stored.entity_counts == {
            "building": 1,
            "property_unit": 1,
            "person": 1,
            "person_property_relation": 1,
        }


def test_stage_package_rejects_foreign_records(sqlite_unit_of_work: UowFactory) -> None:
    package = Package()

    with pytest.raises(ValidationError, match="belongs to package"):
        stage(sqlite_unit_of_work, package, [make_building(new_id())])


def test_clean_package_validates_to_staging(sqlite_unit_of_work: UowFactory) -> None:
    package = _staged(sqlite_unit_of_work, _clean_records)

    summary = package_workflow.validate_package(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert summary.invalid_count == 0
    assert summary.valid_count == 4
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.STAGING
    with sqlite_unit_of_work() as uow:
        persons = uow.repositories.staging.persons.list_for_package(package.id)
        assert [person.validation_status for person in persons] == [ValidationStatus.VALID]


def test_invalid_record_fails_validation(sqlite_unit_of_work: UowFactory) -> None:
    def records(package_id: UUID) -> list[StagingRecord]:
        return [*_clean_records(package_id), make_person(package_id, first_name_arabic="")]

    package = _staged(sqlite_unit_of_work, records)

    summary = package_workflow.validate_package(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert summary.invalid_count == 1
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.packages.get(package.id)
        assert stored is not None
        assert stored.status is ImportStatus.VALIDATION_FAILED
        assert stored.validation_error_count == 1


def test_outdated_vocabulary_invalidates_coded_records(sqlite_unit_of_work: UowFactory) -> None:
    package = Package(vocabulary_versions={"property_unit_type": "0.4.0"})
    stage(sqlite_unit_of_work, package, _clean_records(package.id))

    summary = package_workflow.validate_package(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert summary.invalid_count == 1
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.VALIDATION_FAILED
    with sqlite_unit_of_work() as uow:
        (unit,) = uow.repositories.staging.property_units.list_for_package(package.id)
        assert unit.validation_status is ValidationStatus.INVALID
        assert any("major version difference" in error for error in unit.validation_errors)


def _with_invalid_person(package_id: UUID) -> list[StagingRecord]:
    return [*_clean_records(package_id), make_person(package_id, index=2, first_name_arabic="")]


def test_failed_validation_still_lets_valid_records_through(
    sqlite_unit_of_work: UowFactory,
) -> None:
    package = _validated(sqlite_unit_of_work, _with_invalid_person)
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.VALIDATION_FAILED

    result = package_workflow.detect_duplicates(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )
    approved = package_workflow.approve_for_commit(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert result.persons_scanned == 1
    assert approved.status is ImportStatus.READY_TO_COMMIT
    with sqlite_unit_of_work() as uow:
        persons = uow.repositories.staging.persons.list_for_package(package.id)
        flags = sorted(
            (str(person.validation_status), person.is_approved_for_commit) for person in persons
        )
    assert flags == [("invalid", False), ("valid", True)]


def test_restage_replaces_rows_and_restarts_validation(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _with_invalid_person)

    restaged = package_workflow.restage_package(
        package.id,
        _clean_records(package.id),
        "fixed missing first name",
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert restaged.status is ImportStatus.VALIDATING
    assert restaged.processing_notes == "[Re-staged]: fixed missing first name"
    assert restaged.entity_counts["person"] == 1
    summary = package_workflow.validate_package(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )
    assert summary.invalid_count == 0
    assert summary.valid_count == 4
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.STAGING


def test_restage_requires_failed_validation(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)

    with pytest.raises(StateConflictError, match="Cannot re-stage"):
        package_workflow.restage_package(
            package.id, [], "empty", unit_of_work_factory=sqlite_unit_of_work
        )

    view = package_workflow.package_status(package.id, unit_of_work_factory=sqlite_unit_of_work)
    assert view.package.status is ImportStatus.STAGING
    assert view.validation_counts == {"valid": 4}


def test_validate_requires_validating_status(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)

    with pytest.raises(StateConflictError, match="Cannot validate"):
        package_workflow.validate_package(package.id, unit_of_work_factory=sqlite_unit_of_work)

    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.STAGING


def test_detection_without_matches_is_ready_to_commit(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)

    result = package_workflow.detect_duplicates(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert result.total_conflicts == 0
    assert result.units_scanned == 1
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


def test_duplicate_units_send_package_to_review(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _duplicate_unit_records)

    result = package_workflow.detect_duplicates(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert result.property_duplicates == 1
    assert result.person_duplicates == 0
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.packages.get(package.id)
        assert stored is not None
        assert stored.status is ImportStatus.REVIEWING_CONFLICTS
        assert stored.conflict_count == 1
        assert stored.property_duplicate_count == 1


def test_detection_rerun_ignores_previous_open_conflicts(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _duplicate_unit_records)
    package_workflow.detect_duplicates(package.id, unit_of_work_factory=sqlite_unit_of_work)

    package_workflow.detect_duplicates(package.id, unit_of_work_factory=sqlite_unit_of_work)

    view = package_workflow.package_status(package.id, unit_of_work_factory=sqlite_unit_of_work)
    statuses = sorted(str(conflict.status) for conflict in view.conflicts)
    assert statuses == [str(ConflictStatus.IGNORED), str(ConflictStatus.PENDING_REVIEW)]
    ignored = next(c for c in view.conflicts if c.status is ConflictStatus.IGNORED)
    assert ignored.resolution_reason == package_workflow.RERUN_IGNORE_REASON
    assert len(view.open_conflicts) == 1
    assert view.package.status is ImportStatus.REVIEWING_CONFLICTS


def test_approval_blocked_until_conflicts_resolved(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _duplicate_unit_records)
    result = package_workflow.detect_duplicates(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    with pytest.raises(StateConflictError, match="1 unresolved conflict"):
        package_workflow.approve_for_commit(package.id, unit_of_work_factory=sqlite_unit_of_work)

    service = ConflictResolutionService(
        unit_of_work_factory=sqlite_unit_of_work, merge_services=build_merge_table()
    )
    service.keep_both(result.conflicts[0].id, user=None, reason="separate flats")
    approved = package_workflow.approve_for_commit(
        package.id, unit_of_work_factory=sqlite_unit_of_work
    )

    assert approved.status is ImportStatus.READY_TO_COMMIT
    with sqlite_unit_of_work() as uow:
        units = uow.repositories.staging.property_units.list_for_package(package.id)
        assert all(unit.is_approved_for_commit for unit in units)


def test_approve_selected_records(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)
    with sqlite_unit_of_work() as uow:
        (person,) = uow.repositories.staging.persons.list_for_package(package.id)

    package_workflow.approve_for_commit(
        package.id,
        unit_of_work_factory=sqlite_unit_of_work,
        record_ids=[person.original_entity_id],
    )

    with sqlite_unit_of_work() as uow:
        staging = uow.repositories.staging
        approved = [
            record.kind
            for repository in staging.all()
            for record in repository.list_for_package(package.id)
            if record.is_approved_for_commit
        ]
    assert approved == [EntityKind.PERSON]
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


def test_approve_unknown_record_id_changes_nothing(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)
    missing = new_id()

    with pytest.raises(NotFoundError, match=str(missing)):
        package_workflow.approve_for_commit(
            package.id, unit_of_work_factory=sqlite_unit_of_work, record_ids=[missing]
        )

    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.STAGING


def test_cancel_with_staging_cleanup(sqlite_unit_of_work: UowFactory) -> None:
    package = _staged(sqlite_unit_of_work, _clean_records)

    cancelled = package_workflow.cancel_package(
        package.id,
        "wrong device",
        unit_of_work_factory=sqlite_unit_of_work,
        cleanup_staging=True,
    )

    assert cancelled.status is ImportStatus.CANCELLED
    assert cancelled.processing_notes == "[Cancelled]: wrong device"
    view = package_workflow.package_status(package.id, unit_of_work_factory=sqlite_unit_of_work)
    assert view.validation_counts == {}

    with pytest.raises(StateConflictError):
        package_workflow.cancel_package(
            package.id, "again", unit_of_work_factory=sqlite_unit_of_work
        )


def test_quarantine_active_package_only(sqlite_unit_of_work: UowFactory) -> None:
    package = _staged(sqlite_unit_of_work, _clean_records)

    quarantined = package_workflow.quarantine_package(
        package.id, "checksum mismatch", unit_of_work_factory=sqlite_unit_of_work
    )

    assert quarantined.status is ImportStatus.QUARANTINED
    assert quarantined.processing_notes == "[Quarantined]: checksum mismatch"

    package_workflow.cancel_package(package.id, "discard", unit_of_work_factory=sqlite_unit_of_work)
    with pytest.raises(StateConflictError, match="Cannot quarantine"):
        package_workflow.quarantine_package(
            package.id, "late", unit_of_work_factory=sqlite_unit_of_work
        )


def test_reset_commit_recovers_failed_package(sqlite_unit_of_work: UowFactory) -> None:
    package = _validated(sqlite_unit_of_work, _clean_records)
    package_workflow.detect_duplicates(package.id, unit_of_work_factory=sqlite_unit_of_work)

    with pytest.raises(StateConflictError, match="can be reset"):
        package_workflow.reset_commit(
            package.id, "premature", unit_of_work_factory=sqlite_unit_of_work
        )

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.packages.get(package.id)
        assert stored is not None
        stored.start_commit()
        stored.mark_failed(error_message="boom")
        uow.commit()

    reset = package_workflow.reset_commit(
        package.id, "database back", unit_of_work_factory=sqlite_unit_of_work
    )

    assert reset.status is ImportStatus.READY_TO_COMMIT
    assert reset.error_message is None
    assert reset.processing_notes == "[Reset]: database back"


def test_package_status_counts_records_by_validation_status(
    sqlite_unit_of_work: UowFactory,
) -> None:
    def records(package_id: UUID) -> list[StagingRecord]:
        incomplete = make_person(package_id, index=4, family_name_arabic=None)
        return [*_clean_records(package_id), incomplete]

    package = _staged(sqlite_unit_of_work, records)
    package_workflow.validate_package(package.id, unit_of_work_factory=sqlite_unit_of_work)

    view = package_workflow.package_status(package.id, unit_of_work_factory=sqlite_unit_of_work)

    assert view.validation_counts == {"valid": 4, "invalid": 1}
    assert view.conflicts == ()


def test_missing_package_raises_not_found(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(NotFoundError):
        package_workflow.package_status(new_id(), unit_of_work_factory=sqlite_unit_of_work)
