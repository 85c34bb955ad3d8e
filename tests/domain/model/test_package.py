from __future__ import annotations

import pytest

from tenure_reconcile.domain.errors import StateConflictError
from tenure_reconcile.domain.model import (
    PACKAGE_TRANSITIONS,
    TERMINAL_STATUSES,
    ImportStatus,
    Package,
    new_id,
)


def _package_in(status: ImportStatus) -> Package:
    return Package(status=status)


def test_new_package_starts_pending_with_number() -> None:
    package = Package()

    assert package.status is ImportStatus.PENDING
    assert package.package_number.startswith("PKG-")
    assert package.version == 0


def test_every_status_has_a_label_and_transition_entry() -> None:
    for status in ImportStatus:
        assert status.label
        assert status in PACKAGE_TRANSITIONS


def test_terminal_statuses_only_allow_operator_reset() -> None:
    for status in TERMINAL_STATUSES - {ImportStatus.FAILED}:
        assert PACKAGE_TRANSITIONS[status] == frozenset()
    assert PACKAGE_TRANSITIONS[ImportStatus.FAILED] == frozenset({ImportStatus.READY_TO_COMMIT})


def test_happy_path_reaches_completed() -> None:
    user = new_id()
    package = Package()

    package.mark_imported(by=user)
    package.record_validation(errors=0, warnings=2, by=user)
    package.record_duplicates(person_duplicates=0, property_duplicates=0, total_conflicts=0)
    package.start_commit(by=user)
    package.mark_completed(committed=5, skipped=1, summary="ok")

    assert package.status is ImportStatus.COMPLETED
    assert package.committed_by == user
    assert package.successful_import_count == 5
    assert package.skipped_import_count == 1
    assert package.validation_warning_count == 2
    assert package.status_changed_at is not None
    assert package.last_modified_by == user


def test_validation_errors_fail_the_package() -> None:
    package = _package_in(ImportStatus.VALIDATING)

    package.record_validation(errors=3, warnings=0)

    assert package.status is ImportStatus.VALIDATION_FAILED
    assert package.validation_error_count == 3


def test_conflicts_move_package_to_review() -> None:
    package = _package_in(ImportStatus.STAGING)

    package.record_duplicates(person_duplicates=1, property_duplicates=2, total_conflicts=3)

    assert package.status is ImportStatus.REVIEWING_CONFLICTS
    assert package.conflict_count == 3


def test_detection_rerun_while_reviewing_keeps_status() -> None:
    package = _package_in(ImportStatus.REVIEWING_CONFLICTS)

    package.record_duplicates(person_duplicates=1, property_duplicates=0, total_conflicts=1)

    assert package.status is ImportStatus.REVIEWING_CONFLICTS
    assert package.updated_at is not None


def test_illegal_transition_raises_and_keeps_status() -> None:
    package = _package_in(ImportStatus.PENDING)

    with pytest.raises(StateConflictError):
        package.start_commit()

    assert package.status is ImportStatus.PENDING
    assert package.status_changed_at is None


def test_validation_failed_package_can_promote_its_valid_records() -> None:
    package = _package_in(ImportStatus.VALIDATION_FAILED)

    with pytest.raises(StateConflictError):
        package.start_commit()
    package.mark_conflicts_resolved()

    assert package.status is ImportStatus.READY_TO_COMMIT


def test_restart_validation_clears_counts_and_notes_reason() -> None:
    package = _package_in(ImportStatus.VALIDATING)
    package.record_validation(errors=2, warnings=1)

    package.restart_validation("corrected national ids")

    assert package.status is ImportStatus.VALIDATING
    assert package.validation_error_count == 0
    assert package.validation_warning_count == 0
    assert package.processing_notes == "[Re-staged]: corrected national ids"


@pytest.mark.parametrize("status", [ImportStatus.STAGING, ImportStatus.READY_TO_COMMIT])
def test_restart_validation_requires_failed_validation(status: ImportStatus) -> None:
    package = _package_in(status)

    with pytest.raises(StateConflictError, match="re-staged"):
        package.restart_validation("again")

    assert package.status is status


@pytest.mark.parametrize(
    "status",
    [
        ImportStatus.PENDING,
        ImportStatus.VALIDATING,
        ImportStatus.STAGING,
        ImportStatus.VALIDATION_FAILED,
        ImportStatus.QUARANTINED,
        ImportStatus.REVIEWING_CONFLICTS,
        ImportStatus.READY_TO_COMMIT,
        ImportStatus.COMMITTING,
    ],
)
def test_cancel_from_any_non_terminal_status(status: ImportStatus) -> None:
    package = _package_in(status)

    package.cancel("duplicate upload")

    assert package.status is ImportStatus.CANCELLED
    assert package.processing_notes == "[Cancelled]: duplicate upload"


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
def test_cancel_terminal_package_raises(status: ImportStatus) -> None:
    package = _package_in(status)

    with pytest.raises(StateConflictError):
        package.cancel("too late")

    assert package.status is status


def test_quarantine_appends_notes() -> None:
    package = _package_in(ImportStatus.STAGING)
    package.processing_notes = "uploaded twice"

    package.quarantine("checksum mismatch")

    assert package.status is ImportStatus.QUARANTINED
    assert package.processing_notes == "uploaded twice\n[Quarantined]: checksum mismatch"


@pytest.mark.parametrize("status", [ImportStatus.COMMITTING, ImportStatus.FAILED])
def test_reset_returns_to_ready_and_clears_error(status: ImportStatus) -> None:
    package = _package_in(status)
    package.error_message = "boom"

    package.reset_to_ready_to_commit("retry after outage")

    assert package.status is ImportStatus.READY_TO_COMMIT
    assert package.error_message is None
    assert package.processing_notes == "[Reset]: retry after outage"


def test_reset_rejects_other_statuses() -> None:
    package = _package_in(ImportStatus.COMPLETED)

    with pytest.raises(StateConflictError):
        package.reset_to_ready_to_commit("nope")


def test_mark_failed_keeps_internal_log_separate() -> None:
    package = _package_in(ImportStatus.COMMITTING)

    package.mark_failed(error_message="Generic failure", error_log='{"root_cause": "db"}')

    assert package.status is ImportStatus.FAILED
    assert package.error_message == "Generic failure"
    assert package.error_log == '{"root_cause": "db"}'
    assert package.is_terminal
