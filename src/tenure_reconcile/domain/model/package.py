"""Import package aggregate and its lifecycle graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.errors import StateConflictError

from .base import new_id, utcnow
from .enums import ImportStatus

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime
    from uuid import UUID

S = ImportStatus

PACKAGE_TRANSITIONS: Final[Mapping[ImportStatus, frozenset[ImportStatus]]] = {
    S.PENDING: frozenset({S.VALIDATING, S.CANCELLED}),
    S.VALIDATING: frozenset(
        {S.STAGING, S.VALIDATION_FAILED, S.QUARANTINED, S.FAILED, S.CANCELLED}
    ),
    S.STAGING: frozenset(
        {
            S.VALIDATION_FAILED,
            S.QUARANTINED,
            S.REVIEWING_CONFLICTS,
            S.READY_TO_COMMIT,
            S.FAILED,
            S.CANCELLED,
        }
    ),
    # valid records may still move on; a corrected re-submission restarts validation
    S.VALIDATION_FAILED: frozenset(
        {
            S.VALIDATING,
            S.REVIEWING_CONFLICTS,
            S.READY_TO_COMMIT,
            S.QUARANTINED,
            S.FAILED,
            S.CANCELLED,
        }
    ),
    S.QUARANTINED: frozenset({S.CANCELLED}),
    S.REVIEWING_CONFLICTS: frozenset({S.READY_TO_COMMIT, S.FAILED, S.CANCELLED}),
    S.READY_TO_COMMIT: frozenset({S.COMMITTING, S.CANCELLED}),
    S.COMMITTING: frozenset(
        {S.COMPLETED, S.PARTIALLY_COMPLETED, S.FAILED, S.READY_TO_COMMIT, S.CANCELLED}
    ),
    # operator reset only
    S.FAILED: frozenset({S.READY_TO_COMMIT}),
    S.COMPLETED: frozenset(),
    S.PARTIALLY_COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: Final[frozenset[ImportStatus]] = frozenset(
    {S.COMPLETED, S.PARTIALLY_COMPLETED, S.FAILED, S.CANCELLED}
)


def _package_number() -> str:
    return f"PKG-{utcnow().year}-{new_id().hex[:8].upper()}"


@dataclass(eq=False, kw_only=True)
class Package:
    """One offline submission. Never deleted; failed packages stay as records."""

    id: UUID = field(default_factory=new_id)
    package_number: str = field(default_factory=_package_number)
    status: ImportStatus = ImportStatus.PENDING
    device_id: str | None = None
    schema_version: str | None = None
    checksum: str | None = None
    vocabulary_versions: dict[str, str] = field(default_factory=dict)
    entity_counts: dict[str, int] = field(default_factory=dict)

    validation_error_count: int = 0
    validation_warning_count: int = 0
    person_duplicate_count: int = 0
    property_duplicate_count: int = 0
    conflict_count: int = 0
    successful_import_count: int = 0
    failed_import_count: int = 0
    skipped_import_count: int = 0

    import_summary: str | None = None
    processing_notes: str | None = None
    archive_path: str | None = None
    error_message: str | None = None
    # internal diagnostics, never rendered outside the service boundary
    error_log: str | None = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    status_changed_at: datetime | None = None
    last_modified_by: UUID | None = None
    committed_by: UUID | None = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, target: ImportStatus) -> bool:
        return target in PACKAGE_TRANSITIONS[self.status]

    def _transition(self, target: ImportStatus, *, by: UUID | None) -> None:
        if not self.can_transition_to(target):
            raise StateConflictError(
                f"Package {self.package_number} cannot move from {self.status} to {target}"
            )
        self.status = target
        self.status_changed_at = utcnow()
        self.touch(by=by)

    def touch(self, *, by: UUID | None = None) -> None:
        """Stamp the row so concurrent writers collide on the version token."""

        self.updated_at = utcnow()
        if by is not None:
            self.last_modified_by = by

    def _append_note(self, note: str) -> None:
        if self.processing_notes:
            self.processing_notes = f"{self.processing_notes}\n{note}"
        else:
            self.processing_notes = note

    def mark_imported(self, *, by: UUID | None = None) -> None:
        self._transition(ImportStatus.VALIDATING, by=by)

    def record_validation(self, *, errors: int, warnings: int, by: UUID | None = None) -> None:
        self.validation_error_count = errors
        self.validation_warning_count = warnings
        target = ImportStatus.VALIDATION_FAILED if errors > 0 else ImportStatus.STAGING
        self._transition(target, by=by)

    def restart_validation(self, reason: str, *, by: UUID | None = None) -> None:
        if self.status is not ImportStatus.VALIDATION_FAILED:
            raise StateConflictError(
                f"Only packages that failed validation can be re-staged, not {self.status}"
            )
        self._transition(ImportStatus.VALIDATING, by=by)
        self.validation_error_count = 0
        self.validation_warning_count = 0
        self._append_note(f"[Re-staged]: {reason}")

    def record_duplicates(
        self,
        *,
        person_duplicates: int,
        property_duplicates: int,
        total_conflicts: int,
        by: UUID | None = None,
    ) -> None:
        self.person_duplicate_count = person_duplicates
        self.property_duplicate_count = property_duplicates
        self.conflict_count = total_conflicts
        if total_conflicts > 0:
            if self.status is not ImportStatus.REVIEWING_CONFLICTS:
                self._transition(ImportStatus.REVIEWING_CONFLICTS, by=by)
            else:
                self.touch(by=by)
            return
        self._transition(ImportStatus.READY_TO_COMMIT, by=by)

    def mark_conflicts_resolved(self, *, by: UUID | None = None) -> None:
        self._transition(ImportStatus.READY_TO_COMMIT, by=by)

    def start_commit(self, *, by: UUID | None = None) -> None:
        self._transition(ImportStatus.COMMITTING, by=by)
        self.committed_by = by

    def mark_completed(self, *, committed: int, skipped: int, summary: str) -> None:
        self.successful_import_count = committed
        self.failed_import_count = 0
        self.skipped_import_count = skipped
        self.import_summary = summary
        self._transition(ImportStatus.COMPLETED, by=self.committed_by)

    def mark_partially_completed(
        self, *, committed: int, failed: int, skipped: int, summary: str
    ) -> None:
        self.successful_import_count = committed
        self.failed_import_count = failed
        self.skipped_import_count = skipped
        self.import_summary = summary
        self._transition(ImportStatus.PARTIALLY_COMPLETED, by=self.committed_by)

    def mark_failed(
        self, *, error_message: str, error_log: str | None = None, by: UUID | None = None
    ) -> None:
        self.error_message = error_message
        self.error_log = error_log
        self._transition(ImportStatus.FAILED, by=by)

    def quarantine(self, reason: str, *, by: UUID | None = None) -> None:
        self._transition(ImportStatus.QUARANTINED, by=by)
        self._append_note(f"[Quarantined]: {reason}")

    def cancel(self, reason: str, *, by: UUID | None = None) -> None:
        if self.is_terminal:
            raise StateConflictError(
                f"Package {self.package_number} is {self.status} and cannot be cancelled"
            )
        self._transition(ImportStatus.CANCELLED, by=by)
        self._append_note(f"[Cancelled]: {reason}")

    def reset_to_ready_to_commit(self, reason: str, *, by: UUID | None = None) -> None:
        if self.status not in {ImportStatus.COMMITTING, ImportStatus.FAILED}:
            raise StateConflictError(
                f"Only committing or failed packages can be reset, not {self.status}"
            )
        self._transition(ImportStatus.READY_TO_COMMIT, by=by)
        self.error_message = None
        self._append_note(f"[Reset]: {reason}")

    def archive(self, path: str) -> None:
        self.archive_path = path
        self.touch()
