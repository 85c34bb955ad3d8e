"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ImportStatus(StrEnum):
    PENDING = "pending"
    VALIDATING = "validating"
    STAGING = "staging"
    VALIDATION_FAILED = "validation_failed"
    QUARANTINED = "quarantined"
    REVIEWING_CONFLICTS = "reviewing_conflicts"
    READY_TO_COMMIT = "ready_to_commit"
    COMMITTING = "committing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return _IMPORT_STATUS_LABELS[self]


_IMPORT_STATUS_LABELS: dict[ImportStatus, str] = {
    ImportStatus.PENDING: "Pending",
    ImportStatus.VALIDATING: "Validating",
    ImportStatus.STAGING: "Staged",
    ImportStatus.VALIDATION_FAILED: "Validation failed",
    ImportStatus.QUARANTINED: "Quarantined",
    ImportStatus.REVIEWING_CONFLICTS: "Reviewing conflicts",
    ImportStatus.READY_TO_COMMIT: "Ready to commit",
    ImportStatus.COMMITTING: "Committing",
    ImportStatus.COMPLETED: "Completed",
    ImportStatus.PARTIALLY_COMPLETED: "Partially completed",
    ImportStatus.FAILED: "Failed",
    ImportStatus.CANCELLED: "Cancelled",
}


class ValidationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    SKIPPED = "skipped"


class EntityKind(StrEnum):
    """Discriminator shared by staging shapes, registry records and conflicts."""

    BUILDING = "building"
    PROPERTY_UNIT = "property_unit"
    PERSON = "person"
    HOUSEHOLD = "household"
    RELATION = "person_property_relation"
    EVIDENCE = "evidence"
    CLAIM = "claim"
    SURVEY = "survey"


class RecordStatus(StrEnum):
    """Lifecycle of an authoritative record; superseded rows are never deleted."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"


class EntitySide(StrEnum):
    """Which store a conflict candidate lives in."""

    AUTHORITATIVE = "authoritative"
    STAGING = "staging"


class ConflictType(StrEnum):
    PERSON_DUPLICATE = "person_duplicate"
    PERSON_DUPLICATE_WITHIN_BATCH = "person_duplicate_within_batch"
    PROPERTY_DUPLICATE = "property_duplicate"
    PROPERTY_DUPLICATE_WITHIN_BATCH = "property_duplicate_within_batch"


class ConflictStatus(StrEnum):
    PENDING_REVIEW = "pending_review"
    RESOLVED = "resolved"
    IGNORED = "ignored"
    ESCALATED = "escalated"


class ResolutionAction(StrEnum):
    MERGE = "merge"
    KEEP_FIRST = "keep_first"
    KEEP_SECOND = "keep_second"
    KEEP_BOTH = "keep_both"


class ConfidenceLevel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConflictPriority(StrEnum):
    NORMAL = "normal"
    HIGH = "high"


class RelationType(StrEnum):
    OWNER = "owner"
    CO_OWNER = "co_owner"
    TENANT = "tenant"
    OCCUPANT = "occupant"
    HEIR = "heir"
    GUEST = "guest"
    OTHER = "other"
