"""Conflict aggregate: one detected potential duplicate awaiting a human decision."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from tenure_reconcile.domain.errors import StateConflictError, ValidationError

from .base import append_all, new_id, utcnow
from .enums import (
    ConfidenceLevel,
    ConflictPriority,
    ConflictStatus,
    ConflictType,
    EntityKind,
    EntitySide,
    ResolutionAction,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

OPEN_CONFLICT_STATUSES: Final[frozenset[ConflictStatus]] = frozenset(
    {ConflictStatus.PENDING_REVIEW, ConflictStatus.ESCALATED}
)


def _conflict_number() -> str:
    return f"CNF-{utcnow().year}-{new_id().hex[:8].upper()}"


@dataclass(eq=False, kw_only=True)
class Conflict:
    conflict_type: ConflictType
    entity_kind: EntityKind
    first_entity_id: UUID
    second_entity_id: UUID
    first_side: EntitySide
    second_side: EntitySide
    similarity_score: float
    confidence_level: ConfidenceLevel
    id: UUID = field(default_factory=new_id)
    conflict_number: str = field(default_factory=_conflict_number)
    first_entity_identifier: str | None = None
    second_entity_identifier: str | None = None
    description: str | None = None
    matching_criteria: dict[str, Any] = field(default_factory=dict)
    import_package_id: UUID | None = None

    status: ConflictStatus = ConflictStatus.PENDING_REVIEW
    priority: ConflictPriority = ConflictPriority.NORMAL
    resolution_action: ResolutionAction | None = None
    resolution_reason: str | None = None
    resolution_notes: str | None = None
    merged_entity_id: UUID | None = None
    discarded_entity_id: UUID | None = None
    merge_mapping: dict[str, str] | None = None

    is_escalated: bool = False
    escalation_reason: str | None = None
    escalated_at: datetime | None = None
    escalated_by: UUID | None = None

    review_attempt_count: int = 0
    review_history: list[str] = field(default_factory=list)

    detected_at: datetime = field(default_factory=utcnow)
    detected_by: UUID | None = None
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def is_within_batch(self) -> bool:
        return self.first_side is EntitySide.STAGING and self.second_side is EntitySide.STAGING

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_CONFLICT_STATUSES

    def side_of(self, entity_id: UUID) -> EntitySide:
        if entity_id == self.first_entity_id:
            return self.first_side
        if entity_id == self.second_entity_id:
            return self.second_side
        raise ValidationError(
            f"Entity {entity_id} is not part of conflict {self.conflict_number}"
        )

    def other_entity(self, entity_id: UUID) -> UUID:
        self.side_of(entity_id)
        return self.second_entity_id if entity_id == self.first_entity_id else self.first_entity_id

    def record_review_attempt(self, note: str, *, by: UUID | None = None) -> None:
        """Log a review touch for SLA tracking; status is never changed here."""

        self.review_attempt_count += 1
        stamp = utcnow().isoformat(timespec="seconds")
        actor = f" by {by}" if by is not None else ""
        entry = f"#{self.review_attempt_count} {stamp}{actor}: {note}"
        self.review_history = append_all(self.review_history, [entry])
        self.updated_at = utcnow()

    def require_pending(self, verb: str) -> None:
        if self.status is not ConflictStatus.PENDING_REVIEW:
            raise StateConflictError(
                f"Conflict {self.conflict_number} is {self.status} and cannot be {verb}; "
                "only pending_review conflicts accept a decision"
            )

    def resolve(
        self,
        *,
        action: ResolutionAction,
        reason: str,
        resolved_by: UUID | None,
        notes: str | None = None,
        merged_entity_id: UUID | None = None,
        discarded_entity_id: UUID | None = None,
        merge_mapping: dict[str, str] | None = None,
    ) -> None:
        self.require_pending("resolved")
        self.status = ConflictStatus.RESOLVED
        self.resolution_action = action
        self.resolution_reason = reason
        self.resolution_notes = notes
        self.merged_entity_id = merged_entity_id
        self.discarded_entity_id = discarded_entity_id
        self.merge_mapping = dict(merge_mapping) if merge_mapping is not None else None
        self.resolved_at = utcnow()
        self.resolved_by = resolved_by
        self.updated_at = self.resolved_at

    def ignore(self, reason: str, *, by: UUID | None = None) -> None:
        self.require_pending("ignored")
        self.status = ConflictStatus.IGNORED
        self.resolution_reason = reason
        self.resolved_at = utcnow()
        self.resolved_by = by
        self.updated_at = self.resolved_at

    def escalate(self, reason: str, *, by: UUID | None = None) -> None:
        """Flag for senior review; the conflict stays pending and keeps blocking promotion."""

        self.require_pending("escalated")
        if self.is_escalated:
            raise StateConflictError(f"Conflict {self.conflict_number} is already escalated")
        self.is_escalated = True
        self.escalation_reason = reason
        self.escalated_at = utcnow()
        self.escalated_by = by
        self.priority = ConflictPriority.HIGH
        self.updated_at = self.escalated_at
