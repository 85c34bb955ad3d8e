from __future__ import annotations

from dataclasses import asdict

import pytest

from tenure_reconcile.domain.errors import StateConflictError, ValidationError
from tenure_reconcile.domain.model import (
    ConfidenceLevel,
    Conflict,
    ConflictPriority,
    ConflictStatus,
    ConflictType,
    EntityKind,
    EntitySide,
    ResolutionAction,
    new_id,
)


def make_conflict(**overrides: object) -> Conflict:
    values: dict[str, object] = {
        "conflict_type": ConflictType.PERSON_DUPLICATE,
        "entity_kind": EntityKind.PERSON,
        "first_entity_id": new_id(),
        "second_entity_id": new_id(),
        "first_side": EntitySide.STAGING,
        "second_side": EntitySide.AUTHORITATIVE,
        "similarity_score": 85.0,
        "confidence_level": ConfidenceLevel.MEDIUM,
    }
    values.update(overrides)
    return Conflict(**values)  # type: ignore[arg-type]


def test_new_conflict_is_pending_and_open() -> None:
    conflict = make_conflict()

    assert conflict.status is ConflictStatus.PENDING_REVIEW
    assert conflict.is_open
    assert conflict.conflict_number.startswith("CNF-")
    assert not conflict.is_within_batch


def test_side_lookup_and_other_entity() -> None:
    conflict = make_conflict()

    assert conflict.side_of(conflict.first_entity_id) is EntitySide.STAGING
    assert conflict.side_of(conflict.second_entity_id) is EntitySide.AUTHORITATIVE
    assert conflict.other_entity(conflict.first_entity_id) == conflict.second_entity_id
    with pytest.raises(ValidationError):
        conflict.side_of(new_id())


def test_resolve_records_decision() -> None:
    conflict = make_conflict()
    user = new_id()

    conflict.resolve(
        action=ResolutionAction.KEEP_FIRST,
        reason="same person",
        resolved_by=user,
        merged_entity_id=conflict.first_entity_id,
        discarded_entity_id=conflict.second_entity_id,
    )

    assert conflict.status is ConflictStatus.RESOLVED
    assert conflict.resolution_action is ResolutionAction.KEEP_FIRST
    assert conflict.resolved_by == user
    assert conflict.resolved_at is not None
    assert not conflict.is_open


@pytest.mark.parametrize("status", [ConflictStatus.RESOLVED, ConflictStatus.IGNORED])
def test_resolve_non_pending_conflict_fails_without_changes(status: ConflictStatus) -> None:
    conflict = make_conflict(status=status)
    before = asdict(conflict)

    with pytest.raises(StateConflictError):
        conflict.resolve(
            action=ResolutionAction.MERGE,
            reason="late decision",
            resolved_by=new_id(),
            merged_entity_id=conflict.first_entity_id,
            discarded_entity_id=conflict.second_entity_id,
            merge_mapping={"national_id": "staging"},
        )
    with pytest.raises(StateConflictError):
        conflict.ignore("late ignore")
    with pytest.raises(StateConflictError):
        conflict.escalate("late escalation")

    assert asdict(conflict) == before


def test_ignore_closes_conflict() -> None:
    conflict = make_conflict()

    conflict.ignore("not a duplicate")

    assert conflict.status is ConflictStatus.IGNORED
    assert conflict.resolution_reason == "not a duplicate"
    assert not conflict.is_open


def test_escalate_flags_but_stays_pending() -> None:
    conflict = make_conflict()
    user = new_id()

    conflict.escalate("needs senior review", by=user)

    assert conflict.status is ConflictStatus.PENDING_REVIEW
    assert conflict.is_escalated
    assert conflict.is_open
    assert conflict.priority is ConflictPriority.HIGH
    assert conflict.escalated_by == user
    with pytest.raises(StateConflictError):
        conflict.escalate("again")


def test_review_attempts_are_counted_without_status_change() -> None:
    conflict = make_conflict()

    conflict.record_review_attempt("opened", by=new_id())
    conflict.record_review_attempt("compared documents")

    assert conflict.review_attempt_count == 2
    assert len(conflict.review_history) == 2
    assert conflict.review_history[1].startswith("#2 ")
    assert conflict.status is ConflictStatus.PENDING_REVIEW


def test_within_batch_requires_both_sides_staged() -> None:
    conflict = make_conflict(
        conflict_type=ConflictType.PERSON_DUPLICATE_WITHIN_BATCH,
        second_side=EntitySide.STAGING,
    )

    assert conflict.is_within_batch
