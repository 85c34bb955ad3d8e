from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from tenure_reconcile.adapters.sqlalchemy.unit_of_work import SqlAlchemyReconciliationUnitOfWork
from tenure_reconcile.domain.errors import (
    ConcurrentModificationError,
    MergeError,
    NotFoundError,
    StateConflictError,
)
from tenure_reconcile.domain.model import (
    ConfidenceLevel,
    Conflict,
    ConflictStatus,
    ConflictType,
    EntityKind,
    EntitySide,
    ImportStatus,
    Package,
    RecordStatus,
    ResolutionAction,
    ValidationStatus,
    new_id,
)
from tenure_reconcile.domain.resolution import ConflictResolutionService
from tenure_reconcile.domain.resolution.merge import MergeOutcome, build_merge_table
from tests.helpers.packages import (
    make_building,
    make_person,
    make_unit,
    registry_person,
    seed_registry,
    stage,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import StagingRecord
    from tenure_reconcile.domain.ports import ReconciliationRepositories

    type UowFactory = Callable[[], SqlAlchemyReconciliationUnitOfWork]


@dataclass
class RecordingMergeService:
    kind: EntityKind
    succeed: bool = True
    calls: list[tuple[UUID, UUID]] = field(default_factory=list)

    def merge(
        self,
        repositories: ReconciliationRepositories,
        master_id: UUID,
        discarded_id: UUID,
        *,
        package_id: UUID | None = None,
    ) -> MergeOutcome:
        self.calls.append((master_id, discarded_id))
        if not self.succeed:
            return MergeOutcome.failed(master_id, discarded_id, "merge refused")
        return MergeOutcome(
            success=True,
            master_id=master_id,
            discarded_id=discarded_id,
            provenance={"_merge_type": "recorded"},
        )


def _conflict(
    package_id: UUID,
    first: UUID,
    second: UUID,
    *,
    kind: EntityKind = EntityKind.PROPERTY_UNIT,
    second_side: EntitySide = EntitySide.STAGING,
    first_side: EntitySide = EntitySide.STAGING,
) -> Conflict:
    within = first_side is EntitySide.STAGING and second_side is EntitySide.STAGING
    if kind is EntityKind.PERSON:
        conflict_type = (
            ConflictType.PERSON_DUPLICATE_WITHIN_BATCH if within else ConflictType.PERSON_DUPLICATE
        )
    else:
        conflict_type = (
            ConflictType.PROPERTY_DUPLICATE_WITHIN_BATCH
            if within
            else ConflictType.PROPERTY_DUPLICATE
        )
    return Conflict(
        conflict_type=conflict_type,
        entity_kind=kind,
        first_entity_id=first,
        second_entity_id=second,
        first_side=first_side,
        second_side=second_side,
        similarity_score=100.0,
        confidence_level=ConfidenceLevel.HIGH,
        import_package_id=package_id,
    )


def _reviewing_package(
    uow_factory: UowFactory,
    records: Sequence[StagingRecord],
    conflicts: Callable[[Package], Sequence[Conflict]],
) -> tuple[Package, list[Conflict]]:
    package = Package()
    stage(uow_factory, package, records)
    created = list(conflicts(package))
    with uow_factory() as uow:
        stored = uow.repositories.packages.get(package.id)
        assert stored is not None
        stored.record_validation(errors=0, warnings=0)
        for conflict in created:
            uow.repositories.conflicts.add(conflict)
        stored.record_duplicates(
            person_duplicates=0, property_duplicates=len(created), total_conflicts=len(created)
        )
        uow.commit()
    return package, created


def _service(
    uow_factory: UowFactory, *services: RecordingMergeService
) -> ConflictResolutionService:
    table = build_merge_table(services) if services else build_merge_table()
    return ConflictResolutionService(unit_of_work_factory=uow_factory, merge_services=table)


def _status(uow_factory: UowFactory, package_id: UUID) -> ImportStatus:
    with uow_factory() as uow:
        package = uow.repositories.packages.get(package_id)
        assert package is not None
        return package.status


def test_keep_first_within_batch_uses_no_merge_service_and_promotes(
    sqlite_unit_of_work: UowFactory,
) -> None:
    package_id = new_id()
    building = make_building(package_id)
    first = make_unit(package_id, building, "1")
    second = make_unit(package_id, building, "1")
    package = Package(id=package_id)
    stage(sqlite_unit_of_work, package, [building, first, second])
    conflict = _conflict(package_id, first.original_entity_id, second.original_entity_id)
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.packages.get(package_id)
        assert stored is not None
        stored.record_validation(errors=0, warnings=0)
        uow.repositories.conflicts.add(conflict)
        stored.record_duplicates(person_duplicates=0, property_duplicates=1, total_conflicts=1)
        uow.commit()
    recorder = RecordingMergeService(EntityKind.PROPERTY_UNIT)

    resolved = _service(sqlite_unit_of_work, recorder).keep_first(
        conflict.id, user=new_id(), reason="same flat"
    )

    assert recorder.calls == []
    assert resolved.status is ConflictStatus.RESOLVED
    assert resolved.resolution_action is ResolutionAction.KEEP_FIRST
    assert resolved.merged_entity_id == first.original_entity_id
    assert resolved.discarded_entity_id == second.original_entity_id
    assert resolved.review_attempt_count == 1
    assert _status(sqlite_unit_of_work, package_id) is ImportStatus.READY_TO_COMMIT
    with sqlite_unit_of_work() as uow:
        staged = uow.repositories.staging.property_units.get(
            package_id, second.original_entity_id
        )
        assert staged is not None
        assert staged.validation_status is ValidationStatus.SKIPPED


def test_package_promotes_only_after_last_open_conflict(sqlite_unit_of_work: UowFactory) -> None:
    def build(package: Package) -> list[Conflict]:
        return [
            _conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON),
            _conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON),
        ]

    package, conflicts = _reviewing_package(sqlite_unit_of_work, [], build)
    service = _service(sqlite_unit_of_work)

    service.ignore(conflicts[0].id, user=None, reason="different people")
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.REVIEWING_CONFLICTS

    service.keep_both(conflicts[1].id, user=None, reason="twins")
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


class RacedUnitOfWork(SqlAlchemyReconciliationUnitOfWork):
    """Reads the package, then lets a competing reviewer commit before continuing."""

    def __init__(self, package_id: UUID, competing: Callable[[], object]) -> None:
        super().__init__()
        self._package_id = package_id
        self._competing = competing

    def __enter__(self) -> RacedUnitOfWork:
        super().__enter__()
        assert self.repositories.packages.get(self._package_id) is not None
        self._competing()
        return self


def test_concurrent_resolution_of_last_conflicts_promotes_once(
    file_unit_of_work: UowFactory,
) -> None:
    def build(package: Package) -> list[Conflict]:
        return [
            _conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON),
            _conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON),
        ]

    package, (mine, theirs) = _reviewing_package(file_unit_of_work, [], build)
    colleague = _service(file_unit_of_work)
    raced = ConflictResolutionService(
        unit_of_work_factory=lambda: RacedUnitOfWork(
            package.id,
            lambda: colleague.keep_both(theirs.id, user=None, reason="different families"),
        ),
        merge_services=build_merge_table(),
    )

    with pytest.raises(ConcurrentModificationError):
        raced.ignore(mine.id, user=None, reason="not the same person")

    assert _status(file_unit_of_work, package.id) is ImportStatus.REVIEWING_CONFLICTS
    with file_unit_of_work() as uow:
        stored_mine = uow.repositories.conflicts.get(mine.id)
        stored_theirs = uow.repositories.conflicts.get(theirs.id)
        assert stored_mine is not None
        assert stored_theirs is not None
        assert stored_mine.status is ConflictStatus.PENDING_REVIEW
        assert stored_mine.review_attempt_count == 0
        assert stored_theirs.status is ConflictStatus.RESOLVED

    colleague.ignore(mine.id, user=None, reason="not the same person")

    assert _status(file_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


def test_escalation_keeps_package_in_review(sqlite_unit_of_work: UowFactory) -> None:
    package, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [],
        lambda package: [_conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON)],
    )
    service = _service(sqlite_unit_of_work)

    escalated = service.escalate(conflict.id, user=None, reason="disputed ownership")

    assert escalated.is_escalated
    assert escalated.status is ConflictStatus.PENDING_REVIEW
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.REVIEWING_CONFLICTS

    service.keep_both(conflict.id, user=None, reason="senior decided")
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


def test_decision_on_resolved_conflict_fails_without_changes(
    sqlite_unit_of_work: UowFactory,
) -> None:
    _, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [],
        lambda package: [_conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON)],
    )
    service = _service(sqlite_unit_of_work)
    service.ignore(conflict.id, user=None, reason="noise")

    for attempt in (
        lambda: service.keep_both(conflict.id, user=None, reason="again"),
        lambda: service.keep_first(conflict.id, user=None, reason="again"),
        lambda: service.merge(conflict.id, user=None, reason="again"),
        lambda: service.escalate(conflict.id, user=None, reason="again"),
    ):
        with pytest.raises(StateConflictError):
            attempt()

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.conflicts.get(conflict.id)
        assert stored is not None
        assert stored.status is ConflictStatus.IGNORED
        assert stored.review_attempt_count == 1
        assert stored.resolution_action is None


def test_merge_records_provenance_and_merged_ids(sqlite_unit_of_work: UowFactory) -> None:
    package_id = new_id()
    first = make_person(package_id, index=3)
    second = make_person(package_id, index=3)
    package, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [first, second],
        lambda package: [
            _conflict(
                package.id,
                first.original_entity_id,
                second.original_entity_id,
                kind=EntityKind.PERSON,
            )
        ],
    )

    resolved = _service(sqlite_unit_of_work).merge(
        conflict.id, user=None, reason="same person", master_id=second.original_entity_id
    )

    assert resolved.resolution_action is ResolutionAction.MERGE
    assert resolved.merged_entity_id == second.original_entity_id
    assert resolved.discarded_entity_id == first.original_entity_id
    assert resolved.merge_mapping is not None
    assert resolved.merge_mapping["_merge_type"] == "within_batch"
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.READY_TO_COMMIT


def test_failed_merge_rolls_back_decision(sqlite_unit_of_work: UowFactory) -> None:
    package, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [],
        lambda package: [_conflict(package.id, new_id(), new_id(), kind=EntityKind.PERSON)],
    )
    refusing = RecordingMergeService(EntityKind.PERSON, succeed=False)

    with pytest.raises(MergeError, match="merge refused"):
        _service(sqlite_unit_of_work, refusing).merge(conflict.id, user=None, reason="try")

    assert len(refusing.calls) == 1
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.conflicts.get(conflict.id)
        assert stored is not None
        assert stored.status is ConflictStatus.PENDING_REVIEW
        assert stored.review_attempt_count == 0
    assert _status(sqlite_unit_of_work, package.id) is ImportStatus.REVIEWING_CONFLICTS


def test_keep_authoritative_absorbs_staged_record(sqlite_unit_of_work: UowFactory) -> None:
    package_id = new_id()
    staged = make_person(package_id, index=5)
    existing = registry_person(index=5)
    seed_registry(sqlite_unit_of_work, existing)
    _, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [staged],
        lambda package: [
            _conflict(
                package.id,
                staged.original_entity_id,
                existing.id,
                kind=EntityKind.PERSON,
                second_side=EntitySide.AUTHORITATIVE,
            )
        ],
    )

    _service(sqlite_unit_of_work).keep_second(conflict.id, user=None, reason="registry wins")

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.staging.persons.get(package_id, staged.original_entity_id)
        assert stored is not None
        assert stored.validation_status is ValidationStatus.SKIPPED
        assert stored.committed_entity_id == existing.id


def test_keep_between_registry_records_supersedes_discarded(
    sqlite_unit_of_work: UowFactory,
) -> None:
    kept = registry_person(index=6)
    dropped = registry_person(index=6)
    seed_registry(sqlite_unit_of_work, kept, dropped)
    _, (conflict,) = _reviewing_package(
        sqlite_unit_of_work,
        [],
        lambda package: [
            _conflict(
                package.id,
                dropped.id,
                kept.id,
                kind=EntityKind.PERSON,
                first_side=EntitySide.AUTHORITATIVE,
                second_side=EntitySide.AUTHORITATIVE,
            )
        ],
    )

    _service(sqlite_unit_of_work).keep_second(conflict.id, user=None, reason="older record")

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.registry.persons.get(dropped.id)
        assert stored is not None
        assert stored.record_status is RecordStatus.SUPERSEDED
        assert stored.superseded_by_id == kept.id


def test_unknown_conflict_raises_not_found(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(NotFoundError):
        _service(sqlite_unit_of_work).ignore(new_id(), user=None, reason="?")
