"""Human-driven conflict decisions, each committed with any package promotion."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenure_reconcile.domain.errors import MergeError, NotFoundError
from tenure_reconcile.domain.model import EntitySide, ImportStatus, ResolutionAction

from .merge import merge_service_for

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from tenure_reconcile.domain.model import Conflict, Package
    from tenure_reconcile.domain.ports import (
        ReconciliationRepositories,
        ReconciliationUnitOfWork,
    )

    from .merge import MergeServiceTable

log = logging.getLogger(__name__)


class ConflictResolutionService:
    """Apply reviewer decisions to conflicts.

    Every call runs in one unit of work: the review attempt, any merge side
    effects, the decision itself and, when no open conflict remains for the
    owning package, the ``reviewing_conflicts -> ready_to_commit`` promotion.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        merge_services: MergeServiceTable,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._merge_services = merge_services

    def merge(
        self,
        conflict_id: UUID,
        *,
        user: UUID | None,
        reason: str,
        notes: str | None = None,
        master_id: UUID | None = None,
    ) -> Conflict:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            conflict = _load_conflict(repositories, conflict_id)
            conflict.require_pending("resolved")
            master = master_id if master_id is not None else conflict.first_entity_id
            discarded = conflict.other_entity(master)
            conflict.record_review_attempt(f"merge requested: {reason}", by=user)

            service = merge_service_for(self._merge_services, conflict.entity_kind)
            outcome = service.merge(
                repositories, master, discarded, package_id=conflict.import_package_id
            )
            if not outcome.success:
                raise MergeError(outcome.error or f"Merge failed for {conflict.conflict_number}")

            conflict.resolve(
                action=ResolutionAction.MERGE,
                reason=reason,
                resolved_by=user,
                notes=notes,
                merged_entity_id=outcome.master_id,
                discarded_entity_id=outcome.discarded_id,
                merge_mapping=outcome.provenance,
            )
            self._promote_if_settled(repositories, conflict, user)
            uow.commit()
        log.info("Conflict %s merged into %s", conflict.conflict_number, outcome.master_id)
        return conflict

    def keep_first(
        self, conflict_id: UUID, *, user: UUID | None, reason: str, notes: str | None = None
    ) -> Conflict:
        return self._keep(conflict_id, first=True, user=user, reason=reason, notes=notes)

    def keep_second(
        self, conflict_id: UUID, *, user: UUID | None, reason: str, notes: str | None = None
    ) -> Conflict:
        return self._keep(conflict_id, first=False, user=user, reason=reason, notes=notes)

    def keep_both(
        self, conflict_id: UUID, *, user: UUID | None, reason: str, notes: str | None = None
    ) -> Conflict:
        """Record that the pair are distinct records; neither side is touched."""

        with self._unit_of_work_factory() as uow:
            conflict = _load_conflict(uow.repositories, conflict_id)
            conflict.require_pending("resolved")
            conflict.record_review_attempt(f"keep separate: {reason}", by=user)
            conflict.resolve(
                action=ResolutionAction.KEEP_BOTH, reason=reason, resolved_by=user, notes=notes
            )
            self._promote_if_settled(uow.repositories, conflict, user)
            uow.commit()
        return conflict

    def ignore(self, conflict_id: UUID, *, user: UUID | None, reason: str) -> Conflict:
        with self._unit_of_work_factory() as uow:
            conflict = _load_conflict(uow.repositories, conflict_id)
            conflict.require_pending("ignored")
            conflict.record_review_attempt(f"ignored: {reason}", by=user)
            conflict.ignore(reason, by=user)
            self._promote_if_settled(uow.repositories, conflict, user)
            uow.commit()
        return conflict

    def escalate(self, conflict_id: UUID, *, user: UUID | None, reason: str) -> Conflict:
        with self._unit_of_work_factory() as uow:
            conflict = _load_conflict(uow.repositories, conflict_id)
            conflict.record_review_attempt(f"escalated: {reason}", by=user)
            conflict.escalate(reason, by=user)
            uow.commit()
        log.info("Conflict %s escalated", conflict.conflict_number)
        return conflict

    def _keep(
        self,
        conflict_id: UUID,
        *,
        first: bool,
        user: UUID | None,
        reason: str,
        notes: str | None,
    ) -> Conflict:
        action = ResolutionAction.KEEP_FIRST if first else ResolutionAction.KEEP_SECOND
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            conflict = _load_conflict(repositories, conflict_id)
            conflict.require_pending("resolved")
            kept = conflict.first_entity_id if first else conflict.second_entity_id
            discarded = conflict.other_entity(kept)
            conflict.record_review_attempt(f"{action}: {reason}", by=user)

            _retire_discarded(repositories, conflict, kept=kept, discarded=discarded)
            conflict.resolve(
                action=action,
                reason=reason,
                resolved_by=user,
                notes=notes,
                merged_entity_id=kept,
                discarded_entity_id=discarded,
            )
            self._promote_if_settled(repositories, conflict, user)
            uow.commit()
        log.info("Conflict %s resolved with %s", conflict.conflict_number, action)
        return conflict

    @staticmethod
    def _promote_if_settled(
        repositories: ReconciliationRepositories, conflict: Conflict, user: UUID | None
    ) -> Package | None:
        if conflict.import_package_id is None:
            return None
        package = repositories.packages.get(conflict.import_package_id)
        if package is None:
            raise NotFoundError(f"Package {conflict.import_package_id} not found")
        # bump the version token so concurrent resolutions collide on the package row
        package.touch(by=user)
        open_count = repositories.conflicts.count_open_for_package(package.id)
        if open_count == 0 and package.status is ImportStatus.REVIEWING_CONFLICTS:
            package.mark_conflicts_resolved(by=user)
            log.info("Package %s promoted to %s", package.package_number, package.status)
        return package


def _load_conflict(repositories: ReconciliationRepositories, conflict_id: UUID) -> Conflict:
    conflict = repositories.conflicts.get(conflict_id)
    if conflict is None:
        raise NotFoundError(f"Conflict {conflict_id} not found")
    return conflict


def _retire_discarded(
    repositories: ReconciliationRepositories,
    conflict: Conflict,
    *,
    kept: UUID,
    discarded: UUID,
) -> None:
    kept_side = conflict.side_of(kept)
    if conflict.side_of(discarded) is EntitySide.STAGING:
        if conflict.import_package_id is None:
            return
        staged = repositories.staging.for_kind(conflict.entity_kind).get(
            conflict.import_package_id, discarded
        )
        if staged is None:
            raise NotFoundError(f"Staged {conflict.entity_kind} {discarded} not found")
        absorbed_into = kept if kept_side is EntitySide.AUTHORITATIVE else None
        staged.mark_skipped(f"Discarded by {conflict.conflict_number}", absorbed_into=absorbed_into)
        return

    if kept_side is EntitySide.AUTHORITATIVE:
        record = repositories.registry.for_kind(conflict.entity_kind).get(discarded)
        if record is None:
            raise NotFoundError(f"{conflict.entity_kind} {discarded} not found")
        record.supersede(kept)
    # a registry record discarded in favour of a staged one is superseded once that
    # staged record is committed and has a registry id
