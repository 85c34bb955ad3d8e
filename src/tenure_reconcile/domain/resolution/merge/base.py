"""Shared four-way merge behaviour; subclasses declare fields and references."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from tenure_reconcile.domain.model import RegistryRecord, StagingRecord, is_blank

from .contracts import (
    AuthoritativeMasterStagingDiscarded,
    AuthoritativePair,
    MergeOutcome,
    StagingMasterAuthoritativeDiscarded,
    StagingPair,
)

if TYPE_CHECKING:
    from uuid import UUID

    from tenure_reconcile.domain.model import EntityKind
    from tenure_reconcile.domain.ports import ReconciliationRepositories

    from .contracts import MergeSubject

log = logging.getLogger(__name__)

MERGE_TYPE_KEY = "_merge_type"


class BaseMergeService:
    KIND: ClassVar[EntityKind]
    # descriptive attributes copied between the two sides
    MERGE_FIELDS: ClassVar[tuple[str, ...]]
    # (referencing kind, foreign-key attribute) pairs re-pointed on an authoritative merge
    REFERENCES: ClassVar[tuple[tuple[EntityKind, str], ...]]

    @property
    def kind(self) -> EntityKind:
        return self.KIND

    def merge(
        self,
        repositories: ReconciliationRepositories,
        master_id: UUID,
        discarded_id: UUID,
        *,
        package_id: UUID | None = None,
    ) -> MergeOutcome:
        if master_id == discarded_id:
            return MergeOutcome.failed(master_id, discarded_id, "Cannot merge a record into itself")
        subject = self.resolve_subject(repositories, master_id, discarded_id, package_id=package_id)
        if subject is None:
            return MergeOutcome.failed(
                master_id,
                discarded_id,
                f"Could not locate master ({master_id}) or discarded ({discarded_id}) "
                f"{self.KIND} in either the registry or staging",
            )
        retired = _first_retired(subject)
        if retired is not None:
            return MergeOutcome.failed(
                master_id,
                discarded_id,
                f"{self.KIND} {retired.id} is {retired.record_status} "
                f"(superseded by {retired.superseded_by_id}) and cannot take part in a merge",
            )

        match subject:
            case AuthoritativePair():
                outcome = self._merge_authoritative_pair(repositories, subject)
            case AuthoritativeMasterStagingDiscarded():
                outcome = self._merge_into_authoritative(subject)
            case StagingMasterAuthoritativeDiscarded():
                outcome = self._apply_staging_master(subject)
            case StagingPair():
                outcome = self._merge_within_batch(subject)
        log.info(
            "Merged %s %s into %s (%s, %s references updated)",
            self.KIND,
            outcome.discarded_id,
            outcome.master_id,
            outcome.provenance.get(MERGE_TYPE_KEY),
            outcome.references_updated,
        )
        return outcome

    def resolve_subject(
        self,
        repositories: ReconciliationRepositories,
        master_id: UUID,
        discarded_id: UUID,
        *,
        package_id: UUID | None = None,
    ) -> MergeSubject | None:
        """Look each id up in the registry first, then in the package's staging rows."""

        master = self._resolve(repositories, master_id, package_id)
        discarded = self._resolve(repositories, discarded_id, package_id)
        match master, discarded:
            case RegistryRecord(), RegistryRecord():
                return AuthoritativePair(master, discarded)
            case RegistryRecord(), StagingRecord():
                return AuthoritativeMasterStagingDiscarded(master, discarded)
            case StagingRecord(), RegistryRecord():
                return StagingMasterAuthoritativeDiscarded(master, discarded)
            case StagingRecord(), StagingRecord():
                return StagingPair(master, discarded)
            case _:
                return None

    def _resolve(
        self, repositories: ReconciliationRepositories, entity_id: UUID, package_id: UUID | None
    ) -> RegistryRecord | StagingRecord | None:
        record = repositories.registry.for_kind(self.KIND).get(entity_id)
        if record is not None or package_id is None:
            return record
        return repositories.staging.for_kind(self.KIND).get(package_id, entity_id)

    def _merge_authoritative_pair(
        self, repositories: ReconciliationRepositories, subject: AuthoritativePair
    ) -> MergeOutcome:
        master, discarded = subject.master, subject.discarded
        provenance = self._fill_gaps(master, discarded, taken="discarded", kept="master")
        updated = self.repoint_references(repositories, master.id, discarded.id)
        discarded.supersede(master.id)
        master.touch()
        provenance[MERGE_TYPE_KEY] = "authoritative_pair"
        return MergeOutcome(
            success=True,
            master_id=master.id,
            discarded_id=discarded.id,
            provenance=provenance,
            references_updated=updated,
        )

    def _merge_into_authoritative(
        self, subject: AuthoritativeMasterStagingDiscarded
    ) -> MergeOutcome:
        master, staged = subject.master, subject.discarded
        provenance = self._fill_gaps(master, staged, taken="staging", kept="authoritative")
        master.touch()
        staged.mark_skipped("Merged into existing registry record", absorbed_into=master.id)
        provenance[MERGE_TYPE_KEY] = "authoritative_master"
        return MergeOutcome(
            success=True,
            master_id=master.id,
            discarded_id=staged.original_entity_id,
            provenance=provenance,
        )

    def _apply_staging_master(self, subject: StagingMasterAuthoritativeDiscarded) -> MergeOutcome:
        staged, target = subject.master, subject.discarded
        provenance: dict[str, str] = {}
        for name in self.MERGE_FIELDS:
            value = getattr(staged, name)
            if is_blank(value):
                provenance[name] = "authoritative"
                continue
            setattr(target, name, value)
            provenance[name] = "staging"
        target.touch()
        staged.mark_skipped("Data applied to existing registry record", absorbed_into=target.id)
        provenance[MERGE_TYPE_KEY] = "staging_master"
        # the registry row survives and now carries the staged values
        return MergeOutcome(
            success=True,
            master_id=target.id,
            discarded_id=staged.original_entity_id,
            provenance=provenance,
        )

    def _merge_within_batch(self, subject: StagingPair) -> MergeOutcome:
        master, discarded = subject.master, subject.discarded
        discarded.mark_skipped("Within-batch duplicate merged into master staging record")
        return MergeOutcome(
            success=True,
            master_id=master.original_entity_id,
            discarded_id=discarded.original_entity_id,
            provenance={
                MERGE_TYPE_KEY: "within_batch",
                "master_staging_original_id": str(master.original_entity_id),
                "discarded_staging_original_id": str(discarded.original_entity_id),
            },
        )

    def _fill_gaps(
        self,
        master: RegistryRecord,
        source: RegistryRecord | StagingRecord,
        *,
        taken: str,
        kept: str,
    ) -> dict[str, str]:
        """Copy ``source`` values only into empty ``master`` fields."""

        provenance: dict[str, str] = {}
        for name in self.MERGE_FIELDS:
            current = getattr(master, name)
            incoming = getattr(source, name)
            if is_blank(current) and not is_blank(incoming):
                setattr(master, name, incoming)
                provenance[name] = taken
            else:
                provenance[name] = kept
        return provenance

    def repoint_references(
        self, repositories: ReconciliationRepositories, master_id: UUID, discarded_id: UUID
    ) -> int:
        """Move active foreign keys from ``discarded_id`` to ``master_id``; idempotent."""

        updated = 0
        for kind, attribute in self.REFERENCES:
            repository = repositories.registry.for_kind(kind)
            for record in repository.list_active_referencing(attribute, discarded_id):
                if self._repoint(repositories, record, attribute, master_id):
                    updated += 1
        return updated

    def _repoint(
        self,
        repositories: ReconciliationRepositories,
        record: RegistryRecord,
        attribute: str,
        master_id: UUID,
    ) -> bool:
        setattr(record, attribute, master_id)
        record.touch()
        return True


def _first_retired(subject: MergeSubject) -> RegistryRecord | None:
    for record in (subject.master, subject.discarded):
        if isinstance(record, RegistryRecord) and not record.is_active:
            return record
    return None
