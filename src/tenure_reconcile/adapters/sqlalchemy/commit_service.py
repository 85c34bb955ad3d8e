"""Translate approved staging rows into authoritative registry records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Final

from tenure_reconcile.adapters.sqlalchemy.unit_of_work import SqlAlchemyReconciliationUnitOfWork
from tenure_reconcile.domain.errors import NotFoundError
from tenure_reconcile.domain.model import (
    REGISTRY_CLASS_BY_KIND,
    CommitReport,
    ConflictStatus,
    EntityKind,
    EntitySide,
    Evidence,
    Person,
    ResolutionAction,
    StagingEvidence,
    ValidationStatus,
    is_blank,
    present_id,
)
from tenure_reconcile.domain.model.attributes import (
    SUBMITTED_CLAIM_STATE,
    BuildingAttributes,
    ClaimAttributes,
    EvidenceAttributes,
    HouseholdAttributes,
    PersonAttributes,
    PropertyUnitAttributes,
    RelationAttributes,
    SurveyAttributes,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import Conflict, RegistryRecord, StagingRecord
    from tenure_reconcile.domain.ports import ReconciliationRepositories

log = logging.getLogger(__name__)

COMMIT_ORDER: Final[tuple[EntityKind, ...]] = (
    EntityKind.BUILDING,
    EntityKind.PROPERTY_UNIT,
    EntityKind.PERSON,
    EntityKind.HOUSEHOLD,
    EntityKind.RELATION,
    EntityKind.CLAIM,
    EntityKind.SURVEY,
    EntityKind.EVIDENCE,
)

_ATTRIBUTES_BY_KIND: Final[dict[EntityKind, type]] = {
    EntityKind.BUILDING: BuildingAttributes,
    EntityKind.PROPERTY_UNIT: PropertyUnitAttributes,
    EntityKind.PERSON: PersonAttributes,
    EntityKind.HOUSEHOLD: HouseholdAttributes,
    EntityKind.RELATION: RelationAttributes,
    EntityKind.EVIDENCE: EvidenceAttributes,
    EntityKind.CLAIM: ClaimAttributes,
    EntityKind.SURVEY: SurveyAttributes,
}

_REDIRECTING_ACTIONS: Final[frozenset[ResolutionAction]] = frozenset(
    {ResolutionAction.MERGE, ResolutionAction.KEEP_FIRST, ResolutionAction.KEEP_SECOND}
)


@dataclass(frozen=True, slots=True)
class Link:
    """Staging foreign key ``source`` becomes registry column ``target``."""

    source: str
    target: str
    kind: EntityKind
    required: bool = False


LINKS: Final[dict[EntityKind, tuple[Link, ...]]] = {
    EntityKind.BUILDING: (),
    EntityKind.PROPERTY_UNIT: (
        Link("original_building_id", "building_id", EntityKind.BUILDING, required=True),
    ),
    # households commit after persons; household_id is filled in the post-pass
    EntityKind.PERSON: (),
    EntityKind.HOUSEHOLD: (
        Link(
            "original_property_unit_id",
            "property_unit_id",
            EntityKind.PROPERTY_UNIT,
            required=True,
        ),
        Link(
            "original_head_of_household_person_id",
            "head_of_household_person_id",
            EntityKind.PERSON,
        ),
    ),
    EntityKind.RELATION: (
        Link("original_person_id", "person_id", EntityKind.PERSON, required=True),
        Link(
            "original_property_unit_id",
            "property_unit_id",
            EntityKind.PROPERTY_UNIT,
            required=True,
        ),
    ),
    EntityKind.CLAIM: (
        Link(
            "original_property_unit_id",
            "property_unit_id",
            EntityKind.PROPERTY_UNIT,
            required=True,
        ),
        Link("original_primary_claimant_id", "primary_claimant_id", EntityKind.PERSON),
    ),
    EntityKind.SURVEY: (
        Link("original_building_id", "building_id", EntityKind.BUILDING, required=True),
        Link("original_property_unit_id", "property_unit_id", EntityKind.PROPERTY_UNIT),
        Link("original_claim_id", "claim_id", EntityKind.CLAIM),
    ),
    EntityKind.EVIDENCE: (
        Link("original_person_id", "person_id", EntityKind.PERSON),
        Link("original_relation_id", "relation_id", EntityKind.RELATION),
        Link("original_claim_id", "claim_id", EntityKind.CLAIM),
    ),
}


class UnresolvedReferenceError(LookupError):
    """A required staging foreign key has no committed counterpart."""


@dataclass(slots=True)
class IdMap:
    """Original staging ids to registry ids, following within-batch redirects."""

    committed: dict[tuple[EntityKind, UUID], UUID] = field(default_factory=dict)
    redirects: dict[tuple[EntityKind, UUID], UUID] = field(default_factory=dict)

    def add(self, kind: EntityKind, original_id: UUID, registry_id: UUID) -> None:
        self.committed[(kind, original_id)] = registry_id

    def redirect(self, kind: EntityKind, discarded_id: UUID, master_id: UUID) -> None:
        self.redirects[(kind, discarded_id)] = master_id

    def resolve(self, kind: EntityKind, original_id: UUID) -> UUID | None:
        current = original_id
        visited: set[UUID] = set()
        while (kind, current) in self.redirects and current not in visited:
            visited.add(current)
            current = self.redirects[(kind, current)]
        return self.committed.get((kind, current))


def build_id_map(
    records: Iterable[StagingRecord], conflicts: Iterable[Conflict]
) -> IdMap:
    """Seed the map with merge-absorbed rows and within-batch resolutions."""

    id_map = IdMap()
    for record in records:
        if record.validation_status is ValidationStatus.SKIPPED and record.committed_entity_id:
            id_map.add(record.kind, record.original_entity_id, record.committed_entity_id)
    for conflict in conflicts:
        if (
            conflict.status is ConflictStatus.RESOLVED
            and conflict.is_within_batch
            and conflict.resolution_action in _REDIRECTING_ACTIONS
            and conflict.discarded_entity_id is not None
            and conflict.merged_entity_id is not None
        ):
            id_map.redirect(
                conflict.entity_kind, conflict.discarded_entity_id, conflict.merged_entity_id
            )
    return id_map


def replaced_authoritative(conflicts: Iterable[Conflict]) -> list[Conflict]:
    """Resolved keep decisions whose kept side is staging and discarded side is registry."""

    replaced: list[Conflict] = []
    for conflict in conflicts:
        if conflict.status is not ConflictStatus.RESOLVED:
            continue
        if conflict.resolution_action not in {
            ResolutionAction.KEEP_FIRST,
            ResolutionAction.KEEP_SECOND,
        }:
            continue
        kept, discarded = conflict.merged_entity_id, conflict.discarded_entity_id
        if kept is None or discarded is None:
            continue
        if (
            conflict.side_of(kept) is EntitySide.STAGING
            and conflict.side_of(discarded) is EntitySide.AUTHORITATIVE
        ):
            replaced.append(conflict)
    return replaced


def to_registry_record(
    record: StagingRecord, id_map: IdMap, *, package_id: UUID
) -> RegistryRecord:
    """Build the registry counterpart of ``record``; raises on a missing required link."""

    kind = record.kind
    values = {
        item.name: getattr(record, item.name) for item in fields(_ATTRIBUTES_BY_KIND[kind])
    }
    if kind is EntityKind.CLAIM:
        values.update(SUBMITTED_CLAIM_STATE)
    for link in LINKS[kind]:
        original = present_id(getattr(record, link.source))
        if original is None:
            if link.required:
                raise UnresolvedReferenceError(f"{link.source} is required but missing")
            continue
        resolved = id_map.resolve(link.kind, original)
        if resolved is None:
            if link.required:
                raise UnresolvedReferenceError(
                    f"{link.source} {original} does not resolve to a committed {link.kind}"
                )
            log.warning(
                "%s %s: optional %s %s not committed; link dropped",
                kind,
                record.original_entity_id,
                link.source,
                original,
            )
            continue
        values[link.target] = resolved
    return REGISTRY_CLASS_BY_KIND[kind](source_package_id=package_id, **values)


class SqlAlchemyCommitService:
    """Commit one package inside a single transaction."""

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[
            [], SqlAlchemyReconciliationUnitOfWork
        ] = SqlAlchemyReconciliationUnitOfWork,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def commit(self, package_id: UUID, *, committed_by: UUID | None) -> CommitReport:
        report = CommitReport(package_id=package_id)
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            if repositories.packages.get(package_id) is None:
                raise NotFoundError(f"Package {package_id} not found")

            staged = {
                kind: repositories.staging.for_kind(kind).list_for_package(package_id)
                for kind in COMMIT_ORDER
            }
            conflicts = repositories.conflicts.list_for_package(package_id)
            id_map = build_id_map(
                (record for records in staged.values() for record in records), conflicts
            )

            seen_hashes: dict[str, UUID] = {}
            for kind in COMMIT_ORDER:
                self._commit_kind(
                    repositories, kind, staged[kind], id_map, report, seen_hashes, package_id
                )
                uow.flush()

            self._link_households(repositories, staged[EntityKind.PERSON], id_map)
            self._supersede_replaced(repositories, conflicts, id_map)
            uow.commit()

        log.info(
            "Committed package %s: %s committed, %s failed, %s skipped (by %s)",
            package_id,
            report.total_committed,
            report.total_failed,
            report.total_skipped,
            committed_by,
        )
        return report

    def _commit_kind(
        self,
        repositories: ReconciliationRepositories,
        kind: EntityKind,
        records: Sequence[StagingRecord],
        id_map: IdMap,
        report: CommitReport,
        seen_hashes: dict[str, UUID],
        package_id: UUID,
    ) -> None:
        summary = report.summary(kind)
        registry = repositories.registry.for_kind(kind)
        for record in records:
            if record.validation_status is ValidationStatus.SKIPPED:
                summary.skipped += 1
                continue
            if not (record.is_valid and record.is_approved_for_commit):
                continue
            summary.approved += 1

            if isinstance(record, StagingEvidence):
                reused = self._existing_attachment(repositories, record, seen_hashes)
                if reused is not None:
                    report.duplicate_attachments_found += 1
                    summary.skipped += 1
                    id_map.add(kind, record.original_entity_id, reused)
                    record.mark_committed(reused)
                    log.debug("Evidence %s reuses attachment %s", record.original_entity_id, reused)
                    continue

            try:
                entity = to_registry_record(record, id_map, package_id=package_id)
            except UnresolvedReferenceError as exc:
                report.record_failure(kind, record.original_entity_id, f"{kind}: {exc}")
                log.warning("Commit of %s %s failed: %s", kind, record.original_entity_id, exc)
                continue

            registry.add(entity)
            id_map.add(kind, record.original_entity_id, entity.id)
            record.mark_committed(entity.id)
            summary.committed += 1
            summary.id_mappings[record.original_entity_id] = entity.id
            if isinstance(entity, Evidence) and entity.file_hash and entity.file_hash.strip():
                seen_hashes[entity.file_hash.strip()] = entity.id

    def _existing_attachment(
        self,
        repositories: ReconciliationRepositories,
        record: StagingEvidence,
        seen_hashes: dict[str, UUID],
    ) -> UUID | None:
        if record.file_hash is None or is_blank(record.file_hash):
            return None
        file_hash = record.file_hash.strip()
        if file_hash in seen_hashes:
            return seen_hashes[file_hash]
        existing = repositories.registry.evidences.find_by_file_hash(file_hash)
        return existing.id if existing is not None else None

    def _link_households(
        self,
        repositories: ReconciliationRepositories,
        persons: Sequence[StagingRecord],
        id_map: IdMap,
    ) -> None:
        for record in persons:
            original_household = present_id(getattr(record, "original_household_id", None))
            if record.committed_entity_id is None or original_household is None:
                continue
            person = repositories.registry.persons.get(record.committed_entity_id)
            household_id = id_map.resolve(EntityKind.HOUSEHOLD, original_household)
            if not isinstance(person, Person) or household_id is None:
                continue
            if person.source_package_id == record.import_package_id:
                person.household_id = household_id

    def _supersede_replaced(
        self,
        repositories: ReconciliationRepositories,
        conflicts: Sequence[Conflict],
        id_map: IdMap,
    ) -> None:
        for conflict in replaced_authoritative(conflicts):
            kept = conflict.merged_entity_id
            discarded = conflict.discarded_entity_id
            if kept is None or discarded is None:
                continue
            replacement = id_map.resolve(conflict.entity_kind, kept)
            record = repositories.registry.for_kind(conflict.entity_kind).get(discarded)
            if replacement is None or record is None:
                log.warning(
                    "Conflict %s: kept staging record %s was not committed; "
                    "registry record %s stays active",
                    conflict.conflict_number,
                    kept,
                    discarded,
                )
                continue
            if record.is_active:
                record.supersede(replacement)
