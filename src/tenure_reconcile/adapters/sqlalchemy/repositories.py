"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import String, and_, delete, func, or_, select

from tenure_reconcile.adapters.sqlalchemy.mappings import (
    REGISTRY_TABLE_BY_KIND,
    STAGING_TABLE_BY_KIND,
    conflict_table,
)
from tenure_reconcile.domain.matching.arabic import HARAKAT, LETTER_FOLDS, TATWEEL, normalize_arabic
from tenure_reconcile.domain.model import (
    BUILDING_CODE_LENGTH,
    OPEN_CONFLICT_STATUSES,
    Building,
    Claim,
    Conflict,
    ConflictStatus,
    EntityKind,
    Evidence,
    Household,
    Package,
    Person,
    PersonPropertyRelation,
    PropertyUnit,
    RecordStatus,
    RegistryRecord,
    StagingRecord,
    Survey,
    split_building_code,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from sqlalchemy import ColumnElement, CursorResult, Select
    from sqlalchemy.orm import Session

    from tenure_reconcile.domain.model import ValidationStatus

_OPEN_STATUSES = tuple(sorted(OPEN_CONFLICT_STATUSES))


class SqlAlchemyPackageRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Package) -> None:
        self.session.add(entity)

    def get(self, package_id: UUID) -> Package | None:
        return self.session.get(Package, package_id)


class SqlAlchemyConflictRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Conflict) -> None:
        self.session.add(entity)

    def get(self, conflict_id: UUID) -> Conflict | None:
        return self.session.get(Conflict, conflict_id)

    def list_for_package(self, package_id: UUID) -> Sequence[Conflict]:
        stmt = (
            select(Conflict)
            .where(conflict_table.c.import_package_id == package_id)
            .order_by(conflict_table.c.detected_at, conflict_table.c.conflict_number)
        )
        return self.session.execute(stmt).scalars().all()

    def list_open_for_package(self, package_id: UUID) -> Sequence[Conflict]:
        stmt = (
            select(Conflict)
            .where(conflict_table.c.import_package_id == package_id)
            .where(conflict_table.c.status.in_(_OPEN_STATUSES))
            .order_by(conflict_table.c.detected_at, conflict_table.c.conflict_number)
        )
        return self.session.execute(stmt).scalars().all()

    def count_open_for_package(self, package_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(conflict_table)
            .where(conflict_table.c.import_package_id == package_id)
            .where(conflict_table.c.status.in_(_OPEN_STATUSES))
        )
        return int(self.session.execute(stmt).scalar_one())

    def find_by_entity_pair(self, first_id: UUID, second_id: UUID) -> Conflict | None:
        first = conflict_table.c.first_entity_id
        second = conflict_table.c.second_entity_id
        stmt = (
            select(Conflict)
            .where(
                or_(
                    and_(first == first_id, second == second_id),
                    and_(first == second_id, second == first_id),
                )
            )
            .where(conflict_table.c.status != ConflictStatus.IGNORED)
            .order_by(conflict_table.c.detected_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


class SqlAlchemyStagingRepository[TRecord: StagingRecord]:
    """Staging rows of one kind; queries never cross package boundaries."""

    def __init__(self, session: Session, record_cls: type[TRecord]) -> None:
        self.session = session
        self._record_cls = record_cls
        self._table = STAGING_TABLE_BY_KIND[record_cls.KIND]

    def add(self, entity: TRecord) -> None:
        self.session.add(entity)

    def add_many(self, records: Iterable[TRecord]) -> None:
        self.session.add_all(list(records))

    def list_for_package(self, package_id: UUID) -> Sequence[TRecord]:
        stmt = (
            select(self._record_cls)
            .where(self._table.c.import_package_id == package_id)
            .order_by(self._table.c.staged_at, self._table.c.original_entity_id)
        )
        return self.session.execute(stmt).scalars().all()

    def list_for_package_by_status(
        self, package_id: UUID, status: ValidationStatus
    ) -> Sequence[TRecord]:
        stmt = (
            select(self._record_cls)
            .where(self._table.c.import_package_id == package_id)
            .where(self._table.c.validation_status == status)
            .order_by(self._table.c.staged_at, self._table.c.original_entity_id)
        )
        return self.session.execute(stmt).scalars().all()

    def get(self, package_id: UUID, original_entity_id: UUID) -> TRecord | None:
        stmt = (
            select(self._record_cls)
            .where(self._table.c.import_package_id == package_id)
            .where(self._table.c.original_entity_id == original_entity_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def delete_for_package(self, package_id: UUID) -> int:
        stmt = delete(self._record_cls).where(self._table.c.import_package_id == package_id)
        result = cast("CursorResult[tuple[()]]", self.session.execute(stmt))
        return result.rowcount


class SqlAlchemyRegistryRepository[TRecord: RegistryRecord]:
    """Shared helpers for repositories managing authoritative records."""

    def __init__(self, session: Session, record_cls: type[TRecord]) -> None:
        self.session = session
        self._record_cls = record_cls
        self._table = REGISTRY_TABLE_BY_KIND[record_cls.KIND]

    def add(self, entity: TRecord) -> None:
        self.session.add(entity)

    def get(self, record_id: UUID) -> TRecord | None:
        return self.session.get(self._record_cls, record_id)

    def list_active_referencing(self, attribute: str, record_id: UUID) -> Sequence[TRecord]:
        if attribute not in self._table.c:
            raise ValueError(f"{self._record_cls.KIND} has no reference column {attribute!r}")
        stmt = (
            select(self._record_cls)
            .where(self._table.c[attribute] == record_id)
            .where(self._table.c.record_status == RecordStatus.ACTIVE)
            .order_by(self._table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()

    def _active(self) -> Select[tuple[TRecord]]:
        return select(self._record_cls).where(
            self._table.c.record_status == RecordStatus.ACTIVE
        )


class SqlAlchemyBuildingRepository(SqlAlchemyRegistryRepository[Building]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Building)


class SqlAlchemyPropertyUnitRepository(SqlAlchemyRegistryRepository[PropertyUnit]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, PropertyUnit)

    def find_by_composite_key(
        self, building_code: str, unit_identifier: str
    ) -> Sequence[PropertyUnit]:
        """Active units whose building code and case-folded identifier both match."""

        if len(building_code) != BUILDING_CODE_LENGTH:
            return []
        buildings = REGISTRY_TABLE_BY_KIND[EntityKind.BUILDING]
        parts = split_building_code(building_code)
        stmt = (
            self._active()
            .join(buildings, buildings.c.id == self._table.c.building_id)
            .where(buildings.c.record_status == RecordStatus.ACTIVE)
            .where(func.lower(func.trim(self._table.c.unit_identifier)) == unit_identifier)
            .where(*(buildings.c[name] == value for name, value in parts.items()))
            .order_by(self._table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()


class SqlAlchemyPersonRepository(SqlAlchemyRegistryRepository[Person]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Person)

    def find_by_national_id(self, national_id: str) -> Person | None:
        value = national_id.strip().lower()
        if not value:
            return None
        stmt = (
            self._active()
            .where(func.lower(func.trim(self._table.c.national_id)) == value)
            .order_by(self._table.c.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def search_by_family_name(
        self, family_name: str, *, prefix_length: int = 3
    ) -> Sequence[Person]:
        prefix = normalize_arabic(family_name)[:prefix_length]
        if not prefix:
            return []
        folded = _folded_arabic(self._table.c.family_name_arabic)
        stmt = (
            self._active()
            .where(folded.startswith(prefix, autoescape=True))
            .order_by(self._table.c.created_at)
        )
        return self.session.execute(stmt).scalars().all()


def _folded_arabic(column: ColumnElement[str]) -> ColumnElement[str]:
    """SQL mirror of ``normalize_arabic`` for prefix searches: strip marks, fold letters."""

    folded = column
    for mark in (*HARAKAT, TATWEEL):
        folded = func.replace(folded, mark, "", type_=String)
    for source, target in LETTER_FOLDS.items():
        folded = func.replace(folded, source, target, type_=String)
    return func.ltrim(folded, type_=String)


class SqlAlchemyHouseholdRepository(SqlAlchemyRegistryRepository[Household]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Household)


class SqlAlchemyRelationRepository(SqlAlchemyRegistryRepository[PersonPropertyRelation]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, PersonPropertyRelation)

    def find_active(
        self, person_id: UUID, property_unit_id: UUID
    ) -> PersonPropertyRelation | None:
        stmt = (
            self._active()
            .where(self._table.c.person_id == person_id)
            .where(self._table.c.property_unit_id == property_unit_id)
            .order_by(self._table.c.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


class SqlAlchemyEvidenceRepository(SqlAlchemyRegistryRepository[Evidence]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Evidence)

    def find_by_file_hash(self, file_hash: str) -> Evidence | None:
        stmt = (
            self._active()
            .where(self._table.c.file_hash == file_hash)
            .order_by(self._table.c.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()


class SqlAlchemyClaimRepository(SqlAlchemyRegistryRepository[Claim]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Claim)


class SqlAlchemySurveyRepository(SqlAlchemyRegistryRepository[Survey]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Survey)
