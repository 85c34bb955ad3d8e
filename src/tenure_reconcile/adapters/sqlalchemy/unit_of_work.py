"""SQLAlchemy-backed units of work for the reconciliation workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from tenure_reconcile.adapters.sqlalchemy.mappings import start_mappers
from tenure_reconcile.adapters.sqlalchemy.migrations import current_revision, upgrade_head
from tenure_reconcile.adapters.sqlalchemy.repositories import (
    SqlAlchemyBuildingRepository,
    SqlAlchemyClaimRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyEvidenceRepository,
    SqlAlchemyHouseholdRepository,
    SqlAlchemyPackageRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPropertyUnitRepository,
    SqlAlchemyRelationRepository,
    SqlAlchemyStagingRepository,
    SqlAlchemySurveyRepository,
)
from tenure_reconcile.config import get_database_config
from tenure_reconcile.domain.errors import ConcurrentModificationError
from tenure_reconcile.domain.model import (
    StagingBuilding,
    StagingClaim,
    StagingEvidence,
    StagingHousehold,
    StagingPerson,
    StagingPropertyUnit,
    StagingRecord,
    StagingRelation,
    StagingSurvey,
)
from tenure_reconcile.domain.ports import (
    ReconciliationRepositories,
    RegistryRepositories,
    StagingRepositories,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from tenure_reconcile.config import DatabaseConfig

log = logging.getLogger(__name__)

STALE_DATA_MESSAGE = "The record was modified by another operation; reload and try again."


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    session_factory: sessionmaker[Session] | None = None

    def bind(self, engine: Engine) -> None:
        self.engine = engine
        # Packages and conflicts are read back after commit by the workflow steps.
        self.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def reset(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.session_factory = None

    def open_session(self) -> Session:
        if self.session_factory is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call tenure_reconcile.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        return self.session_factory()


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database: DatabaseConfig | None = None,
    force: bool = False,
) -> Engine:
    """Bind the adapter to a database migrated to the latest schema revision."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        settings = database or get_database_config()
        engine = create_engine(settings.uri, **settings.engine_options())
    start_mappers()
    upgrade_head(engine=engine)
    log.debug("Registry database %s at revision %s", engine.url, current_revision(engine))

    if _STATE.engine is not None and _STATE.engine is not engine:
        _STATE.reset()
    _STATE.bind(engine)
    return engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    _STATE.reset()


_STAGING_TYPES: dict[str, type[StagingRecord]] = {
    "buildings": StagingBuilding,
    "property_units": StagingPropertyUnit,
    "persons": StagingPerson,
    "households": StagingHousehold,
    "relations": StagingRelation,
    "evidences": StagingEvidence,
    "claims": StagingClaim,
    "surveys": StagingSurvey,
}


def build_reconciliation_repositories(session: Session) -> ReconciliationRepositories:
    staging = StagingRepositories(
        **{
            name: SqlAlchemyStagingRepository(session, record_type)
            for name, record_type in _STAGING_TYPES.items()
        }
    )
    return ReconciliationRepositories(
        packages=SqlAlchemyPackageRepository(session),
        conflicts=SqlAlchemyConflictRepository(session),
        staging=staging,
        registry=RegistryRepositories(
            buildings=SqlAlchemyBuildingRepository(session),
            property_units=SqlAlchemyPropertyUnitRepository(session),
            persons=SqlAlchemyPersonRepository(session),
            households=SqlAlchemyHouseholdRepository(session),
            relations=SqlAlchemyRelationRepository(session),
            evidences=SqlAlchemyEvidenceRepository(session),
            claims=SqlAlchemyClaimRepository(session),
            surveys=SqlAlchemySurveyRepository(session),
        ),
    )


class SqlAlchemyReconciliationUnitOfWork:
    """One transaction spanning packages, conflicts, staging rows and registry records.

    Packages and conflicts carry a version column. A stale version hit by
    ``flush``, ``commit`` or an autoflush inside a query surfaces as
    :class:`ConcurrentModificationError` and leaves nothing written.
    """

    def __init__(self) -> None:
        if not is_started():
            raise StartupError("SQLAlchemy adapter not initialised; call startup() first")
        self._session: Session | None = None
        self._repositories: ReconciliationRepositories | None = None

    def __enter__(self) -> SqlAlchemyReconciliationUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = _STATE.open_session()
        self._repositories = build_reconciliation_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        if isinstance(exc_value, StaleDataError):
            raise ConcurrentModificationError(STALE_DATA_MESSAGE) from exc_value
        return False

    def _guarded(self, operation: Callable[[], None]) -> None:
        try:
            operation()
        except StaleDataError as exc:
            self.session.rollback()
            raise ConcurrentModificationError(STALE_DATA_MESSAGE) from exc

    def commit(self) -> None:
        self._guarded(self.session.commit)

    def flush(self) -> None:
        self._guarded(self.session.flush)

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> ReconciliationRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session


if TYPE_CHECKING:
    from tenure_reconcile.domain.ports import ReconciliationUnitOfWork

    _uow_check: ReconciliationUnitOfWork = SqlAlchemyReconciliationUnitOfWork()
