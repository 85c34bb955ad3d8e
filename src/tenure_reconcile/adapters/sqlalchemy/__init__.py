"""SQLAlchemy adapter package for tenure-reconcile."""

from __future__ import annotations

from .commit_service import SqlAlchemyCommitService
from .mappings import (
    REGISTRY_TABLE_BY_KIND,
    STAGING_TABLE_BY_KIND,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyBuildingRepository,
    SqlAlchemyClaimRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyEvidenceRepository,
    SqlAlchemyHouseholdRepository,
    SqlAlchemyPackageRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPropertyUnitRepository,
    SqlAlchemyRegistryRepository,
    SqlAlchemyRelationRepository,
    SqlAlchemyStagingRepository,
    SqlAlchemySurveyRepository,
)
from .unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "REGISTRY_TABLE_BY_KIND",
    "STAGING_TABLE_BY_KIND",
    "SqlAlchemyBuildingRepository",
    "SqlAlchemyClaimRepository",
    "SqlAlchemyCommitService",
    "SqlAlchemyConflictRepository",
    "SqlAlchemyEvidenceRepository",
    "SqlAlchemyHouseholdRepository",
    "SqlAlchemyPackageRepository",
    "SqlAlchemyPersonRepository",
    "SqlAlchemyPropertyUnitRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "SqlAlchemyRegistryRepository",
    "SqlAlchemyRelationRepository",
    "SqlAlchemyStagingRepository",
    "SqlAlchemySurveyRepository",
    "StartupError",
    "configured_engine",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
