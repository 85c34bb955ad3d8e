"""Domain ports (persistence, unit of work, delegated services)."""

from __future__ import annotations

from .persistence import (
    BuildingRepository,
    ClaimRepository,
    ConflictRepository,
    EvidenceRepository,
    HouseholdRepository,
    PackageRepository,
    PersonRepository,
    PropertyUnitRepository,
    RegistryRepository,
    RelationRepository,
    Repository,
    StagingRepository,
    SurveyRepository,
)
from .services import CommitService, PackageArchiver
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RegistryRepositories,
    RepositoryCollection,
    StagingRepositories,
    UnitOfWork,
)

__all__ = [
    "BuildingRepository",
    "ClaimRepository",
    "CommitService",
    "ConflictRepository",
    "EvidenceRepository",
    "HouseholdRepository",
    "PackageArchiver",
    "PackageRepository",
    "PersonRepository",
    "PropertyUnitRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RegistryRepositories",
    "RegistryRepository",
    "RelationRepository",
    "Repository",
    "RepositoryCollection",
    "StagingRepositories",
    "StagingRepository",
    "SurveyRepository",
    "UnitOfWork",
]
