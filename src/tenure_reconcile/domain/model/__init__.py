"""Public domain model surface."""

from __future__ import annotations

from tenure_reconcile.domain.model.attributes import (
    BUILDING_CODE_LENGTH,
    BuildingAttributes,
    PersonAttributes,
    PropertyUnitAttributes,
    split_building_code,
)
from tenure_reconcile.domain.model.base import NIL_ID, is_blank, new_id, present_id, utcnow
from tenure_reconcile.domain.model.conflict import OPEN_CONFLICT_STATUSES, Conflict
from tenure_reconcile.domain.model.enums import (
    ConfidenceLevel,
    ConflictPriority,
    ConflictStatus,
    ConflictType,
    EntityKind,
    EntitySide,
    ImportStatus,
    RecordStatus,
    RelationType,
    ResolutionAction,
    ValidationStatus,
)
from tenure_reconcile.domain.model.package import (
    PACKAGE_TRANSITIONS,
    TERMINAL_STATUSES,
    Package,
)
from tenure_reconcile.domain.model.registry import (
    REGISTRY_CLASS_BY_KIND,
    Building,
    Claim,
    Evidence,
    Household,
    Person,
    PersonPropertyRelation,
    PropertyUnit,
    RegistryRecord,
    Survey,
)
from tenure_reconcile.domain.model.report import CommitError, CommitReport, EntityTypeSummary
from tenure_reconcile.domain.model.staging import (
    STAGING_CLASS_BY_KIND,
    RecordKey,
    StagedBatch,
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

__all__ = [  # noqa: RUF022
    # base
    "NIL_ID",
    "is_blank",
    "new_id",
    "present_id",
    "utcnow",
    # attributes
    "BUILDING_CODE_LENGTH",
    "BuildingAttributes",
    "PersonAttributes",
    "PropertyUnitAttributes",
    "split_building_code",
    # package
    "PACKAGE_TRANSITIONS",
    "TERMINAL_STATUSES",
    "Package",
    # staging
    "STAGING_CLASS_BY_KIND",
    "RecordKey",
    "StagedBatch",
    "StagingRecord",
    "StagingBuilding",
    "StagingPropertyUnit",
    "StagingPerson",
    "StagingHousehold",
    "StagingRelation",
    "StagingEvidence",
    "StagingClaim",
    "StagingSurvey",
    # registry
    "REGISTRY_CLASS_BY_KIND",
    "RegistryRecord",
    "Building",
    "PropertyUnit",
    "Person",
    "Household",
    "PersonPropertyRelation",
    "Evidence",
    "Claim",
    "Survey",
    # conflicts
    "OPEN_CONFLICT_STATUSES",
    "Conflict",
    # reports
    "CommitError",
    "CommitReport",
    "EntityTypeSummary",
    # enums
    "ConfidenceLevel",
    "ConflictPriority",
    "ConflictStatus",
    "ConflictType",
    "EntityKind",
    "EntitySide",
    "ImportStatus",
    "RecordStatus",
    "RelationType",
    "ResolutionAction",
    "ValidationStatus",
]
