"""SQLAlchemy mapping metadata for the reconciliation domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import Any, Final, cast

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from tenure_reconcile.domain.model import (
    REGISTRY_CLASS_BY_KIND,
    STAGING_CLASS_BY_KIND,
    ConfidenceLevel,
    Conflict,
    ConflictPriority,
    ConflictStatus,
    ConflictType,
    EntityKind,
    EntitySide,
    ImportStatus,
    Package,
    RecordStatus,
    RelationType,
    ResolutionAction,
    ValidationStatus,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class JSONListType(TypeDecorator[list[str]]):
    """Message lists stored as a JSON array; ``NULL`` reads back as empty."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(list(value), ensure_ascii=False)

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[str]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        return [str(item) for item in cast(list[Any], loaded)]


class JSONDictType(TypeDecorator[dict[str, Any]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, Any] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(dict(value), ensure_ascii=False, sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, Any] | None:
        _ = dialect
        if value is None:
            return None
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast(dict[str, Any], loaded)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Workflow tables -------------------------------------------------------------

import_package_table = Table(
    "import_package",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("package_number", String(32), nullable=False, unique=True),
    Column("status", Enum(ImportStatus, native_enum=False), nullable=False, index=True),
    Column("device_id", String, nullable=True),
    Column("schema_version", String, nullable=True),
    Column("checksum", String, nullable=True),
    Column("vocabulary_versions", JSONDictType, nullable=False),
    Column("entity_counts", JSONDictType, nullable=False),
    Column("validation_error_count", Integer, nullable=False, default=0),
    Column("validation_warning_count", Integer, nullable=False, default=0),
    Column("person_duplicate_count", Integer, nullable=False, default=0),
    Column("property_duplicate_count", Integer, nullable=False, default=0),
    Column("conflict_count", Integer, nullable=False, default=0),
    Column("successful_import_count", Integer, nullable=False, default=0),
    Column("failed_import_count", Integer, nullable=False, default=0),
    Column("skipped_import_count", Integer, nullable=False, default=0),
    Column("import_summary", Text, nullable=True),
    Column("processing_notes", Text, nullable=True),
    Column("archive_path", String, nullable=True),
    Column("error_message", Text, nullable=True),
    Column("error_log", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("status_changed_at", UTCDateTime(), nullable=True),
    Column("last_modified_by", UUIDColumnType, nullable=True),
    Column("committed_by", UUIDColumnType, nullable=True),
    Column("version", Integer, nullable=False),
)

conflict_table = Table(
    "conflict",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("conflict_number", String(32), nullable=False, unique=True),
    Column("conflict_type", Enum(ConflictType, native_enum=False), nullable=False),
    Column("entity_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("first_entity_id", UUIDColumnType, nullable=False),
    Column("second_entity_id", UUIDColumnType, nullable=False),
    Column("first_side", Enum(EntitySide, native_enum=False), nullable=False),
    Column("second_side", Enum(EntitySide, native_enum=False), nullable=False),
    Column("first_entity_identifier", String, nullable=True),
    Column("second_entity_identifier", String, nullable=True),
    Column("similarity_score", Float, nullable=False),
    Column("confidence_level", Enum(ConfidenceLevel, native_enum=False), nullable=False),
    Column("description", Text, nullable=True),
    Column("matching_criteria", JSONDictType, nullable=False),
    Column(
        "import_package_id",
        UUIDColumnType,
        ForeignKey("import_package.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    ),
    Column("status", Enum(ConflictStatus, native_enum=False), nullable=False, index=True),
    Column("priority", Enum(ConflictPriority, native_enum=False), nullable=False),
    Column("resolution_action", Enum(ResolutionAction, native_enum=False), nullable=True),
    Column("resolution_reason", Text, nullable=True),
    Column("resolution_notes", Text, nullable=True),
    Column("merged_entity_id", UUIDColumnType, nullable=True),
    Column("discarded_entity_id", UUIDColumnType, nullable=True),
    Column("merge_mapping", JSONDictType, nullable=True),
    Column("is_escalated", Boolean, nullable=False, default=False),
    Column("escalation_reason", Text, nullable=True),
    Column("escalated_at", UTCDateTime(), nullable=True),
    Column("escalated_by", UUIDColumnType, nullable=True),
    Column("review_attempt_count", Integer, nullable=False, default=0),
    Column("review_history", JSONListType, nullable=False),
    Column("detected_at", UTCDateTime(), nullable=False),
    Column("detected_by", UUIDColumnType, nullable=True),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Column("resolved_by", UUIDColumnType, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("version", Integer, nullable=False),
    Index("ix_conflict_entity_pair", "first_entity_id", "second_entity_id"),
)

# Shared attribute columns ----------------------------------------------------


def _attribute_columns(kind: EntityKind) -> list[Column[Any]]:
    """Descriptive columns shared by the staging and registry table of ``kind``."""

    match kind:
        case EntityKind.BUILDING:
            return [
                Column("governorate_code", String(2), nullable=True),
                Column("district_code", String(2), nullable=True),
                Column("subdistrict_code", String(2), nullable=True),
                Column("community_code", String(3), nullable=True),
                Column("neighborhood_code", String(3), nullable=True),
                Column("building_number", String(5), nullable=True),
                Column("building_type", String, nullable=True),
                Column("building_status", String, nullable=True),
                Column("number_of_property_units", Integer, nullable=True),
                Column("number_of_apartments", Integer, nullable=True),
                Column("number_of_shops", Integer, nullable=True),
                Column("number_of_floors", Integer, nullable=True),
                Column("year_of_construction", Integer, nullable=True),
                Column("latitude", Float, nullable=True),
                Column("longitude", Float, nullable=True),
                Column("building_geometry_wkt", Text, nullable=True),
                Column("address", String, nullable=True),
                Column("landmark", String, nullable=True),
                Column("notes", Text, nullable=True),
            ]
        case EntityKind.PROPERTY_UNIT:
            return [
                Column("unit_identifier", String, nullable=True),
                Column("unit_type", String, nullable=True),
                Column("unit_status", String, nullable=True),
                Column("floor_number", Integer, nullable=True),
                Column("number_of_rooms", Integer, nullable=True),
                Column("area_square_meters", Float, nullable=True),
                Column("description", Text, nullable=True),
            ]
        case EntityKind.PERSON:
            return [
                Column("first_name_arabic", String, nullable=True),
                Column("father_name_arabic", String, nullable=True),
                Column("family_name_arabic", String, nullable=True),
                Column("mother_name_arabic", String, nullable=True),
                Column("national_id", String, nullable=True),
                Column("year_of_birth", Integer, nullable=True),
                Column("gender", String, nullable=True),
                Column("nationality", String, nullable=True),
                Column("email", String, nullable=True),
                Column("mobile_number", String, nullable=True),
                Column("phone_number", String, nullable=True),
                Column("relationship_to_head", String, nullable=True),
            ]
        case EntityKind.HOUSEHOLD:
            return [
                Column("head_of_household_name", String, nullable=True),
                Column("household_size", Integer, nullable=True),
                Column("male_count", Integer, nullable=True),
                Column("female_count", Integer, nullable=True),
                Column("notes", Text, nullable=True),
            ]
        case EntityKind.RELATION:
            return [
                Column("relation_type", Enum(RelationType, native_enum=False), nullable=True),
                Column("ownership_share", Float, nullable=True),
                Column("contract_type", String, nullable=True),
                Column("start_date", Date, nullable=True),
                Column("notes", Text, nullable=True),
            ]
        case EntityKind.EVIDENCE:
            return [
                Column("evidence_type", String, nullable=True),
                Column("original_file_name", String, nullable=True),
                Column("file_path", String, nullable=True),
                Column("file_size_bytes", Integer, nullable=True),
                Column("mime_type", String, nullable=True),
                Column("file_hash", String(128), nullable=True),
                Column("description", Text, nullable=True),
            ]
        case EntityKind.CLAIM:
            return [
                Column("claim_type", String, nullable=True),
                Column("claim_source", String, nullable=True),
                Column("claim_status", String, nullable=True),
                Column("lifecycle_stage", String, nullable=True),
                Column("priority", String, nullable=True),
                Column("notes", Text, nullable=True),
            ]
        case EntityKind.SURVEY:
            return [
                Column("survey_date", Date, nullable=True),
                Column("reference_code", String, nullable=True),
                Column("survey_type", String, nullable=True),
                Column("notes", Text, nullable=True),
            ]


# Staging tables --------------------------------------------------------------

_STAGING_LINK_COLUMNS: Final[dict[EntityKind, tuple[str, ...]]] = {
    EntityKind.BUILDING: (),
    EntityKind.PROPERTY_UNIT: ("original_building_id",),
    EntityKind.PERSON: ("original_household_id",),
    EntityKind.HOUSEHOLD: ("original_property_unit_id", "original_head_of_household_person_id"),
    EntityKind.RELATION: ("original_person_id", "original_property_unit_id"),
    EntityKind.EVIDENCE: ("original_person_id", "original_relation_id", "original_claim_id"),
    EntityKind.CLAIM: ("original_property_unit_id", "original_primary_claimant_id"),
    EntityKind.SURVEY: ("original_building_id", "original_property_unit_id", "original_claim_id"),
}


def _staging_table(kind: EntityKind) -> Table:
    name = f"staging_{kind.value}"
    return Table(
        name,
        mapper_registry.metadata,
        Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
        Column(
            "import_package_id",
            UUIDColumnType,
            ForeignKey("import_package.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("original_entity_id", UUIDColumnType, nullable=False),
        Column("validation_status", Enum(ValidationStatus, native_enum=False), nullable=False),
        Column("validation_errors", JSONListType, nullable=False),
        Column("validation_warnings", JSONListType, nullable=False),
        Column("is_approved_for_commit", Boolean, nullable=False, default=False),
        Column("committed_entity_id", UUIDColumnType, nullable=True),
        Column("staged_at", UTCDateTime(), nullable=False),
        *(Column(link, UUIDColumnType, nullable=True) for link in _STAGING_LINK_COLUMNS[kind]),
        *_attribute_columns(kind),
        UniqueConstraint("import_package_id", "original_entity_id", name=f"uq_{name}_original"),
    )


STAGING_TABLE_BY_KIND: Final[dict[EntityKind, Table]] = {
    kind: _staging_table(kind) for kind in EntityKind
}

# Registry tables -------------------------------------------------------------

# person.household_id stays a plain column: households reference their head person
_REGISTRY_LINK_COLUMNS: Final[dict[EntityKind, tuple[tuple[str, str | None], ...]]] = {
    EntityKind.BUILDING: (),
    EntityKind.PROPERTY_UNIT: (("building_id", "building"),),
    EntityKind.PERSON: (("household_id", None),),
    EntityKind.HOUSEHOLD: (
        ("property_unit_id", "property_unit"),
        ("head_of_household_person_id", "person"),
    ),
    EntityKind.RELATION: (("person_id", "person"), ("property_unit_id", "property_unit")),
    EntityKind.EVIDENCE: (
        ("person_id", "person"),
        ("relation_id", "person_property_relation"),
        ("claim_id", "claim"),
    ),
    EntityKind.CLAIM: (("property_unit_id", "property_unit"), ("primary_claimant_id", "person")),
    EntityKind.SURVEY: (
        ("building_id", "building"),
        ("property_unit_id", "property_unit"),
        ("claim_id", "claim"),
    ),
}


def _link_column(name: str, target: str | None) -> Column[Any]:
    if target is None:
        return Column(name, UUIDColumnType, nullable=True, index=True)
    return Column(name, UUIDColumnType, ForeignKey(f"{target}.id"), nullable=True, index=True)


def _registry_table(kind: EntityKind) -> Table:
    return Table(
        kind.value,
        mapper_registry.metadata,
        Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
        Column("record_status", Enum(RecordStatus, native_enum=False), nullable=False),
        Column("superseded_by_id", UUIDColumnType, nullable=True),
        Column("source_package_id", UUIDColumnType, nullable=True, index=True),
        Column("created_at", UTCDateTime(), nullable=False),
        Column("updated_at", UTCDateTime(), nullable=True),
        *(_link_column(name, target) for name, target in _REGISTRY_LINK_COLUMNS[kind]),
        *_attribute_columns(kind),
    )


REGISTRY_TABLE_BY_KIND: Final[dict[EntityKind, Table]] = {
    kind: _registry_table(kind) for kind in EntityKind
}

Index(
    "ix_person_national_id",
    REGISTRY_TABLE_BY_KIND[EntityKind.PERSON].c.national_id,
)
Index(
    "ix_person_family_name_arabic",
    REGISTRY_TABLE_BY_KIND[EntityKind.PERSON].c.family_name_arabic,
)
Index(
    "ix_evidence_file_hash",
    REGISTRY_TABLE_BY_KIND[EntityKind.EVIDENCE].c.file_hash,
)
Index(
    "ix_property_unit_identifier",
    REGISTRY_TABLE_BY_KIND[EntityKind.PROPERTY_UNIT].c.unit_identifier,
)


@cache
def start_mappers() -> orm.registry:
    """Configure imperative mappings for every domain aggregate."""

    log.debug("Configuring SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Package,
        import_package_table,
        version_id_col=import_package_table.c.version,
    )

    mapper_registry.map_imperatively(
        Conflict,
        conflict_table,
        version_id_col=conflict_table.c.version,
    )

    for kind, record_cls in STAGING_CLASS_BY_KIND.items():
        mapper_registry.map_imperatively(record_cls, STAGING_TABLE_BY_KIND[kind])

    for kind, record_cls in REGISTRY_CLASS_BY_KIND.items():
        mapper_registry.map_imperatively(record_cls, REGISTRY_TABLE_BY_KIND[kind])

    configure_mappers()
    return mapper_registry
