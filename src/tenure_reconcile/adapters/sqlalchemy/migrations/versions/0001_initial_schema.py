"""Initial schema: packages, conflicts, staging and registry tables.

Revision ID: 0001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

import sqlalchemy as sa
from alembic import op

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Non-native enums are stored by member name.
IMPORT_STATUS = sa.String(19)
VALIDATION_STATUS = sa.String(7)
ENTITY_KIND = sa.String(13)
RECORD_STATUS = sa.String(10)
ENTITY_SIDE = sa.String(13)
CONFLICT_TYPE = sa.String(31)
CONFLICT_STATUS = sa.String(14)
RESOLUTION_ACTION = sa.String(11)
CONFIDENCE_LEVEL = sa.String(6)
CONFLICT_PRIORITY = sa.String(6)
RELATION_TYPE = sa.String(8)


def _timestamp(name: str, *, nullable: bool) -> sa.Column[Any]:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _uuid(name: str, *args: Any, nullable: bool = True) -> sa.Column[Any]:
    return sa.Column(name, sa.Uuid(), *args, nullable=nullable)


def _building() -> list[sa.Column[Any]]:
    return [
        sa.Column("governorate_code", sa.String(2), nullable=True),
        sa.Column("district_code", sa.String(2), nullable=True),
        sa.Column("subdistrict_code", sa.String(2), nullable=True),
        sa.Column("community_code", sa.String(3), nullable=True),
        sa.Column("neighborhood_code", sa.String(3), nullable=True),
        sa.Column("building_number", sa.String(5), nullable=True),
        sa.Column("building_type", sa.String(), nullable=True),
        sa.Column("building_status", sa.String(), nullable=True),
        sa.Column("number_of_property_units", sa.Integer(), nullable=True),
        sa.Column("number_of_apartments", sa.Integer(), nullable=True),
        sa.Column("number_of_shops", sa.Integer(), nullable=True),
        sa.Column("number_of_floors", sa.Integer(), nullable=True),
        sa.Column("year_of_construction", sa.Integer(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("building_geometry_wkt", sa.Text(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("landmark", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


def _property_unit() -> list[sa.Column[Any]]:
    return [
        sa.Column("unit_identifier", sa.String(), nullable=True),
        sa.Column("unit_type", sa.String(), nullable=True),
        sa.Column("unit_status", sa.String(), nullable=True),
        sa.Column("floor_number", sa.Integer(), nullable=True),
        sa.Column("number_of_rooms", sa.Integer(), nullable=True),
        sa.Column("area_square_meters", sa.Float(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    ]


def _person() -> list[sa.Column[Any]]:
    return [
        sa.Column("first_name_arabic", sa.String(), nullable=True),
        sa.Column("father_name_arabic", sa.String(), nullable=True),
        sa.Column("family_name_arabic", sa.String(), nullable=True),
        sa.Column("mother_name_arabic", sa.String(), nullable=True),
        sa.Column("national_id", sa.String(), nullable=True),
        sa.Column("year_of_birth", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(), nullable=True),
        sa.Column("nationality", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("mobile_number", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("relationship_to_head", sa.String(), nullable=True),
    ]


def _household() -> list[sa.Column[Any]]:
    return [
        sa.Column("head_of_household_name", sa.String(), nullable=True),
        sa.Column("household_size", sa.Integer(), nullable=True),
        sa.Column("male_count", sa.Integer(), nullable=True),
        sa.Column("female_count", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


def _relation() -> list[sa.Column[Any]]:
    return [
        sa.Column("relation_type", RELATION_TYPE, nullable=True),
        sa.Column("ownership_share", sa.Float(), nullable=True),
        sa.Column("contract_type", sa.String(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


def _evidence() -> list[sa.Column[Any]]:
    return [
        sa.Column("evidence_type", sa.String(), nullable=True),
        sa.Column("original_file_name", sa.String(), nullable=True),
        sa.Column("file_path", sa.String(), nullable=True),
        sa.Column("file_size_bytes", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("file_hash", sa.String(128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    ]


def _claim() -> list[sa.Column[Any]]:
    return [
        sa.Column("claim_type", sa.String(), nullable=True),
        sa.Column("claim_source", sa.String(), nullable=True),
        sa.Column("claim_status", sa.String(), nullable=True),
        sa.Column("lifecycle_stage", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


def _survey() -> list[sa.Column[Any]]:
    return [
        sa.Column("survey_date", sa.Date(), nullable=True),
        sa.Column("reference_code", sa.String(), nullable=True),
        sa.Column("survey_type", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


# Registry tables in creation order: every referenced table precedes its referrers.
ENTITIES: Final[tuple[tuple[str, Callable[[], list[sa.Column[Any]]]], ...]] = (
    ("building", _building),
    ("person", _person),
    ("property_unit", _property_unit),
    ("household", _household),
    ("person_property_relation", _relation),
    ("claim", _claim),
    ("evidence", _evidence),
    ("survey", _survey),
)

STAGING_LINKS: Final[dict[str, tuple[str, ...]]] = {
    "building": (),
    "property_unit": ("original_building_id",),
    "person": ("original_household_id",),
    "household": ("original_property_unit_id", "original_head_of_household_person_id"),
    "person_property_relation": ("original_person_id", "original_property_unit_id"),
    "evidence": ("original_person_id", "original_relation_id", "original_claim_id"),
    "claim": ("original_property_unit_id", "original_primary_claimant_id"),
    "survey": ("original_building_id", "original_property_unit_id", "original_claim_id"),
}

# person.household_id has no foreign key: households reference their head person
REGISTRY_LINKS: Final[dict[str, tuple[tuple[str, str | None], ...]]] = {
    "building": (),
    "property_unit": (("building_id", "building"),),
    "person": (("household_id", None),),
    "household": (
        ("property_unit_id", "property_unit"),
        ("head_of_household_person_id", "person"),
    ),
    "person_property_relation": (
        ("person_id", "person"),
        ("property_unit_id", "property_unit"),
    ),
    "evidence": (
        ("person_id", "person"),
        ("relation_id", "person_property_relation"),
        ("claim_id", "claim"),
    ),
    "claim": (("property_unit_id", "property_unit"), ("primary_claimant_id", "person")),
    "survey": (
        ("building_id", "building"),
        ("property_unit_id", "property_unit"),
        ("claim_id", "claim"),
    ),
}

LOOKUP_INDEXES: Final[tuple[tuple[str, str, str], ...]] = (
    ("ix_person_national_id", "person", "national_id"),
    ("ix_person_family_name_arabic", "person", "family_name_arabic"),
    ("ix_evidence_file_hash", "evidence", "file_hash"),
    ("ix_property_unit_identifier", "property_unit", "unit_identifier"),
)


def _create_workflow_tables() -> None:
    op.create_table(
        "import_package",
        _uuid("id", nullable=False),
        sa.Column("package_number", sa.String(32), nullable=False),
        sa.Column("status", IMPORT_STATUS, nullable=False),
        sa.Column("device_id", sa.String(), nullable=True),
        sa.Column("schema_version", sa.String(), nullable=True),
        sa.Column("checksum", sa.String(), nullable=True),
        sa.Column("vocabulary_versions", sa.Text(), nullable=False),
        sa.Column("entity_counts", sa.Text(), nullable=False),
        sa.Column("validation_error_count", sa.Integer(), nullable=False),
        sa.Column("validation_warning_count", sa.Integer(), nullable=False),
        sa.Column("person_duplicate_count", sa.Integer(), nullable=False),
        sa.Column("property_duplicate_count", sa.Integer(), nullable=False),
        sa.Column("conflict_count", sa.Integer(), nullable=False),
        sa.Column("successful_import_count", sa.Integer(), nullable=False),
        sa.Column("failed_import_count", sa.Integer(), nullable=False),
        sa.Column("skipped_import_count", sa.Integer(), nullable=False),
        sa.Column("import_summary", sa.Text(), nullable=True),
        sa.Column("processing_notes", sa.Text(), nullable=True),
        sa.Column("archive_path", sa.String(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_log", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=True),
        _timestamp("status_changed_at", nullable=True),
        _uuid("last_modified_by"),
        _uuid("committed_by"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_import_package"),
        sa.UniqueConstraint(
            "package_number", name="uq_import_package_import_package_package_number"
        ),
    )
    op.create_index("ix_import_package_status", "import_package", ["status"])

    op.create_table(
        "conflict",
        _uuid("id", nullable=False),
        sa.Column("conflict_number", sa.String(32), nullable=False),
        sa.Column("conflict_type", CONFLICT_TYPE, nullable=False),
        sa.Column("entity_kind", ENTITY_KIND, nullable=False),
        _uuid("first_entity_id", nullable=False),
        _uuid("second_entity_id", nullable=False),
        sa.Column("first_side", ENTITY_SIDE, nullable=False),
        sa.Column("second_side", ENTITY_SIDE, nullable=False),
        sa.Column("first_entity_identifier", sa.String(), nullable=True),
        sa.Column("second_entity_identifier", sa.String(), nullable=True),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        sa.Column("confidence_level", CONFIDENCE_LEVEL, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("matching_criteria", sa.Text(), nullable=False),
        _uuid(
            "import_package_id",
            sa.ForeignKey("import_package.id", ondelete="CASCADE"),
        ),
        sa.Column("status", CONFLICT_STATUS, nullable=False),
        sa.Column("priority", CONFLICT_PRIORITY, nullable=False),
        sa.Column("resolution_action", RESOLUTION_ACTION, nullable=True),
        sa.Column("resolution_reason", sa.Text(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        _uuid("merged_entity_id"),
        _uuid("discarded_entity_id"),
        sa.Column("merge_mapping", sa.Text(), nullable=True),
        sa.Column("is_escalated", sa.Boolean(), nullable=False),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        _timestamp("escalated_at", nullable=True),
        _uuid("escalated_by"),
        sa.Column("review_attempt_count", sa.Integer(), nullable=False),
        sa.Column("review_history", sa.Text(), nullable=False),
        _timestamp("detected_at", nullable=False),
        _uuid("detected_by"),
        _timestamp("resolved_at", nullable=True),
        _uuid("resolved_by"),
        _timestamp("updated_at", nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_conflict"),
        sa.UniqueConstraint("conflict_number", name="uq_conflict_conflict_conflict_number"),
    )
    op.create_index("ix_conflict_import_package_id", "conflict", ["import_package_id"])
    op.create_index("ix_conflict_status", "conflict", ["status"])
    op.create_index("ix_conflict_entity_pair", "conflict", ["first_entity_id", "second_entity_id"])


def _create_staging_table(entity: str, attributes: Callable[[], list[sa.Column[Any]]]) -> None:
    name = f"staging_{entity}"
    op.create_table(
        name,
        _uuid("id", nullable=False),
        _uuid(
            "import_package_id",
            sa.ForeignKey("import_package.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _uuid("original_entity_id", nullable=False),
        sa.Column("validation_status", VALIDATION_STATUS, nullable=False),
        sa.Column("validation_errors", sa.Text(), nullable=False),
        sa.Column("validation_warnings", sa.Text(), nullable=False),
        sa.Column("is_approved_for_commit", sa.Boolean(), nullable=False),
        _uuid("committed_entity_id"),
        _timestamp("staged_at", nullable=False),
        *(_uuid(link) for link in STAGING_LINKS[entity]),
        *attributes(),
        sa.PrimaryKeyConstraint("id", name=f"pk_{name}"),
        sa.UniqueConstraint("import_package_id", "original_entity_id", name=f"uq_{name}_original"),
    )
    op.create_index(f"ix_{name}_import_package_id", name, ["import_package_id"])


def _create_registry_table(entity: str, attributes: Callable[[], list[sa.Column[Any]]]) -> None:
    links = REGISTRY_LINKS[entity]
    op.create_table(
        entity,
        _uuid("id", nullable=False),
        sa.Column("record_status", RECORD_STATUS, nullable=False),
        _uuid("superseded_by_id"),
        _uuid("source_package_id"),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=True),
        *(
            _uuid(column) if target is None else _uuid(column, sa.ForeignKey(f"{target}.id"))
            for column, target in links
        ),
        *attributes(),
        sa.PrimaryKeyConstraint("id", name=f"pk_{entity}"),
    )
    op.create_index(f"ix_{entity}_source_package_id", entity, ["source_package_id"])
    for column, _ in links:
        op.create_index(f"ix_{entity}_{column}", entity, [column])


def upgrade() -> None:
    _create_workflow_tables()
    for entity, attributes in ENTITIES:
        _create_staging_table(entity, attributes)
    for entity, attributes in ENTITIES:
        _create_registry_table(entity, attributes)
    for index, table, column in LOOKUP_INDEXES:
        op.create_index(index, table, [column])


def downgrade() -> None:
    for entity, _ in reversed(ENTITIES):
        op.drop_table(entity)
    for entity, _ in reversed(ENTITIES):
        op.drop_table(f"staging_{entity}")
    op.drop_table("conflict")
    op.drop_table("import_package")
