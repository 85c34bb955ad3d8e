"""
Descriptive attribute sets shared by staging shapes and authoritative records.

Foreign keys are deliberately absent: staging rows reference sibling
``original_entity_id`` values while registry rows reference surrogate ids, so
each side declares its own link fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from datetime import date

    from .enums import RelationType

BUILDING_CODE_PARTS: Final[tuple[tuple[str, int], ...]] = (
    ("governorate_code", 2),
    ("district_code", 2),
    ("subdistrict_code", 2),
    ("community_code", 3),
    ("neighborhood_code", 3),
    ("building_number", 5),
)
BUILDING_CODE_LENGTH: Final[int] = sum(length for _, length in BUILDING_CODE_PARTS)

# Tablet claims arrive as drafts and enter the registry as submitted.
IMPORTED_CLAIM_STATUS: Final[str] = "draft"
IMPORTED_LIFECYCLE_STAGE: Final[str] = "draft_pending_submission"
FIELD_CLAIM_SOURCE: Final[str] = "field_collection"
SUBMITTED_CLAIM_STATE: Final[dict[str, str]] = {
    "claim_status": "submitted",
    "lifecycle_stage": "submitted",
}


def split_building_code(code: str) -> dict[str, str]:
    """Split a 17-character building code into its administrative parts."""

    if len(code) != BUILDING_CODE_LENGTH:
        raise ValueError(f"Building code must have {BUILDING_CODE_LENGTH} characters: {code!r}")
    parts: dict[str, str] = {}
    offset = 0
    for name, length in BUILDING_CODE_PARTS:
        parts[name] = code[offset : offset + length]
        offset += length
    return parts


@dataclass(eq=False, kw_only=True)
class BuildingAttributes:
    governorate_code: str | None = None
    district_code: str | None = None
    subdistrict_code: str | None = None
    community_code: str | None = None
    neighborhood_code: str | None = None
    building_number: str | None = None
    building_type: str | None = None
    building_status: str | None = None
    number_of_property_units: int | None = None
    number_of_apartments: int | None = None
    number_of_shops: int | None = None
    number_of_floors: int | None = None
    year_of_construction: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    building_geometry_wkt: str | None = None
    address: str | None = None
    landmark: str | None = None
    notes: str | None = None

    @property
    def building_code(self) -> str | None:
        """Concatenated administrative code, or ``None`` while any part is missing."""

        values = [getattr(self, name) for name, _ in BUILDING_CODE_PARTS]
        if any(not value for value in values):
            return None
        return "".join(values)


@dataclass(eq=False, kw_only=True)
class PropertyUnitAttributes:
    unit_identifier: str | None = None
    unit_type: str | None = None
    unit_status: str | None = None
    floor_number: int | None = None
    number_of_rooms: int | None = None
    area_square_meters: float | None = None
    description: str | None = None


@dataclass(eq=False, kw_only=True)
class PersonAttributes:
    first_name_arabic: str | None = None
    father_name_arabic: str | None = None
    family_name_arabic: str | None = None
    mother_name_arabic: str | None = None
    national_id: str | None = None
    year_of_birth: int | None = None
    gender: str | None = None
    nationality: str | None = None
    email: str | None = None
    mobile_number: str | None = None
    phone_number: str | None = None
    relationship_to_head: str | None = None

    @property
    def display_name(self) -> str:
        parts = (self.first_name_arabic, self.father_name_arabic, self.family_name_arabic)
        return " ".join(part.strip() for part in parts if part and part.strip())

    @property
    def identifier(self) -> str:
        """Human-readable label used on conflict records."""

        if self.national_id and self.national_id.strip():
            return f"{self.display_name} (NID: {self.national_id.strip()})"
        return self.display_name


@dataclass(eq=False, kw_only=True)
class HouseholdAttributes:
    head_of_household_name: str | None = None
    household_size: int | None = None
    male_count: int | None = None
    female_count: int | None = None
    notes: str | None = None


@dataclass(eq=False, kw_only=True)
class RelationAttributes:
    relation_type: RelationType | None = None
    ownership_share: float | None = None
    contract_type: str | None = None
    start_date: date | None = None
    notes: str | None = None


@dataclass(eq=False, kw_only=True)
class EvidenceAttributes:
    evidence_type: str | None = None
    original_file_name: str | None = None
    file_path: str | None = None
    file_size_bytes: int | None = None
    mime_type: str | None = None
    file_hash: str | None = None
    description: str | None = None


@dataclass(eq=False, kw_only=True)
class ClaimAttributes:
    claim_type: str | None = None
    claim_source: str | None = None
    claim_status: str | None = None
    lifecycle_stage: str | None = None
    priority: str | None = None
    notes: str | None = None


@dataclass(eq=False, kw_only=True)
class SurveyAttributes:
    survey_date: date | None = None
    reference_code: str | None = None
    survey_type: str | None = None
    notes: str | None = None
