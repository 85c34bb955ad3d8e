"""Level 1: per-record field and range checks."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.model import is_blank, present_id, utcnow
from tenure_reconcile.domain.model.attributes import BUILDING_CODE_PARTS

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import (
        StagedBatch,
        StagingBuilding,
        StagingClaim,
        StagingEvidence,
        StagingHousehold,
        StagingPerson,
        StagingPropertyUnit,
        StagingRelation,
        StagingSurvey,
    )

    from .contracts import Findings

LATITUDE_BOUNDS: Final[tuple[float, float]] = (32.0, 37.5)
LONGITUDE_BOUNDS: Final[tuple[float, float]] = (35.5, 42.5)
MAX_NATIONAL_ID_LENGTH: Final[int] = 20
MIN_YEAR_OF_BIRTH: Final[int] = 1900

_CODE_LABELS: Final[dict[str, str]] = {
    "governorate_code": "GovernorateCode",
    "district_code": "DistrictCode",
    "subdistrict_code": "SubDistrictCode",
    "community_code": "CommunityCode",
    "neighborhood_code": "NeighborhoodCode",
    "building_number": "BuildingNumber",
}


def check_fields(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    for building in batch.buildings:
        _check_building(building, builder)
    for unit in batch.property_units:
        _check_unit(unit, builder)
    for person in batch.persons:
        _check_person(person, builder)
    for household in batch.households:
        _check_household(household, builder)
    for relation in batch.relations:
        _check_relation(relation, builder)
    for evidence in batch.evidences:
        _check_evidence(evidence, builder)
    for claim in batch.claims:
        _check_claim(claim, builder)
    for survey in batch.surveys:
        _check_survey(survey, builder)
    return builder.build()


def _check_building(building: StagingBuilding, builder: FindingsBuilder) -> None:
    for name, length in BUILDING_CODE_PARTS:
        value = getattr(building, name)
        label = _CODE_LABELS[name]
        if is_blank(value):
            builder.error(building, f"{label} is required")
        elif len(value) != length:
            builder.error(building, f"{label} must be {length} digits")

    for name in ("number_of_property_units", "number_of_apartments", "number_of_shops"):
        value = getattr(building, name)
        if value is not None and value < 0:
            builder.error(building, f"{_camel(name)} cannot be negative")

    total = building.number_of_property_units or 0
    if total > 0 and (building.number_of_apartments or 0) + (building.number_of_shops or 0) > total:
        builder.warning(building, "Apartments + Shops exceeds total PropertyUnits")

    if building.latitude is not None and not _within(building.latitude, LATITUDE_BOUNDS):
        builder.warning(building, f"Latitude {building.latitude} outside Syria bounds (32.0-37.5)")
    if building.longitude is not None and not _within(building.longitude, LONGITUDE_BOUNDS):
        builder.warning(
            building, f"Longitude {building.longitude} outside Syria bounds (35.5-42.5)"
        )


def _check_unit(unit: StagingPropertyUnit, builder: FindingsBuilder) -> None:
    if present_id(unit.original_building_id) is None:
        builder.error(unit, "OriginalBuildingId is required")
    if is_blank(unit.unit_identifier):
        builder.error(unit, "UnitIdentifier is required")
    if unit.area_square_meters is not None and unit.area_square_meters <= 0:
        builder.warning(unit, "AreaSquareMeters should be positive")


def _check_person(person: StagingPerson, builder: FindingsBuilder) -> None:
    if is_blank(person.family_name_arabic):
        builder.error(person, "FamilyNameArabic is required")
    if is_blank(person.first_name_arabic):
        builder.error(person, "FirstNameArabic is required")
    if is_blank(person.father_name_arabic):
        builder.error(person, "FatherNameArabic is required")
    national_id = person.national_id
    if national_id and len(national_id) > MAX_NATIONAL_ID_LENGTH:
        builder.warning(person, f"NationalId length ({len(national_id)}) exceeds expected maximum")
    year = person.year_of_birth
    if year is not None and not MIN_YEAR_OF_BIRTH <= year <= utcnow().year:
        builder.warning(person, f"YearOfBirth {year} seems invalid")


def _check_household(household: StagingHousehold, builder: FindingsBuilder) -> None:
    if present_id(household.original_property_unit_id) is None:
        builder.error(household, "OriginalPropertyUnitId is required")
    if is_blank(household.head_of_household_name):
        builder.error(household, "HeadOfHouseholdName is required")
    if (household.household_size or 0) <= 0:
        builder.error(household, "HouseholdSize must be > 0")
    if (household.male_count or 0) < 0 or (household.female_count or 0) < 0:
        builder.error(household, "Gender counts cannot be negative")


def _check_relation(relation: StagingRelation, builder: FindingsBuilder) -> None:
    if present_id(relation.original_person_id) is None:
        builder.error(relation, "OriginalPersonId is required")
    if present_id(relation.original_property_unit_id) is None:
        builder.error(relation, "OriginalPropertyUnitId is required")
    if relation.relation_type is None:
        builder.error(relation, "RelationType is required")
    share = relation.ownership_share
    if share is not None and not 0 <= share <= 100:
        builder.error(relation, f"OwnershipShare must be 0-100, got {share}")


def _check_evidence(evidence: StagingEvidence, builder: FindingsBuilder) -> None:
    if is_blank(evidence.original_file_name):
        builder.error(evidence, "OriginalFileName is required")
    if (evidence.file_size_bytes or 0) <= 0:
        builder.warning(evidence, "FileSizeBytes is 0 or negative")
    links = (evidence.original_person_id, evidence.original_relation_id, evidence.original_claim_id)
    if all(present_id(link) is None for link in links):
        builder.warning(evidence, "Evidence has no linked Person, Relation, or Claim")


def _check_claim(claim: StagingClaim, builder: FindingsBuilder) -> None:
    if present_id(claim.original_property_unit_id) is None:
        builder.error(claim, "OriginalPropertyUnitId is required")
    if is_blank(claim.claim_type):
        builder.error(claim, "ClaimType is required")


def _check_survey(survey: StagingSurvey, builder: FindingsBuilder) -> None:
    if present_id(survey.original_building_id) is None:
        builder.error(survey, "OriginalBuildingId is required")
    if survey.survey_date is None:
        builder.error(survey, "SurveyDate is required")
    elif survey.survey_date > (utcnow() + timedelta(days=1)).date():
        builder.warning(survey, f"SurveyDate {survey.survey_date.isoformat()} is in the future")


def _within(value: float, bounds: tuple[float, float]) -> bool:
    low, high = bounds
    return low <= value <= high


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))
