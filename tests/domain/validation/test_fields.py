from __future__ import annotations

from datetime import date, timedelta

from tenure_reconcile.domain.model import StagedBatch, new_id, utcnow
from tenure_reconcile.domain.validation import RecordFindings, check_fields
from tests.helpers.packages import (
    make_building,
    make_claim,
    make_evidence,
    make_household,
    make_person,
    make_relation,
    make_survey,
    make_unit,
)


def _findings(batch: StagedBatch, record: object) -> RecordFindings:
    return check_fields(batch).get(record.key, RecordFindings())  # type: ignore[attr-defined]


def test_complete_records_have_no_findings() -> None:
    package_id = new_id()
    building = make_building(package_id)
    unit = make_unit(package_id, building)
    person = make_person(package_id)
    batch = StagedBatch(
        package_id=package_id,
        buildings=(building,),
        property_units=(unit,),
        persons=(person,),
        households=(make_household(package_id, unit),),
        relations=(make_relation(package_id, person, unit),),
        claims=(make_claim(package_id, unit),),
        surveys=(make_survey(package_id, building),),
    )

    assert check_fields(batch) == {}


def test_building_code_parts_are_required_with_exact_lengths() -> None:
    package_id = new_id()
    building = make_building(package_id, governorate_code=None, community_code="04")
    batch = StagedBatch(package_id=package_id, buildings=(building,))

    findings = _findings(batch, building)

    assert "GovernorateCode is required" in findings.errors
    assert "CommunityCode must be 3 digits" in findings.errors


def test_building_counts_and_coordinates() -> None:
    package_id = new_id()
    building = make_building(
        package_id,
        number_of_property_units=2,
        number_of_apartments=2,
        number_of_shops=1,
        number_of_floors=3,
        latitude=10.0,
    )
    negative = make_building(package_id, number_of_shops=-1)
    batch = StagedBatch(package_id=package_id, buildings=(building, negative))

    findings = _findings(batch, building)

    assert findings.errors == ()
    assert "Apartments + Shops exceeds total PropertyUnits" in findings.warnings
    assert any("Latitude 10.0" in warning for warning in findings.warnings)
    assert _findings(batch, negative).errors == ("NumberOfShops cannot be negative",)


def test_person_requires_three_name_parts() -> None:
    package_id = new_id()
    person = make_person(
        package_id, first_name_arabic=" ", father_name_arabic=None, family_name_arabic=None
    )
    batch = StagedBatch(package_id=package_id, persons=(person,))

    assert _findings(batch, person).errors == (
        "FamilyNameArabic is required",
        "FirstNameArabic is required",
        "FatherNameArabic is required",
    )


def test_person_range_checks_are_warnings() -> None:
    package_id = new_id()
    person = make_person(package_id, national_id="1" * 25, year_of_birth=1850)
    batch = StagedBatch(package_id=package_id, persons=(person,))

    findings = _findings(batch, person)

    assert findings.errors == ()
    assert findings.warnings == (
        "NationalId length (25) exceeds expected maximum",
        "YearOfBirth 1850 seems invalid",
    )


def test_household_size_and_counts() -> None:
    package_id = new_id()
    unit = make_unit(package_id, make_building(package_id))
    household = make_household(package_id, unit, household_size=0, male_count=-1)
    batch = StagedBatch(package_id=package_id, households=(household,))

    assert _findings(batch, household).errors == (
        "HouseholdSize must be > 0",
        "Gender counts cannot be negative",
    )


def test_relation_share_must_be_a_percentage() -> None:
    package_id = new_id()
    relation = make_relation(package_id, None, None, ownership_share=120.0)
    batch = StagedBatch(package_id=package_id, relations=(relation,))

    assert _findings(batch, relation).errors == (
        "OriginalPersonId is required",
        "OriginalPropertyUnitId is required",
        "OwnershipShare must be 0-100, got 120.0",
    )


def test_evidence_without_links_or_size_is_warned() -> None:
    package_id = new_id()
    evidence = make_evidence(package_id, file_size_bytes=0)
    nameless = make_evidence(package_id, original_file_name="")
    batch = StagedBatch(package_id=package_id, evidences=(evidence, nameless))

    findings = _findings(batch, evidence)

    assert findings.errors == ()
    assert findings.warnings == (
        "FileSizeBytes is 0 or negative",
        "Evidence has no linked Person, Relation, or Claim",
    )
    assert _findings(batch, nameless).errors == ("OriginalFileName is required",)


def test_claim_and_survey_requirements() -> None:
    package_id = new_id()
    building = make_building(package_id)
    unit = make_unit(package_id, building)
    claim = make_claim(package_id, unit, claim_type=None)
    missing_date = make_survey(package_id, building, survey_date=None)
    future = make_survey(package_id, building, survey_date=utcnow().date() + timedelta(days=5))
    batch = StagedBatch(package_id=package_id, claims=(claim,), surveys=(missing_date, future))

    assert _findings(batch, claim).errors == ("ClaimType is required",)
    assert _findings(batch, missing_date).errors == ("SurveyDate is required",)
    assert _findings(batch, future).errors == ()
    assert len(_findings(batch, future).warnings) == 1


def test_unit_requires_building_and_identifier() -> None:
    package_id = new_id()
    unit = make_unit(package_id, None, unit_identifier=" ", area_square_meters=0.0)
    batch = StagedBatch(package_id=package_id, property_units=(unit,))

    findings = _findings(batch, unit)

    assert findings.errors == ("OriginalBuildingId is required", "UnitIdentifier is required")
    assert findings.warnings == ("AreaSquareMeters should be positive",)


def test_survey_dates_in_the_past_are_fine() -> None:
    package_id = new_id()
    building = make_building(package_id)
    survey = make_survey(package_id, building, survey_date=date(2020, 1, 1))
    batch = StagedBatch(package_id=package_id, surveys=(survey,))

    assert survey.key not in check_fields(batch)
