from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tenure_reconcile.domain.model import StagedBatch, new_id
from tenure_reconcile.domain.validation import (
    CodedValueCheck,
    RecordFindings,
    VersionDifference,
    Vocabulary,
    VocabularyCatalog,
    VocabularyVersionCheck,
    compare_versions,
)
from tests.helpers.packages import make_building, make_claim, make_survey, make_unit

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import StagingPropertyUnit, StagingSurvey

CATALOG = VocabularyCatalog(
    [
        Vocabulary(name="property_unit_type", version="2.3.1", codes=frozenset({"apartment"})),
        Vocabulary(name="survey_type", version="1.0.0", codes=frozenset({"field"})),
    ]
)


@pytest.mark.parametrize(
    ("captured", "current", "expected"),
    [
        ("2.3.1", "2.3.1", VersionDifference.IDENTICAL),
        ("v2.3", "2.3.0", VersionDifference.IDENTICAL),
        ("2.3.0", "2.3.1", VersionDifference.PATCH),
        ("2.1.4", "2.3.1", VersionDifference.MINOR),
        ("1.9.9", "2.3.1", VersionDifference.MAJOR),
        ("latest", "2.3.1", VersionDifference.MAJOR),
    ],
)
def test_compare_versions(captured: str, current: str, expected: VersionDifference) -> None:
    assert compare_versions(captured, current) is expected


def _unit_batch(**versions: str) -> tuple[StagedBatch, StagingPropertyUnit, StagingSurvey]:
    package_id = new_id()
    building = make_building(package_id)
    unit = make_unit(package_id, building)
    survey = make_survey(package_id, building)
    batch = StagedBatch(
        package_id=package_id,
        buildings=(building,),
        property_units=(unit,),
        surveys=(survey,),
        vocabulary_versions=versions,
    )
    return batch, unit, survey


def test_major_version_difference_invalidates_coded_records() -> None:
    batch, unit, survey = _unit_batch(property_unit_type="1.4.0", survey_type="1.0.2")

    findings = VocabularyVersionCheck(CATALOG)(batch)

    assert findings[unit.key].errors == (
        "UnitType was coded with property_unit_type v1.4.0; "
        "current vocabulary is v2.3.1 (major version difference)",
    )
    assert survey.key not in findings


def test_minor_version_difference_warns() -> None:
    batch, unit, _ = _unit_batch(property_unit_type="2.0.0", unknown_vocabulary="9.0.0")

    findings = VocabularyVersionCheck(CATALOG)(batch)

    item = findings[unit.key]
    assert item.errors == ()
    assert item.warnings == (
        "UnitType was coded with property_unit_type v2.0.0; "
        "current vocabulary is v2.3.1 (minor version difference)",
    )


def test_packages_without_versions_pass() -> None:
    batch, _, _ = _unit_batch()

    assert VocabularyVersionCheck(CATALOG)(batch) == {}


def test_unknown_codes_warn() -> None:
    package_id = new_id()
    building = make_building(package_id)
    known = make_unit(package_id, building, unit_type=" Apartment ")
    unknown = make_unit(package_id, building, "2", unit_type="castle")
    survey = make_survey(package_id, building, survey_type="drone")
    claim = make_claim(package_id, known, priority="whenever")
    batch = StagedBatch(
        package_id=package_id,
        property_units=(known, unknown),
        surveys=(survey,),
        claims=(claim,),
    )

    findings = CodedValueCheck(CATALOG)(batch)

    assert known.key not in findings
    assert findings[unknown.key] == RecordFindings(warnings=("Unknown UnitType value: castle",))
    assert findings[survey.key].warnings == ("Unknown SurveyType value: drone",)
    # case_priority is not in this catalog
    assert claim.key not in findings


def test_default_catalog_accepts_builder_codes() -> None:
    package_id = new_id()
    building = make_building(package_id, building_type="residential")
    unit = make_unit(package_id, building)
    batch = StagedBatch(
        package_id=package_id,
        buildings=(building,),
        property_units=(unit,),
        surveys=(make_survey(package_id, building),),
        claims=(make_claim(package_id, unit, claim_source="field_collection"),),
    )

    assert CodedValueCheck()(batch) == {}
