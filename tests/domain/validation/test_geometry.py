from __future__ import annotations

import re

import pytest

from tenure_reconcile.domain.model import StagedBatch, new_id
from tenure_reconcile.domain.validation import (
    RecordFindings,
    WktError,
    check_spatial_geometry,
    geometry_problems,
    parse_wkt,
)
from tests.helpers.packages import make_building

FOOTPRINT = "POLYGON((37.1 36.2, 37.2 36.2, 37.2 36.3, 37.1 36.2))"


def _findings(wkt: str | None, **overrides: object) -> RecordFindings:
    package_id = new_id()
    building = make_building(package_id, building_geometry_wkt=wkt, **overrides)
    batch = StagedBatch(package_id=package_id, buildings=(building,))
    return check_spatial_geometry(batch).get(building.key, RecordFindings())


def test_footprint_inside_bounds_has_no_findings() -> None:
    assert _findings(FOOTPRINT) == RecordFindings()
    assert _findings(None) == RecordFindings()
    assert _findings("point (37.15 36.2)") == RecordFindings()


def test_multipolygon_with_hole_is_parsed() -> None:
    geometry = parse_wkt(
        "MULTIPOLYGON(((37 36, 38 36, 38 37, 37 36)),"
        " ((39 35, 40 35, 40 36, 39 35), (39.5 35.2, 39.6 35.2, 39.6 35.3, 39.5 35.2)))"
    )

    assert geometry.kind == "MULTIPOLYGON"
    assert [len(polygon) for polygon in geometry.polygons] == [1, 2]
    assert geometry_problems(geometry) == []


@pytest.mark.parametrize(
    ("wkt", "message"),
    [
        ("LINESTRING(37 36, 38 36)", "unsupported geometry type 'LINESTRING'"),
        ("POLYGON((37.1 36.2, 37.2 36.2", "unexpected end of geometry"),
        ("POINT(37.1 36.2 5)", "expected ')' but found '5'"),
        ("POINT(37.1; 36.2)", "unexpected character ';'"),
        ("POINT(37 36) POINT(38 36)", "unexpected 'POINT' after geometry"),
    ],
)
def test_malformed_wkt_is_an_error(wkt: str, message: str) -> None:
    with pytest.raises(WktError, match=re.escape(message)):
        parse_wkt(wkt)

    (error,) = _findings(wkt).errors
    assert error.startswith("BuildingGeometryWkt is not valid WKT: ")


def test_invalid_rings_are_errors() -> None:
    short = _findings("POLYGON((37.1 36.2, 37.2 36.2, 37.1 36.2))")
    open_ring = _findings("POLYGON((37.1 36.2, 37.2 36.2, 37.2 36.3, 37.1 36.3))")
    flat = _findings("POLYGON((37.5 36.25, 38 36.25, 38.5 36.25, 37.5 36.25))")
    crossing = _findings("POLYGON((37 36, 37.5 36.5, 37.5 36, 37 36.25, 37 36))")

    assert short.errors == (
        "BuildingGeometryWkt polygon 1 exterior ring has 3 positions (minimum 4)",
    )
    assert open_ring.errors == ("BuildingGeometryWkt polygon 1 exterior ring is not closed",)
    assert flat.errors == ("BuildingGeometryWkt polygon 1 exterior ring has zero area",)
    assert crossing.errors == ("BuildingGeometryWkt polygon 1 exterior ring crosses itself",)


def test_empty_geometry_is_an_error() -> None:
    assert geometry_problems(parse_wkt("POINT EMPTY")) == ["is empty"]
    assert _findings("POLYGON EMPTY").errors == ("BuildingGeometryWkt is empty",)


def test_footprint_outside_bounds_only_warns() -> None:
    findings = _findings("POLYGON((10 10, 11 10, 11 11, 10 10))")

    assert findings.errors == ()
    assert findings.warnings == ("BuildingGeometryWkt lies outside Syria bounds",)


def test_coordinates_must_come_in_pairs() -> None:
    findings = _findings(None, longitude=None)

    assert findings.errors == ("Latitude and Longitude must be provided together",)
