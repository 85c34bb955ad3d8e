"""Level 6: building location and footprint geometry.

Footprints arrive as WKT text. Only the shapes the tablets produce are
accepted: ``POINT``, ``POLYGON`` and ``MULTIPOLYGON`` in two dimensions, with
``x`` as longitude and ``y`` as latitude.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import pairwise
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.model import is_blank

from .contracts import FindingsBuilder
from .fields import LATITUDE_BOUNDS, LONGITUDE_BOUNDS

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenure_reconcile.domain.model import StagedBatch

    from .contracts import Findings

WKT_TYPES: Final[frozenset[str]] = frozenset({"POINT", "POLYGON", "MULTIPOLYGON"})
MIN_RING_POSITIONS: Final[int] = 4

_NUMBER = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
_TOKEN = re.compile(rf"\s*(?:(?P<word>[A-Za-z]+)|(?P<number>{_NUMBER})|(?P<mark>[(),]))")

type Position = tuple[float, float]
type Ring = tuple[Position, ...]
type Polygon = tuple[Ring, ...]


class WktError(ValueError):
    """Raised when a geometry string is not well-formed WKT."""


@dataclass(frozen=True, slots=True)
class Geometry:
    kind: str
    points: tuple[Position, ...] = ()
    polygons: tuple[Polygon, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.points and not self.polygons

    def positions(self) -> Iterator[Position]:
        yield from self.points
        for polygon in self.polygons:
            for ring in polygon:
                yield from ring


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    position = 0
    stripped = text.rstrip()
    while position < len(stripped):
        match = _TOKEN.match(stripped, position)
        if match is None:
            raise WktError(f"unexpected character {stripped[position]!r} at offset {position}")
        word = match.group("word")
        tokens.append(word.upper() if word is not None else match.group(match.lastgroup or 0))
        position = match.end()
    return tokens


class _Reader:
    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._index = 0

    def peek(self) -> str | None:
        return self._tokens[self._index] if self._index < len(self._tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise WktError("unexpected end of geometry")
        self._index += 1
        return token

    def expect(self, token: str) -> None:
        found = self.take()
        if found != token:
            raise WktError(f"expected {token!r} but found {found!r}")

    def at_end(self) -> bool:
        return self._index >= len(self._tokens)

    def number(self) -> float:
        token = self.take()
        try:
            return float(token)
        except ValueError:
            raise WktError(f"expected a coordinate but found {token!r}") from None

    def position(self) -> Position:
        return self.number(), self.number()

    def ring(self) -> Ring:
        self.expect("(")
        positions = [self.position()]
        while self.peek() == ",":
            self.take()
            positions.append(self.position())
        self.expect(")")
        return tuple(positions)

    def polygon(self) -> Polygon:
        self.expect("(")
        rings = [self.ring()]
        while self.peek() == ",":
            self.take()
            rings.append(self.ring())
        self.expect(")")
        return tuple(rings)


def parse_wkt(text: str) -> Geometry:
    """Parse ``text`` into a :class:`Geometry`; raises :class:`WktError`."""

    reader = _Reader(text)
    kind = reader.take()
    if kind not in WKT_TYPES:
        raise WktError(f"unsupported geometry type {kind!r}")

    if reader.peek() == "EMPTY":
        reader.take()
        geometry = Geometry(kind=kind)
    elif kind == "POINT":
        reader.expect("(")
        geometry = Geometry(kind=kind, points=(reader.position(),))
        reader.expect(")")
    elif kind == "POLYGON":
        geometry = Geometry(kind=kind, polygons=(reader.polygon(),))
    else:
        reader.expect("(")
        polygons = [reader.polygon()]
        while reader.peek() == ",":
            reader.take()
            polygons.append(reader.polygon())
        reader.expect(")")
        geometry = Geometry(kind=kind, polygons=tuple(polygons))

    if not reader.at_end():
        raise WktError(f"unexpected {reader.peek()!r} after geometry")
    return geometry


def geometry_problems(geometry: Geometry) -> list[str]:
    """Return the reasons ``geometry`` is not a valid footprint; empty when valid."""

    problems: list[str] = []
    if geometry.is_empty:
        problems.append("is empty")
    for number, polygon in enumerate(geometry.polygons, start=1):
        for index, ring in enumerate(polygon):
            label = f"polygon {number} {'exterior' if index == 0 else f'hole {index}'} ring"
            if len(ring) < MIN_RING_POSITIONS:
                problems.append(f"{label} has {len(ring)} positions (minimum {MIN_RING_POSITIONS})")
                continue
            if ring[0] != ring[-1]:
                problems.append(f"{label} is not closed")
                continue
            if _signed_area(ring) == 0:
                problems.append(f"{label} has zero area")
            elif _self_intersects(ring):
                problems.append(f"{label} crosses itself")
    return problems


def _signed_area(ring: Ring) -> float:
    return sum(x1 * y2 - x2 * y1 for (x1, y1), (x2, y2) in pairwise(ring)) / 2


def _orientation(a: Position, b: Position, c: Position) -> float:
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def _segments_cross(first: tuple[Position, Position], second: tuple[Position, Position]) -> bool:
    p1, p2 = first
    q1, q2 = second
    d1 = _orientation(q1, q2, p1)
    d2 = _orientation(q1, q2, p2)
    d3 = _orientation(p1, p2, q1)
    d4 = _orientation(p1, p2, q2)
    if 0 in (d1, d2, d3, d4):
        return False
    return (d1 > 0) != (d2 > 0) and (d3 > 0) != (d4 > 0)


def _self_intersects(ring: Ring) -> bool:
    segments = list(pairwise(ring))
    last = len(segments) - 1
    for i, first in enumerate(segments):
        for j in range(i + 2, len(segments)):
            # the closing segment shares a vertex with the first one
            if i == 0 and j == last:
                continue
            if _segments_cross(first, segments[j]):
                return True
    return False


def _within_bounds(position: Position) -> bool:
    longitude, latitude = position
    return (
        LONGITUDE_BOUNDS[0] <= longitude <= LONGITUDE_BOUNDS[1]
        and LATITUDE_BOUNDS[0] <= latitude <= LATITUDE_BOUNDS[1]
    )


def check_spatial_geometry(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    for building in batch.buildings:
        if (building.latitude is None) != (building.longitude is None):
            builder.error(building, "Latitude and Longitude must be provided together")

        wkt = building.building_geometry_wkt
        if wkt is None or is_blank(wkt):
            continue
        try:
            geometry = parse_wkt(wkt)
        except WktError as exc:
            builder.error(building, f"BuildingGeometryWkt is not valid WKT: {exc}")
            continue
        for problem in geometry_problems(geometry):
            builder.error(building, f"BuildingGeometryWkt {problem}")
        if not all(_within_bounds(position) for position in geometry.positions()):
            builder.warning(building, "BuildingGeometryWkt lies outside Syria bounds")
    return builder.build()
