import math
from numbers import Real
from typing import Iterator, Optional, Tuple

import msgspec
from msgspec.structs import force_setattr

from ._errors import InvariantViolation, MalformedPosition, NumberOutOfRange

__all__ = (
    "Position",
    "Geometry",
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "LinearRing",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
)


def _coerce_float(value, name):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"Expected `float` for `{name}`, got `{type(value).__name__}`")
    try:
        out = float(value)
    except OverflowError:
        raise NumberOutOfRange(f"Number out of range for `{name}`") from None
    if math.isnan(out):
        raise MalformedPosition(f"Expected a finite number for `{name}`, got `nan`")
    if math.isinf(out):
        raise NumberOutOfRange(f"Number out of range for `{name}`")
    return out


class Position(msgspec.Struct, array_like=True, frozen=True, omit_defaults=True):
    """A coordinate tuple.

    Parameters
    ----------
    x : float
        The first component (longitude or easting).
    y : float
        The second component (latitude or northing).
    z : float, optional
        The altitude, if any.
    """

    x: float
    y: float
    z: Optional[float] = None

    def __post_init__(self):
        force_setattr(self, "x", _coerce_float(self.x, "x"))
        force_setattr(self, "y", _coerce_float(self.y, "y"))
        if self.z is not None:
            force_setattr(self, "z", _coerce_float(self.z, "z"))

    @property
    def has_z(self) -> bool:
        return self.z is not None

    def astuple(self) -> Tuple[float, ...]:
        if self.z is None:
            return (self.x, self.y)
        return (self.x, self.y, self.z)


Chain = Tuple[Position, ...]


def _as_position(obj) -> Position:
    if isinstance(obj, Position):
        return obj
    if isinstance(obj, Point):
        if obj.coordinates is None:
            raise MalformedPosition("Expected a position, got an empty point")
        return obj.coordinates
    if isinstance(obj, (str, bytes)):
        raise TypeError(f"Expected a position, got `{type(obj).__name__}`")
    try:
        values = tuple(obj)
    except TypeError:
        raise TypeError(f"Expected a position, got `{type(obj).__name__}`") from None
    if len(values) < 2:
        raise MalformedPosition(
            f"Expected a position of at least 2 numbers, got {len(values)}"
        )
    # Dimensions past z are allowed but dropped
    return Position(*values[:3])


def _as_chain(obj) -> Chain:
    if isinstance(obj, (LineString, LinearRing)):
        return obj.coordinates
    if isinstance(obj, (str, bytes)):
        raise TypeError(f"Expected a sequence of positions, got `{type(obj).__name__}`")
    return tuple(_as_position(p) for p in obj)


def _as_rings(obj) -> Tuple[Chain, ...]:
    if isinstance(obj, Polygon):
        return obj.coordinates
    return tuple(_as_chain(r) for r in obj)


def check_line(chain: Chain, allow_empty: bool = True) -> None:
    """Check the arity of a line string's positions"""
    n = len(chain)
    if n >= 2 or (n == 0 and allow_empty):
        return
    raise InvariantViolation(
        f"A line string must have at least 2 positions, got {n}",
        rule="linestring-length",
    )


def check_ring(chain: Chain, allow_empty: bool = True) -> None:
    """Check the arity and closure of a linear ring's positions"""
    n = len(chain)
    if n == 0 and allow_empty:
        return
    if n < 4:
        raise InvariantViolation(
            f"A linear ring must have at least 4 positions, got {n}",
            rule="linearring-length",
        )
    if chain[0] != chain[-1]:
        raise InvariantViolation(
            "A linear ring must be closed, but its first and last positions differ",
            rule="linearring-closed",
        )


def check_polygon(rings: Tuple[Chain, ...]) -> None:
    """Check every ring of a polygon"""
    for ring in rings:
        check_ring(ring, allow_empty=False)


class Geometry(msgspec.Struct, frozen=True, tag_field="type", tag=str.lower):
    """The base class of all geometries.

    Geometries are immutable, and are tagged with their lowercased class name
    (``point``, ``multipolygon``, ...) in a ``type`` field.
    """

    @property
    def geom_type(self) -> str:
        """The lowercase name used for this geometry on the wire"""
        return type(self).__struct_config__.tag

    @property
    def is_empty(self) -> bool:
        # Every variant has exactly one payload field, the base class has none
        fields = self.__struct_fields__
        return not fields or not getattr(self, fields[0])

    @property
    def has_z(self) -> bool:
        return any(p.z is not None for p in self._positions())

    def _positions(self) -> Iterator[Position]:
        raise NotImplementedError

    @property
    def __geo_interface__(self) -> dict:
        from .json import to_builtins

        return to_builtins(self)


class Point(Geometry):
    """A single position, or nothing for an empty point."""

    coordinates: Optional[Position] = None

    def __post_init__(self):
        if self.coordinates is not None:
            force_setattr(self, "coordinates", _as_position(self.coordinates))

    def _positions(self):
        if self.coordinates is not None:
            yield self.coordinates


class MultiPoint(Geometry):
    coordinates: Chain = ()

    def __post_init__(self):
        force_setattr(self, "coordinates", _as_chain(self.coordinates))

    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(Point(p) for p in self.coordinates)

    def _positions(self):
        return iter(self.coordinates)


class LineString(Geometry):
    """An open chain of 2 or more positions (or none, if empty)."""

    coordinates: Chain = ()

    def __post_init__(self):
        chain = _as_chain(self.coordinates)
        check_line(chain)
        force_setattr(self, "coordinates", chain)

    def _positions(self):
        return iter(self.coordinates)


class LinearRing(Geometry):
    """A closed chain of 4 or more positions (or none, if empty)."""

    coordinates: Chain = ()

    def __post_init__(self):
        chain = _as_chain(self.coordinates)
        check_ring(chain)
        force_setattr(self, "coordinates", chain)

    def _positions(self):
        return iter(self.coordinates)


class MultiLineString(Geometry):
    coordinates: Tuple[Chain, ...] = ()

    def __post_init__(self):
        lines = tuple(_as_chain(line) for line in self.coordinates)
        for line in lines:
            check_line(line, allow_empty=False)
        force_setattr(self, "coordinates", lines)

    @property
    def lines(self) -> Tuple[LineString, ...]:
        return tuple(LineString(line) for line in self.coordinates)

    def _positions(self):
        for line in self.coordinates:
            yield from line


class Polygon(Geometry):
    """A polygon, stored as its rings.

    The first ring is the exterior, any following rings are holes. An empty
    polygon has no rings at all.
    """

    coordinates: Tuple[Chain, ...] = ()

    def __post_init__(self):
        rings = _as_rings(self.coordinates)
        check_polygon(rings)
        force_setattr(self, "coordinates", rings)

    @property
    def exterior(self) -> LinearRing:
        if not self.coordinates:
            return LinearRing()
        return LinearRing(self.coordinates[0])

    @property
    def interiors(self) -> Tuple[LinearRing, ...]:
        return tuple(LinearRing(r) for r in self.coordinates[1:])

    def _positions(self):
        for ring in self.coordinates:
            yield from ring


class MultiPolygon(Geometry):
    coordinates: Tuple[Tuple[Chain, ...], ...] = ()

    def __post_init__(self):
        polygons = tuple(_as_rings(p) for p in self.coordinates)
        for rings in polygons:
            check_polygon(rings)
        force_setattr(self, "coordinates", polygons)

    @property
    def polygons(self) -> Tuple[Polygon, ...]:
        return tuple(Polygon(p) for p in self.coordinates)

    def _positions(self):
        for rings in self.coordinates:
            for ring in rings:
                yield from ring


class GeometryCollection(Geometry):
    """An ordered collection of geometries, possibly other collections."""

    geometries: Tuple[Geometry, ...] = ()

    def __post_init__(self):
        geometries = tuple(self.geometries)
        for g in geometries:
            if not isinstance(g, Geometry):
                raise TypeError(f"Expected a `Geometry`, got `{type(g).__name__}`")
        force_setattr(self, "geometries", geometries)

    def _positions(self):
        for g in self.geometries:
            yield from g._positions()
