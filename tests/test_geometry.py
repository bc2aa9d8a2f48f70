import math

import msgspec
import pytest
from utils import HOLE, OUTER

import geomspec
from geomspec import (
    GeometryCollection,
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    Position,
)


class TestPosition:
    def test_ints_are_widened(self):
        p = Position(1, 2)
        assert type(p.x) is float
        assert type(p.y) is float
        assert p.z is None
        assert p == Position(1.0, 2.0)

    def test_z(self):
        p = Position(1, 2, 3)
        assert p.has_z
        assert p.astuple() == (1.0, 2.0, 3.0)
        assert not Position(1, 2).has_z
        assert Position(1, 2).astuple() == (1.0, 2.0)

    def test_subnormal_accepted(self):
        p = Position(5e-324, 2.2250738585072014e-308)
        assert p.x == 5e-324

    @pytest.mark.parametrize("bad", ["1", None, True, [1]])
    def test_not_a_number(self, bad):
        with pytest.raises(TypeError, match="Expected `float` for `x`"):
            Position(bad, 1)

    def test_nan_rejected(self):
        with pytest.raises(geomspec.MalformedPosition):
            Position(math.nan, 1)

    @pytest.mark.parametrize("bad", [math.inf, -math.inf, 10**400])
    def test_out_of_range_rejected(self, bad):
        with pytest.raises(geomspec.NumberOutOfRange):
            Position(1, 2, bad)

    def test_frozen_and_hashable(self):
        p = Position(1, 2)
        with pytest.raises(AttributeError):
            p.x = 3.0
        assert hash(p) == hash(Position(1, 2))


class TestConstruction:
    def test_point(self):
        p = Point(Position(56.7, 83.6))
        assert p.coordinates == Position(56.7, 83.6)
        assert Point((56.7, 83.6)) == p
        assert Point([56.7, 83.6]) == p

    def test_position_extra_dimensions_dropped(self):
        assert Point([1, 2, 3, 4]).coordinates == Position(1, 2, 3)

    def test_position_too_short(self):
        with pytest.raises(geomspec.MalformedPosition):
            Point([1])

    def test_sequences_normalized_to_tuples(self):
        line = LineString([[1, 2], [3, 4]])
        assert line.coordinates == (Position(1, 2), Position(3, 4))
        poly = Polygon([OUTER, HOLE])
        assert isinstance(poly.coordinates, tuple)
        assert all(isinstance(r, tuple) for r in poly.coordinates)
        assert hash(poly) == hash(Polygon([OUTER, HOLE]))

    def test_geometries_accepted_as_members(self):
        ring = LinearRing(OUTER)
        hole = LinearRing(HOLE)
        poly = Polygon([ring, hole])
        assert poly == Polygon([OUTER, HOLE])
        assert MultiPolygon([poly, poly]) == MultiPolygon([[OUTER, HOLE]] * 2)
        assert MultiPoint([Point((1, 2)), (3, 4)]) == MultiPoint([(1, 2), (3, 4)])
        line = LineString([(1, 2), (3, 4)])
        assert MultiLineString([line]) == MultiLineString([[(1, 2), (3, 4)]])

    def test_empty_point_not_allowed_in_multipoint(self):
        with pytest.raises(geomspec.MalformedPosition):
            MultiPoint([Point()])

    def test_line_string_length(self):
        LineString()
        LineString([(1, 2), (3, 4)])
        with pytest.raises(geomspec.InvariantViolation) as rec:
            LineString([(1, 2)])
        assert rec.value.rule == "linestring-length"

    def test_multi_line_string_members_not_empty(self):
        with pytest.raises(geomspec.InvariantViolation) as rec:
            MultiLineString([[]])
        assert rec.value.rule == "linestring-length"

    def test_linear_ring_exactly_four(self):
        ring = LinearRing(OUTER)
        assert len(ring.coordinates) == 4

    @pytest.mark.parametrize(
        "coords, rule",
        [
            ([(0, 0), (1, 1), (0, 0)], "linearring-length"),
            ([(0, 0), (1, 1), (1, 0), (0, 1)], "linearring-closed"),
        ],
    )
    def test_linear_ring_invariants(self, coords, rule):
        with pytest.raises(geomspec.InvariantViolation) as rec:
            LinearRing(coords)
        assert rec.value.rule == rule

    def test_polygon_rings_checked(self):
        with pytest.raises(geomspec.InvariantViolation) as rec:
            Polygon([OUTER, HOLE[:-1]])
        assert rec.value.rule == "linearring-length"

        with pytest.raises(geomspec.InvariantViolation) as rec:
            Polygon([[]])
        assert rec.value.rule == "linearring-length"

    def test_multi_polygon_empty_members(self):
        mp = MultiPolygon([Polygon(), [OUTER]])
        assert mp.coordinates[0] == ()
        assert mp.polygons == (Polygon(), Polygon([OUTER]))
        assert not mp.is_empty

    def test_multi_polygon_member_rings_checked(self):
        with pytest.raises(geomspec.InvariantViolation) as rec:
            MultiPolygon([[OUTER], [[]]])
        assert rec.value.rule == "linearring-length"

    def test_geometry_collection_members(self):
        gc = GeometryCollection([Point((1, 2)), GeometryCollection()])
        assert isinstance(gc.geometries, tuple)
        with pytest.raises(TypeError, match="Expected a `Geometry`"):
            GeometryCollection([(1, 2)])

    def test_immutable(self):
        p = Point((1, 2))
        with pytest.raises(AttributeError):
            p.coordinates = Position(3, 4)


class TestHelpers:
    @pytest.mark.parametrize(
        "cls, tag",
        [
            (Point, "point"),
            (MultiPoint, "multipoint"),
            (LineString, "linestring"),
            (MultiLineString, "multilinestring"),
            (LinearRing, "linearring"),
            (Polygon, "polygon"),
            (MultiPolygon, "multipolygon"),
            (GeometryCollection, "geometrycollection"),
        ],
    )
    def test_geom_type_and_empty(self, cls, tag):
        g = cls()
        assert g.geom_type == tag
        assert g.is_empty
        assert not g.has_z

    def test_base_class_has_no_payload(self):
        g = geomspec.Geometry()
        assert g.geom_type == "geometry"
        assert g.is_empty

    def test_not_empty(self):
        assert not Point((1, 2)).is_empty
        assert not GeometryCollection([Point()]).is_empty

    def test_has_z(self):
        assert Point((1, 2, 3)).has_z
        assert MultiLineString([[(0, 0), (1, 1, 1)]]).has_z
        assert GeometryCollection([Point((1, 2)), Point((1, 2, 3))]).has_z
        assert not Polygon([OUTER]).has_z

    def test_polygon_rings(self):
        poly = Polygon([OUTER, HOLE])
        assert poly.exterior == LinearRing(OUTER)
        assert poly.interiors == (LinearRing(HOLE),)
        assert Polygon().exterior == LinearRing()
        assert Polygon().interiors == ()

    def test_members(self):
        assert MultiPoint([(1, 2)]).points == (Point((1, 2)),)
        assert MultiLineString([[(1, 2), (3, 4)]]).lines == (
            LineString([(1, 2), (3, 4)]),
        )
        assert MultiPolygon([[OUTER]]).polygons == (Polygon([OUTER]),)

    def test_geo_interface(self):
        assert Point((1, 2)).__geo_interface__ == {
            "type": "point",
            "coordinates": [1.0, 2.0],
        }


class TestMsgspecInterop:
    def test_msgspec_decode_tagged_struct(self):
        msg = b'{"type": "linestring", "coordinates": [[1, 2], [3, 4, 5]]}'
        res = msgspec.json.decode(msg, type=LineString)
        assert res == LineString([(1, 2), (3, 4, 5)])

    def test_msgspec_decode_runs_invariant_checks(self):
        msg = b'{"type": "linearring", "coordinates": [[1, 2], [3, 4]]}'
        with pytest.raises(msgspec.ValidationError, match="at least 4 positions"):
            msgspec.json.decode(msg, type=LinearRing)
