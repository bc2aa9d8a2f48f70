"""Conversion between geomspec geometries and shapely geometries.

shapely takes the role of the host geometry model. Every shapely geometry an
`Adapter` creates is stamped with the SRID and precision of its
`GeometryFactory`; none of that metadata is carried by the geomspec model, so
it never survives a round trip through JSON.
"""
import logging
import math
from typing import Any, Iterable, Literal, Optional, Sequence, Union

import msgspec

from . import json as _json
from ._errors import UnsupportedHostType
from ._geometry import (
    Geometry,
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

__all__ = ("PrecisionModel", "GeometryFactory", "Adapter")


def __dir__():
    return __all__


logger = logging.getLogger(__name__)


def _import_shapely(name):
    try:
        import shapely
    except ImportError:
        raise ImportError(
            f"`geomspec.host.{name}` requires shapely be installed.\n\n"
            "Please either `pip` or `conda` install it as follows:\n\n"
            "  $ python -m pip install shapely  # using pip\n"
            "  $ conda install shapely          # or using conda"
        ) from None
    else:
        return shapely


def _to_single(coords):
    import numpy as np

    return coords.astype(np.float32).astype(np.float64)


class PrecisionModel(msgspec.Struct, frozen=True):
    """How coordinate values are rounded.

    Use the `floating`, `floating_single` and `fixed` constructors rather than
    creating instances directly.

    Parameters
    ----------
    kind : {"floating", "floating-single", "fixed"}, optional
        ``floating`` keeps full double precision, ``floating-single`` rounds
        to single precision, and ``fixed`` rounds to a grid of ``1 / scale``.
    scale : float, optional
        The number of grid cells per unit, for ``fixed`` models only.
    """

    kind: Literal["floating", "floating-single", "fixed"] = "floating"
    scale: Optional[float] = None

    def __post_init__(self):
        if self.kind == "fixed":
            if self.scale is None or not math.isfinite(self.scale) or self.scale <= 0:
                raise ValueError("A fixed precision model needs a positive scale")
            msgspec.structs.force_setattr(self, "scale", float(self.scale))
        elif self.kind in ("floating", "floating-single"):
            if self.scale is not None:
                raise ValueError(f"A {self.kind} precision model takes no scale")
        else:
            raise ValueError(f"Unknown precision model kind {self.kind!r}")

    @classmethod
    def floating(cls) -> "PrecisionModel":
        return cls("floating")

    @classmethod
    def floating_single(cls) -> "PrecisionModel":
        return cls("floating-single")

    @classmethod
    def fixed(cls, scale: float) -> "PrecisionModel":
        return cls("fixed", scale)

    @property
    def grid_size(self) -> float:
        """The grid size shapely uses for this model, 0 for floating models"""
        if self.kind == "fixed":
            return 1.0 / self.scale
        return 0.0

    def make_precise(self, value: float) -> float:
        """Round a single value according to this model"""
        if self.kind == "fixed":
            return math.floor(value * self.scale + 0.5) / self.scale
        if self.kind == "floating-single":
            import numpy as np

            return float(np.float32(value))
        return value


class GeometryFactory(msgspec.Struct, frozen=True):
    """Creates shapely geometries with a fixed SRID and precision.

    Parameters
    ----------
    srid : int, optional
        The spatial reference identifier stamped on every geometry. Defaults
        to 0 (unspecified).
    precision : PrecisionModel, optional
        The precision model coordinates are rounded with. Defaults to
        floating (no rounding).
    dimensions : int, optional
        2 to always drop altitudes, 3 (the default) to keep them.
    """

    srid: int = 0
    precision: PrecisionModel = msgspec.field(default_factory=PrecisionModel)
    dimensions: int = 3

    def __post_init__(self):
        if self.dimensions not in (2, 3):
            raise ValueError("dimensions must be 2 or 3")
        if isinstance(self.srid, bool) or not isinstance(self.srid, int):
            raise TypeError(
                f"Expected `int` for `srid`, got `{type(self.srid).__name__}`"
            )

    def _stamp(self, geom):
        shapely = _import_shapely("GeometryFactory")
        if self.precision.kind == "fixed":
            geom = shapely.set_precision(
                geom, self.precision.grid_size, mode="pointwise"
            )
        elif self.precision.kind == "floating-single":
            geom = shapely.transform(geom, _to_single, include_z=geom.has_z)
        return shapely.set_srid(geom, self.srid)

    def _coords(self, positions: Sequence[Position]) -> list:
        # A chain keeps its altitudes only if every position has one
        if (
            self.dimensions == 3
            and positions
            and all(p.z is not None for p in positions)
        ):
            return [(p.x, p.y, p.z) for p in positions]
        return [(p.x, p.y) for p in positions]

    def _point(self, shapely, position):
        if position is None:
            return shapely.Point()
        return shapely.Point(*self._coords((position,))[0])

    def _line_string(self, shapely, positions):
        if not positions:
            return shapely.LineString()
        return shapely.LineString(self._coords(positions))

    def _linear_ring(self, shapely, positions):
        if not positions:
            return shapely.LinearRing()
        return shapely.LinearRing(self._coords(positions))

    def _polygon(self, shapely, shell, holes):
        if not shell:
            return shapely.Polygon()
        return shapely.Polygon(self._coords(shell), [self._coords(h) for h in holes])

    def create_point(self, position: Optional[Position]):
        """Create a point, or an empty point if ``position`` is None"""
        shapely = _import_shapely("GeometryFactory.create_point")
        return self._stamp(self._point(shapely, position))

    def create_line_string(self, positions: Sequence[Position]):
        shapely = _import_shapely("GeometryFactory.create_line_string")
        return self._stamp(self._line_string(shapely, positions))

    def create_linear_ring(self, positions: Sequence[Position]):
        shapely = _import_shapely("GeometryFactory.create_linear_ring")
        return self._stamp(self._linear_ring(shapely, positions))

    def create_polygon(
        self, shell: Sequence[Position], holes: Iterable[Sequence[Position]] = ()
    ):
        """Create a polygon from its exterior ring and any hole rings.

        An empty ``shell`` creates an empty polygon.
        """
        shapely = _import_shapely("GeometryFactory.create_polygon")
        return self._stamp(self._polygon(shapely, shell, holes))

    def create_multi_point(self, positions: Sequence[Position]):
        shapely = _import_shapely("GeometryFactory.create_multi_point")
        if not positions:
            return self._stamp(shapely.MultiPoint())
        return self._stamp(
            shapely.MultiPoint([self._point(shapely, p) for p in positions])
        )

    def create_multi_line_string(self, lines: Sequence[Sequence[Position]]):
        shapely = _import_shapely("GeometryFactory.create_multi_line_string")
        if not lines:
            return self._stamp(shapely.MultiLineString())
        return self._stamp(
            shapely.MultiLineString([self._line_string(shapely, l) for l in lines])
        )

    def create_multi_polygon(self, polygons: Sequence[Sequence[Sequence[Position]]]):
        """Create a multi polygon from the rings of each of its polygons"""
        shapely = _import_shapely("GeometryFactory.create_multi_polygon")
        if not polygons:
            return self._stamp(shapely.MultiPolygon())
        parts = [
            self._polygon(shapely, rings[0] if rings else (), rings[1:])
            for rings in polygons
        ]
        # shapely.multipolygons keeps empty parts in place
        return self._stamp(shapely.multipolygons(parts))

    def create_geometry_collection(self, geometries: Iterable[Any]):
        """Create a collection from shapely geometries"""
        shapely = _import_shapely("GeometryFactory.create_geometry_collection")
        geometries = list(geometries)
        if not geometries:
            return self._stamp(shapely.GeometryCollection())
        return self._stamp(shapely.GeometryCollection(geometries))

    @staticmethod
    def srid_of(geom) -> int:
        """The SRID of a shapely geometry"""
        shapely = _import_shapely("GeometryFactory.srid_of")
        return int(shapely.get_srid(geom))

    @staticmethod
    def precision_of(geom) -> PrecisionModel:
        """The precision model of a shapely geometry.

        shapely only records a grid size, so single precision geometries are
        reported as ``floating``.
        """
        shapely = _import_shapely("GeometryFactory.precision_of")
        grid_size = float(shapely.get_precision(geom))
        if grid_size == 0:
            return PrecisionModel.floating()
        scale = 1.0 / grid_size
        if math.isclose(scale, round(scale), rel_tol=0, abs_tol=1e-9):
            scale = float(round(scale))
        return PrecisionModel.fixed(scale)


def _position(values) -> Position:
    # shapely fills missing altitudes of 3D geometries with NaN
    if len(values) == 3 and math.isnan(values[2]):
        values = values[:2]
    return Position(*values)


def _chain(shapely, geom) -> tuple:
    # Only x, y and z are read, measures are ignored
    coords = shapely.get_coordinates(geom, include_z=geom.has_z)
    return tuple(_position(c) for c in coords.tolist())


def _polygon_rings(shapely, polygon) -> tuple:
    if polygon.is_empty:
        return ()
    return (_chain(shapely, polygon.exterior),) + tuple(
        _chain(shapely, r) for r in polygon.interiors
    )


class Adapter:
    """Converts between geomspec geometries and shapely geometries.

    Parameters
    ----------
    factory : GeometryFactory, optional
        The factory used to create shapely geometries. Defaults to a factory
        with an unspecified SRID (0) and floating precision.
    """

    def __init__(self, factory: Optional[GeometryFactory] = None):
        if factory is None:
            factory = GeometryFactory()
            logger.debug("No geometry factory given, using %r", factory)
        elif not isinstance(factory, GeometryFactory):
            raise TypeError(
                f"Expected a `GeometryFactory`, got `{type(factory).__name__}`"
            )
        self.factory = factory
        self._encoder = _json.Encoder()
        self._decoder = _json.Decoder()

    def __repr__(self):
        return f"Adapter({self.factory!r})"

    def to_host(self, geometry: Optional[Geometry]):
        """Convert a geometry to a shapely geometry.

        Parameters
        ----------
        geometry : Geometry or None
            The geometry to convert.

        Returns
        -------
        shapely.Geometry or None
            The converted geometry, stamped with the factory's SRID and
            precision. None is returned unchanged.
        """
        if geometry is None:
            return None
        f = self.factory
        if isinstance(geometry, Point):
            return f.create_point(geometry.coordinates)
        elif isinstance(geometry, MultiPoint):
            return f.create_multi_point(geometry.coordinates)
        elif isinstance(geometry, LineString):
            return f.create_line_string(geometry.coordinates)
        elif isinstance(geometry, LinearRing):
            return f.create_linear_ring(geometry.coordinates)
        elif isinstance(geometry, MultiLineString):
            return f.create_multi_line_string(geometry.coordinates)
        elif isinstance(geometry, Polygon):
            rings = geometry.coordinates
            if not rings:
                return f.create_polygon(())
            return f.create_polygon(rings[0], rings[1:])
        elif isinstance(geometry, MultiPolygon):
            return f.create_multi_polygon(geometry.coordinates)
        elif isinstance(geometry, GeometryCollection):
            return f.create_geometry_collection(
                [self.to_host(g) for g in geometry.geometries]
            )
        raise TypeError(f"Expected a `Geometry`, got `{type(geometry).__name__}`")

    def from_host(self, geom) -> Optional[Geometry]:
        """Convert a shapely geometry to a geometry.

        The SRID and precision of ``geom`` are dropped.

        Parameters
        ----------
        geom : shapely.Geometry or None
            The shapely geometry to convert.

        Returns
        -------
        Geometry or None
            The converted geometry. None is returned unchanged.
        """
        if geom is None:
            return None
        shapely = _import_shapely("Adapter.from_host")
        if not isinstance(geom, shapely.Geometry):
            raise UnsupportedHostType(
                f"Expected a shapely geometry, got `{type(geom).__name__}`"
            )
        geom_type = geom.geom_type
        if geom_type == "Point":
            if geom.is_empty:
                return Point()
            return Point(_chain(shapely, geom)[0])
        elif geom_type == "MultiPoint":
            if any(p.is_empty for p in geom.geoms):
                raise UnsupportedHostType("Multi point members can't be empty")
            return MultiPoint([_chain(shapely, p)[0] for p in geom.geoms])
        elif geom_type == "LineString":
            return LineString(_chain(shapely, geom))
        elif geom_type == "LinearRing":
            return LinearRing(_chain(shapely, geom))
        elif geom_type == "MultiLineString":
            if any(line.is_empty for line in geom.geoms):
                raise UnsupportedHostType("Multi line string members can't be empty")
            return MultiLineString([_chain(shapely, line) for line in geom.geoms])
        elif geom_type == "Polygon":
            return Polygon(_polygon_rings(shapely, geom))
        elif geom_type == "MultiPolygon":
            return MultiPolygon([_polygon_rings(shapely, p) for p in geom.geoms])
        elif geom_type == "GeometryCollection":
            return GeometryCollection([self.from_host(g) for g in geom.geoms])
        raise UnsupportedHostType(f"Unsupported host geometry type `{geom_type}`")

    def encode(self, geom) -> bytes:
        """Serialize a shapely geometry (or None) as JSON"""
        return self._encoder.encode(self.from_host(geom))

    def decode(self, buf: Union[bytes, str]):
        """Deserialize JSON into a shapely geometry (or None)"""
        return self.to_host(self._decoder.decode(buf))
