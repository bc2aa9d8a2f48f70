from ._errors import (
    DecodeError,
    EncodeError,
    ExpectedObject,
    GeomspecError,
    InvariantViolation,
    MalformedPosition,
    MaxDepthExceeded,
    MissingCoordinates,
    MissingType,
    NumberOutOfRange,
    UnknownGeometryType,
    UnsupportedHostType,
    ValidationError,
)
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

from . import host, json, tokens
from ._version import __version__
