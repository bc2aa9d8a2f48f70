import math
import types
import typing
from functools import partial
from typing import Any, Iterable, Optional, Tuple, Type, TypeVar, Union, overload

import msgspec

from ._errors import (
    DecodeError,
    EncodeError,
    ExpectedObject,
    InvariantViolation,
    MalformedPosition,
    MaxDepthExceeded,
    MissingCoordinates,
    MissingType,
    NumberOutOfRange,
    UnknownGeometryType,
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
    check_line,
    check_ring,
)
from .tokens import Token, TokenKind, TokenSink, TokenStream

__all__ = ("Encoder", "Decoder", "encode", "decode", "to_builtins", "convert")


def __dir__():
    return __all__


DEFAULT_MAX_DEPTH = 64


def _loc(tok: Token) -> dict:
    return {"path": tok.path, "offset": tok.offset, "line": tok.line}


def _describe(tok: Token) -> str:
    kind = tok.kind
    if kind is TokenKind.BEGIN_OBJECT:
        return "object"
    elif kind is TokenKind.BEGIN_ARRAY:
        return "array"
    elif kind is TokenKind.STRING:
        return "str"
    elif kind is TokenKind.NUMBER:
        return "int" if isinstance(tok.value, int) else "float"
    elif kind is TokenKind.BOOLEAN:
        return "bool"
    elif kind is TokenKind.NULL:
        return "null"
    return kind.value


def _expect(stream: TokenStream, kind: TokenKind, error: Type[ValidationError]):
    tok = stream.next()
    if tok.kind is not kind:
        expected = "array" if kind is TokenKind.BEGIN_ARRAY else "object"
        raise error(f"Expected `{expected}`, got `{_describe(tok)}`", **_loc(tok))
    return tok


def _expect_name(tok: Token) -> str:
    if tok.kind is not TokenKind.NAME:
        raise DecodeError(f"Expected a member name, got a `{tok.kind.value}` token")
    return tok.value


###########################################################################
# Coordinates                                                             #
###########################################################################


def _read_number(tok: Token) -> float:
    value = tok.value
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            raise NumberOutOfRange("Number out of range", **_loc(tok)) from None
    if math.isnan(value):
        raise MalformedPosition("Expected a finite number, got `nan`", **_loc(tok))
    if math.isinf(value):
        # JSON has no infinities, a finite literal overflowed on parsing
        raise NumberOutOfRange("Number out of range", **_loc(tok))
    return value


def _read_position(
    stream: TokenStream, allow_empty: bool = False
) -> Optional[Position]:
    start = _expect(stream, TokenKind.BEGIN_ARRAY, MalformedPosition)
    values = []
    while True:
        tok = stream.next()
        if tok.kind is TokenKind.END_ARRAY:
            break
        if tok.kind is not TokenKind.NUMBER:
            raise MalformedPosition(
                f"Expected `float`, got `{_describe(tok)}`", **_loc(tok)
            )
        # Dimensions past z are allowed but dropped
        if len(values) < 3:
            values.append(_read_number(tok))
    if not values and allow_empty:
        return None
    if len(values) < 2:
        raise MalformedPosition(
            f"Expected a position of at least 2 numbers, got {len(values)}",
            **_loc(start),
        )
    return Position(*values)


def _read_array(stream: TokenStream, read_item) -> tuple:
    _expect(stream, TokenKind.BEGIN_ARRAY, MalformedPosition)
    out = []
    while stream.peek().kind is not TokenKind.END_ARRAY:
        out.append(read_item(stream))
    stream.next()
    return tuple(out)


def _checked(read, check, stream: TokenStream):
    start = stream.peek()
    out = read(stream)
    try:
        check(out)
    except InvariantViolation as exc:
        raise exc.at(**_loc(start)) from None
    return out


_read_chain = partial(_read_array, read_item=_read_position)
_read_line = partial(_checked, _read_chain, check_line)
_read_line_member = partial(
    _checked, _read_chain, partial(check_line, allow_empty=False)
)
_read_ring = partial(_checked, _read_chain, check_ring)
_read_ring_member = partial(
    _checked, _read_chain, partial(check_ring, allow_empty=False)
)
_read_rings = partial(_read_array, read_item=_read_ring_member)

# Maps a lowercase type name to the geometry type and its coordinates reader
_COORDINATE_READERS = {
    "point": (Point, partial(_read_position, allow_empty=True)),
    "multipoint": (MultiPoint, _read_chain),
    "linestring": (LineString, _read_line),
    "multilinestring": (
        MultiLineString,
        partial(_read_array, read_item=_read_line_member),
    ),
    "linearring": (LinearRing, _read_ring),
    "polygon": (Polygon, _read_rings),
    "multipolygon": (MultiPolygon, partial(_read_array, read_item=_read_rings)),
}


###########################################################################
# Geometries                                                              #
###########################################################################


def _read_collection(stream: TokenStream, depth: int, max_depth: int) -> tuple:
    start = stream.next()
    if start.kind is not TokenKind.BEGIN_ARRAY:
        raise InvariantViolation(
            f"Expected `array`, got `{_describe(start)}`",
            rule="geometries-array",
            **_loc(start),
        )
    out = []
    while stream.peek().kind is not TokenKind.END_ARRAY:
        tok = stream.peek()
        if tok.kind is TokenKind.NULL:
            raise ExpectedObject("Expected `object`, got `null`", **_loc(tok))
        out.append(_read_geometry(stream, depth, max_depth))
    stream.next()
    return tuple(out)


def _read_geometry(
    stream: TokenStream, depth: int, max_depth: int
) -> Optional[Geometry]:
    start = stream.next()
    if start.kind is TokenKind.NULL:
        return None
    if start.kind is not TokenKind.BEGIN_OBJECT:
        raise ExpectedObject(
            f"Expected `object`, got `{_describe(start)}`", **_loc(start)
        )

    type_tok = coordinates = geometries = None
    while True:
        tok = stream.next()
        if tok.kind is TokenKind.END_OBJECT:
            break
        name = _expect_name(tok)
        # Later duplicates replace earlier ones
        if name == "type":
            type_tok = stream.next()
            if type_tok.kind is not TokenKind.STRING:
                raise UnknownGeometryType(
                    f"Expected `str`, got `{_describe(type_tok)}`", **_loc(type_tok)
                )
        elif name == "coordinates":
            coordinates = stream.capture_value()
        elif name == "geometries":
            geometries = stream.capture_value()
        else:
            stream.skip_value()

    if type_tok is None:
        raise MissingType("Object missing required field `type`", **_loc(start))
    key = type_tok.value.lower()

    if key == "geometrycollection":
        if geometries is None:
            raise MissingCoordinates(
                "Object missing required field `geometries`", **_loc(start)
            )
        if depth >= max_depth:
            raise MaxDepthExceeded(
                f"Geometry collections nested deeper than {max_depth} levels",
                **_loc(start),
            )
        members = _read_collection(TokenStream(geometries), depth + 1, max_depth)
        return GeometryCollection(members)

    try:
        cls, read = _COORDINATE_READERS[key]
    except KeyError:
        raise UnknownGeometryType(
            f"Unknown geometry type `{type_tok.value}`", **_loc(type_tok)
        ) from None
    if coordinates is None:
        raise MissingCoordinates(
            "Object missing required field `coordinates`", **_loc(start)
        )
    return cls(read(TokenStream(coordinates)))


_UNION_TYPES = (Union, getattr(types, "UnionType", Union))


def _accepted_types(typ) -> Optional[Tuple[type, ...]]:
    if typ is Any or typ is Geometry:
        return None
    if typing.get_origin(typ) in _UNION_TYPES:
        args = typing.get_args(typ)
    elif isinstance(typ, tuple):
        args = typ
    else:
        args = (typ,)
    args = tuple(a for a in args if a is not None and a is not type(None))
    for a in args:
        if not (isinstance(a, type) and issubclass(a, Geometry)):
            raise TypeError(f"Type '{a!r}' is not supported")
    return args


T = TypeVar("T")


class Decoder:
    """A JSON geometry decoder.

    Parameters
    ----------
    type : type, optional
        A `Geometry` subclass, or a ``Union``/tuple of them, to restrict the
        accepted geometry types to. Defaults to `Any`, in which case any
        geometry is accepted.
    max_depth : int, optional
        The maximum nesting depth of geometry collections. Defaults to 64.
    """

    def __init__(self, type: Any = Any, *, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.type = type
        self.max_depth = max_depth
        self._accepts = _accepted_types(type)

    def __repr__(self):
        return f"Decoder({self.type!r}, max_depth={self.max_depth})"

    def decode_tokens(
        self, tokens: Union[TokenStream, Iterable[Token]]
    ) -> Optional[Geometry]:
        """Read one geometry (or ``null``) from a token stream.

        The stream is left positioned just past the end of the geometry.

        Parameters
        ----------
        tokens : TokenStream or Iterable[Token]
            The tokens to read.

        Returns
        -------
        geometry : Geometry or None
            The decoded geometry, or None if the value was ``null``.
        """
        if not isinstance(tokens, TokenStream):
            tokens = TokenStream(tokens)
        start = tokens.peek()
        out = _read_geometry(tokens, 0, self.max_depth)
        if out is not None and self._accepts is not None:
            if not isinstance(out, self._accepts):
                expected = " | ".join(
                    f"`{t.__struct_config__.tag}`" for t in self._accepts
                )
                raise UnknownGeometryType(
                    f"Expected {expected}, got `{out.geom_type}`", **_loc(start)
                )
        return out

    def convert(self, obj: Any) -> Optional[Geometry]:
        """Decode a geometry from an already parsed tree of builtin objects"""
        return self.decode_tokens(TokenStream.from_builtins(obj))

    def decode(self, buf: Union[bytes, str]) -> Optional[Geometry]:
        """Deserialize a geometry from JSON.

        Parameters
        ----------
        buf : bytes-like or str
            The message to decode.

        Returns
        -------
        geometry : Geometry or None
            The decoded geometry, or None if the message was ``null``.
        """
        if not isinstance(buf, (str, bytes)):
            # call `memoryview` first, since `bytes(1)` is actually valid
            buf = bytes(memoryview(buf))
        try:
            obj = msgspec.json.decode(buf)
        except msgspec.ValidationError as exc:
            # Only raised untyped for number literals that overflow a float
            msg, _, path = str(exc).partition(" - at ")
            raise NumberOutOfRange(msg, path=path.strip("`") or None) from None
        except msgspec.DecodeError as exc:
            raise DecodeError(str(exc)) from None
        except RecursionError:
            # msgspec parses nested containers recursively, far past any
            # collection depth this decoder would accept
            raise MaxDepthExceeded(
                "JSON nested too deeply to parse", path="$"
            ) from None
        return self.convert(obj)


###########################################################################
# Encoding                                                                #
###########################################################################


def _write_position(position: Position, sink: TokenSink) -> None:
    sink.begin_array()
    sink.value(position.x)
    sink.value(position.y)
    if position.z is not None:
        sink.value(position.z)
    sink.end_array()


def _write_array(items, sink: TokenSink, write_item) -> None:
    sink.begin_array()
    for item in items:
        write_item(item, sink)
    sink.end_array()


def _write_checked(check, write, items, sink: TokenSink) -> None:
    check(items)
    write(items, sink)


def _write_point(position: Optional[Position], sink: TokenSink) -> None:
    if position is None:
        sink.begin_array()
        sink.end_array()
    else:
        _write_position(position, sink)


_write_chain = partial(_write_array, write_item=_write_position)
_write_rings = partial(
    _write_array,
    write_item=partial(
        _write_checked, partial(check_ring, allow_empty=False), _write_chain
    ),
)

_COORDINATE_WRITERS = {
    "point": _write_point,
    "multipoint": _write_chain,
    "linestring": partial(_write_checked, check_line, _write_chain),
    "multilinestring": partial(
        _write_array,
        write_item=partial(
            _write_checked, partial(check_line, allow_empty=False), _write_chain
        ),
    ),
    "linearring": partial(_write_checked, check_ring, _write_chain),
    "polygon": _write_rings,
    "multipolygon": partial(_write_array, write_item=_write_rings),
}


def _write_geometry(
    geometry: Geometry, sink: TokenSink, depth: int, max_depth: int
) -> None:
    if isinstance(geometry, GeometryCollection):
        if depth >= max_depth:
            raise EncodeError(
                f"Geometry collections nested deeper than {max_depth} levels"
            )
        sink.begin_object()
        sink.name("type")
        sink.value(geometry.geom_type)
        sink.name("geometries")
        sink.begin_array()
        for member in geometry.geometries:
            _write_geometry(member, sink, depth + 1, max_depth)
        sink.end_array()
        sink.end_object()
        return

    write = _COORDINATE_WRITERS.get(geometry.geom_type)
    if write is None:
        raise EncodeError(
            f"Encoding objects of type {type(geometry).__name__} is unsupported"
        )
    sink.begin_object()
    sink.name("type")
    sink.value(geometry.geom_type)
    sink.name("coordinates")
    write(geometry.coordinates, sink)
    sink.end_object()


class Encoder:
    """A JSON geometry encoder.

    Geometries are written as ``{"type": ..., "coordinates": ...}`` objects
    (``"geometries"`` for collections) with lowercase type names, and `None`
    is written as ``null``.

    Parameters
    ----------
    max_depth : int, optional
        The maximum nesting depth of geometry collections. Defaults to 64,
        matching `Decoder`.
    """

    def __init__(self, *, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.max_depth = max_depth

    def __repr__(self):
        return f"Encoder(max_depth={self.max_depth})"

    def encode_tokens(self, obj: Optional[Geometry], sink: TokenSink) -> TokenSink:
        """Write one geometry (or ``null``) to a token sink.

        Parameters
        ----------
        obj : Geometry or None
            The geometry to write.
        sink : TokenSink
            The sink to write to.

        Returns
        -------
        sink : TokenSink
            The same sink, for chaining.
        """
        if obj is None:
            sink.value(None)
        elif isinstance(obj, Geometry):
            _write_geometry(obj, sink, 0, self.max_depth)
        else:
            raise EncodeError(
                f"Encoding objects of type {type(obj).__name__} is unsupported"
            )
        return sink

    def to_builtins(self, obj: Optional[Geometry]) -> Any:
        """Convert a geometry to a tree of builtin objects"""
        return self.encode_tokens(obj, TokenSink()).result

    def encode(self, obj: Optional[Geometry]) -> bytes:
        """Serialize a geometry as JSON.

        Parameters
        ----------
        obj : Geometry or None
            The geometry to serialize.

        Returns
        -------
        data : bytes
            The serialized geometry.
        """
        return msgspec.json.encode(self.to_builtins(obj))


_default_encoder = Encoder()


def encode(obj: Optional[Geometry]) -> bytes:
    """Serialize a geometry as JSON.

    Parameters
    ----------
    obj : Geometry or None
        The geometry to serialize.

    Returns
    -------
    data : bytes
        The serialized geometry.

    See Also
    --------
    decode
    """
    return _default_encoder.encode(obj)


def to_builtins(obj: Optional[Geometry]) -> Any:
    """Convert a geometry to a tree of builtin objects.

    See Also
    --------
    convert
    """
    return _default_encoder.to_builtins(obj)


@overload
def decode(buf: Union[bytes, str], *, max_depth: int = ...) -> Optional[Geometry]:
    pass


@overload
def decode(
    buf: Union[bytes, str], *, type: Type[T] = ..., max_depth: int = ...
) -> Optional[T]:
    pass


def decode(buf, *, type=Any, max_depth=DEFAULT_MAX_DEPTH):
    """Deserialize a geometry from JSON.

    Parameters
    ----------
    buf : bytes-like or str
        The message to decode.
    type : type, optional
        A `Geometry` subclass (or a ``Union`` of them) the decoded geometry
        must be an instance of. Defaults to `Any`, in which case any geometry
        is accepted.
    max_depth : int, optional
        The maximum nesting depth of geometry collections. Defaults to 64.

    Returns
    -------
    geometry : Geometry or None
        The decoded geometry, or None if the message was ``null``.

    See Also
    --------
    encode
    """
    return Decoder(type, max_depth=max_depth).decode(buf)


def convert(obj: Any, *, type: Any = Any, max_depth: int = DEFAULT_MAX_DEPTH):
    """Decode a geometry from an already parsed tree of builtin objects.

    See Also
    --------
    to_builtins
    """
    return Decoder(type, max_depth=max_depth).convert(obj)
