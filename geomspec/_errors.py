from typing import Optional

__all__ = (
    "GeomspecError",
    "DecodeError",
    "EncodeError",
    "ValidationError",
    "ExpectedObject",
    "MissingType",
    "UnknownGeometryType",
    "MissingCoordinates",
    "MalformedPosition",
    "NumberOutOfRange",
    "InvariantViolation",
    "MaxDepthExceeded",
    "UnsupportedHostType",
)


class GeomspecError(Exception):
    """The base class for all geomspec exceptions"""

    kind = "GeomspecError"


class DecodeError(GeomspecError, ValueError):
    """An error occurred while decoding a message"""

    kind = "DecodeError"


class EncodeError(GeomspecError, TypeError):
    """An error occurred while encoding an object"""

    kind = "EncodeError"


class ValidationError(DecodeError):
    """A message was well formed JSON, but not a well formed geometry.

    Parameters
    ----------
    msg : str
        A description of the problem.
    path : str, optional
        The JSON path of the offending value (e.g. ``$.coordinates[0]``).
    offset : int, optional
        The byte offset of the offending token, if the token stream tracks it.
    line : int, optional
        The line of the offending token, if the token stream tracks it.
    """

    def __init__(
        self,
        msg: str,
        *,
        path: Optional[str] = None,
        offset: Optional[int] = None,
        line: Optional[int] = None,
    ):
        self.msg = msg
        self.path = path
        self.offset = offset
        self.line = line
        super().__init__(self._format())

    def _format(self):
        out = self.msg
        if self.path is not None:
            out = f"{out} - at `{self.path}`"
        if self.line is not None:
            out = f"{out} (line {self.line})"
        elif self.offset is not None:
            out = f"{out} (byte {self.offset})"
        return out

    def _extra_args(self):
        return {}

    def at(self, path=None, offset=None, line=None):
        """Return a copy of this error located at a new position"""
        return type(self)(
            self.msg, path=path, offset=offset, line=line, **self._extra_args()
        )


class ExpectedObject(ValidationError):
    """A geometry was expected, but the value was not a JSON object"""

    kind = "ExpectedObject"


class MissingType(ValidationError):
    """A geometry object had no ``type`` member"""

    kind = "MissingType"


class UnknownGeometryType(ValidationError):
    """The ``type`` member named no supported (or accepted) geometry"""

    kind = "UnknownGeometryType"


class MissingCoordinates(ValidationError):
    """A geometry object had no ``coordinates`` (or ``geometries``) member"""

    kind = "MissingCoordinates"


class MalformedPosition(ValidationError):
    """A position, or a level of a coordinates array, was malformed"""

    kind = "MalformedPosition"


class NumberOutOfRange(ValidationError):
    """A coordinate value doesn't fit in a double"""

    kind = "NumberOutOfRange"


class InvariantViolation(ValidationError):
    """A geometry broke an arity or closure rule.

    The broken rule is available as ``rule``, one of ``linestring-length``,
    ``linearring-length``, ``linearring-closed`` or ``geometries-array``.
    """

    kind = "InvariantViolation"

    def __init__(self, msg: str, *, rule: str, **kwargs):
        self.rule = rule
        super().__init__(msg, **kwargs)

    def _extra_args(self):
        return {"rule": self.rule}


class MaxDepthExceeded(ValidationError):
    """Geometry collections (or the JSON holding them) were nested deeper
    than allowed"""

    kind = "MaxDepthExceeded"


class UnsupportedHostType(GeomspecError, TypeError):
    """A host geometry has no counterpart in the geometry model"""

    kind = "UnsupportedHostType"
