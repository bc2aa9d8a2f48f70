"""Pull-style JSON token streams.

The geometry codec reads and writes JSON as a flat sequence of `Token` events
rather than as a tree, so any tokeniser can drive it. `TokenStream` wraps any
iterable of tokens (`TokenStream.from_builtins` walks a tree as decoded by
`msgspec.json.decode`), and `TokenSink` builds the tree back up from the
events an encoder writes to it.
"""
import enum
from typing import Any, Iterable, Iterator, List, Optional

import msgspec

from ._errors import DecodeError

__all__ = ("TokenKind", "Token", "TokenStream", "TokenSink", "iter_tokens")


def __dir__():
    return __all__


class TokenKind(enum.Enum):
    BEGIN_OBJECT = "begin-object"
    END_OBJECT = "end-object"
    BEGIN_ARRAY = "begin-array"
    END_ARRAY = "end-array"
    NAME = "name"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


_BEGIN = (TokenKind.BEGIN_OBJECT, TokenKind.BEGIN_ARRAY)
_END = (TokenKind.END_OBJECT, TokenKind.END_ARRAY)


class Token(msgspec.Struct, frozen=True):
    """A single JSON event.

    Parameters
    ----------
    kind : TokenKind
        The kind of event.
    value : Any, optional
        The member name for ``NAME`` tokens, or the scalar value for
        ``STRING``, ``NUMBER`` and ``BOOLEAN`` tokens.
    path : str, optional
        The JSON path of the value this token belongs to.
    offset : int, optional
        The byte offset of the token in the source, if known.
    line : int, optional
        The line of the token in the source, if known.
    """

    kind: TokenKind
    value: Any = None
    path: str = "$"
    offset: Optional[int] = None
    line: Optional[int] = None


def iter_tokens(obj: Any, path: str = "$") -> Iterator[Token]:
    """Generate the tokens describing a tree of builtin objects.

    Parameters
    ----------
    obj : Any
        A tree of ``dict``, ``list``/``tuple``, ``str``, ``int``, ``float``,
        ``bool`` and ``None`` values.
    path : str, optional
        The JSON path of ``obj``.
    """
    # An explicit stack keeps deeply nested input off the interpreter stack
    stack: list = [(obj, path)]
    while stack:
        item = stack.pop()
        if isinstance(item, Token):
            yield item
            continue
        obj, path = item
        if isinstance(obj, dict):
            yield Token(TokenKind.BEGIN_OBJECT, path=path)
            pending: list = []
            for key, value in obj.items():
                sub = f"{path}.{key}"
                pending.append(Token(TokenKind.NAME, key, sub))
                pending.append((value, sub))
            pending.append(Token(TokenKind.END_OBJECT, path=path))
            stack.extend(reversed(pending))
        elif isinstance(obj, (list, tuple)):
            yield Token(TokenKind.BEGIN_ARRAY, path=path)
            pending = [(value, f"{path}[{i}]") for i, value in enumerate(obj)]
            pending.append(Token(TokenKind.END_ARRAY, path=path))
            stack.extend(reversed(pending))
        elif isinstance(obj, str):
            yield Token(TokenKind.STRING, obj, path)
        elif isinstance(obj, bool):
            yield Token(TokenKind.BOOLEAN, obj, path)
        elif isinstance(obj, (int, float)):
            yield Token(TokenKind.NUMBER, obj, path)
        elif obj is None:
            yield Token(TokenKind.NULL, path=path)
        else:
            raise TypeError(
                f"Objects of type {type(obj).__name__} have no JSON representation"
            )


class TokenStream:
    """A pull-style reader over a sequence of tokens.

    Parameters
    ----------
    tokens : Iterable[Token]
        The tokens to read. They're consumed lazily, one at a time.
    """

    def __init__(self, tokens: Iterable[Token]):
        self._tokens = iter(tokens)
        self._peeked: Optional[Token] = None

    @classmethod
    def from_builtins(cls, obj: Any) -> "TokenStream":
        """Create a stream over a tree of builtin objects"""
        return cls(iter_tokens(obj))

    def peek(self) -> Token:
        """Return the next token without consuming it"""
        if self._peeked is None:
            self._peeked = next(self._tokens, None)
            if self._peeked is None:
                raise DecodeError("Input data was truncated")
        return self._peeked

    def next(self) -> Token:
        """Consume and return the next token"""
        tok = self.peek()
        self._peeked = None
        return tok

    def at_end(self) -> bool:
        """Whether every token has been consumed"""
        if self._peeked is not None:
            return False
        self._peeked = next(self._tokens, None)
        return self._peeked is None

    def _read_value(self, keep: bool) -> List[Token]:
        out = []
        depth = 0
        while True:
            tok = self.next()
            if keep:
                out.append(tok)
            if tok.kind in _BEGIN:
                depth += 1
            elif tok.kind in _END:
                depth -= 1
                if depth < 0:
                    raise DecodeError(f"Unexpected `{tok.kind.value}` token")
            elif tok.kind is TokenKind.NAME and depth == 0:
                raise DecodeError("Unexpected `name` token")
            if depth == 0:
                return out

    def capture_value(self) -> List[Token]:
        """Consume one complete value, returning its tokens"""
        return self._read_value(keep=True)

    def skip_value(self) -> None:
        """Consume and discard one complete value"""
        self._read_value(keep=False)


_NOTHING = object()


class TokenSink:
    """An emitter building a tree of builtin objects from tokens.

    The tree for the single value written is available as `result` once it's
    complete.
    """

    def __init__(self):
        self._stack: list = []
        self._name: Any = _NOTHING
        self._result: Any = _NOTHING

    @property
    def result(self) -> Any:
        if self._stack or self._result is _NOTHING:
            raise ValueError("No complete value has been written")
        return self._result

    def _add(self, value):
        if not self._stack:
            if self._result is not _NOTHING:
                raise ValueError("A value has already been written")
            self._result = value
            return
        top = self._stack[-1]
        if isinstance(top, list):
            top.append(value)
        else:
            if self._name is _NOTHING:
                raise ValueError("Object members must be preceded by a name")
            top[self._name] = value
            self._name = _NOTHING

    def _close(self, kind):
        if not self._stack or not isinstance(self._stack[-1], kind):
            raise ValueError(f"No open {kind.__name__} to close")
        if self._name is not _NOTHING:
            raise ValueError(f"Member `{self._name}` has no value")
        self._stack.pop()

    def begin_object(self) -> None:
        out: dict = {}
        self._add(out)
        self._stack.append(out)

    def end_object(self) -> None:
        self._close(dict)

    def begin_array(self) -> None:
        out: list = []
        self._add(out)
        self._stack.append(out)

    def end_array(self) -> None:
        self._close(list)

    def name(self, name: str) -> None:
        if not self._stack or not isinstance(self._stack[-1], dict):
            raise ValueError("Names may only be written inside an object")
        if self._name is not _NOTHING:
            raise ValueError(f"Member `{self._name}` has no value")
        self._name = name

    def value(self, value: Any) -> None:
        """Write a scalar (``str``, ``int``, ``float``, ``bool`` or ``None``)"""
        self._add(value)

    def write(self, token: Token) -> None:
        """Write a single token"""
        kind = token.kind
        if kind is TokenKind.BEGIN_OBJECT:
            self.begin_object()
        elif kind is TokenKind.END_OBJECT:
            self.end_object()
        elif kind is TokenKind.BEGIN_ARRAY:
            self.begin_array()
        elif kind is TokenKind.END_ARRAY:
            self.end_array()
        elif kind is TokenKind.NAME:
            self.name(token.value)
        else:
            self.value(token.value)
