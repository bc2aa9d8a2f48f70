import pytest

import geomspec
from geomspec.tokens import Token, TokenKind, TokenSink, TokenStream, iter_tokens


def test_module_dir():
    assert set(dir(geomspec.tokens)) == {
        "TokenKind",
        "Token",
        "TokenStream",
        "TokenSink",
        "iter_tokens",
    }


class TestIterTokens:
    def test_scalars(self):
        assert list(iter_tokens("x")) == [Token(TokenKind.STRING, "x")]
        assert list(iter_tokens(1.5)) == [Token(TokenKind.NUMBER, 1.5)]
        assert list(iter_tokens(True)) == [Token(TokenKind.BOOLEAN, True)]
        assert list(iter_tokens(None)) == [Token(TokenKind.NULL)]

    def test_tree(self):
        res = list(iter_tokens({"a": [1, None], "b": {}}))
        assert res == [
            Token(TokenKind.BEGIN_OBJECT, path="$"),
            Token(TokenKind.NAME, "a", "$.a"),
            Token(TokenKind.BEGIN_ARRAY, path="$.a"),
            Token(TokenKind.NUMBER, 1, "$.a[0]"),
            Token(TokenKind.NULL, path="$.a[1]"),
            Token(TokenKind.END_ARRAY, path="$.a"),
            Token(TokenKind.NAME, "b", "$.b"),
            Token(TokenKind.BEGIN_OBJECT, path="$.b"),
            Token(TokenKind.END_OBJECT, path="$.b"),
            Token(TokenKind.END_OBJECT, path="$"),
        ]

    def test_deeply_nested(self):
        obj = []
        for _ in range(2000):
            obj = [obj]
        assert sum(1 for _ in iter_tokens(obj)) == 2 * 2001

    def test_unsupported(self):
        with pytest.raises(TypeError, match="set have no JSON representation"):
            list(iter_tokens({"a": {1, 2}}))


class TestTokenStream:
    def test_peek_and_next(self):
        stream = TokenStream.from_builtins([1])
        assert stream.peek() == stream.peek()
        assert stream.next().kind is TokenKind.BEGIN_ARRAY
        assert stream.next() == Token(TokenKind.NUMBER, 1, "$[0]")
        assert not stream.at_end()
        assert stream.next().kind is TokenKind.END_ARRAY
        assert stream.at_end()
        with pytest.raises(geomspec.DecodeError, match="truncated"):
            stream.next()

    def test_skip_value(self):
        stream = TokenStream.from_builtins([{"a": [[1], {"b": 2}]}, "after"])
        stream.next()
        stream.skip_value()
        assert stream.next() == Token(TokenKind.STRING, "after", "$[1]")

    def test_skip_scalar(self):
        stream = TokenStream.from_builtins([1, 2])
        stream.next()
        stream.skip_value()
        assert stream.next().value == 2

    def test_capture_value(self):
        stream = TokenStream.from_builtins({"a": [1, 2], "b": 3})
        stream.next()
        stream.next()
        captured = stream.capture_value()
        assert [t.kind for t in captured] == [
            TokenKind.BEGIN_ARRAY,
            TokenKind.NUMBER,
            TokenKind.NUMBER,
            TokenKind.END_ARRAY,
        ]
        assert stream.next() == Token(TokenKind.NAME, "b", "$.b")

    def test_unbalanced_value(self):
        stream = TokenStream([Token(TokenKind.END_ARRAY)])
        with pytest.raises(geomspec.DecodeError, match="Unexpected `end-array`"):
            stream.skip_value()

    def test_name_is_not_a_value(self):
        stream = TokenStream([Token(TokenKind.NAME, "a")])
        with pytest.raises(geomspec.DecodeError, match="Unexpected `name`"):
            stream.capture_value()


class TestTokenSink:
    def test_roundtrip_tokens(self):
        obj = {"type": "x", "a": [1, 2.5, None, True, {"b": []}]}
        sink = TokenSink()
        for tok in iter_tokens(obj):
            sink.write(tok)
        assert sink.result == obj

    def test_scalar(self):
        sink = TokenSink()
        sink.value(None)
        assert sink.result is None

    def test_incomplete(self):
        sink = TokenSink()
        with pytest.raises(ValueError, match="No complete value"):
            sink.result
        sink.begin_array()
        with pytest.raises(ValueError, match="No complete value"):
            sink.result

    def test_single_value(self):
        sink = TokenSink()
        sink.value(1)
        with pytest.raises(ValueError, match="already been written"):
            sink.value(2)

    def test_member_needs_name(self):
        sink = TokenSink()
        sink.begin_object()
        with pytest.raises(ValueError, match="preceded by a name"):
            sink.value(1)

    def test_name_outside_object(self):
        sink = TokenSink()
        sink.begin_array()
        with pytest.raises(ValueError, match="inside an object"):
            sink.name("a")

    def test_mismatched_close(self):
        sink = TokenSink()
        sink.begin_array()
        with pytest.raises(ValueError, match="No open dict"):
            sink.end_object()

    def test_dangling_name(self):
        sink = TokenSink()
        sink.begin_object()
        sink.name("a")
        with pytest.raises(ValueError, match="`a` has no value"):
            sink.end_object()
