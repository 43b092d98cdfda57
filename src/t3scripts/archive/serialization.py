"""
Codec for the nested-structure serialization used inside extension archives.

Archives store their manifest in PHP's ``serialize()`` format:

    s:<len>:"<bytes>";     string (length counted in bytes)
    i:<int>;               integer
    b:<0|1>;               boolean
    d:<float>;             float
    N;                     null
    a:<n>:{<key><value>...}  ordered array, keys are i: or s:

Booleans decode to IntegerNode(0/1), floats to a ScalarNode holding their
literal text and null to an empty ScalarNode, since the value tree only knows
scalars, integers and mappings.
"""

import re
from typing import List, Tuple

from pydantic import ValidationError

from t3scripts.core.errors import MalformedManifest
from t3scripts.schemas.values import IntegerNode, MappingNode, ScalarNode

MAX_DEPTH = 64

_INTEGER = re.compile(rb"-?[0-9]+")
_FLOAT = re.compile(rb"-?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?|-?INF|NAN")
_CANONICAL_INT_KEY = re.compile(r"0|-?[1-9][0-9]*")

# PHP integers are 64 bit; numeric keys outside that range stay strings
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1
_MAX_INT_DIGITS = len(str(INT_MIN))


class _Reader:
    """Cursor over the serialized bytes."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def fail(self, message: str) -> MalformedManifest:
        return MalformedManifest(f"{message} at offset {self.pos}")

    def expect(self, token: bytes) -> None:
        if self.data[self.pos:self.pos + len(token)] != token:
            raise self.fail(f"expected {token.decode('ascii')!r}")
        self.pos += len(token)

    def match(self, pattern: "re.Pattern") -> bytes:
        found = pattern.match(self.data, self.pos)
        if not found:
            raise self.fail("expected a number")
        self.pos = found.end()
        return found.group(0)

    def integer(self) -> int:
        start = self.pos
        digits = self.match(_INTEGER)
        if len(digits) > _MAX_INT_DIGITS:
            self.pos = start
            raise self.fail(f"number of {len(digits)} digits is too long")
        value = int(digits)
        if not INT_MIN <= value <= INT_MAX:
            self.pos = start
            raise self.fail("number is outside the 64 bit integer range")
        return value

    def take(self, length: int) -> bytes:
        end = self.pos + length
        if end > len(self.data):
            raise self.fail(f"string of {length} bytes runs past the end of the data")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def marker(self) -> bytes:
        if self.pos >= len(self.data):
            raise self.fail("unexpected end of data")
        return self.data[self.pos:self.pos + 1]


def _read_string(reader: _Reader) -> bytes:
    reader.expect(b"s:")
    length = reader.integer()
    if length < 0:
        raise reader.fail("negative string length")
    reader.expect(b':"')
    value = reader.take(length)
    reader.expect(b'";')
    return value


def _read_integer(reader: _Reader) -> int:
    reader.expect(b"i:")
    value = reader.integer()
    reader.expect(b";")
    return value


def _read_key(reader: _Reader) -> str:
    marker = reader.marker()
    if marker == b"i":
        return str(_read_integer(reader))
    if marker == b"s":
        raw = _read_string(reader)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            raise reader.fail("array key is not valid UTF-8")
    raise reader.fail(f"invalid array key type {marker!r}")


def _read_value(reader: _Reader, depth: int):
    marker = reader.marker()

    if marker == b"s":
        return ScalarNode(value=_read_string(reader))

    if marker == b"i":
        return IntegerNode(value=_read_integer(reader))

    if marker == b"b":
        reader.expect(b"b:")
        flag = reader.take(1)
        if flag not in (b"0", b"1"):
            raise reader.fail("boolean must be 0 or 1")
        reader.expect(b";")
        return IntegerNode(value=int(flag))

    if marker == b"d":
        reader.expect(b"d:")
        literal = reader.match(_FLOAT)
        reader.expect(b";")
        return ScalarNode(value=literal)

    if marker == b"N":
        reader.expect(b"N;")
        return ScalarNode(value=b"")

    if marker == b"a":
        if depth >= MAX_DEPTH:
            raise reader.fail(f"arrays nested deeper than {MAX_DEPTH} levels")
        reader.expect(b"a:")
        count = reader.integer()
        if count < 0:
            raise reader.fail("negative array size")
        reader.expect(b":{")
        entries: List[Tuple[str, object]] = []
        seen = set()
        for _ in range(count):
            key = _read_key(reader)
            if key in seen:
                raise reader.fail(f"duplicate array key '{key}'")
            seen.add(key)
            entries.append((key, _read_value(reader, depth + 1)))
        reader.expect(b"}")
        try:
            return MappingNode(entries=tuple(entries))
        except ValidationError as e:
            raise reader.fail(f"invalid array ({e})")

    raise reader.fail(f"unsupported value type {marker!r}")


def loads(data: bytes):
    """
    Decode a serialized manifest into a value tree.

    Raises:
        MalformedManifest: If the data doesn't follow the grammar, or has
            trailing bytes after the top-level value
    """
    reader = _Reader(data)
    node = _read_value(reader, 0)
    if reader.pos != len(data):
        raise reader.fail("trailing data after the top-level value")
    return node


def _is_integer_key(key: str) -> bool:
    if len(key) > _MAX_INT_DIGITS or not _CANONICAL_INT_KEY.fullmatch(key):
        return False
    return INT_MIN <= int(key) <= INT_MAX


def _write(node, out: List[bytes]) -> None:
    if isinstance(node, ScalarNode):
        out.append(b"s:%d:\"" % len(node.value))
        out.append(node.value)
        out.append(b'";')
    elif isinstance(node, IntegerNode):
        out.append(b"i:%d;" % node.value)
    elif isinstance(node, MappingNode):
        out.append(b"a:%d:{" % len(node))
        for key, child in node.items():
            if _is_integer_key(key):
                out.append(b"i:%s;" % key.encode("ascii"))
            else:
                encoded = key.encode("utf-8")
                out.append(b's:%d:"%s";' % (len(encoded), encoded))
            _write(child, out)
        out.append(b"}")
    else:
        raise TypeError(f"Not a value node: {type(node).__name__}")


def dumps(node) -> bytes:
    """
    Serialize a value tree.

    ``loads(dumps(node)) == node`` for every tree whose integers lie within
    INT_MIN..INT_MAX.
    """
    out: List[bytes] = []
    _write(node, out)
    return b"".join(out)
