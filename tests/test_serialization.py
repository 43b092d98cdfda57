"""
Tests for the manifest serialization codec.
"""

import pytest

from t3scripts.archive.serialization import MAX_DEPTH, dumps, loads
from t3scripts.core.errors import MalformedManifest
from t3scripts.schemas.values import IntegerNode, MappingNode, ScalarNode


def test_loads_nested_array():
    data = b'a:2:{s:6:"extKey";s:5:"myext";s:5:"FILES";a:1:{s:5:"a.txt";a:2:{s:4:"name";s:5:"a.txt";s:7:"content";s:2:"hi";}}}'
    root = loads(data)

    assert isinstance(root, MappingNode)
    assert root.keys() == ["extKey", "FILES"]
    assert root.get("extKey") == ScalarNode(value=b"myext")
    entry = root.get("FILES").get("a.txt")
    assert entry.get("name").text == "a.txt"
    assert entry.get("content").value == b"hi"


def test_string_length_counts_bytes():
    encoded = "grüße".encode("utf-8")
    root = loads(b's:%d:"%s";' % (len(encoded), encoded))
    assert root.value == encoded


def test_string_may_contain_quotes_and_semicolons():
    assert loads(b's:7:"a";"b:c";').value == b'a";"b:c'


def test_integer_keys_become_strings():
    root = loads(b'a:2:{i:0;s:1:"x";i:-7;i:3;}')
    assert root.keys() == ["0", "-7"]
    assert root.get("-7") == IntegerNode(value=3)


def test_booleans_floats_and_null():
    root = loads(b'a:4:{s:1:"t";b:1;s:1:"f";b:0;s:1:"d";d:0.5;s:1:"n";N;}')
    assert root.get("t") == IntegerNode(value=1)
    assert root.get("f") == IntegerNode(value=0)
    assert root.get("d") == ScalarNode(value=b"0.5")
    assert root.get("n") == ScalarNode(value=b"")


@pytest.mark.parametrize("data", [
    b"",
    b"x:1;",
    b's:5:"abc";',
    b's:2:"abc";',
    b's:-1:"";',
    b"i:;",
    b"i:12",
    b"b:2;",
    b"a:2:{i:0;i:1;}",
    b'a:1:{i:0;i:1;',
    b'a:1:{d:1.0;i:1;}',
    b'a:2:{s:1:"k";i:1;s:1:"k";i:2;}',
    b'a:2:{i:1;i:1;s:1:"1";i:2;}',
    b'O:8:"stdClass":0:{}',
    b"i:1;i:2;",
])
def test_malformed_input_is_rejected(data):
    with pytest.raises(MalformedManifest):
        loads(data)


def test_error_reports_offset():
    with pytest.raises(MalformedManifest, match="offset"):
        loads(b'a:1:{s:1:"k";X}')


def test_depth_limit():
    nested = b"a:1:{i:0;" * (MAX_DEPTH + 1) + b"i:1;" + b"}" * (MAX_DEPTH + 1)
    with pytest.raises(MalformedManifest, match="nested"):
        loads(nested)


def test_dumps_uses_integer_keys_for_canonical_numbers():
    node = MappingNode(entries=(
        ("0", ScalarNode(value=b"zero")),
        ("07", ScalarNode(value=b"padded")),
        ("name", IntegerNode(value=42)),
    ))
    assert dumps(node) == b'a:3:{i:0;s:4:"zero";s:2:"07";s:6:"padded";s:4:"name";i:42;}'
    assert loads(dumps(node)) == node


@pytest.mark.parametrize("data", [
    b"i:" + b"9" * 5000 + b";",
    b"s:" + b"9" * 5000 + b':"x";',
    b"a:" + b"9" * 5000 + b":{}",
])
def test_overlong_numbers_are_rejected(data):
    with pytest.raises(MalformedManifest, match="too long"):
        loads(data)


def test_non_ascii_digits_are_not_numbers():
    with pytest.raises(MalformedManifest):
        loads("i:٣;".encode("utf-8"))


@pytest.mark.parametrize("key", ["1\n", "1٣", "٣", "-0", "+1", " 1", "9223372036854775808", "1" * 30])
def test_non_canonical_keys_stay_strings(key):
    node = MappingNode(entries=((key, IntegerNode(value=1)), ("1", IntegerNode(value=2))))
    encoded = key.encode("utf-8")

    assert dumps(node).startswith(b'a:2:{s:%d:"%s";' % (len(encoded), encoded))
    assert loads(dumps(node)) == node


def test_keys_at_the_integer_limits():
    node = MappingNode(entries=(
        ("9223372036854775807", ScalarNode(value=b"max")),
        ("-9223372036854775808", ScalarNode(value=b"min")),
    ))
    assert dumps(node).startswith(b"a:2:{i:9223372036854775807;")
    assert loads(dumps(node)) == node


@pytest.mark.parametrize("data", [b"i:9223372036854775808;", b"i:-9223372036854775809;", b"a:1:{i:99999999999999999999;i:1;}"])
def test_integers_outside_64_bits_are_rejected(data):
    with pytest.raises(MalformedManifest, match="64 bit"):
        loads(data)


def test_integer_limits_are_accepted():
    assert loads(b"i:9223372036854775807;") == IntegerNode(value=2 ** 63 - 1)
    assert loads(b"i:-9223372036854775808;") == IntegerNode(value=-(2 ** 63))
