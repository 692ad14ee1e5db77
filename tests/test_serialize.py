import json
import math
from datetime import datetime, timedelta, timezone

import pytest

from bel import (
    NULL, Bool, Bytes, Duration, Float, FunctionRef, Int, List, Program,
    SerializationError, String, Timestamp, UInt, deserialize, from_json,
    serialize, to_json,
)
from bel.bel_values import make_map


def test_to_json_projection():
    value = make_map([
        (String("b"), List((Int(1), Float(1.5), NULL))),
        (String("a"), Bool(True)),
        (Int(3), Bytes(b"\x00\xff")),
        (String("t"), Timestamp(datetime(2023, 1, 1, tzinfo=timezone.utc))),
        (String("d"), Duration(timedelta(minutes=90))),
    ])
    assert to_json(value) == {
        "b": [1, 1.5, None],
        "a": True,
        "3": "AP8=",
        "t": "2023-01-01T00:00:00+00:00",
        "d": "1h30m0s",
    }


@pytest.mark.parametrize(
    "f,expected",
    [(math.nan, "NaN"), (math.inf, "Infinity"), (-math.inf, "-Infinity")],
)
def test_non_finite_floats(f, expected):
    assert to_json(Float(f)) == expected


def test_function_reference_cannot_be_serialized():
    with pytest.raises(SerializationError):
        to_json(List((FunctionRef("size"),)))


def test_colliding_object_keys_are_rejected():
    value = make_map([(Int(1), String("a")), (String("1"), String("b"))])
    with pytest.raises(SerializationError):
        to_json(value)
    with pytest.raises(SerializationError):
        serialize(Program.compile("{true: 1, 'true': 2}").execute())


def test_json_output_is_deterministic():
    a = Program.compile("{'z': 1, 'a': [1, 2], 'm': {'y': true, 'b': null}}").execute()
    b = Program.compile("{'m': {'b': null, 'y': true}, 'a': [1, 2], 'z': 1}").execute()
    assert serialize(a) == serialize(b)
    assert serialize(a, pretty=False) == '{"a":[1,2],"m":{"b":null,"y":true},"z":1}'


def test_json_roundtrip():
    value = from_json({"a": 1, "b": [1, 2, "x"], "c": {"d": True}})
    assert deserialize(serialize(value)) == value
    assert json.loads(serialize(value)) == {"a": 1, "b": [1, 2, "x"], "c": {"d": True}}


def test_from_json_widens_large_integers():
    assert from_json(2 ** 63) == UInt(2 ** 63)
    with pytest.raises(SerializationError):
        from_json(2 ** 64)


def test_yaml_roundtrip():
    value = from_json({"a": 1, "b": ["x", "y"], "c": {"d": 2}})
    text = serialize(value, fmt="yaml")
    assert deserialize(text, fmt="yaml") == value


def test_toml_roundtrip():
    value = from_json({"title": "BEL", "owner": {"name": "Tom"}})
    text = serialize(value, fmt="toml")
    assert deserialize(text, fmt="toml") == value


def test_xml_roundtrip_with_string_values():
    value = from_json({"root": {"item": ["A", "B"], "note": "x"}})
    text = serialize(value, fmt="xml")
    assert deserialize(text, fmt="xml") == value


def test_unknown_format():
    with pytest.raises(ValueError):
        serialize(Int(1), fmt="csv")
    with pytest.raises(ValueError):
        deserialize("1", fmt="csv")


def test_deserialize_accepts_bytes():
    assert deserialize(b'{"k": "v"}') == make_map([(String("k"), String("v"))])
