import math
import re
from datetime import datetime, timedelta, timezone

import pytest

from bel.bel_errors import (
    DivisionByZero, IndexOutOfRange, NoSuchKey, Overflow, TypeMismatch,
    UnsupportedKeyType, UnsupportedOperation, ValuesNotComparable,
)
from bel.bel_values import (
    INT64_MAX, INT64_MIN, NULL, UINT64_MAX,
    Bool, Bytes, Duration, Float, FunctionRef, Int, List, Map, Regex, String,
    Timestamp, UInt,
    add, as_bool, compare, contains, div, equals, has_field, has_index, index,
    make_map, member, mod, mul, neg, size, sub, to_python, to_value,
)


def lst(*items):
    return List(tuple(items))


@pytest.mark.parametrize(
    "left,right,expected",
    [
        (Int(1), Float(1.0), True),
        (UInt(3), Int(3), True),
        (Int(1), Bool(True), False),
        (String("a"), Bytes(b"a"), False),
        (NULL, NULL, True),
        (lst(Int(1), String("x")), lst(Float(1.0), String("x")), True),
        (Map({}), lst(), False),
        (FunctionRef("f"), FunctionRef("f"), True),
    ],
)
def test_equality(left, right, expected):
    assert equals(left, right) is expected
    assert (left == right) is expected


def test_nan_is_not_equal_to_itself():
    nan = Float(math.nan)
    assert not equals(nan, nan)


def test_map_equality_ignores_insertion_order():
    a = make_map([(String("x"), Int(1)), (String("y"), Int(2))])
    b = make_map([(String("y"), Int(2)), (String("x"), Int(1))])
    assert a == b


def test_numerically_equal_keys_collide():
    m = make_map([(Int(1), String("int")), (UInt(1), String("uint"))])
    assert len(m.entries) == 1


def test_ordering():
    assert compare(Int(1), Float(1.5)) == -1
    assert compare(UInt(2), Int(2)) == 0
    assert compare(String("b"), String("a")) == 1
    assert compare(Duration(timedelta(seconds=1)), Duration(timedelta(0))) == 1


@pytest.mark.parametrize(
    "left,right",
    [
        (Bool(True), Bool(False)),
        (String("a"), Int(1)),
        (Float(math.nan), Float(1.0)),
        (lst(), lst()),
    ],
)
def test_ordering_errors(left, right):
    with pytest.raises(ValuesNotComparable):
        compare(left, right)


def test_truthiness_only_for_bool():
    assert as_bool(Bool(True)) is True
    with pytest.raises(TypeMismatch):
        as_bool(Int(1))


def test_arithmetic():
    assert add(Int(2), Int(3)) == Int(5)
    assert add(Int(2), Float(0.5)) == Float(2.5)
    assert sub(UInt(5), UInt(2)) == UInt(3)
    assert mul(Float(1.5), Int(2)) == Float(3.0)
    assert add(String("a"), String("b")) == String("ab")
    assert add(Bytes(b"a"), Bytes(b"b")) == Bytes(b"ab")
    assert add(lst(Int(1)), lst(Int(2))) == lst(Int(1), Int(2))


def test_integer_division_truncates_towards_zero():
    assert div(Int(-7), Int(2)) == Int(-3)
    assert mod(Int(-7), Int(2)) == Int(-1)
    assert mod(Int(7), Int(-2)) == Int(1)


def test_float_division_by_zero_follows_ieee():
    assert div(Float(1.0), Float(0.0)).value == math.inf
    assert div(Float(-1.0), Int(0)).value == -math.inf
    assert math.isnan(div(Float(0.0), Float(0.0)).value)


@pytest.mark.parametrize(
    "op,left,right",
    [
        (add, Int(INT64_MAX), Int(1)),
        (sub, Int(INT64_MIN), Int(1)),
        (mul, Int(INT64_MAX), Int(2)),
        (div, Int(INT64_MIN), Int(-1)),
        (mod, Int(INT64_MIN), Int(-1)),
        (add, UInt(UINT64_MAX), UInt(1)),
        (sub, UInt(0), UInt(1)),
    ],
)
def test_integer_overflow(op, left, right):
    with pytest.raises(Overflow):
        op(left, right)


def test_negation_overflow():
    with pytest.raises(Overflow):
        neg(Int(INT64_MIN))


@pytest.mark.parametrize("op", [div, mod])
@pytest.mark.parametrize("zero", [Int(0), UInt(0)])
def test_division_by_zero(op, zero):
    left = Int(1) if isinstance(zero, Int) else UInt(1)
    with pytest.raises(DivisionByZero):
        op(left, zero)


@pytest.mark.parametrize(
    "op,left,right",
    [
        (add, Int(1), UInt(1)),
        (add, String("a"), Int(1)),
        (add, Bool(True), Bool(True)),
        (mod, Float(1.0), Float(2.0)),
        (sub, String("a"), String("a")),
    ],
)
def test_unsupported_combinations(op, left, right):
    with pytest.raises(UnsupportedOperation):
        op(left, right)


def test_timestamp_arithmetic():
    t = Timestamp(datetime(2023, 5, 28, tzinfo=timezone.utc))
    day = Duration(timedelta(days=1))
    assert add(t, day) == Timestamp(datetime(2023, 5, 29, tzinfo=timezone.utc))
    assert sub(add(t, day), t) == day


def test_timestamp_overflow():
    t = Timestamp(datetime(9999, 12, 31, tzinfo=timezone.utc))
    with pytest.raises(Overflow):
        add(t, Duration(timedelta(days=2)))


def test_size_counts_code_points():
    assert size(String("héllo")) == 5
    assert size(Bytes("héllo".encode("utf-8"))) == 6
    assert size(lst(Int(1))) == 1
    with pytest.raises(UnsupportedOperation):
        size(Int(1))


def test_index_and_member():
    items = lst(Int(10), Int(20))
    assert index(items, Int(1)) == Int(20)
    assert index(String("héllo"), Int(1)) == String("é")
    with pytest.raises(IndexOutOfRange):
        index(items, Int(2))
    with pytest.raises(IndexOutOfRange):
        index(items, Int(-1))
    m = make_map([(String("a"), Int(1))])
    assert member(m, "a") == Int(1)
    with pytest.raises(NoSuchKey):
        member(m, "b")
    with pytest.raises(NoSuchKey):
        index(m, String("b"))
    with pytest.raises(UnsupportedKeyType):
        index(m, Float(1.0))


def test_presence_checks():
    m = make_map([(String("a"), Int(1))])
    assert has_field(m, "a") is True
    assert has_field(m, "b") is False
    assert has_field(Int(1), "a") is False
    assert has_index(lst(Int(1)), Int(0)) is True
    assert has_index(lst(Int(1)), Int(1)) is False
    assert has_index(m, String("a")) is True


def test_in_operator():
    assert contains(lst(Int(1), Int(2)), Float(2.0)) is True
    assert contains(make_map([(String("k"), NULL)]), String("k")) is True
    with pytest.raises(UnsupportedOperation):
        contains(String("abc"), String("a"))


def test_map_key_types_are_restricted():
    with pytest.raises(UnsupportedKeyType):
        make_map([(Float(1.0), Int(1))])


def test_to_value_and_back():
    pattern = re.compile("a+")
    native = {
        "n": None, "b": True, "i": 1, "f": 1.5, "s": "x", "raw": b"\x00",
        "l": [1, (2, 3)], "t": datetime(2020, 1, 1, tzinfo=timezone.utc),
        "d": timedelta(seconds=3), "r": pattern,
    }
    value = to_value(native)
    assert isinstance(value, Map)
    assert value.entries[String("b")] == Bool(True)
    assert isinstance(value.entries[String("r")], Regex)
    back = to_python(value)
    assert back["l"] == [1, [2, 3]]
    assert back["r"] is pattern
    assert back["t"] == native["t"]


def test_to_value_rejects_out_of_range_int():
    with pytest.raises(Overflow):
        to_value(2 ** 63)


def test_to_value_naive_datetime_is_utc():
    value = to_value(datetime(2020, 1, 1))
    assert value.value.tzinfo is timezone.utc


def test_to_value_rejects_unknown_objects():
    with pytest.raises(TypeMismatch):
        to_value(object())
