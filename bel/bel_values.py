"""
Defines the runtime value model for BEL.

Every value an expression can produce is one of the `Value` variants below.
The set is closed: operator functions in this module match exhaustively on
the variants and raise an ExecutionError for any combination they do not
define. Python `==` on two Values is the language's own equality, so
numerically equal Int, UInt and Float values compare (and hash) alike.
"""

import math
import re
import collections.abc
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, Tuple

from bel.bel_errors import (
    DivisionByZero, IndexOutOfRange, NoSuchKey, Overflow, TypeMismatch,
    UnsupportedKeyType, UnsupportedOperation, ValuesNotComparable,
)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1


class Value:
    """Base class for all runtime values."""
    __slots__ = ()
    type_name: ClassVar[str] = "value"

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return equals(self, other)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self._hash_key())

    def _hash_key(self):
        return getattr(self, "value", None)


# =================================================================
# Variants
# =================================================================

@dataclass(frozen=True, eq=False)
class Null(Value):
    type_name: ClassVar[str] = "null"

    def __repr__(self):
        return "Null()"


NULL = Null()


@dataclass(frozen=True, eq=False)
class Bool(Value):
    value: bool
    type_name: ClassVar[str] = "bool"


TRUE = Bool(True)
FALSE = Bool(False)


@dataclass(frozen=True, eq=False)
class Int(Value):
    value: int
    type_name: ClassVar[str] = "int"


@dataclass(frozen=True, eq=False)
class UInt(Value):
    value: int
    type_name: ClassVar[str] = "uint"


@dataclass(frozen=True, eq=False)
class Float(Value):
    value: float
    type_name: ClassVar[str] = "float"


@dataclass(frozen=True, eq=False)
class String(Value):
    value: str
    type_name: ClassVar[str] = "string"


@dataclass(frozen=True, eq=False)
class Bytes(Value):
    value: bytes
    type_name: ClassVar[str] = "bytes"


@dataclass(frozen=True, eq=False)
class List(Value):
    items: Tuple[Value, ...]
    type_name: ClassVar[str] = "list"

    def _hash_key(self):
        return self.items


@dataclass(frozen=True, eq=False)
class Map(Value):
    """Mapping from Int, UInt, Bool or String keys to Values.

    The entries dict is never mutated once the Map is built.
    """
    entries: Dict[Value, Value]
    type_name: ClassVar[str] = "map"

    def __hash__(self):
        raise TypeError("unhashable type: 'Map'")


@dataclass(frozen=True, eq=False)
class Timestamp(Value):
    value: datetime
    type_name: ClassVar[str] = "timestamp"


@dataclass(frozen=True, eq=False)
class Duration(Value):
    value: timedelta
    type_name: ClassVar[str] = "duration"


@dataclass(frozen=True, eq=False)
class Regex(Value):
    value: re.Pattern
    type_name: ClassVar[str] = "regex"

    def _hash_key(self):
        return self.value.pattern


@dataclass(frozen=True, eq=False)
class FunctionRef(Value):
    """Opaque handle to a function registered in the Context."""
    name: str
    type_name: ClassVar[str] = "function"

    def _hash_key(self):
        return ("function", self.name)


KEY_TYPES = (Int, UInt, Bool, String)


def check_key(key: Value) -> Value:
    if not isinstance(key, KEY_TYPES):
        raise UnsupportedKeyType(key.type_name)
    return key


def make_map(pairs) -> Map:
    """Builds a Map from (key, value) pairs, validating every key."""
    entries = {}
    for key, value in pairs:
        entries[check_key(key)] = value
    return Map(entries)


# =================================================================
# Equality and ordering
# =================================================================

def _numeric(value: Value):
    match value:
        case Int(n) | UInt(n) | Float(n):
            return n
    return None


def equals(left: Value, right: Value) -> bool:
    """Language equality: total, and false across incompatible variants."""
    match left, right:
        case (Int() | UInt() | Float()), (Int() | UInt() | Float()):
            return _numeric(left) == _numeric(right)
        case Null(), Null():
            return True
        case Bool(a), Bool(b):
            return a == b
        case String(a), String(b):
            return a == b
        case Bytes(a), Bytes(b):
            return a == b
        case List(a), List(b):
            return len(a) == len(b) and all(equals(x, y) for x, y in zip(a, b))
        case Map(a), Map(b):
            if len(a) != len(b):
                return False
            for key, value in a.items():
                if key not in b or not equals(value, b[key]):
                    return False
            return True
        case Timestamp(a), Timestamp(b):
            return a == b
        case Duration(a), Duration(b):
            return a == b
        case Regex(a), Regex(b):
            return a.pattern == b.pattern
        case FunctionRef(a), FunctionRef(b):
            return a == b
    return False


def _order(a, b) -> int:
    return (a > b) - (a < b)


def compare(left: Value, right: Value) -> int:
    """Returns -1, 0 or 1. Raises ValuesNotComparable when no order exists."""
    match left, right:
        case (Int() | UInt() | Float()), (Int() | UInt() | Float()):
            a, b = _numeric(left), _numeric(right)
            if (isinstance(a, float) and math.isnan(a)) or (isinstance(b, float) and math.isnan(b)):
                raise ValuesNotComparable(left, right)
            return _order(a, b)
        case String(a), String(b):
            return _order(a, b)
        case Bytes(a), Bytes(b):
            return _order(a, b)
        case Timestamp(a), Timestamp(b):
            return _order(a, b)
        case Duration(a), Duration(b):
            return _order(a, b)
    raise ValuesNotComparable(left, right)


def as_bool(value: Value) -> bool:
    """Truthiness: only Bool values may be used as conditions."""
    match value:
        case Bool(b):
            return b
    raise TypeMismatch("bool", value.type_name)


# =================================================================
# Arithmetic
# =================================================================

def _int(op: str, result: int, *operands) -> Int:
    if not INT64_MIN <= result <= INT64_MAX:
        raise Overflow(op, *operands)
    return Int(result)


def _uint(op: str, result: int, *operands) -> UInt:
    if not 0 <= result <= UINT64_MAX:
        raise Overflow(op, *operands)
    return UInt(result)


def _time(op: str, fn, a, b):
    try:
        return fn(a, b)
    except OverflowError:
        raise Overflow(op, a, b) from None


def _float_div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _unsupported(op: str, *values: Value):
    return UnsupportedOperation(op, *(v.type_name for v in values))


def add(left: Value, right: Value) -> Value:
    match left, right:
        case Int(a), Int(b):
            return _int("+", a + b, a, b)
        case UInt(a), UInt(b):
            return _uint("+", a + b, a, b)
        case Float(a), Float(b):
            return Float(a + b)
        case (Int(a) | UInt(a)), Float(b):
            return Float(a + b)
        case Float(a), (Int(b) | UInt(b)):
            return Float(a + b)
        case String(a), String(b):
            return String(a + b)
        case Bytes(a), Bytes(b):
            return Bytes(a + b)
        case List(a), List(b):
            return List(a + b)
        case Timestamp(a), Duration(b):
            return Timestamp(_time("+", lambda x, y: x + y, a, b))
        case Duration(a), Timestamp(b):
            return Timestamp(_time("+", lambda x, y: x + y, a, b))
        case Duration(a), Duration(b):
            return Duration(_time("+", lambda x, y: x + y, a, b))
    raise _unsupported("+", left, right)


def sub(left: Value, right: Value) -> Value:
    match left, right:
        case Int(a), Int(b):
            return _int("-", a - b, a, b)
        case UInt(a), UInt(b):
            return _uint("-", a - b, a, b)
        case Float(a), Float(b):
            return Float(a - b)
        case (Int(a) | UInt(a)), Float(b):
            return Float(a - b)
        case Float(a), (Int(b) | UInt(b)):
            return Float(a - b)
        case Timestamp(a), Timestamp(b):
            return Duration(_time("-", lambda x, y: x - y, a, b))
        case Timestamp(a), Duration(b):
            return Timestamp(_time("-", lambda x, y: x - y, a, b))
        case Duration(a), Duration(b):
            return Duration(_time("-", lambda x, y: x - y, a, b))
    raise _unsupported("-", left, right)


def mul(left: Value, right: Value) -> Value:
    match left, right:
        case Int(a), Int(b):
            return _int("*", a * b, a, b)
        case UInt(a), UInt(b):
            return _uint("*", a * b, a, b)
        case Float(a), Float(b):
            return Float(a * b)
        case (Int(a) | UInt(a)), Float(b):
            return Float(a * b)
        case Float(a), (Int(b) | UInt(b)):
            return Float(a * b)
    raise _unsupported("*", left, right)


def div(left: Value, right: Value) -> Value:
    match left, right:
        case Int(a), Int(b):
            if b == 0:
                raise DivisionByZero("/", a)
            return _int("/", _trunc_div(a, b), a, b)
        case UInt(a), UInt(b):
            if b == 0:
                raise DivisionByZero("/", a)
            return UInt(a // b)
        case Float(a), Float(b):
            return Float(_float_div(a, b))
        case (Int(a) | UInt(a)), Float(b):
            return Float(_float_div(float(a), b))
        case Float(a), (Int(b) | UInt(b)):
            return Float(_float_div(a, float(b)))
    raise _unsupported("/", left, right)


def mod(left: Value, right: Value) -> Value:
    match left, right:
        case Int(a), Int(b):
            if b == 0:
                raise DivisionByZero("%", a)
            q = _int("%", _trunc_div(a, b), a, b)
            return Int(a - b * q.value)
        case UInt(a), UInt(b):
            if b == 0:
                raise DivisionByZero("%", a)
            return UInt(a % b)
    raise _unsupported("%", left, right)


def neg(value: Value) -> Value:
    match value:
        case Int(a):
            return _int("-", -a, a)
        case Float(a):
            return Float(-a)
        case Duration(a):
            return Duration(_time("-", lambda x, _: -x, a, None))
    raise _unsupported("-", value)


def logical_not(value: Value) -> Value:
    match value:
        case Bool(b):
            return Bool(not b)
    raise _unsupported("!", value)


BINARY_OPERATORS = {
    "+": add,
    "-": sub,
    "*": mul,
    "/": div,
    "%": mod,
}


# =================================================================
# Containers
# =================================================================

def size(value: Value) -> int:
    """Length of a container; Strings count Unicode code points."""
    match value:
        case String(s):
            return len(s)
        case Bytes(b):
            return len(b)
        case List(items):
            return len(items)
        case Map(entries):
            return len(entries)
    raise _unsupported("size", value)


def contains(container: Value, item: Value) -> bool:
    """The `in` operator: list membership or map key presence."""
    match container:
        case List(items):
            return any(equals(item, x) for x in items)
        case Map(entries):
            return isinstance(item, KEY_TYPES) and item in entries
    raise _unsupported("in", item, container)


def _position(index: Value, length: int):
    match index:
        case Int(i) | UInt(i):
            if not 0 <= i < length:
                raise IndexOutOfRange(i, length)
            return i
    return None


def index(container: Value, key: Value) -> Value:
    match container:
        case List(items):
            i = _position(key, len(items))
            if i is not None:
                return items[i]
        case String(s):
            i = _position(key, len(s))
            if i is not None:
                return String(s[i])
        case Map(entries):
            check_key(key)
            try:
                return entries[key]
            except KeyError:
                raise NoSuchKey(key) from None
    raise _unsupported("[]", container, key)


def member(target: Value, field: str) -> Value:
    match target:
        case Map(entries):
            try:
                return entries[String(field)]
            except KeyError:
                raise NoSuchKey(field) from None
    raise _unsupported(f".{field}", target)


def has_field(target: Value, field: str) -> bool:
    match target:
        case Map(entries):
            return String(field) in entries
    return False


def has_index(target: Value, key: Value) -> bool:
    match target:
        case List(items) | String(items):
            match key:
                case Int(i) | UInt(i):
                    return 0 <= i < len(items)
            return False
        case Map(entries):
            return isinstance(key, KEY_TYPES) and key in entries
    return False


# =================================================================
# Conversion to and from Python
# =================================================================

def to_value(obj: Any) -> Value:
    """Converts a plain Python object into a Value."""
    match obj:
        case Value():
            return obj
        case None:
            return NULL
        case bool():
            return Bool(obj)
        case int():
            if not INT64_MIN <= obj <= INT64_MAX:
                raise Overflow("int", obj)
            return Int(obj)
        case float():
            return Float(obj)
        case str():
            return String(obj)
        case bytes() | bytearray() | memoryview():
            return Bytes(bytes(obj))
        case datetime():
            if obj.tzinfo is None:
                obj = obj.replace(tzinfo=timezone.utc)
            return Timestamp(obj)
        case timedelta():
            return Duration(obj)
        case re.Pattern():
            return Regex(obj)
        case collections.abc.Mapping():
            return make_map((to_value(k), to_value(v)) for k, v in obj.items())
        case list() | tuple():
            return List(tuple(to_value(x) for x in obj))
    raise TypeMismatch("a convertible value", type(obj).__name__)


def to_python(value: Value) -> Any:
    """Converts a Value into the closest plain Python object."""
    match value:
        case Null():
            return None
        case Bool(v) | Int(v) | UInt(v) | Float(v) | String(v) | Bytes(v):
            return v
        case Timestamp(v) | Duration(v) | Regex(v):
            return v
        case List(items):
            return [to_python(x) for x in items]
        case Map(entries):
            return {to_python(k): to_python(v) for k, v in entries.items()}
    return value
