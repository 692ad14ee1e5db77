"""
Built-in functions registered by `Context.default()`.

Every builtin is an ordinary annotated Python function bound through the
same NativeFunction adapter a host would use, so argument checking and
error reporting behave exactly as for host functions. Functions may be
called globally (`size(x)`) or as methods (`x.size()`).
"""

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Union

from bel.bel_errors import Overflow
from bel.bel_functions import FunctionContext
from bel.bel_time import format_duration, format_timestamp, parse_duration, parse_timestamp
from bel.bel_values import (
    INT64_MAX, INT64_MIN, NULL, UINT64_MAX,
    Bool, Bytes, Duration, Float, Int, List, Map, Regex, String, Timestamp, UInt, Value,
    check_key, compare, equals, size,
)

_INT_TEXT = re.compile(r"[+-]?[0-9]+")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =================================================================
# Containers and strings
# =================================================================

def length(value: Union[String, Bytes, List, Map]) -> int:
    """Size of a string (in code points), bytes, list or map."""
    return size(value)


def contains(container: Value, item: Value) -> bool:
    """Substring for strings and bytes, membership for lists, key presence for maps."""
    match container, item:
        case List(items), _:
            return any(equals(item, x) for x in items)
        case Map(entries), _:
            return check_key(item) in entries
        case String(s), String(sub):
            return sub in s
        case Bytes(b), Bytes(sub):
            return sub in b
    return False


def starts_with(text: str, prefix: str) -> bool:
    return text.startswith(prefix)


def ends_with(text: str, suffix: str) -> bool:
    return text.endswith(suffix)


def matches(text: str, pattern: Union[re.Pattern, str]) -> bool:
    """True when the regular expression matches anywhere in `text`."""
    return re.search(pattern, text) is not None


def _extreme(args, keep_current) -> Value:
    items = args
    if len(args) == 1:
        match args[0]:
            case List(values):
                items = values
            case single:
                return single
    if not items:
        return NULL
    best = items[0]
    for x in items[1:]:
        if not keep_current(compare(best, x)):
            best = x
    return best


def max_(*args: Value) -> Value:
    """Largest of the arguments, or of a single list argument; null when empty."""
    return _extreme(args, lambda order: order > 0)


def min_(*args: Value) -> Value:
    """Smallest of the arguments, or of a single list argument; null when empty."""
    return _extreme(args, lambda order: order < 0)


# =================================================================
# Conversions
# =================================================================

def to_string(value: Value, *, ftx: FunctionContext) -> str:
    match value:
        case String(s):
            return s
        case Bool(b):
            return "true" if b else "false"
        case Int(n) | UInt(n):
            return str(n)
        case Float(f):
            return repr(f)
        case Bytes(b):
            return b.decode("utf-8", errors="replace")
        case Timestamp(t):
            return format_timestamp(t)
        case Duration(d):
            return format_duration(d)
        case Regex(r):
            return r.pattern
    raise ftx.error(f"cannot convert {value.type_name} to string")


def to_bytes(value: Union[Bytes, String]) -> bytes:
    match value:
        case Bytes(b):
            return b
        case String(s):
            return s.encode("utf-8")


def to_float(value: Union[Float, Int, UInt, String], *, ftx: FunctionContext) -> float:
    match value:
        case Float(f):
            return f
        case Int(n) | UInt(n):
            return float(n)
        case String(s):
            try:
                return float(s)
            except ValueError:
                raise ftx.error(f"string parse error: invalid float literal {s!r}") from None


def _truncate(f: float, ftx: FunctionContext) -> int:
    if math.isnan(f) or math.isinf(f):
        raise ftx.error(f"cannot convert {f!r} to an integer")
    return math.trunc(f)


def _parse_int_text(text: str, ftx: FunctionContext) -> int:
    if not _INT_TEXT.fullmatch(text):
        raise ftx.error(f"string parse error: invalid integer literal {text!r}")
    return int(text)


def _whole_number(value: Value, low: int, high: int, ftx: FunctionContext) -> int:
    match value:
        case Int(n) | UInt(n):
            pass
        case Float(f):
            n = _truncate(f, ftx)
        case String(s):
            n = _parse_int_text(s, ftx)
    if not low <= n <= high:
        raise ftx.error("integer overflow")
    return n


def to_int(value: Union[Int, UInt, Float, String], *, ftx: FunctionContext) -> Int:
    return Int(_whole_number(value, INT64_MIN, INT64_MAX, ftx))


def to_uint(value: Union[UInt, Int, Float, String], *, ftx: FunctionContext) -> UInt:
    return UInt(_whole_number(value, 0, UINT64_MAX, ftx))


def to_regex(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def to_duration(value: Union[Duration, String]) -> timedelta:
    match value:
        case Duration(d):
            return d
        case String(s):
            return parse_duration(s)


def to_timestamp(value: Union[Timestamp, String, Int]) -> datetime:
    match value:
        case Timestamp(t):
            return t
        case String(s):
            return parse_timestamp(s)
        case Int(secs):
            try:
                return _EPOCH + timedelta(seconds=secs)
            except OverflowError:
                raise Overflow("timestamp", value) from None


# =================================================================
# Timestamps
# =================================================================

def year(t: datetime) -> int:
    return t.year


def month(t: datetime) -> int:
    """Zero-based month (January is 0)."""
    return t.month - 1


def day_of_year(t: datetime) -> int:
    """Zero-based day of the year."""
    return t.timetuple().tm_yday - 1


def day_of_month(t: datetime) -> int:
    """Zero-based day of the month."""
    return t.day - 1


def date(t: datetime) -> int:
    """One-based day of the month."""
    return t.day


def day_of_week(t: datetime) -> int:
    """Day of the week with Sunday as 0."""
    return t.isoweekday() % 7


def hours(t: datetime) -> int:
    return t.hour


def minutes(t: datetime) -> int:
    return t.minute


def seconds(t: datetime) -> int:
    return t.second


def milliseconds(t: datetime) -> int:
    return t.microsecond // 1000


def unix(t: datetime) -> int:
    """Whole seconds since the Unix epoch, rounded towards negative infinity."""
    return (t - _EPOCH) // timedelta(seconds=1)


def now() -> datetime:
    return datetime.now(timezone.utc)


STDLIB = [
    ("size", length),
    ("length", length),
    ("contains", contains),
    ("starts_with", starts_with),
    ("startsWith", starts_with),
    ("ends_with", ends_with),
    ("endsWith", ends_with),
    ("matches", matches),
    ("max", max_),
    ("min", min_),
    ("String", to_string),
    ("string", to_string),
    ("Bytes", to_bytes),
    ("bytes", to_bytes),
    ("Float", to_float),
    ("double", to_float),
    ("Int", to_int),
    ("int", to_int),
    ("UInt", to_uint),
    ("uint", to_uint),
    ("Regex", to_regex),
    ("Duration", to_duration),
    ("duration", to_duration),
    ("Timestamp", to_timestamp),
    ("timestamp", to_timestamp),
    ("year", year),
    ("getFullYear", year),
    ("month", month),
    ("getMonth", month),
    ("getDayOfYear", day_of_year),
    ("getDayOfMonth", day_of_month),
    ("getDate", date),
    ("getDayOfWeek", day_of_week),
    ("getHours", hours),
    ("getMinutes", minutes),
    ("seconds", seconds),
    ("getSeconds", seconds),
    ("milliseconds", milliseconds),
    ("getMilliseconds", milliseconds),
    ("unix", unix),
    ("now", now),
]


def register_stdlib(context):
    for name, fn in STDLIB:
        context.add_function(name, fn)
