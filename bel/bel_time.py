"""
Text forms for Timestamp and Duration values.

Durations use the compact unit notation (`1h30m`, `1.5s`, `250ms`);
timestamps use RFC 3339. Both are held at microsecond precision, so finer
digits are truncated on parse.
"""

import re
from datetime import datetime, timedelta, timezone

_UNIT_NANOS = {
    "h": 3_600_000_000_000,
    "m": 60_000_000_000,
    "s": 1_000_000_000,
    "ms": 1_000_000,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ns": 1,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|m|s|us|µs|μs|ns)")

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def parse_duration(text: str) -> timedelta:
    """Parses a duration such as '1h30m', '-1.5s' or '100ns' (truncated to 0)."""
    s = text.strip()
    sign = 1
    if s[:1] in ("-", "+"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {text!r}")

    nanos = 0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {text!r}")
        number, unit = m.groups()
        whole, _, frac = number.partition(".")
        scale = _UNIT_NANOS[unit]
        nanos += int(whole or "0") * scale
        if frac:
            nanos += int(frac) * scale // (10 ** len(frac))
        pos = m.end()

    try:
        return sign * timedelta(microseconds=nanos // 1000)
    except OverflowError:
        raise ValueError(f"duration out of range: {text!r}") from None


def _trim_fraction(whole: int, frac: int, width: int) -> str:
    if not frac:
        return str(whole)
    return f"{whole}.{frac:0{width}d}".rstrip("0")


def format_duration(value: timedelta) -> str:
    """Formats a timedelta in the canonical form, e.g. '72h3m0.5s'."""
    total = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    us = abs(total)
    if us < 1_000:
        return f"{sign}{us}µs"
    if us < 1_000_000:
        return f"{sign}{_trim_fraction(us // 1_000, us % 1_000, 3)}ms"
    hours, rem = divmod(us, 3_600_000_000)
    minutes, rem = divmod(rem, 60_000_000)
    seconds, micros = divmod(rem, 1_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + _trim_fraction(seconds, micros, 6) + "s"


def parse_timestamp(text: str) -> datetime:
    """Parses an RFC 3339 timestamp, keeping its UTC offset."""
    m = _RFC3339.match(text.strip())
    if not m:
        raise ValueError(f"invalid timestamp {text!r}")
    date, clock, frac, offset = m.groups()
    frac = ((frac or "") + "000000")[:6]
    if offset in ("Z", "z"):
        offset = "+00:00"
    return datetime.fromisoformat(f"{date}T{clock}.{frac}{offset}")


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
