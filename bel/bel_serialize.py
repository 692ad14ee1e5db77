"""
Projection of Values to and from JSON-, YAML-, TOML- and XML-shaped data.

`to_json` is total over every Value except function references; the text
renderings are deterministic (map keys sorted) so the same Value always
serializes to the same document.
"""

from __future__ import annotations

import base64
import json
import math
from typing import Any, Optional

import toml
import xmltodict
import yaml

from bel.bel_errors import SerializationError
from bel.bel_time import format_duration, format_timestamp
from bel.bel_values import (
    INT64_MAX, INT64_MIN, NULL, UINT64_MAX,
    Bool, Bytes, Duration, Float, FunctionRef, Int, List, Map, Null, Regex,
    String, Timestamp, UInt, Value, make_map,
)


def _key_text(key: Value) -> str:
    match key:
        case String(s):
            return s
        case Bool(b):
            return "true" if b else "false"
        case Int(n) | UInt(n):
            return str(n)
    raise SerializationError(f"cannot use {key.type_name} as an object key")


def _float(f: float):
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "Infinity" if f > 0 else "-Infinity"
    return f


def _object(entries) -> dict:
    obj = {}
    for key, value in entries.items():
        text = _key_text(key)
        if text in obj:
            raise SerializationError(f"map keys collide as object key '{text}'")
        obj[text] = to_json(value)
    return obj


def to_json(value: Value) -> Any:
    """Projects a Value onto plain JSON data (dict/list/str/int/float/bool/None)."""
    match value:
        case Null():
            return None
        case Bool(b):
            return b
        case Int(n) | UInt(n):
            return n
        case Float(f):
            return _float(f)
        case String(s):
            return s
        case Bytes(b):
            return base64.b64encode(b).decode("ascii")
        case List(items):
            return [to_json(x) for x in items]
        case Map(entries):
            return _object(entries)
        case Timestamp(t):
            return format_timestamp(t)
        case Duration(d):
            return format_duration(d)
        case Regex(r):
            return r.pattern
        case FunctionRef(name):
            raise SerializationError(f"function reference '{name}' has no JSON representation")
    raise SerializationError(f"cannot serialize {type(value).__name__}")


def from_json(data: Any) -> Value:
    """Maps JSON data back to a Value. Integers beyond int64 become UInt."""
    match data:
        case None:
            return NULL
        case bool():
            return Bool(data)
        case int():
            if INT64_MIN <= data <= INT64_MAX:
                return Int(data)
            if 0 <= data <= UINT64_MAX:
                return UInt(data)
            raise SerializationError(f"integer {data} is out of range")
        case float():
            return Float(data)
        case str():
            return String(data)
        case list() | tuple():
            return List(tuple(from_json(x) for x in data))
        case dict():
            return make_map((String(str(k)), from_json(v)) for k, v in data.items())
    raise SerializationError(f"cannot map {type(data).__name__} to a value")


def serialize(value: Value, *, fmt: str = "json", pretty: bool = True, xml_root: str = "root") -> str:
    """
    Render a Value as text.
    - fmt: 'json' | 'yaml' | 'toml' | 'xml'
    - For TOML and XML a non-map value is wrapped under {xml_root: value}.
    """
    f = (fmt or "").lower()
    built = to_json(value)
    if f == "json":
        return json.dumps(built, ensure_ascii=False, sort_keys=True,
                          indent=2 if pretty else None,
                          separators=None if pretty else (",", ":"))
    if f == "yaml":
        return yaml.safe_dump(built, sort_keys=True, allow_unicode=True,
                              default_flow_style=not pretty)
    if f in ("toml", "xml"):
        root = built if isinstance(built, dict) else {xml_root: built}
        if f == "toml":
            return toml.dumps(root)
        return xmltodict.unparse(root if len(root) == 1 else {xml_root: root}, pretty=pretty)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(text: str | bytes, *, fmt: Optional[str] = None) -> Value:
    """Parse text into a Value. JSON is assumed unless fmt says otherwise."""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8", errors="replace")
    f = (fmt or "json").lower()
    if f == "json":
        data = json.loads(text)
    elif f == "yaml":
        data = yaml.safe_load(text)
    elif f == "toml":
        data = toml.loads(text)
    elif f == "xml":
        data = xmltodict.parse(text)
    else:
        raise ValueError(f"Unsupported serialization format: {fmt!r}")
    return from_json(_to_builtin(data))


def _to_builtin(obj: Any) -> Any:
    # xmltodict returns nested mapping types; TOML/YAML may return dates.
    if isinstance(obj, list):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_builtin(v) for k, v in obj.items()}
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return obj


__all__ = [
    "to_json",
    "from_json",
    "serialize",
    "deserialize",
]
