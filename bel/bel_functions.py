"""
Binding layer between native Python callables and the evaluator.

A `NativeFunction` wraps any Python callable. Its signature and type hints
are read once, at registration, and turned into one converter per
parameter; at call time the evaluated argument Values are checked and
converted, the callable is invoked, and its return value is converted back
into a Value. Whatever the callable raises surfaces as an ExecutionError.

Parameter annotations map to Values as follows:

    bool -> Bool            int -> Int or UInt         float -> Float
    str -> String           bytes -> Bytes             None -> Null
    datetime -> Timestamp   timedelta -> Duration      re.Pattern -> Regex
    list[X] / Sequence[X] / tuple -> List (items converted as X)
    dict[K, V] / Mapping[K, V]    -> Map
    a Value subclass        -> that variant, passed through unconverted
    Optional[...] / Union[...]    -> each member tried in order
    Any or no annotation    -> any Value, converted with `to_python`

A `*args` parameter makes the function variadic. A keyword-only parameter
named `ftx` receives the FunctionContext of the call.
"""

import collections.abc
import inspect
import logging
import re
import types
import typing
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

from bel.bel_errors import (
    ArityMismatch, ExecutionError, FunctionError, NoSuchOverload, Overflow, TypeMismatch,
)
from bel.bel_values import (
    Bool, Bytes, Duration, Float, FunctionRef, Int, List as ListValue, Map, Null,
    Regex, String, Timestamp, UInt, Value, to_python, to_value,
)

if TYPE_CHECKING:
    from bel.bel_interpreter import Evaluator

log = logging.getLogger(__name__)

_REJECT = object()


class _Param:
    """Converts a Value to one native parameter type, or returns _REJECT."""

    def __init__(self, expected: str, convert: Callable[[Value], Any]):
        self.expected = expected
        self.convert = convert


def _unwrap(expected: str, *variants) -> _Param:
    def convert(value):
        if isinstance(value, variants):
            return value.value
        return _REJECT
    return _Param(expected, convert)


def _sequence_param(annotation, origin) -> _Param:
    args = typing.get_args(annotation)
    item = converter_for(args[0] if args else Any)
    as_tuple = (origin or annotation) is tuple

    def convert(value):
        if not isinstance(value, ListValue):
            return _REJECT
        out = []
        for x in value.items:
            converted = item.convert(x)
            if converted is _REJECT:
                return _REJECT
            out.append(converted)
        return tuple(out) if as_tuple else out
    return _Param("list", convert)


def _mapping_param(annotation) -> _Param:
    args = typing.get_args(annotation)
    key = converter_for(args[0] if args else Any)
    val = converter_for(args[1] if len(args) > 1 else Any)

    def convert(value):
        if not isinstance(value, Map):
            return _REJECT
        out = {}
        for k, v in value.entries.items():
            ck, cv = key.convert(k), val.convert(v)
            if ck is _REJECT or cv is _REJECT:
                return _REJECT
            out[ck] = cv
        return out
    return _Param("map", convert)


def converter_for(annotation) -> _Param:
    """Builds the converter for one parameter annotation."""
    if annotation is inspect.Parameter.empty or annotation is Any:
        return _Param("any", to_python)

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [converter_for(a) for a in typing.get_args(annotation)]

        def convert(value):
            for m in members:
                result = m.convert(value)
                if result is not _REJECT:
                    return result
            return _REJECT
        return _Param(" or ".join(m.expected for m in members), convert)

    if annotation is None or annotation is type(None):
        return _Param("null", lambda v: None if isinstance(v, Null) else _REJECT)
    if isinstance(annotation, type) and issubclass(annotation, Value):
        return _Param(annotation.type_name, lambda v: v if isinstance(v, annotation) else _REJECT)
    if annotation is bool:
        return _unwrap("bool", Bool)
    if annotation is int:
        return _unwrap("int", Int, UInt)
    if annotation is float:
        return _unwrap("float", Float)
    if annotation is str:
        return _unwrap("string", String)
    if annotation is bytes:
        return _unwrap("bytes", Bytes)
    if annotation is datetime:
        return _unwrap("timestamp", Timestamp)
    if annotation is timedelta:
        return _unwrap("duration", Duration)
    if annotation is re.Pattern or origin is re.Pattern:
        return _unwrap("regex", Regex)
    if annotation in (list, tuple) or origin in (list, tuple, collections.abc.Sequence):
        return _sequence_param(annotation, origin)
    if annotation is dict or origin in (dict, collections.abc.Mapping):
        return _mapping_param(annotation)
    raise TypeError(f"Unsupported parameter annotation: {annotation!r}")


@dataclass
class FunctionContext:
    """Passed to native functions that declare a keyword-only `ftx` parameter."""
    name: str
    call_site: Optional[int]
    evaluator: "Evaluator"

    @property
    def context(self):
        return self.evaluator.context

    def error(self, message: str, payload: Any = None) -> FunctionError:
        """Builds (does not raise) a FunctionError for the current function."""
        return FunctionError(self.name, message, payload)

    def resolve(self, name: str) -> Value:
        """Looks up a variable visible at the call site, comprehension variables included."""
        return self.evaluator.resolve(name)

    def call(self, function, *args) -> Value:
        """Calls a registered function by name or FunctionRef."""
        name = function.name if isinstance(function, FunctionRef) else function
        return self.evaluator.call_function(name, [to_value(a) for a in args], self.call_site)


class NativeFunction:
    """A native callable with its argument converters resolved."""

    def __init__(self, fn: Callable, name: Optional[str] = None):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "<native>")
        self.params: List[_Param] = []
        self.required = 0
        self.variadic: Optional[_Param] = None
        self.wants_context = False

        try:
            sig = inspect.signature(fn)
        except (TypeError, ValueError):
            # Some builtins expose no signature; accept anything.
            self.variadic = converter_for(Any)
            return
        try:
            hints = typing.get_type_hints(fn)
        except (NameError, TypeError):
            hints = {}

        for p in sig.parameters.values():
            annotation = hints.get(p.name, p.annotation)
            match p.kind:
                case inspect.Parameter.POSITIONAL_ONLY | inspect.Parameter.POSITIONAL_OR_KEYWORD:
                    self.params.append(converter_for(annotation))
                    if p.default is inspect.Parameter.empty:
                        self.required = len(self.params)
                case inspect.Parameter.VAR_POSITIONAL:
                    self.variadic = converter_for(annotation)
                case inspect.Parameter.KEYWORD_ONLY:
                    if p.name == "ftx":
                        self.wants_context = True
                    elif p.default is inspect.Parameter.empty:
                        raise TypeError(f"{self.name}: keyword-only parameter '{p.name}' needs a default")

    def __repr__(self):
        return f"<NativeFunction {self.name}/{self.arity}>"

    @property
    def arity(self) -> str:
        if self.variadic is not None:
            return f"at least {self.required}"
        if self.required == len(self.params):
            return str(self.required)
        return f"{self.required} to {len(self.params)}"

    def bind(self, args: Sequence[Value]) -> list:
        """Checks and converts `args`; raises ArityMismatch or TypeMismatch."""
        n = len(args)
        if n < self.required or (self.variadic is None and n > len(self.params)):
            raise ArityMismatch(self.name, self.arity, n)
        converted = []
        for position, value in enumerate(args):
            param = self.params[position] if position < len(self.params) else self.variadic
            result = param.convert(value)
            if result is _REJECT:
                raise TypeMismatch(param.expected, value.type_name, position + 1, self.name)
            converted.append(result)
        return converted

    def invoke(self, converted: list, ftx: Optional[FunctionContext] = None) -> Value:
        kwargs = {"ftx": ftx} if self.wants_context else {}
        try:
            result = self.fn(*converted, **kwargs)
        except ExecutionError:
            raise
        except Exception as exc:
            log.debug("native function %r raised %r", self.name, exc)
            raise FunctionError(self.name, str(exc) or type(exc).__name__, payload=exc) from exc
        try:
            return to_value(result)
        except Overflow:
            raise
        except ExecutionError as exc:
            raise FunctionError(self.name, f"cannot convert return value: {exc}", payload=result) from exc


class Overloads:
    """The native implementations registered under one name, in order."""

    def __init__(self, name: str):
        self.name = name
        self.functions: List[NativeFunction] = []

    def __len__(self):
        return len(self.functions)

    def add(self, fn: NativeFunction):
        self.functions.append(fn)

    def call(self, args: Sequence[Value], ftx: Optional[FunctionContext] = None,
             call_site: Optional[int] = None) -> Value:
        """Invokes the first overload whose parameters accept `args`."""
        if len(self.functions) == 1:
            fn = self.functions[0]
            return fn.invoke(fn.bind(args), ftx)
        for fn in self.functions:
            try:
                converted = fn.bind(args)
            except (ArityMismatch, TypeMismatch):
                continue
            return fn.invoke(converted, ftx)
        raise NoSuchOverload(self.name, [a.type_name for a in args], call_site)
