"""
A pretty-printer for BEL values and expression trees.
"""

import math

from bel.bel_ast import (
    Binary, Call, Expr, Ident, Index, Invoke, ListExpr, Literal, LocalRef,
    Macro, MapExpr, Select, Ternary, Unary,
)
from bel.bel_time import format_duration, format_timestamp
from bel.bel_values import (
    Bool, Bytes, Duration, Float, FunctionRef, Int, List, Map, Null, Regex,
    String, Timestamp, UInt,
)

_BINARY_PRECEDENCE = {
    "||": 1,
    "&&": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3, "in": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5, "%": 5,
}
_UNARY = 6
_PRIMARY = 8

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _quote(text: str) -> str:
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif not ch.isprintable():
            code = ord(ch)
            out.append(f"\\x{code:02x}" if code < 0x100 else f"\\u{code:04x}" if code < 0x10000 else f"\\U{code:08x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _quote_bytes(data: bytes) -> str:
    out = []
    for b in data:
        ch = chr(b)
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif 0x20 <= b < 0x7F:
            out.append(ch)
        else:
            out.append(f"\\x{b:02x}")
    return 'b"' + "".join(out) + '"'


class Printer:
    """Formats values and expression trees as valid BEL source."""

    def __init__(self, indent_width=2, width=80):
        self._indent_char = " " * indent_width
        self._width = width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            return repr(obj)
        return handler(obj, level)

    def _create_handlers(self):
        return {
            Null: lambda o, l: "null",
            Bool: lambda o, l: "true" if o.value else "false",
            Int: lambda o, l: str(o.value),
            UInt: lambda o, l: f"{o.value}u",
            Float: self._pformat_float,
            String: lambda o, l: _quote(o.value),
            Bytes: lambda o, l: _quote_bytes(o.value),
            List: self._pformat_list,
            Map: self._pformat_map,
            Timestamp: lambda o, l: f"timestamp({_quote(format_timestamp(o.value))})",
            Duration: lambda o, l: f"duration({_quote(format_duration(o.value))})",
            Regex: lambda o, l: f"Regex({_quote(o.value.pattern)})",
            FunctionRef: lambda o, l: o.name,
            Literal: lambda o, l: self.pformat(o.value, l),
            Ident: lambda o, l: o.name,
            LocalRef: lambda o, l: o.name,
            Unary: self._pformat_unary,
            Binary: self._pformat_binary,
            Ternary: self._pformat_ternary,
            ListExpr: lambda o, l: f"[{', '.join(self.pformat(i, l) for i in o.items)}]",
            MapExpr: self._pformat_map_expr,
            Select: lambda o, l: f"{self._operand(o.operand, l)}.{o.field}",
            Index: lambda o, l: f"{self._operand(o.operand, l)}[{self.pformat(o.index, l)}]",
            Call: self._pformat_call,
            Invoke: lambda o, l: f"{self._operand(o.callee, l)}({self._args(o.args, l)})",
            Macro: self._pformat_macro,
        }

    # -- values ---------------------------------------------------------

    def _pformat_float(self, obj, level):
        f = obj.value
        if math.isnan(f):
            return 'double("NaN")'
        if math.isinf(f):
            return 'double("Infinity")' if f > 0 else 'double("-Infinity")'
        return repr(f)

    def _pformat_block(self, parts, level, open_char, close_char):
        one_line = f"{open_char}{', '.join(parts)}{close_char}"
        if len(one_line) + len(self._indent_char) * level <= self._width and "\n" not in one_line:
            return one_line
        inner = self._indent_char * (level + 1)
        lines = [f"{inner}{p}," for p in parts]
        return f"{open_char}\n" + "\n".join(lines) + f"\n{self._indent_char * level}{close_char}"

    def _pformat_list(self, obj, level):
        return self._pformat_block([self.pformat(x, level + 1) for x in obj.items], level, "[", "]")

    def _pformat_map(self, obj, level):
        parts = [f"{self.pformat(k, level + 1)}: {self.pformat(v, level + 1)}" for k, v in obj.entries.items()]
        return self._pformat_block(parts, level, "{", "}")

    # -- expressions ----------------------------------------------------

    @staticmethod
    def _precedence(node: Expr) -> int:
        match node:
            case Ternary():
                return 0
            case Binary(op=op):
                return _BINARY_PRECEDENCE[op]
            case Unary():
                return _UNARY
            case Literal(value=Int(n) | Float(n)) if n < 0:
                return _UNARY
        return _PRIMARY

    def _wrap(self, node, level, minimum):
        text = self.pformat(node, level)
        return f"({text})" if self._precedence(node) < minimum else text

    def _operand(self, node, level):
        return self._wrap(node, level, _PRIMARY)

    def _args(self, args, level):
        return ", ".join(self.pformat(a, level) for a in args)

    def _pformat_unary(self, obj, level):
        operand = self._wrap(obj.operand, level, _UNARY)
        # keep -(-x) from printing as --x
        if obj.op == "-" and operand.startswith("-"):
            operand = f"({operand})"
        return f"{obj.op}{operand}"

    def _pformat_binary(self, obj, level):
        p = _BINARY_PRECEDENCE[obj.op]
        left = self._wrap(obj.left, level, p)
        right = self._wrap(obj.right, level, p + 1)
        return f"{left} {obj.op} {right}"

    def _pformat_ternary(self, obj, level):
        cond = self._wrap(obj.cond, level, 1)
        return f"{cond} ? {self.pformat(obj.if_true, level)} : {self.pformat(obj.if_false, level)}"

    def _pformat_map_expr(self, obj, level):
        entries = ", ".join(f"{self.pformat(k, level)}: {self.pformat(v, level)}" for k, v in obj.entries)
        return f"{{{entries}}}"

    def _pformat_call(self, obj, level):
        if obj.target is None:
            return f"{obj.function}({self._args(obj.args, level)})"
        return f"{self._operand(obj.target, level)}.{obj.function}({self._args(obj.args, level)})"

    def _pformat_macro(self, obj, level):
        if obj.target is None:
            return f"{obj.name}({self._args(obj.args, level)})"
        parts = list(obj.variables) + [self.pformat(a, level) for a in obj.args]
        return f"{self._operand(obj.target, level)}.{obj.name}({', '.join(parts)})"
