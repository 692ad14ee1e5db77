"""
Error types for the BEL expression engine.

Two independent families are defined here: compile-time problems, which are
collected as `ParseError` records and raised together in a `CompileError`,
and runtime problems, which are raised as a single `ExecutionError`.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional


class BelError(Exception):
    """Base class for every error raised by the engine."""


def source_context(source: str, line: int, col: Optional[int], radius: int = 0) -> str:
    """Renders the lines around `line` with a caret under `col`."""
    lines = source.splitlines()
    if not line or line < 1 or line > len(lines):
        return ""
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    width = len(str(end))
    out = []
    for i in range(start, end + 1):
        prefix = ">" if i == line else " "
        ln = str(i).rjust(width)
        out.append(f"{prefix} {ln} | {lines[i - 1]}")
        if i == line and col is not None:
            caret = " " * max(col - 1, 0)
            out.append(f"  {' ' * width} | {caret}^")
    return "\n".join(out)


# =================================================================
# Compile-time errors
# =================================================================

@dataclass(frozen=True)
class ParseError:
    """A single lexical or syntactic problem, located by span and line/col."""
    message: str
    span: Any
    line: int = 0
    col: int = 0

    def __str__(self) -> str:
        return f"{self.message} (line {self.line}, col {self.col})"


class CompileError(BelError):
    """Raised when compilation accumulated one or more ParseErrors."""

    def __init__(self, errors: Iterable[ParseError], source: str = ""):
        self.errors: List[ParseError] = list(errors)
        self.source = source
        super().__init__(self.render())

    def render(self) -> str:
        out = []
        for err in self.errors:
            out.append(f"ParseError: {err}")
            context = source_context(self.source, err.line, err.col)
            if context:
                out.append(context)
        return "\n".join(out)


class ContextError(BelError):
    """Raised when a binding cannot be added to a Context."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Cannot bind '{name}': {reason}")
        self.name = name
        self.reason = reason


class SerializationError(BelError):
    """Raised when a value has no representation in the target format."""


# =================================================================
# Runtime errors
# =================================================================

class ExecutionError(BelError):
    """Base class for errors raised while evaluating a Program.

    `expr_id` is filled in by the evaluator with the id of the innermost
    expression node that failed.
    """
    kind = "execution-error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.expr_id: Optional[int] = None

    def __str__(self) -> str:
        return self.message


class UndeclaredReference(ExecutionError):
    kind = "undeclared-reference"

    def __init__(self, name: str):
        super().__init__(f"Undeclared reference to '{name}'")
        self.name = name


class TypeMismatch(ExecutionError):
    kind = "type-mismatch"

    def __init__(self, expected: str, got: str, position: Optional[int] = None,
                 function: Optional[str] = None):
        where = ""
        if position is not None:
            where = f" for argument {position}"
            if function:
                where += f" of '{function}'"
        super().__init__(f"Expected {expected}{where}, got {got}")
        self.expected = expected
        self.got = got
        self.position = position
        self.function = function


class ArityMismatch(ExecutionError):
    kind = "arity-mismatch"

    def __init__(self, function: str, expected: str, got: int):
        super().__init__(f"Function '{function}' expected {expected} arguments, got {got}")
        self.function = function
        self.expected = expected
        self.got = got


class NoSuchOverload(ExecutionError):
    kind = "no-such-overload"

    def __init__(self, function: str, arg_types: Iterable[str], call_site: Optional[int] = None):
        self.arg_types = tuple(arg_types)
        signature = f"{function}({', '.join(self.arg_types)})"
        site = f" at expression #{call_site}" if call_site is not None else ""
        super().__init__(f"No such overload for '{signature}'{site}")
        self.function = function
        self.call_site = call_site


class DivisionByZero(ExecutionError):
    kind = "division-by-zero"

    def __init__(self, op: str, value: Any):
        verb = "Remainder" if op == "%" else "Division"
        super().__init__(f"{verb} by zero of {value}")
        self.op = op
        self.value = value


class Overflow(ExecutionError):
    kind = "overflow"

    def __init__(self, op: str, *operands: Any):
        self.op = op
        self.operands = operands
        shown = " ".join(repr(o) for o in operands)
        super().__init__(f"Overflow from operator '{op}': {shown}")


class IndexOutOfRange(ExecutionError):
    kind = "index-out-of-range"

    def __init__(self, index: int, size: int):
        super().__init__(f"Index {index} out of range for size {size}")
        self.index = index
        self.size = size


class NoSuchKey(ExecutionError):
    kind = "no-such-key"

    def __init__(self, key: Any):
        super().__init__(f"No such key: {key}")
        self.key = key


class UnsupportedOperation(ExecutionError):
    kind = "unsupported-operation"

    def __init__(self, op: str, *type_names: str):
        super().__init__(f"Unsupported operator '{op}' for {', '.join(type_names)}")
        self.op = op
        self.type_names = type_names


class ValuesNotComparable(ExecutionError):
    kind = "values-not-comparable"

    def __init__(self, left: Any, right: Any):
        super().__init__(f"Values not comparable: {left} and {right}")
        self.left = left
        self.right = right


class UnsupportedKeyType(ExecutionError):
    kind = "unsupported-key-type"

    def __init__(self, type_name: str):
        super().__init__(f"Unsupported key type: {type_name}")
        self.type_name = type_name


class FunctionError(ExecutionError):
    """A failure signalled by a native function, with its original payload."""
    kind = "function-error"

    def __init__(self, function: str, message: str, payload: Any = None):
        super().__init__(f"Error executing function '{function}': {message}")
        self.function = function
        self.detail = message
        self.payload = payload


class EvaluationDepthExceeded(ExecutionError):
    kind = "evaluation-depth-exceeded"

    def __init__(self):
        super().__init__("Evaluation exceeded the maximum recursion depth")
