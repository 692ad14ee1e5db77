"""
BEL: a small, non-Turing-complete expression language.

    >>> from bel import Context, Program
    >>> ctx = Context.default()
    >>> ctx.add_variable("name", "world")
    >>> Program.compile('"hello " + name').execute(ctx)
    String(value='hello world')
"""

from bel.bel_config import EngineConfig, load_config
from bel.bel_context import Context
from bel.bel_errors import (
    ArityMismatch, BelError, CompileError, ContextError, DivisionByZero,
    EvaluationDepthExceeded, ExecutionError, FunctionError, IndexOutOfRange,
    NoSuchKey, NoSuchOverload, Overflow, ParseError, SerializationError,
    TypeMismatch, UndeclaredReference, UnsupportedKeyType, UnsupportedOperation,
    ValuesNotComparable,
)
from bel.bel_functions import FunctionContext, NativeFunction
from bel.bel_printer import Printer
from bel.bel_runtime import ExecutionResult, Program, Runner, compile, execute
from bel.bel_serialize import deserialize, from_json, serialize, to_json
from bel.bel_values import (
    Bool, Bytes, Duration, Float, FunctionRef, Int, List, Map, NULL, Null,
    Regex, String, Timestamp, UInt, Value, to_python, to_value,
)

__all__ = [
    "ArityMismatch", "BelError", "Bool", "Bytes", "CompileError", "Context",
    "ContextError", "DivisionByZero", "Duration", "EngineConfig",
    "EvaluationDepthExceeded", "ExecutionError", "ExecutionResult", "Float",
    "FunctionContext", "FunctionError", "FunctionRef", "IndexOutOfRange", "Int",
    "List", "Map", "NULL", "NativeFunction", "NoSuchKey", "NoSuchOverload",
    "Null", "Overflow", "ParseError", "Printer", "Program", "Regex", "Runner",
    "SerializationError", "String", "Timestamp", "TypeMismatch", "UInt",
    "UndeclaredReference", "UnsupportedKeyType", "UnsupportedOperation",
    "Value", "ValuesNotComparable", "compile", "deserialize", "execute",
    "from_json", "load_config", "serialize", "to_json", "to_python", "to_value",
]
