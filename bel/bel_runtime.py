"""
Compiling and executing BEL programs.

    program = Program.compile("add(40, 2) == 42")
    program.execute(context)          # -> Bool(True), or raises ExecutionError

`Runner` wraps the same steps for interactive use: it never raises and
reports the outcome as an ExecutionResult instead.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping, Optional

from bel.bel_ast import Expr, ExpressionReferences, references, walk
from bel.bel_config import DEFAULT_CONFIG, EngineConfig
from bel.bel_context import Context
from bel.bel_errors import (
    BelError, CompileError, EvaluationDepthExceeded, ExecutionError, source_context,
)
from bel.bel_interpreter import Evaluator
from bel.bel_lexer import Span, line_col
from bel.bel_parser import Parser
from bel.bel_values import Value

log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Program:
    """An immutable compiled expression, reusable across executions and threads."""
    source: str
    root: Expr
    nodes: Mapping[int, Expr] = field(repr=False)
    config: EngineConfig = field(default=DEFAULT_CONFIG, repr=False)

    @classmethod
    def compile(cls, source: str, config: Optional[EngineConfig] = None) -> "Program":
        """Compiles `source`, raising CompileError with every ParseError found."""
        config = config or DEFAULT_CONFIG
        root, errors = Parser(source, config).parse()
        if errors:
            log.debug("compile failed with %d error(s)", len(errors))
            raise CompileError(errors, source)
        nodes = MappingProxyType({n.id: n for n in walk(root)})
        return cls(source, root, nodes, config)

    def execute(self, context: Optional[Context] = None) -> Value:
        """Evaluates the program; a None context means `Context.default()`."""
        if context is None:
            context = Context.default()
        evaluator = Evaluator(context, self.config)
        try:
            return evaluator.eval(self.root)
        except RecursionError:
            raise EvaluationDepthExceeded() from None

    def references(self) -> ExpressionReferences:
        return references(self.root)

    def node(self, expr_id: int) -> Expr:
        return self.nodes[expr_id]

    def span_of(self, expr_id: Optional[int]) -> Optional[Span]:
        node = self.nodes.get(expr_id) if expr_id is not None else None
        return node.span if node is not None else None


def compile(source: str, config: Optional[EngineConfig] = None) -> Program:
    return Program.compile(source, config)


def execute(program: Program, context: Optional[Context] = None) -> Value:
    return program.execute(context)


@dataclass
class ExecutionResult:
    """The structured outcome of compiling and executing one expression."""
    status: Literal['success', 'error']
    value: Optional[Value] = None
    error: Optional[BelError] = None
    error_message: Optional[str] = None
    error_span: Optional[Span] = None
    source: str = ""

    def format_error(self) -> str:
        """Formats the error with its line, column and a caret when known."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        # Compile errors already carry a caret per entry.
        if isinstance(self.error, CompileError) or self.error_span is None:
            return msg
        line, col = line_col(self.source, self.error_span.start)
        context = source_context(self.source, line, col)
        out = f"Error on line {line}, col {col}: {msg}"
        return f"{out}\n{context}" if context else out


class Runner:
    """Compiles and executes expressions against one Context.

    Compiled programs are cached by source text, bounded by
    `config.program_cache_size`.
    """

    def __init__(self, context: Optional[Context] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.from_env()
        self.context = context if context is not None else Context.default()
        self._cache: "OrderedDict[str, Program]" = OrderedDict()

    def compile(self, source: str) -> Program:
        program = self._cache.get(source)
        if program is not None:
            self._cache.move_to_end(source)
            return program
        program = Program.compile(source, self.config)
        self._cache[source] = program
        while len(self._cache) > self.config.program_cache_size:
            self._cache.popitem(last=False)
        return program

    def handle_expression(self, source: str) -> ExecutionResult:
        """The main entry point: never raises for compile or execution errors."""
        try:
            program = self.compile(source)
        except CompileError as e:
            first = e.errors[0].span if e.errors else None
            return ExecutionResult('error', error=e, error_message=str(e), error_span=first, source=source)
        try:
            value = program.execute(self.context)
        except ExecutionError as e:
            return ExecutionResult(
                'error',
                error=e,
                error_message=f"{type(e).__name__}: {e}",
                error_span=program.span_of(e.expr_id),
                source=source,
            )
        return ExecutionResult('success', value=value, source=source)
