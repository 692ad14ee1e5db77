"""
Identified expression tree produced by the parser.

Every node carries an `id` that is unique within its Program and the source
`span` it was parsed from. Nodes are frozen; a Program owns its tree and
never shares sub-nodes with another tree.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterator, Optional, Tuple

from bel.bel_lexer import Span
from bel.bel_values import Value


@dataclass(frozen=True)
class Expr:
    id: int
    span: Span


@dataclass(frozen=True)
class Literal(Expr):
    value: Value


@dataclass(frozen=True)
class Ident(Expr):
    """A reference to a variable (or function) in the Context."""
    name: str


@dataclass(frozen=True)
class LocalRef(Expr):
    """A reference to a variable bound by an enclosing comprehension."""
    name: str


@dataclass(frozen=True)
class Unary(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Ternary(Expr):
    cond: Expr
    if_true: Expr
    if_false: Expr


@dataclass(frozen=True)
class ListExpr(Expr):
    items: Tuple[Expr, ...]


@dataclass(frozen=True)
class MapExpr(Expr):
    entries: Tuple[Tuple[Expr, Expr], ...]


@dataclass(frozen=True)
class Select(Expr):
    """Member access `operand.field`."""
    operand: Expr
    field: str


@dataclass(frozen=True)
class Index(Expr):
    operand: Expr
    index: Expr


@dataclass(frozen=True)
class Call(Expr):
    """`function(args)`, or `target.function(args)` when target is set."""
    function: str
    target: Optional[Expr]
    args: Tuple[Expr, ...]


@dataclass(frozen=True)
class Invoke(Expr):
    """Call of a computed function reference, e.g. `fns[0](x)`."""
    callee: Expr
    args: Tuple[Expr, ...]


@dataclass(frozen=True)
class Macro(Expr):
    """A macro call.

    For `has` the single argument is a Select or Index and target is None.
    For the comprehensions, `target` is the iterable, `variables` holds the
    one or two bound names and `args` holds the body (or, for the filtered
    form of `map`, the filter followed by the transform).
    """
    name: str
    target: Optional[Expr]
    variables: Tuple[str, ...]
    args: Tuple[Expr, ...]


def children(node: Expr) -> Tuple[Expr, ...]:
    match node:
        case Unary(operand=operand):
            return (operand,)
        case Binary(left=left, right=right):
            return (left, right)
        case Ternary(cond=cond, if_true=a, if_false=b):
            return (cond, a, b)
        case ListExpr(items=items):
            return items
        case MapExpr(entries=entries):
            return tuple(part for entry in entries for part in entry)
        case Select(operand=operand):
            return (operand,)
        case Index(operand=operand, index=idx):
            return (operand, idx)
        case Call(target=target, args=args) | Macro(target=target, args=args):
            return ((target,) if target is not None else ()) + args
        case Invoke(callee=callee, args=args):
            return (callee,) + args
    return ()


def walk(node: Expr) -> Iterator[Expr]:
    """Yields `node` and all of its descendants, parents first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


@dataclass(frozen=True)
class ExpressionReferences:
    """The Context names an expression depends on."""
    variables: FrozenSet[str]
    functions: FrozenSet[str]

    def has_variable(self, name: str) -> bool:
        return name in self.variables

    def has_function(self, name: str) -> bool:
        return name in self.functions


def references(node: Expr) -> ExpressionReferences:
    variables = set()
    functions = set()
    for n in walk(node):
        match n:
            case Ident(name=name):
                variables.add(name)
            case Call(function=name):
                functions.add(name)
    return ExpressionReferences(frozenset(variables), frozenset(functions))
