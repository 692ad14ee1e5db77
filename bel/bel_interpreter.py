"""
Tree-walking evaluator for compiled BEL expressions.
"""

import logging
from typing import Dict, Iterator, List as PyList, Optional, Sequence, Tuple

from bel.bel_ast import (
    Binary, Call, Expr, Ident, Index, Invoke, ListExpr, Literal, LocalRef,
    Macro, MapExpr, Select, Ternary, Unary,
)
from bel.bel_config import DEFAULT_CONFIG, EngineConfig
from bel.bel_errors import (
    ExecutionError, TypeMismatch, UndeclaredReference, UnsupportedOperation,
)
from bel.bel_functions import FunctionContext
from bel.bel_values import (
    BINARY_OPERATORS, FALSE, TRUE,
    Bool, FunctionRef, Int, List, Map, String, Value,
    add, as_bool, check_key, compare, contains, equals, has_field, has_index,
    index, logical_not, member, neg,
)

log = logging.getLogger(__name__)


def _seal(kind: Value, buffer: PyList) -> Value:
    if isinstance(kind, List):
        return List(tuple(buffer))
    return String("".join(buffer))


class Evaluator:
    """Evaluates expression trees against a Context.

    An Evaluator carries the state of one execution: the stack of
    comprehension scopes. Each scope is a dict pushed when a comprehension
    binds its variables for one element and popped as soon as that element
    is done, so nothing survives past the `eval` call that created it.
    """

    def __init__(self, context, config: Optional[EngineConfig] = None):
        self.context = context
        self.config = config or DEFAULT_CONFIG
        self.scopes: PyList[Dict[str, Value]] = []

    def _dbg(self, *parts):
        if self.config.debug:
            log.debug("[DBG] %s", " ".join(str(p) for p in parts))

    def eval(self, node: Expr) -> Value:
        """Evaluates `node`, tagging any ExecutionError with the failing node id."""
        try:
            return self._eval(node)
        except ExecutionError as e:
            if e.expr_id is None:
                e.expr_id = node.id
            raise

    def _eval(self, node: Expr) -> Value:
        match node:
            case Literal(value=value):
                return value
            case Ident(name=name):
                return self.lookup(name)
            case LocalRef(name=name):
                return self._local(name)
            case Unary(op="!", operand=operand):
                return logical_not(self.eval(operand))
            case Unary(op="-", operand=operand):
                return neg(self.eval(operand))
            case Binary(op="&&", left=left, right=right):
                if not self._condition(left):
                    return FALSE
                return Bool(self._condition(right))
            case Binary(op="||", left=left, right=right):
                if self._condition(left):
                    return TRUE
                return Bool(self._condition(right))
            case Binary(op="+"):
                return self._concat(node)
            case Binary(op=op, left=left, right=right):
                return self._binary(op, self.eval(left), self.eval(right))
            case Ternary(cond=cond, if_true=if_true, if_false=if_false):
                return self.eval(if_true if self._condition(cond) else if_false)
            case ListExpr(items=items):
                return List(tuple(self.eval(item) for item in items))
            case MapExpr(entries=entries):
                out = {}
                for key_expr, value_expr in entries:
                    key = self.eval(key_expr)
                    out[check_key(key)] = self.eval(value_expr)
                return Map(out)
            case Select(operand=operand, field=field):
                return member(self.eval(operand), field)
            case Index(operand=operand, index=idx):
                target = self.eval(operand)
                return index(target, self.eval(idx))
            case Call():
                return self._call(node)
            case Invoke(callee=callee, args=args):
                ref = self.eval(callee)
                if not isinstance(ref, FunctionRef):
                    raise TypeMismatch("function", ref.type_name)
                return self.call_function(ref.name, [self.eval(a) for a in args], node.id)
            case Macro(name="has"):
                return self._has(node)
            case Macro():
                return self._comprehension(node)
        raise UnsupportedOperation(type(node).__name__)

    # -- names ----------------------------------------------------------

    def lookup(self, name: str) -> Value:
        """Resolves a free identifier: a Context variable, else a function reference."""
        value = self.context.get_variable(name)
        if value is not None:
            return value
        if self.context.has_function(name):
            return FunctionRef(name)
        raise UndeclaredReference(name)

    def _local(self, name: str) -> Value:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        raise UndeclaredReference(name)

    def resolve(self, name: str) -> Value:
        """Comprehension variables first, then the Context."""
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return self.lookup(name)

    # -- operators ------------------------------------------------------

    def _condition(self, node: Expr) -> bool:
        return as_bool(self.eval(node))

    def _binary(self, op: str, left: Value, right: Value) -> Value:
        match op:
            case "==":
                return Bool(equals(left, right))
            case "!=":
                return Bool(not equals(left, right))
            case "<":
                return Bool(compare(left, right) < 0)
            case "<=":
                return Bool(compare(left, right) <= 0)
            case ">":
                return Bool(compare(left, right) > 0)
            case ">=":
                return Bool(compare(left, right) >= 0)
            case "in":
                return Bool(contains(right, left))
        return BINARY_OPERATORS[op](left, right)

    def _concat(self, node: Binary) -> Value:
        """Evaluates a left-nested chain of '+' from left to right.

        Consecutive List (or String) operands are appended to one buffer
        that only this call can see, and the result is built from it once,
        so `a + b + c + ...` does not copy the running value at every step.
        """
        chain = []
        current = node
        while isinstance(current, Binary) and current.op == "+":
            chain.append(current)
            current = current.left
        chain.reverse()

        acc = self.eval(current)
        buffer = None
        for step in chain:
            right = self.eval(step.right)
            if isinstance(right, (List, String)) and type(right) is type(acc):
                if buffer is None:
                    buffer = list(acc.items) if isinstance(acc, List) else [acc.value]
                if isinstance(right, List):
                    buffer.extend(right.items)
                else:
                    buffer.append(right.value)
                continue
            if buffer is not None:
                acc = _seal(acc, buffer)
                buffer = None
            try:
                acc = add(acc, right)
            except ExecutionError as e:
                if e.expr_id is None:
                    e.expr_id = step.id
                raise
        if buffer is not None:
            acc = _seal(acc, buffer)
        return acc

    # -- calls ----------------------------------------------------------

    def _call(self, node: Call) -> Value:
        if not self.context.has_function(node.function):
            raise UndeclaredReference(node.function)
        args = []
        if node.target is not None:
            args.append(self.eval(node.target))
        args.extend(self.eval(a) for a in node.args)
        return self.call_function(node.function, args, node.id)

    def call_function(self, name: str, args: Sequence[Value], call_site: Optional[int] = None) -> Value:
        overloads = self.context.get_overloads(name)
        if overloads is None:
            raise UndeclaredReference(name)
        self._dbg("call", name, "argc", len(args), "types", [a.type_name for a in args])
        ftx = FunctionContext(name, call_site, self)
        return overloads.call(args, ftx, call_site)

    # -- macros ---------------------------------------------------------

    def _has(self, node: Macro) -> Value:
        match node.args[0]:
            case Select(operand=operand, field=field):
                return Bool(has_field(self.eval(operand), field))
            case Index(operand=operand, index=idx):
                target = self.eval(operand)
                return Bool(has_index(target, self.eval(idx)))
        raise UnsupportedOperation("has", type(node.args[0]).__name__)

    def _iterate(self, target: Value, arity: int, macro: str) -> Iterator[Tuple[Tuple[Value, ...], Value]]:
        """Yields (bound values, element) pairs; maps yield their keys as elements."""
        match target:
            case List(items):
                for i, item in enumerate(items):
                    yield ((item,) if arity == 1 else (Int(i), item)), item
            case Map(entries):
                for key, value in entries.items():
                    yield ((key,) if arity == 1 else (key, value)), key
            case _:
                raise UnsupportedOperation(macro, target.type_name)

    def _scoped(self, variables: Tuple[str, ...], values: Tuple[Value, ...], body: Expr) -> Value:
        self.scopes.append(dict(zip(variables, values)))
        try:
            return self.eval(body)
        finally:
            self.scopes.pop()

    def _comprehension(self, node: Macro) -> Value:
        target = self.eval(node.target)
        names = node.variables
        body = node.args[-1]
        self._dbg("macro", node.name, "target", target.type_name, "vars", names)

        match node.name:
            case "all":
                for bound, _ in self._iterate(target, len(names), node.name):
                    if not as_bool(self._scoped(names, bound, body)):
                        return FALSE
                return TRUE
            case "exists":
                for bound, _ in self._iterate(target, len(names), node.name):
                    if as_bool(self._scoped(names, bound, body)):
                        return TRUE
                return FALSE
            case "exists_one":
                count = 0
                for bound, _ in self._iterate(target, len(names), node.name):
                    if as_bool(self._scoped(names, bound, body)):
                        count += 1
                return Bool(count == 1)
            case "filter":
                kept = [element for bound, element in self._iterate(target, len(names), node.name)
                        if as_bool(self._scoped(names, bound, body))]
                return List(tuple(kept))
            case "map":
                out = []
                for bound, _ in self._iterate(target, len(names), node.name):
                    if len(node.args) == 2 and not as_bool(self._scoped(names, bound, node.args[0])):
                        continue
                    out.append(self._scoped(names, bound, body))
                return List(tuple(out))
        raise UnsupportedOperation(node.name, target.type_name)
