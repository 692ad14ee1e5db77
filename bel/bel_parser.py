"""
Recursive-descent parser for BEL.

Precedence, loosest first:

    cond ? a : b            (right associative)
    ||
    &&
    == != < <= > >= in
    + -
    * / %
    ! -                     (prefix)
    a.b  a[b]  a.f(x)  f(x) (postfix chains)

The parser does not stop at the first problem. Each error is recorded
(at most one per source offset), a placeholder node stands in for the
broken sub-expression, and parsing resumes so that one compile reports
every independent mistake.
"""

from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Tuple

from bel.bel_ast import (
    Binary, Call, Expr, Ident, Index, Invoke, ListExpr, Literal, LocalRef,
    Macro, MapExpr, Select, Ternary, Unary,
)
from bel.bel_config import DEFAULT_CONFIG, EngineConfig
from bel.bel_errors import CompileError, ParseError
from bel.bel_lexer import RESERVED, Span, Token, TokenKind, line_col, tokenize
from bel.bel_values import (
    INT64_MAX, INT64_MIN, NULL, UINT64_MAX,
    Bool, Bytes, Float, Int, String, UInt,
)

RELATIONS = ("==", "!=", "<", "<=", ">", ">=", "in")

# Method-style macros and the name each one is evaluated under.
COMPREHENSIONS = {
    "all": "all",
    "exists": "exists",
    "any": "exists",
    "exists_one": "exists_one",
    "existsOne": "exists_one",
    "map": "map",
    "filter": "filter",
}


class Parser:
    """Parses one source string. Use `parse()` once per instance."""

    def __init__(self, source: str, config: Optional[EngineConfig] = None):
        self.source = source
        self.config = config or DEFAULT_CONFIG
        self.tokens, lex_errors = tokenize(source)
        self.errors: List[ParseError] = list(lex_errors)
        self._error_offsets = {e.span.start for e in lex_errors}
        self.pos = 0
        self.depth = 0
        self._last_end = 0
        self._next_id = 1
        self._halted = False

    def parse(self) -> Tuple[Optional[Expr], List[ParseError]]:
        """Returns (root, []) on success or (None, errors) sorted by position."""
        root = None
        try:
            root = self._expr()
            while self._peek().kind is not TokenKind.EOF and not self._halted:
                tok = self._peek()
                self._error(f"Unexpected {self._describe(tok)} after expression", tok.span)
                start = self.pos
                self._expr()
                if self.pos == start:
                    self._advance()
        except RecursionError:
            self._error("Expression is nested too deeply", Span(0, len(self.source)))
        if self.errors:
            return None, sorted(self.errors, key=lambda e: e.span.start)
        return root, []

    # -- token helpers --------------------------------------------------

    def _peek(self, ahead: int = 0) -> Token:
        return self.tokens[min(self.pos + ahead, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.kind is not TokenKind.EOF:
            self.pos += 1
            self._last_end = tok.span.end
        return tok

    def _check_op(self, text: str) -> bool:
        return self._peek().is_op(text)

    def _match_op(self, *texts: str) -> Optional[Token]:
        tok = self._peek()
        if tok.kind in (TokenKind.OPERATOR, TokenKind.PUNCT) and tok.text in texts:
            return self._advance()
        return None

    def _expect_op(self, text: str) -> bool:
        if self._match_op(text):
            return True
        tok = self._peek()
        self._error(f"Expected '{text}', found {self._describe(tok)}", tok.span)
        return False

    @staticmethod
    def _describe(tok: Token) -> str:
        if tok.kind is TokenKind.EOF:
            return "end of input"
        return f"'{tok.text}'"

    def _error(self, message: str, span: Span):
        if self._halted or span.start in self._error_offsets:
            return
        self._error_offsets.add(span.start)
        line, col = line_col(self.source, span.start)
        self.errors.append(ParseError(message, span, line, col))

    def _node(self, cls, start: int, **fields) -> Expr:
        node_id = self._next_id
        self._next_id += 1
        return cls(id=node_id, span=Span(start, max(start, self._last_end)), **fields)

    def _placeholder(self, start: int) -> Expr:
        return self._node(Literal, start, value=NULL)

    # -- grammar --------------------------------------------------------

    def _expr(self) -> Expr:
        self.depth += 1
        try:
            if self.depth > self.config.max_nesting_depth:
                tok = self._peek()
                self._error(
                    f"Expression nesting exceeds the maximum depth of {self.config.max_nesting_depth}",
                    tok.span,
                )
                self._halted = True
                self.pos = len(self.tokens) - 1
                return self._placeholder(tok.span.start)
            return self._ternary()
        finally:
            self.depth -= 1

    def _ternary(self) -> Expr:
        start = self._peek().span.start
        cond = self._or()
        if self._match_op("?"):
            if_true = self._expr()
            self._expect_op(":")
            if_false = self._expr()
            return self._node(Ternary, start, cond=cond, if_true=if_true, if_false=if_false)
        return cond

    def _left_assoc(self, ops: Sequence[str], operand: Callable[[], Expr]) -> Expr:
        start = self._peek().span.start
        left = operand()
        while True:
            tok = self._match_op(*ops)
            if tok is None:
                return left
            right = operand()
            left = self._node(Binary, start, op=tok.text, left=left, right=right)

    def _or(self) -> Expr:
        return self._left_assoc(("||",), self._and)

    def _and(self) -> Expr:
        return self._left_assoc(("&&",), self._relation)

    def _relation(self) -> Expr:
        return self._left_assoc(RELATIONS, self._additive)

    def _additive(self) -> Expr:
        return self._left_assoc(("+", "-"), self._multiplicative)

    def _multiplicative(self) -> Expr:
        return self._left_assoc(("*", "/", "%"), self._unary)

    def _unary(self) -> Expr:
        ops: List[Token] = []
        while self._peek().kind is TokenKind.OPERATOR and self._peek().text in ("!", "-"):
            ops.append(self._advance())

        nxt = self._peek()
        if (ops and ops[-1].text == "-" and nxt.kind is TokenKind.INT
                and not self._peek(1).is_op(".") and not self._peek(1).is_op("[")):
            # Fold '-<int>' so that the int64 minimum can be written literally.
            minus = ops.pop()
            self._advance()
            expr = self._int_literal(nxt, minus.span.start, negative=True)
        else:
            expr = self._member()

        for op in reversed(ops):
            expr = self._node(Unary, op.span.start, op=op.text, operand=expr)
        return expr

    def _member(self) -> Expr:
        start = self._peek().span.start
        expr = self._primary()
        while True:
            if self._match_op("."):
                name_tok = self._peek()
                if name_tok.kind is not TokenKind.IDENT:
                    self._error(f"Expected field name after '.', found {self._describe(name_tok)}", name_tok.span)
                    return expr
                self._advance()
                if self._match_op("("):
                    args = self._arguments(")")
                    expr = self._call(start, name_tok, expr, args)
                else:
                    expr = self._node(Select, start, operand=expr, field=name_tok.text)
            elif self._match_op("["):
                idx = self._expr()
                self._expect_op("]")
                expr = self._node(Index, start, operand=expr, index=idx)
            elif self._match_op("("):
                args = self._arguments(")")
                expr = self._node(Invoke, start, callee=expr, args=args)
            else:
                return expr

    def _primary(self) -> Expr:
        tok = self._peek()
        start = tok.span.start
        match tok.kind:
            case TokenKind.INT:
                self._advance()
                return self._int_literal(tok, start)
            case TokenKind.UINT:
                self._advance()
                value = tok.value
                if value > UINT64_MAX:
                    self._error(f"Unsigned integer literal out of range: {tok.text}", tok.span)
                    value = 0
                return self._node(Literal, start, value=UInt(value))
            case TokenKind.FLOAT:
                self._advance()
                return self._node(Literal, start, value=Float(tok.value))
            case TokenKind.STRING:
                self._advance()
                return self._node(Literal, start, value=String(tok.value))
            case TokenKind.BYTES:
                self._advance()
                return self._node(Literal, start, value=Bytes(tok.value))
            case TokenKind.TRUE | TokenKind.FALSE:
                self._advance()
                return self._node(Literal, start, value=Bool(tok.value))
            case TokenKind.NULL:
                self._advance()
                return self._node(Literal, start, value=NULL)
            case TokenKind.IDENT:
                self._advance()
                if tok.value in RESERVED:
                    self._error(f"Reserved identifier '{tok.value}'", tok.span)
                if self._match_op("("):
                    args = self._arguments(")")
                    return self._call(start, tok, None, args)
                return self._node(Ident, start, name=tok.value)

        if self._match_op("("):
            expr = self._expr()
            self._expect_op(")")
            return expr
        if self._match_op("["):
            items = self._arguments("]")
            return self._node(ListExpr, start, items=items)
        if self._match_op("{"):
            return self._map_body(start)

        if tok.kind is TokenKind.EOF:
            self._error("Unexpected end of input", tok.span)
        else:
            self._error(f"Unexpected {self._describe(tok)}", tok.span)
        return self._placeholder(start)

    def _int_literal(self, tok: Token, start: int, negative: bool = False) -> Expr:
        value = -tok.value if negative else tok.value
        if not INT64_MIN <= value <= INT64_MAX:
            sign = "-" if negative else ""
            self._error(f"Integer literal out of range: {sign}{tok.text}", tok.span)
            value = 0
        return self._node(Literal, start, value=Int(value))

    def _arguments(self, close: str) -> Tuple[Expr, ...]:
        """Comma-separated expressions up to `close`; a trailing comma is allowed."""
        items = []
        while not self._check_op(close) and self._peek().kind is not TokenKind.EOF:
            items.append(self._expr())
            if not self._match_op(","):
                break
        self._expect_op(close)
        return tuple(items)

    def _map_body(self, start: int) -> Expr:
        entries = []
        while not self._check_op("}") and self._peek().kind is not TokenKind.EOF:
            key = self._expr()
            if not self._expect_op(":"):
                break
            value = self._expr()
            entries.append((key, value))
            if not self._match_op(","):
                break
        self._expect_op("}")
        return self._node(MapExpr, start, entries=tuple(entries))

    # -- calls and macros -----------------------------------------------

    def _call(self, start: int, name_tok: Token, target: Optional[Expr], args: Tuple[Expr, ...]) -> Expr:
        name = name_tok.text
        if target is None and name == "has":
            if len(args) != 1 or not isinstance(args[0], (Select, Index)):
                self._error("Invalid argument to has() macro: expected a field selection or index", name_tok.span)
            return self._node(Macro, start, name="has", target=None, variables=(), args=args)
        if target is not None and name in COMPREHENSIONS and len(args) in (2, 3):
            return self._comprehension(start, name_tok, target, args)
        return self._node(Call, start, function=name, target=target, args=args)

    def _comprehension(self, start: int, name_tok: Token, target: Expr, args: Tuple[Expr, ...]) -> Expr:
        name = name_tok.text
        if len(args) == 3 and not isinstance(args[1], Ident):
            if name != "map":
                self._error(f"Macro '{name}' takes one or two variables and a predicate", args[1].span)
            variables, body = args[:1], args[1:]
        else:
            variables, body = args[:-1], args[-1:]

        names = []
        for var in variables:
            if not isinstance(var, Ident):
                self._error(f"Variable of macro '{name}' must be a simple identifier", var.span)
            elif var.name in names:
                self._error(f"Duplicate variable '{var.name}' in macro '{name}'", var.span)
            else:
                names.append(var.name)

        bound = frozenset(names)
        body = tuple(bind_locals(expr, bound) for expr in body)
        return self._node(
            Macro, start,
            name=COMPREHENSIONS[name], target=target, variables=tuple(names), args=body,
        )


def bind_locals(node: Expr, names: frozenset) -> Expr:
    """Rewrites free identifiers in `names` into LocalRef nodes (ids kept)."""
    if not names:
        return node

    def bind(n):
        return bind_locals(n, names)

    match node:
        case Ident(name=name) if name in names:
            return LocalRef(id=node.id, span=node.span, name=name)
        case Unary():
            return replace(node, operand=bind(node.operand))
        case Binary():
            return replace(node, left=bind(node.left), right=bind(node.right))
        case Ternary():
            return replace(node, cond=bind(node.cond), if_true=bind(node.if_true), if_false=bind(node.if_false))
        case ListExpr():
            return replace(node, items=tuple(bind(i) for i in node.items))
        case MapExpr():
            return replace(node, entries=tuple((bind(k), bind(v)) for k, v in node.entries))
        case Select():
            return replace(node, operand=bind(node.operand))
        case Index():
            return replace(node, operand=bind(node.operand), index=bind(node.index))
        case Call() | Macro():
            target = bind(node.target) if node.target is not None else None
            return replace(node, target=target, args=tuple(bind(a) for a in node.args))
        case Invoke():
            return replace(node, callee=bind(node.callee), args=tuple(bind(a) for a in node.args))
    return node


def parse(source: str, config: Optional[EngineConfig] = None) -> Expr:
    """Parses `source` into an expression tree, raising CompileError on failure."""
    root, errors = Parser(source, config).parse()
    if errors:
        raise CompileError(errors, source)
    return root
