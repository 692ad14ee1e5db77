import pytest

from bel.bel_ast import (
    Binary, Call, Ident, Index, Invoke, ListExpr, Literal, LocalRef, Macro,
    MapExpr, Select, Ternary, Unary, walk,
)
from bel.bel_config import EngineConfig
from bel.bel_errors import CompileError
from bel.bel_parser import Parser, parse
from bel.bel_values import Int, String, UInt


def errors_of(source, config=None):
    root, errors = Parser(source, config).parse()
    assert root is None
    return errors


def test_literals():
    assert parse("42").value == Int(42)
    assert parse("7u").value == UInt(7)
    assert parse("'hi'").value == String("hi")


def test_precedence_multiplicative_binds_tighter():
    node = parse("1 + 2 * 3")
    assert isinstance(node, Binary) and node.op == "+"
    assert isinstance(node.right, Binary) and node.right.op == "*"


def test_left_associativity():
    node = parse("10 - 4 - 3")
    assert node.op == "-"
    assert isinstance(node.left, Binary) and node.left.op == "-"
    assert node.right.value == Int(3)


def test_logical_and_relational_levels():
    node = parse("a < b && c == d || e")
    assert node.op == "||"
    assert node.left.op == "&&"
    assert node.left.left.op == "<"
    assert node.left.right.op == "=="


def test_nested_ternary_is_right_associative():
    node = parse("a ? b : c ? d : e")
    assert isinstance(node, Ternary)
    assert isinstance(node.if_false, Ternary)
    assert node.if_true.name == "b"


def test_unary_chain():
    node = parse("!!x")
    assert isinstance(node, Unary) and isinstance(node.operand, Unary)
    assert node.operand.operand.name == "x"


def test_int64_minimum_literal_is_folded():
    node = parse("-9223372036854775808")
    assert isinstance(node, Literal)
    assert node.value == Int(-9223372036854775808)


def test_out_of_range_literal_is_an_error():
    errors = errors_of("9223372036854775808")
    assert len(errors) == 1
    assert "out of range" in errors[0].message


def test_postfix_chain():
    node = parse("a.b[c](d)")
    assert isinstance(node, Invoke)
    assert isinstance(node.callee, Index)
    assert isinstance(node.callee.operand, Select)
    assert node.callee.operand.field == "b"
    assert [a.name for a in node.args] == ["d"]


def test_method_and_global_calls():
    method = parse("'abc'.starts_with('a')")
    assert isinstance(method, Call)
    assert method.function == "starts_with"
    assert method.target.value == String("abc")
    glob = parse("size([1, 2])")
    assert isinstance(glob, Call) and glob.target is None
    assert isinstance(glob.args[0], ListExpr)


@pytest.mark.parametrize(
    "source,count",
    [
        ("[]", 0),
        ("[1]", 1),
        ("[1, 2,]", 2),
    ],
)
def test_list_literals(source, count):
    node = parse(source)
    assert isinstance(node, ListExpr)
    assert len(node.items) == count


def test_map_literals_with_trailing_comma():
    assert parse("{}").entries == ()
    node = parse("{'a': 1, 'b': 2,}")
    assert isinstance(node, MapExpr)
    assert [k.value for k, _ in node.entries] == [String("a"), String("b")]


def test_ids_are_unique():
    node = parse("[1, 2].map(x, x * 2 + y) == [a.b, f(c)[0]]")
    ids = [n.id for n in walk(node)]
    assert len(ids) == len(set(ids))


def test_comprehension_variables_become_local_refs():
    node = parse("items.map(x, x + y)")
    assert isinstance(node, Macro)
    assert node.name == "map"
    assert node.variables == ("x",)
    body = node.args[0]
    assert isinstance(body.left, LocalRef)
    assert isinstance(body.right, Ident) and body.right.name == "y"
    assert isinstance(node.target, Ident)


def test_nested_comprehension_scoping():
    node = parse("xs.all(x, x.exists(y, y == x))")
    inner = node.args[0]
    assert isinstance(inner, Macro)
    assert isinstance(inner.target, LocalRef)
    eq = inner.args[0]
    assert isinstance(eq.left, LocalRef) and eq.left.name == "y"
    assert isinstance(eq.right, LocalRef) and eq.right.name == "x"


def test_macro_aliases_and_forms():
    assert parse("l.any(x, x)").name == "exists"
    assert parse("l.existsOne(x, x)").name == "exists_one"
    two = parse("m.all(k, v, k == v)")
    assert two.variables == ("k", "v")
    filtered = parse("l.map(x, x > 1, x * 2)")
    assert filtered.variables == ("x",)
    assert len(filtered.args) == 2


def test_has_macro():
    node = parse("has(a.b)")
    assert isinstance(node, Macro) and node.name == "has"
    assert isinstance(node.args[0], Select)
    assert isinstance(parse("has(a[0])").args[0], Index)


def test_has_requires_field_or_index():
    errors = errors_of("has(a)")
    assert len(errors) == 1
    assert "has()" in errors[0].message


def test_macro_variable_must_be_identifier():
    errors = errors_of("l.map(1, 2)")
    assert "simple identifier" in errors[0].message


def test_reserved_identifier_is_rejected():
    errors = errors_of("while + 1")
    assert "Reserved identifier 'while'" in errors[0].message


def test_two_independent_errors_are_both_reported():
    errors = errors_of("1 + * 2 == (3 -)")
    assert len(errors) == 2
    assert errors[0].span != errors[1].span
    assert errors[0].span.start == 4
    assert errors[1].span.start == 15


def test_lexical_and_syntax_errors_accumulate():
    errors = errors_of("1 @ 1")
    assert len(errors) == 2
    assert "Unexpected character" in errors[0].message
    assert "after expression" in errors[1].message


def test_unclosed_bracket_reports_end_of_input():
    errors = errors_of("[1, 2")
    assert len(errors) == 1
    assert "end of input" in errors[0].message


def test_nesting_limit():
    config = EngineConfig(max_nesting_depth=8)
    errors = errors_of("(" * 20 + "1" + ")" * 20, config)
    assert len(errors) == 1
    assert "maximum depth of 8" in errors[0].message


def test_parse_raises_compile_error_with_caret():
    with pytest.raises(CompileError) as excinfo:
        parse("1 +")
    err = excinfo.value
    assert len(err.errors) == 1
    assert (err.errors[0].line, err.errors[0].col) == (1, 4)
    assert "^" in str(err)


@pytest.mark.parametrize("source", ["²", "1e²", "٣ == 3", "1" * 5000])
def test_malformed_numbers_raise_compile_error(source):
    with pytest.raises(CompileError):
        parse(source)
