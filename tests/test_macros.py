import pytest

from bel import (
    Bool, Context, DivisionByZero, Int, List, Program, String, TypeMismatch, UndeclaredReference,
    UnsupportedOperation,
)


def run(source, context=None):
    return Program.compile(source).execute(context)


def ints(*values):
    return List(tuple(Int(v) for v in values))


@pytest.mark.parametrize(
    "source,expected",
    [
        ("[1, 2, 3].all(x, x > 0)", True),
        ("[1, 2, 3].all(x, x > 1)", False),
        ("[].all(x, x > 1)", True),
        ("[1, 2, 3].exists(x, x == 2)", True),
        ("[1, 2, 3].any(x, x == 5)", False),
        ("[1, 2, 3, 4].exists_one(x, x == 2)", True),
        ("[1, 2, 3, 4].exists_one(x, x > 2)", False),
        ("[2, 2].exists_one(x, x == 2)", False),
        ("[1, 2].existsOne(x, x == 3)", False),
    ],
)
def test_quantifiers(source, expected):
    assert run(source) == Bool(expected)


def test_map_and_filter():
    assert run("[1, 2, 3].map(x, x * 2)") == ints(2, 4, 6)
    assert run("[1, 2, 3, 4].filter(x, x % 2 == 0)") == ints(2, 4)
    assert run("[1, 2, 3, 4].map(x, x > 2, x * 10)") == ints(30, 40)


def test_two_variable_forms():
    assert run("['a', 'b'].map(i, v, i)") == ints(0, 1)
    assert run("[10, 20].all(i, v, v == (i + 1) * 10)") == Bool(True)
    assert run("{'a': 1, 'b': 2}.exists(k, v, k == 'b' && v == 2)") == Bool(True)


def test_map_comprehensions_iterate_keys():
    keys = run("{'a': 1, 'b': 2}.map(k, k)")
    assert keys == List((String("a"), String("b")))
    assert run("{'a': 1, 'b': 2}.filter(k, k != 'a')") == List((String("b"),))


def test_all_short_circuits_on_first_false():
    assert run("[0, 1].all(x, x != 0 && 10 / x > 1)") == Bool(False)
    assert run("[1, 0].exists(x, 10 / x > 1)") == Bool(True)


def test_exists_one_evaluates_every_element():
    with pytest.raises(DivisionByZero):
        run("[1, 0].exists_one(x, 10 / x > 1)")


def test_nested_comprehensions_and_free_variables():
    context = Context.default()
    context.add_variable("limit", 2)
    result = run("[[1, 2], [3]].map(xs, xs.filter(x, x <= limit))", context)
    assert result == List((ints(1, 2), ints()))


def test_inner_variable_shadows_outer():
    assert run("[1].map(x, [5].map(x, x))") == List((ints(5),))


def test_comprehension_variable_shadows_context():
    context = Context.default()
    context.add_variable("x", 100)
    assert run("[1, 2].map(x, x)", context) == ints(1, 2)
    assert run("x", context) == Int(100)


def test_variables_do_not_leak_out_of_the_macro():
    with pytest.raises(UndeclaredReference):
        run("[1].all(x, true) && x == 1")


def test_body_must_be_bool_for_predicates():
    with pytest.raises(TypeMismatch):
        run("[1].all(x, x)")


def test_target_must_be_iterable():
    with pytest.raises(UnsupportedOperation):
        run("1.map(x, x)")
