import pytest

from bel.bel_lexer import LexError, Span, TokenKind, line_col, tokenize


def kinds(source):
    tokens, errors = tokenize(source)
    assert errors == []
    return [t.kind for t in tokens]


def values(source):
    tokens, errors = tokenize(source)
    assert errors == []
    return [t.value for t in tokens[:-1]]


def test_always_ends_with_eof():
    tokens, errors = tokenize("")
    assert errors == []
    assert len(tokens) == 1
    assert tokens[0].kind is TokenKind.EOF
    assert tokens[0].span == Span(0, 0)


@pytest.mark.parametrize(
    "source,expected",
    [
        ("42", TokenKind.INT),
        ("0x1F", TokenKind.INT),
        ("42u", TokenKind.UINT),
        ("0xffU", TokenKind.UINT),
        ("3.25", TokenKind.FLOAT),
        ("1e3", TokenKind.FLOAT),
        ("2.5E-2", TokenKind.FLOAT),
        ("'x'", TokenKind.STRING),
        ('b"x"', TokenKind.BYTES),
        ("true", TokenKind.TRUE),
        ("null", TokenKind.NULL),
        ("foo_1", TokenKind.IDENT),
    ],
)
def test_single_token_kinds(source, expected):
    assert kinds(source) == [expected, TokenKind.EOF]


def test_number_values():
    assert values("42 0x1F 7u 1.5 1e3") == [42, 31, 7, 1.5, 1000.0]


def test_exponent_without_digits_is_not_consumed():
    tokens, errors = tokenize("1e")
    assert errors == []
    assert [t.kind for t in tokens] == [TokenKind.INT, TokenKind.IDENT, TokenKind.EOF]


@pytest.mark.parametrize(
    "source,expected",
    [
        (r'"a\nb"', "a\nb"),
        (r"'it\'s'", "it's"),
        (r'"\x41é\U0001F600"', "Aé\U0001F600"),
        (r'"\101"', "A"),
        (r'r"a\nb"', "a\\nb"),
        ('"""multi\nline"""', "multi\nline"),
        ("'''it's'''", "it's"),
    ],
)
def test_string_escapes(source, expected):
    assert values(source) == [expected]


def test_bytes_literals():
    assert values(r'b"\xff\x00ab"') == [b"\xff\x00ab"]
    assert values('b"é"') == ["é".encode("utf-8")]
    assert values(r'rb"\x"') == [b"\\x"]


def test_operators_and_punctuation():
    tokens, errors = tokenize("a <= b && !c || d in [1, 2] ? e.f : {}")
    assert errors == []
    texts = [t.text for t in tokens if t.kind in (TokenKind.OPERATOR, TokenKind.PUNCT)]
    assert texts == ["<=", "&&", "!", "||", "in", "[", ",", "]", "?", ".", ":", "{", "}"]


def test_comments_and_whitespace_are_skipped():
    assert kinds("1 // the answer\n + 2") == [TokenKind.INT, TokenKind.OPERATOR, TokenKind.INT, TokenKind.EOF]


def test_spans_cover_token_text():
    tokens, _ = tokenize("  foo + 12")
    assert tokens[0].span == Span(2, 5)
    assert tokens[2].span == Span(8, 10)


def test_bad_characters_are_reported_and_skipped():
    tokens, errors = tokenize("1 @ 2 # 3")
    assert [t.value for t in tokens[:-1]] == [1, 2, 3]
    assert len(errors) == 2
    assert all(isinstance(e, LexError) for e in errors)
    assert [e.span.start for e in errors] == [2, 6]
    assert "Unexpected character '@'" in errors[0].message


def test_unterminated_string_recovers_at_end_of_line():
    tokens, errors = tokenize('"abc\n1')
    assert len(errors) == 1
    assert "Unterminated" in errors[0].message
    assert (errors[0].line, errors[0].col) == (1, 1)
    assert tokens[-2].kind is TokenKind.INT


def test_invalid_escape_is_reported():
    _, errors = tokenize(r'"a\qb"')
    assert len(errors) == 1
    assert "Invalid escape" in errors[0].message


def test_line_col():
    source = "a\nbc\n  d"
    assert line_col(source, 0) == (1, 1)
    assert line_col(source, 3) == (2, 2)
    assert line_col(source, 7) == (3, 3)


@pytest.mark.parametrize("source", ["²", "٣ == 3", "x + １"])
def test_non_ascii_digits_are_not_numbers(source):
    tokens, errors = tokenize(source)
    assert len(errors) == 1
    assert "Unexpected character" in errors[0].message
    assert all(t.span.start != errors[0].span.start for t in tokens[:-1])


def test_exponent_needs_ascii_digits():
    tokens, errors = tokenize("1e²")
    assert [t.kind for t in tokens] == [TokenKind.INT, TokenKind.IDENT, TokenKind.EOF]
    assert len(errors) == 1
    assert errors[0].span.start == 2


def test_huge_decimal_literal_is_a_lex_error():
    tokens, errors = tokenize("1" * 5000 + " + 2")
    assert len(errors) == 1
    assert "out of range" in errors[0].message
    assert errors[0].span == Span(0, 5000)
    assert [t.value for t in tokens[:-1]] == [None, 2]
