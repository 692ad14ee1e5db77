"""
Tokenizer for BEL source text.

`tokenize` never stops at the first malformed token: each problem is
recorded as a LexError and scanning resumes after it, so the parser and the
caller see every lexical problem in one pass.
"""

import enum
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from bel.bel_errors import ParseError


class TokenKind(enum.Enum):
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    STRING = "string"
    BYTES = "bytes"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"
    IDENT = "identifier"
    OPERATOR = "operator"
    PUNCT = "punctuation"
    EOF = "end of input"


KEYWORDS = {
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "null": TokenKind.NULL,
}

RESERVED = frozenset({
    "as", "break", "const", "continue", "else", "for", "function", "if",
    "import", "let", "loop", "package", "namespace", "return", "var",
    "void", "while",
})

# Longest first so that '<=' wins over '<'.
OPERATORS = ("||", "&&", "==", "!=", "<=", ">=", "<", ">", "+", "-", "*", "/", "%", "!", "?", ":")
PUNCTUATION = "()[]{},."

SIMPLE_ESCAPES = {
    "\\": "\\", '"': '"', "'": "'", "`": "`", "?": "?",
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v",
}

DIGITS = "0123456789"
HEX_DIGITS = "0123456789abcdefABCDEF"
OCTAL_DIGITS = "01234567"


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end) in the source text."""
    start: int
    end: int

    def __repr__(self) -> str:
        return f"Span({self.start}, {self.end})"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    span: Span
    value: Any = None

    def is_op(self, text: str) -> bool:
        return self.kind in (TokenKind.OPERATOR, TokenKind.PUNCT) and self.text == text


class LexError(ParseError):
    """A malformed token."""


def line_col(source: str, offset: int) -> Tuple[int, int]:
    """Returns the 1-based (line, col) of a character offset."""
    line = source.count("\n", 0, offset) + 1
    col = offset - (source.rfind("\n", 0, offset) + 1) + 1
    return line, col


def is_identifier(name: str) -> bool:
    if not name or not (name[0].isascii() and (name[0].isalpha() or name[0] == "_")):
        return False
    return all(ch.isascii() and (ch.isalnum() or ch == "_") for ch in name)


class Lexer:
    """Scans one source string into tokens and lexical errors."""

    def __init__(self, source: str):
        self.src = source
        self.pos = 0
        self.tokens: List[Token] = []
        self.errors: List[LexError] = []

    def scan(self) -> Tuple[List[Token], List[LexError]]:
        src = self.src
        n = len(src)
        while True:
            self._skip_trivia()
            if self.pos >= n:
                break
            ch = src[self.pos]
            if ch in DIGITS:
                self._scan_number()
            elif ch in "\"'" or self._string_prefix() is not None:
                self._scan_string()
            elif ch.isascii() and (ch.isalpha() or ch == "_"):
                self._scan_word()
            else:
                self._scan_symbol()
        self.tokens.append(Token(TokenKind.EOF, "", Span(n, n)))
        return self.tokens, self.errors

    # -- helpers --------------------------------------------------------

    def _peek(self, ahead: int = 0) -> str:
        i = self.pos + ahead
        return self.src[i] if i < len(self.src) else ""

    def _is_digit(self, ahead: int = 0) -> bool:
        ch = self._peek(ahead)
        return bool(ch) and ch in DIGITS

    def _emit(self, kind: TokenKind, start: int, value: Any = None):
        self.tokens.append(Token(kind, self.src[start:self.pos], Span(start, self.pos), value))

    def _error(self, message: str, start: int, end: Optional[int] = None):
        end = self.pos if end is None else end
        line, col = line_col(self.src, start)
        self.errors.append(LexError(message, Span(start, max(end, start + 1)), line, col))

    def _skip_trivia(self):
        src = self.src
        n = len(src)
        while self.pos < n:
            ch = src[self.pos]
            if ch in " \t\r\n\f":
                self.pos += 1
            elif src.startswith("//", self.pos):
                newline = src.find("\n", self.pos)
                self.pos = n if newline < 0 else newline + 1
            else:
                break

    # -- numbers --------------------------------------------------------

    def _scan_number(self):
        start = self.pos
        if self._peek() == "0" and self._peek(1) in ("x", "X"):
            self.pos += 2
            digits = self.pos
            while self._peek() and self._peek() in HEX_DIGITS:
                self.pos += 1
            if digits == self.pos:
                self._error("Missing digits in hex literal", start)
                return
            value = int(self.src[digits:self.pos], 16)
            if self._peek() in ("u", "U"):
                self.pos += 1
                self._emit(TokenKind.UINT, start, value)
            else:
                self._emit(TokenKind.INT, start, value)
            return

        while self._is_digit():
            self.pos += 1
        is_float = False
        if self._peek() == "." and self._is_digit(1):
            is_float = True
            self.pos += 1
            while self._is_digit():
                self.pos += 1
        if self._peek() in ("e", "E"):
            ahead = 1
            if self._peek(1) in ("+", "-"):
                ahead = 2
            if self._is_digit(ahead):
                is_float = True
                self.pos += ahead
                while self._is_digit():
                    self.pos += 1
        text = self.src[start:self.pos]
        if is_float:
            self._emit(TokenKind.FLOAT, start, float(text))
            return
        kind = TokenKind.INT
        if self._peek() in ("u", "U"):
            self.pos += 1
            kind = TokenKind.UINT
        try:
            value = int(text)
        except ValueError:
            # past the interpreter's digit limit; far outside any 64-bit range
            self._error(f"Integer literal out of range: {text[:20]}...", start)
            return
        self._emit(kind, start, value)

    # -- strings and bytes ----------------------------------------------

    def _string_prefix(self) -> Optional[str]:
        """Returns the raw/bytes prefix at the cursor when a quote follows it."""
        for width in (2, 1):
            prefix = self.src[self.pos:self.pos + width]
            if len(prefix) == width and set(prefix.lower()) <= {"r", "b"} \
                    and len(set(prefix.lower())) == width and self._peek(width) in ("'", '"'):
                return prefix
        return None

    def _scan_string(self):
        start = self.pos
        prefix = (self._string_prefix() or "").lower()
        self.pos += len(prefix)
        raw = "r" in prefix
        is_bytes = "b" in prefix
        quote = self._peek()
        delim = quote * 3 if self.src.startswith(quote * 3, self.pos) else quote
        self.pos += len(delim)

        chunks: List[str] = []
        octets = bytearray()

        def put(text: str):
            if is_bytes:
                octets.extend(text.encode("utf-8"))
            else:
                chunks.append(text)

        src = self.src
        n = len(src)
        while True:
            if self.pos >= n or (len(delim) == 1 and src[self.pos] == "\n"):
                self._error("Unterminated string literal", start)
                break
            if src.startswith(delim, self.pos):
                self.pos += len(delim)
                break
            ch = src[self.pos]
            if ch == "\\" and not raw:
                self._scan_escape(put, octets, is_bytes)
            else:
                put(ch)
                self.pos += 1

        if is_bytes:
            self._emit(TokenKind.BYTES, start, bytes(octets))
        else:
            self._emit(TokenKind.STRING, start, "".join(chunks))

    def _scan_escape(self, put, octets: bytearray, is_bytes: bool):
        start = self.pos
        self.pos += 1
        ch = self._peek()
        if ch in SIMPLE_ESCAPES:
            self.pos += 1
            put(SIMPLE_ESCAPES[ch])
            return
        if ch in ("x", "X", "u", "U"):
            width = {"x": 2, "X": 2, "u": 4, "U": 8}[ch]
            digits = self.src[self.pos + 1:self.pos + 1 + width]
            if len(digits) != width or any(d not in HEX_DIGITS for d in digits):
                self.pos += 1
                self._error(f"Invalid escape sequence '\\{ch}'", start)
                return
            self.pos += 1 + width
            code = int(digits, 16)
            if ch in ("x", "X") and is_bytes:
                octets.append(code)
            elif code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                self._error(f"Invalid unicode code point in escape '\\{ch}{digits}'", start)
            else:
                put(chr(code))
            return
        if ch and ch in OCTAL_DIGITS:
            digits = self.src[self.pos:self.pos + 3]
            if len(digits) != 3 or any(d not in OCTAL_DIGITS for d in digits) or int(digits, 8) > 0o377:
                self.pos += 1
                self._error("Invalid octal escape sequence", start)
                return
            self.pos += 3
            if is_bytes:
                octets.append(int(digits, 8))
            else:
                put(chr(int(digits, 8)))
            return
        if ch:
            self.pos += 1
        self._error(f"Invalid escape sequence '\\{ch}'", start)

    # -- words and symbols ----------------------------------------------

    def _scan_word(self):
        start = self.pos
        while self._peek() and self._peek().isascii() and (self._peek().isalnum() or self._peek() == "_"):
            self.pos += 1
        word = self.src[start:self.pos]
        if word in KEYWORDS:
            kind = KEYWORDS[word]
            self._emit(kind, start, {"true": True, "false": False, "null": None}[word])
        elif word == "in":
            self._emit(TokenKind.OPERATOR, start)
        else:
            self._emit(TokenKind.IDENT, start, word)

    def _scan_symbol(self):
        start = self.pos
        for op in OPERATORS:
            if self.src.startswith(op, self.pos):
                self.pos += len(op)
                self._emit(TokenKind.OPERATOR, start)
                return
        ch = self.src[self.pos]
        self.pos += 1
        if ch in PUNCTUATION:
            self._emit(TokenKind.PUNCT, start)
            return
        self._error(f"Unexpected character '{ch}'", start)


def tokenize(source: str) -> Tuple[List[Token], List[LexError]]:
    """Scans `source` into tokens (always ending with EOF) and lexical errors."""
    return Lexer(source).scan()
