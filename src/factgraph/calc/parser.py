"""Recursive-descent parser for fact formulas.

Grammar:
    expr   := term (("+" | "-") term)*
    term   := power (("*" | "/") power)*
    power  := factor ("^" factor)*
    factor := number | "{" entity "." factId "}" | "-" factor | "(" expr ")"

All binary operators are left-associative. Unary minus binds tighter than
any binary operator, so -2 ^ 2 is (-2) ^ 2. Whitespace between tokens is
ignored. No eval(), no name lookup: fact references become FactKeys here
and nowhere else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Final, Literal

from factgraph.calc.ast import (
    BinaryOp,
    Expression,
    FactReference,
    Grouping,
    NumberLiteral,
    UnaryMinus,
)
from factgraph.errors import ParseError
from factgraph.models.fact import FactKey

PARSE_CACHE_SIZE: Final[int] = 1024
MAX_NESTING_DEPTH: Final[int] = 100

_NUMBER_RE: Final = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_REFERENCE_RE: Final = re.compile(r"([A-Za-z0-9_-]+)\.([A-Za-z0-9_.-]+)")
_OPERATORS: Final[str] = "+-*/^"

TokenKind = Literal["num", "ref", "op", "lparen", "rparen"]


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int
    number: Decimal | None = None
    key: FactKey | None = None


def _fragment(formula: str, start: int, width: int = 12) -> str:
    return formula[start : start + width]


def tokenize(formula: str) -> list[Token]:
    """Split a formula into tokens.

    Raises:
        ParseError: On unrecognized characters, malformed numbers or
            malformed fact references.
    """
    tokens: list[Token] = []
    i = 0
    length = len(formula)
    while i < length:
        ch = formula[i]
        if ch.isspace():
            i += 1
            continue
        if ch in _OPERATORS:
            tokens.append(Token("op", ch, i, i + 1))
            i += 1
        elif ch == "(":
            tokens.append(Token("lparen", ch, i, i + 1))
            i += 1
        elif ch == ")":
            tokens.append(Token("rparen", ch, i, i + 1))
            i += 1
        elif ch == "{":
            tokens.append(_read_reference(formula, i))
            i = tokens[-1].end
        elif ch.isdigit() or ch == ".":
            tokens.append(_read_number(formula, i))
            i = tokens[-1].end
        else:
            raise ParseError("Unexpected character", formula, i, ch)
    return tokens


def _read_number(formula: str, start: int) -> Token:
    match = _NUMBER_RE.match(formula, start)
    if match is None:
        raise ParseError("Malformed number", formula, start, _fragment(formula, start))
    end = match.end()
    if end < len(formula) and (formula[end] == "." or formula[end].isalnum()):
        raise ParseError("Malformed number", formula, start, _fragment(formula, start))
    text = match.group(0)
    try:
        number = Decimal(text)
    except InvalidOperation as e:
        raise ParseError("Malformed number", formula, start, text) from e
    return Token("num", text, start, end, number=number)


def _read_reference(formula: str, start: int) -> Token:
    close = formula.find("}", start + 1)
    if close == -1:
        raise ParseError(
            "Unterminated fact reference, expected '}'",
            formula,
            start,
            _fragment(formula, start),
        )
    text = formula[start : close + 1]
    inner = text[1:-1].strip()
    match = _REFERENCE_RE.fullmatch(inner)
    if match is None:
        raise ParseError(
            "Invalid fact reference, expected {entity.factId}",
            formula,
            start,
            text,
        )
    key = FactKey(match.group(1), match.group(2))
    return Token("ref", text, start, close + 1, key=key)


class _Parser:
    """Single-use parser over a token list."""

    def __init__(self, formula: str, tokens: list[Token]) -> None:
        self._formula = formula
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse(self) -> Expression:
        if not self._tokens:
            raise ParseError("Empty expression", self._formula, 0, self._formula)
        node = self._expr()
        if self._pos < len(self._tokens):
            tok = self._tokens[self._pos]
            if tok.kind == "rparen":
                raise ParseError(
                    "Unbalanced parentheses, unexpected ')'", self._formula, tok.start, ")"
                )
            raise ParseError(
                "Unexpected token after expression",
                self._formula,
                tok.start,
                self._formula[tok.start :],
            )
        return node

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _peek_op(self, ops: str) -> str | None:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text in ops:
            return tok.text
        return None

    def _expr(self) -> Expression:
        left = self._term()
        while (op := self._peek_op("+-")) is not None:
            self._pos += 1
            right = self._term()
            left = BinaryOp(op, left, right, left.start, right.end)  # type: ignore[arg-type]
        return left

    def _term(self) -> Expression:
        left = self._power()
        while (op := self._peek_op("*/")) is not None:
            self._pos += 1
            right = self._power()
            left = BinaryOp(op, left, right, left.start, right.end)  # type: ignore[arg-type]
        return left

    def _power(self) -> Expression:
        left = self._factor()
        while self._peek_op("^") is not None:
            self._pos += 1
            right = self._factor()
            left = BinaryOp("^", left, right, left.start, right.end)
        return left

    def _factor(self) -> Expression:
        tok = self._peek()
        if tok is None:
            end = len(self._formula)
            raise ParseError(
                "Unexpected end of expression",
                self._formula,
                end,
                self._formula[max(0, end - 12) :],
            )

        if tok.kind == "num":
            self._pos += 1
            assert tok.number is not None
            return NumberLiteral(tok.number, tok.start, tok.end)

        if tok.kind == "ref":
            self._pos += 1
            assert tok.key is not None
            return FactReference(tok.key, tok.start, tok.end)

        if tok.kind == "op" and tok.text == "-":
            self._pos += 1
            self._descend(tok)
            try:
                operand = self._factor()
            finally:
                self._depth -= 1
            return UnaryMinus(operand, tok.start, operand.end)

        if tok.kind == "lparen":
            self._pos += 1
            self._descend(tok)
            try:
                inner = self._expr()
            finally:
                self._depth -= 1
            close = self._peek()
            if close is None or close.kind != "rparen":
                raise ParseError(
                    "Unbalanced parentheses, missing ')'",
                    self._formula,
                    tok.start,
                    self._formula[tok.start :],
                )
            self._pos += 1
            return Grouping(inner, tok.start, close.end)

        if tok.kind == "rparen":
            raise ParseError(
                "Unbalanced parentheses, unexpected ')'", self._formula, tok.start, ")"
            )
        raise ParseError("Unexpected token", self._formula, tok.start, tok.text)

    def _descend(self, tok: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise ParseError(
                f"Expression nested deeper than {MAX_NESTING_DEPTH} levels",
                self._formula,
                tok.start,
                _fragment(self._formula, tok.start),
            )


@lru_cache(maxsize=PARSE_CACHE_SIZE)
def parse(formula: str) -> Expression:
    """Parse a formula string into an immutable AST.

    Pure; results are memoized per formula string.

    Args:
        formula: Formula text, e.g. "{anthropic.valuation} / {anthropic.revenue}".

    Returns:
        Root node of the expression tree.

    Raises:
        ParseError: If the formula is empty or malformed.
    """
    return _Parser(formula, tokenize(formula)).parse()
