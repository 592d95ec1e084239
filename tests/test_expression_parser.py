"""Tests for the formula tokenizer and recursive-descent parser.

Tests verify:
- Operator precedence and associativity
- Fact references become FactKeys
- Numbers, including scientific notation
- Malformed input raises ParseError with position and fragment
- Parsing is memoized per formula string
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from factgraph.calc.ast import (
    BinaryOp,
    FactReference,
    Grouping,
    NumberLiteral,
    UnaryMinus,
    collect_references,
)
from factgraph.calc.parser import MAX_NESTING_DEPTH, parse, tokenize
from factgraph.errors import ParseError
from factgraph.models import FactKey


class TestPrecedence:
    """Tests for operator precedence and associativity."""

    def test_multiplication_binds_tighter(self) -> None:
        """2 + 3 * 4 parses as 2 + (3 * 4)."""
        node = parse("2 + 3 * 4")
        assert isinstance(node, BinaryOp)
        assert node.op == "+"
        assert isinstance(node.right, BinaryOp)
        assert node.right.op == "*"

    def test_left_associative_subtraction(self) -> None:
        """10 - 4 - 3 parses as (10 - 4) - 3."""
        node = parse("10 - 4 - 3")
        assert isinstance(node, BinaryOp)
        assert isinstance(node.left, BinaryOp)
        assert node.left.op == "-"
        assert isinstance(node.right, NumberLiteral)

    def test_power_binds_tighter_than_multiplication(self) -> None:
        """2 * 3 ^ 2 parses as 2 * (3 ^ 2)."""
        node = parse("2 * 3 ^ 2")
        assert isinstance(node, BinaryOp)
        assert node.op == "*"
        assert isinstance(node.right, BinaryOp)
        assert node.right.op == "^"

    def test_unary_minus_binds_tightest(self) -> None:
        """-2 ^ 2 parses as (-2) ^ 2."""
        node = parse("-2 ^ 2")
        assert isinstance(node, BinaryOp)
        assert isinstance(node.left, UnaryMinus)

    def test_parentheses(self) -> None:
        """(2 + 3) * 4 keeps the grouping node."""
        node = parse("(2 + 3) * 4")
        assert isinstance(node, BinaryOp)
        assert isinstance(node.left, Grouping)
        assert isinstance(node.left.inner, BinaryOp)

    def test_whitespace_ignored(self) -> None:
        """Spacing does not change the token stream."""
        assert [t.text for t in tokenize("1+2*3")] == [t.text for t in tokenize(" 1 +  2 * 3 ")]


class TestOperands:
    """Tests for numbers and fact references."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("42", Decimal("42")),
            ("0.5", Decimal("0.5")),
            (".25", Decimal("0.25")),
            ("3.5e+12", Decimal("3.5e12")),
            ("1E-7", Decimal("1e-7")),
        ],
    )
    def test_numbers(self, text: str, expected: Decimal) -> None:
        """Integers, decimals and scientific notation."""
        node = parse(text)
        assert isinstance(node, NumberLiteral)
        assert node.value == expected

    def test_reference(self) -> None:
        """{entity.factId} becomes a FactReference with source offsets."""
        node = parse("{anthropic.revenue-run-rate}")
        assert node == FactReference(FactKey("anthropic", "revenue-run-rate"), 0, 28)

    def test_reference_splits_on_first_dot(self) -> None:
        """Fact ids may contain dots; the entity may not."""
        node = parse("{acme.fy2025.revenue}")
        assert isinstance(node, FactReference)
        assert node.key == FactKey("acme", "fy2025.revenue")

    def test_reference_inner_whitespace(self) -> None:
        """{ a.x } is accepted."""
        node = parse("{ a.x }")
        assert isinstance(node, FactReference)
        assert node.key == FactKey("a", "x")

    def test_collect_references_first_appearance(self) -> None:
        """References come back left to right, each once."""
        node = parse("{a.x} + {b.y} * {a.x} - ({c.z} / {b.y})")
        assert collect_references(node) == [
            FactKey("a", "x"),
            FactKey("b", "y"),
            FactKey("c", "z"),
        ]


class TestParseErrors:
    """Malformed formulas raise ParseError with a location."""

    @pytest.mark.parametrize(
        ("formula", "reason", "position"),
        [
            ("", "Empty expression", 0),
            ("   ", "Empty expression", 0),
            ("1 +", "Unexpected end of expression", 3),
            ("(1 + 2", "Unbalanced parentheses, missing ')'", 0),
            ("{a.x} + )", "Unbalanced parentheses, unexpected ')'", 8),
            ("(1 + 2))", "Unbalanced parentheses, unexpected ')'", 7),
            ("1 $ 2", "Unexpected character", 2),
            ("{a.x", "Unterminated fact reference, expected '}'", 0),
            ("2 * {ax}", "Invalid fact reference, expected {entity.factId}", 4),
            ("{a.x y}", "Invalid fact reference, expected {entity.factId}", 0),
            ("1.2.3", "Malformed number", 0),
            ("2abc", "Malformed number", 0),
            ("1 2", "Unexpected token after expression", 2),
            ("* 2", "Unexpected token", 0),
        ],
    )
    def test_malformed(self, formula: str, reason: str, position: int) -> None:
        """Each malformation reports its reason and character offset."""
        with pytest.raises(ParseError) as exc_info:
            parse(formula)

        err = exc_info.value
        assert err.reason == reason
        assert err.position == position
        assert err.formula == formula

    def test_message_quotes_fragment(self) -> None:
        """The message shows the offending fragment and the formula."""
        with pytest.raises(ParseError) as exc_info:
            parse("{a.x} & {b.y}")

        err = exc_info.value
        assert err.fragment == "&"
        assert str(err) == (
            "Unexpected character at position 6: '&' (in formula '{a.x} & {b.y}')"
        )

    def test_nesting_limit(self) -> None:
        """Pathologically deep nesting is rejected rather than overflowing the stack."""
        deep = "(" * (MAX_NESTING_DEPTH + 1) + "1" + ")" * (MAX_NESTING_DEPTH + 1)
        with pytest.raises(ParseError, match="nested deeper"):
            parse(deep)

    def test_nesting_at_limit_is_fine(self) -> None:
        """Exactly MAX_NESTING_DEPTH levels still parse."""
        nested = "(" * MAX_NESTING_DEPTH + "1" + ")" * MAX_NESTING_DEPTH
        assert isinstance(parse(nested), Grouping)


class TestTokenizeAndCache:
    """Tests for tokenize() and parse() memoization."""

    def test_tokens(self) -> None:
        """Token kinds and offsets."""
        tokens = tokenize("({a.x} - 1.5) ^ 2")
        assert [t.kind for t in tokens] == ["lparen", "ref", "op", "num", "rparen", "op", "num"]
        assert tokens[1].key == FactKey("a", "x")
        assert tokens[3].number == Decimal("1.5")
        assert (tokens[3].start, tokens[3].end) == (9, 12)

    def test_parse_is_memoized(self) -> None:
        """The same formula string returns the same tree object."""
        formula = "{memo.a} * {memo.b} + 7"
        assert parse(formula) is parse(formula)
