"""Expression AST nodes.

Nodes are immutable and carry the [start, end) offsets of the source text
they were parsed from, so errors can quote the exact sub-expression.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, TypeAlias

from factgraph.models.fact import FactKey

BinaryOperator: TypeAlias = Literal["+", "-", "*", "/", "^"]


@dataclass(frozen=True, slots=True)
class NumberLiteral:
    value: Decimal
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class FactReference:
    key: FactKey
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class BinaryOp:
    op: BinaryOperator
    left: Expression
    right: Expression
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class UnaryMinus:
    operand: Expression
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Grouping:
    inner: Expression
    start: int
    end: int


Expression: TypeAlias = NumberLiteral | FactReference | BinaryOp | UnaryMinus | Grouping


def unwrap_grouping(node: Expression) -> Expression:
    """Strip redundant parentheses around a node."""
    while isinstance(node, Grouping):
        node = node.inner
    return node


def collect_references(node: Expression) -> list[FactKey]:
    """Return fact keys in first-appearance order (left to right), deduplicated."""
    seen: dict[FactKey, None] = {}
    stack: list[Expression] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, FactReference):
            seen.setdefault(current.key, None)
        elif isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, UnaryMinus):
            stack.append(current.operand)
        elif isinstance(current, Grouping):
            stack.append(current.inner)
    return list(seen)
