"""Depth-first evaluator for parsed formulas.

Fact references resolve through the store: leaf facts contribute their
numeric directly, derived facts are parsed and evaluated recursively and
memoized in the store's DerivedCache. A tuple of keys currently being
resolved is passed down the call stack; meeting a key already on it is a
cycle and is reported with the full chain.

All arithmetic is Decimal under ARITHMETIC_CONTEXT, so one snapshot always
yields identical results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import (
    ROUND_HALF_EVEN,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Final

from factgraph.calc.ast import (
    BinaryOp,
    Expression,
    FactReference,
    Grouping,
    NumberLiteral,
    UnaryMinus,
)
from factgraph.calc.formatting import FormatHint, apply_printf_format, format_value
from factgraph.calc.parser import parse
from factgraph.config import FormatConfig
from factgraph.errors import (
    CircularDependencyError,
    DivisionByZeroError,
    InvalidArithmeticError,
    MissingNumericValue,
    NonComputableFactError,
)
from factgraph.models.evaluation import FactInput
from factgraph.models.fact import Fact, FactKey
from factgraph.store.fact_store import FactStore, ResolvedFact

logger = logging.getLogger(__name__)

ARITHMETIC_CONTEXT: Final = Context(
    prec=28,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


@dataclass(frozen=True)
class Evaluation:
    """Numeric result of one formula plus the leaf facts it used, in first-seen order."""

    numeric: Decimal
    inputs: tuple[FactInput, ...] = field(default_factory=tuple)


def leaf_input(fact: Fact) -> FactInput:
    """Provenance entry for a leaf fact."""
    return FactInput(
        ref=str(fact.key),
        entity=fact.entity,
        fact_id=fact.fact_id,
        value=fact.value,
        numeric=fact.numeric,
        as_of=fact.as_of,
    )


def evaluate(
    node: Expression,
    store: FactStore,
    *,
    formula: str,
    visiting: tuple[FactKey, ...] = (),
    config: FormatConfig | None = None,
) -> Evaluation:
    """Evaluate a parsed formula against a store.

    Args:
        node: Root of the parsed formula.
        store: Fact store snapshot to resolve references against.
        formula: Source text of node, quoted in errors.
        visiting: Derived facts currently being resolved, outermost first.
        config: Format policy for derived facts' display strings.

    Returns:
        Evaluation with the numeric result and its leaf inputs.

    Raises:
        FormulaError: Any resolution or arithmetic failure, unchanged.
    """
    inputs: dict[str, FactInput] = {}
    with localcontext(ARITHMETIC_CONTEXT):
        numeric = _evaluate_node(node, store, formula, visiting, inputs, config)
    return Evaluation(numeric=numeric, inputs=tuple(inputs.values()))


def _evaluate_node(
    node: Expression,
    store: FactStore,
    formula: str,
    visiting: tuple[FactKey, ...],
    inputs: dict[str, FactInput],
    config: FormatConfig | None,
) -> Decimal:
    if isinstance(node, NumberLiteral):
        return node.value
    if isinstance(node, FactReference):
        resolved = resolve_fact(node.key, store, visiting, formula=formula, config=config)
        for item in resolved.inputs:
            inputs.setdefault(item.ref, item)
        return resolved.numeric
    if isinstance(node, Grouping):
        return _evaluate_node(node.inner, store, formula, visiting, inputs, config)
    if isinstance(node, UnaryMinus):
        return -_evaluate_node(node.operand, store, formula, visiting, inputs, config)
    if isinstance(node, BinaryOp):
        # "1 + 1 + ... + 1" parses left-deep; walk the left spine iteratively
        spine: list[BinaryOp] = []
        current: Expression = node
        while isinstance(current, BinaryOp):
            spine.append(current)
            current = current.left
        value = _evaluate_node(current, store, formula, visiting, inputs, config)
        for op_node in reversed(spine):
            right = _evaluate_node(op_node.right, store, formula, visiting, inputs, config)
            value = _apply(op_node, value, right, formula)
        return value
    raise TypeError(f"Unknown expression node: {type(node).__name__}")


def _apply(node: BinaryOp, left: Decimal, right: Decimal, formula: str) -> Decimal:
    if node.op == "/" and right == 0:
        raise DivisionByZeroError(formula, formula[node.right.start : node.right.end])
    if node.op == "^" and left == 0:
        if right == 0:
            return Decimal(1)
        if right < 0:
            raise DivisionByZeroError(formula, formula[node.left.start : node.left.end])
    try:
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if node.op == "/":
            return left / right
        return left**right
    except DecimalException as e:
        fragment = formula[node.start : node.end]
        raise InvalidArithmeticError(
            f"No finite result for '{fragment}' ({type(e).__name__})", formula
        ) from e


def resolve_fact(
    key: FactKey,
    store: FactStore,
    visiting: tuple[FactKey, ...] = (),
    *,
    formula: str | None = None,
    config: FormatConfig | None = None,
) -> ResolvedFact:
    """Resolve one fact to its numeric value, display string and leaf inputs.

    Args:
        key: Fact to resolve.
        store: Store holding the fact and the derived-result memo.
        visiting: Derived facts currently being resolved, outermost first.
        formula: Formula that referenced key, quoted in errors.
        config: Format policy for the display string of derived facts.

    Raises:
        UnknownFactReference: If key is not in the store.
        NonComputableFactError: If the leaf fact is marked noCompute.
        MissingNumericValue: If the leaf fact has no numeric value.
        CircularDependencyError: If key is already being resolved.
        FormulaError: Anything raised while evaluating a derived formula.
    """
    fact = store.require_fact(key, formula)

    if not fact.computed:
        if fact.no_compute:
            raise NonComputableFactError(key, formula)
        if fact.numeric is None:
            raise MissingNumericValue(key, formula)
        display = fact.value or format_value(fact.numeric, config=config)
        return ResolvedFact(key, fact.numeric, display, (leaf_input(fact),))

    cached = store.cache.get(key)
    if cached is not None:
        logger.debug("Derived fact %s served from cache", key)
        return cached

    if key in visiting:
        raise CircularDependencyError((*visiting[visiting.index(key) :], key), formula)

    assert fact.compute is not None
    node = parse(fact.compute)
    evaluation = evaluate(
        node,
        store,
        formula=fact.compute,
        visiting=(*visiting, key),
        config=config,
    )
    if fact.format is not None:
        display = apply_printf_format(evaluation.numeric, fact.format, fact.format_divisor)
    else:
        hint = FormatHint.from_expression(node, evaluation.inputs)
        display = format_value(evaluation.numeric, hint=hint, config=config)

    logger.debug("Derived fact %s computed as %s", key, evaluation.numeric)
    return store.cache.put(ResolvedFact(key, evaluation.numeric, display, evaluation.inputs))
