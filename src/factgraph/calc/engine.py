"""Fact engine: the entry points consumers call.

- eval_expression: ad-hoc formulas embedded in content (parse, evaluate,
  format). Results are returned to the caller, never written to the store.
- evaluate_fact: display-ready result for a fact in the store.
- validate_fact_graph: eager whole-graph pass run at load time; cycles
  are fatal, per-formula problems are reported.
- resolve_all: evaluate every derived fact for the dashboard, collecting
  per-fact failures instead of aborting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from factgraph.calc.ast import collect_references
from factgraph.calc.evaluator import evaluate, resolve_fact
from factgraph.calc.formatting import FormatHint, format_value
from factgraph.calc.parser import parse
from factgraph.config import FormatConfig, load_format_config
from factgraph.errors import CircularDependencyError, FormulaError, UnknownFactReference
from factgraph.models.evaluation import CalcOptions, EvaluationResult
from factgraph.models.fact import FactKey
from factgraph.store.fact_store import FactStore, ResolvedFact

logger = logging.getLogger(__name__)


def _merge_options(options: CalcOptions | None, overrides: dict[str, Any]) -> CalcOptions:
    if not overrides:
        return options or CalcOptions()
    base = options.model_dump() if options is not None else {}
    return CalcOptions.model_validate({**base, **overrides})


def eval_expression(
    formula: str,
    store: FactStore,
    options: CalcOptions | None = None,
    *,
    config: FormatConfig | None = None,
    **overrides: Any,
) -> EvaluationResult:
    """Evaluate an ad-hoc expression against the store.

    Args:
        formula: Expression text, e.g. "{anthropic.valuation} / {anthropic.revenue}".
        store: Fact store snapshot.
        options: Display options (format, precision, prefix, suffix).
        config: Format policy. Defaults to FormatConfig().
        **overrides: Individual option fields, e.g. format="percent".

    Returns:
        EvaluationResult with numeric, display string and leaf inputs.

    Raises:
        FormulaError: Parse, reference or arithmetic failure. The error's
            expression attribute holds formula.
    """
    opts = _merge_options(options, overrides)
    try:
        node = parse(formula)
        evaluation = evaluate(node, store, formula=formula, config=config)
    except FormulaError as e:
        e.expression = formula
        e.add_note(f"while evaluating expression '{formula}'")
        raise

    hint = FormatHint.from_expression(node, evaluation.inputs)
    display = format_value(
        evaluation.numeric,
        opts.format,
        opts.precision,
        opts.prefix,
        opts.suffix,
        hint=hint,
        config=config,
    )
    return EvaluationResult(
        numeric=evaluation.numeric,
        display=display,
        inputs=list(evaluation.inputs),
        formula=formula,
    )


def evaluate_fact(
    entity: str,
    fact_id: str,
    store: FactStore,
    *,
    config: FormatConfig | None = None,
) -> EvaluationResult:
    """Evaluate one stored fact (leaf or derived) for display.

    Derived results are memoized in the store; calling this twice returns
    identical numeric and inputs.
    """
    key = FactKey(entity, fact_id)
    resolved = resolve_fact(key, store, config=config)
    fact = store.require_fact(key)
    return EvaluationResult(
        numeric=resolved.numeric,
        display=resolved.display,
        inputs=list(resolved.inputs),
        formula=fact.compute or f"{{{key}}}",
    )


def validate_fact_graph(store: FactStore) -> list[FormulaError]:
    """Check every derived fact's formula and the dependency graph.

    Formulas that fail to parse or reference unknown facts are returned
    (and logged) so each can be shown as an error where it is displayed.
    A cycle is raised: it makes every fact on it meaningless.

    Returns:
        Per-formula problems, in load order.

    Raises:
        CircularDependencyError: With the chain of keys forming the cycle.
    """
    problems: list[FormulaError] = []
    edges: dict[FactKey, list[FactKey]] = {}
    formulas: dict[FactKey, str] = {}

    for fact in store.derived_facts():
        assert fact.compute is not None
        formulas[fact.key] = fact.compute
        try:
            refs = collect_references(parse(fact.compute))
        except FormulaError as e:
            problems.append(e)
            edges[fact.key] = []
            continue
        missing = [ref for ref in refs if ref not in store]
        if missing:
            problems.append(UnknownFactReference(missing[0], fact.compute))
        edges[fact.key] = [ref for ref in refs if ref in store]

    state: dict[FactKey, bool] = {}  # False while on the DFS path, True when finished
    path: list[FactKey] = []

    def visit(key: FactKey) -> None:
        state[key] = False
        path.append(key)
        for dep in edges.get(key, []):
            if dep not in edges:
                continue
            if state.get(dep) is False:
                chain = [*path[path.index(dep) :], dep]
                raise CircularDependencyError(chain, formulas[key])
            if dep not in state:
                visit(dep)
        path.pop()
        state[key] = True

    for key in edges:
        if key not in state:
            visit(key)

    for problem in problems:
        logger.warning("Invalid derived fact formula: %s", problem)
    logger.info(
        "Validated fact graph: %d derived facts, %d formula problems",
        len(edges),
        len(problems),
    )
    return problems


@dataclass
class GraphResolution:
    """Outcome of evaluating every derived fact in a store."""

    resolved: dict[FactKey, ResolvedFact] = field(default_factory=dict)
    failures: dict[FactKey, FormulaError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_all(store: FactStore, *, config: FormatConfig | None = None) -> GraphResolution:
    """Evaluate every derived fact, in load order.

    A failing fact is recorded in failures and logged; the others still
    resolve. Results land in the store's memo.
    """
    result = GraphResolution()
    for fact in store.derived_facts():
        try:
            result.resolved[fact.key] = resolve_fact(fact.key, store, config=config)
        except FormulaError as e:
            logger.warning("Failed to compute %s: %s", fact.key, e)
            result.failures[fact.key] = e
    logger.info(
        "Resolved %d derived facts (%d failed)", len(result.resolved), len(result.failures)
    )
    return result


class FactEngine:
    """Fact store plus the format policy used to display its results.

    Usage:
        engine = FactEngine(load_fact_store(["data/facts"]))
        engine.eval_expression("{anthropic.valuation} / {anthropic.revenue}", suffix="x")
    """

    def __init__(self, store: FactStore, config: FormatConfig | None = None) -> None:
        """Initialize the engine.

        Args:
            store: Loaded fact store.
            config: Format policy. Defaults to load_format_config().
        """
        self._store = store
        self._config = config or load_format_config()

    @property
    def store(self) -> FactStore:
        return self._store

    @property
    def config(self) -> FormatConfig:
        return self._config

    def eval_expression(
        self,
        formula: str,
        options: CalcOptions | None = None,
        **overrides: Any,
    ) -> EvaluationResult:
        """Evaluate an ad-hoc expression. See eval_expression()."""
        return eval_expression(formula, self._store, options, config=self._config, **overrides)

    def evaluate_fact(self, entity: str, fact_id: str) -> EvaluationResult:
        """Evaluate a stored fact. See evaluate_fact()."""
        return evaluate_fact(entity, fact_id, self._store, config=self._config)

    def validate(self) -> list[FormulaError]:
        """Run the whole-graph validation pass. See validate_fact_graph()."""
        return validate_fact_graph(self._store)

    def resolve_all(self) -> GraphResolution:
        """Evaluate every derived fact. See resolve_all()."""
        return resolve_all(self._store, config=self._config)
