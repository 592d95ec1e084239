"""factgraph: canonical facts, derived-fact formulas and their display.

Typical build-time use:

    from factgraph import FactEngine, load_fact_store

    store = load_fact_store(["data/facts"])
    engine = FactEngine(store)
    result = engine.eval_expression("{anthropic.valuation} / {anthropic.revenue}", suffix="x")
    result.display, [i.ref for i in result.inputs]
"""

from factgraph.calc import (
    FactEngine,
    GraphResolution,
    eval_expression,
    evaluate_fact,
    format_value,
    parse,
    resolve_all,
    validate_fact_graph,
)
from factgraph.config import FormatConfig, LoaderConfig
from factgraph.errors import (
    CircularDependencyError,
    DivisionByZeroError,
    DuplicateFactKeyError,
    FactGraphConfigError,
    FactGraphError,
    FactLoadError,
    FactSourceError,
    FormulaError,
    InvalidArithmeticError,
    InvalidFactDefinitionError,
    MissingNumericValue,
    NonComputableFactError,
    ParseError,
    UnknownFactReference,
)
from factgraph.models import (
    CalcOptions,
    EvaluationResult,
    Fact,
    FactInput,
    FactKey,
    FormatMode,
)
from factgraph.store import FactStore
from factgraph.store.loader import load_fact_store

__version__ = "0.1.0"

__all__ = [
    "CalcOptions",
    "CircularDependencyError",
    "DivisionByZeroError",
    "DuplicateFactKeyError",
    "EvaluationResult",
    "Fact",
    "FactEngine",
    "FactGraphConfigError",
    "FactGraphError",
    "FactInput",
    "FactKey",
    "FactLoadError",
    "FactSourceError",
    "FactStore",
    "FormatConfig",
    "FormatMode",
    "FormulaError",
    "GraphResolution",
    "InvalidArithmeticError",
    "InvalidFactDefinitionError",
    "LoaderConfig",
    "MissingNumericValue",
    "NonComputableFactError",
    "ParseError",
    "UnknownFactReference",
    "eval_expression",
    "evaluate_fact",
    "format_value",
    "load_fact_store",
    "parse",
    "resolve_all",
    "validate_fact_graph",
]
