"""Formula language: parser, evaluator, formatter and engine.

This package provides:
- parse: formula text to immutable AST (memoized)
- evaluate / resolve_fact: depth-first Decimal evaluation with cycle detection
- format_value: currency / percent / number / auto display strings
- eval_expression / FactEngine: ad-hoc expressions and whole-graph passes
"""

from factgraph.calc.engine import (
    FactEngine,
    GraphResolution,
    eval_expression,
    evaluate_fact,
    resolve_all,
    validate_fact_graph,
)
from factgraph.calc.evaluator import Evaluation, evaluate, resolve_fact
from factgraph.calc.formatting import FormatHint, apply_printf_format, format_value
from factgraph.calc.numeric import parse_numeric_value
from factgraph.calc.parser import parse

__all__ = [
    "Evaluation",
    "FactEngine",
    "FormatHint",
    "GraphResolution",
    "apply_printf_format",
    "eval_expression",
    "evaluate",
    "evaluate_fact",
    "format_value",
    "parse",
    "parse_numeric_value",
    "resolve_all",
    "resolve_fact",
    "validate_fact_graph",
]
