"""Data models for facts and evaluation results."""

from factgraph.models.evaluation import CalcOptions, EvaluationResult, FactInput, FormatMode
from factgraph.models.fact import Fact, FactKey

__all__ = [
    "CalcOptions",
    "EvaluationResult",
    "Fact",
    "FactInput",
    "FactKey",
    "FormatMode",
]
