"""Typed exceptions for the fact graph.

Two families:
- FactLoadError: structural problems found while loading the store. Fatal;
  a half-loaded store would put wrong numbers on many pages.
- FormulaError: problems with a single formula. Local; callers render them
  as an inline error instead of aborting the page.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from factgraph.models.fact import FactKey


class FactGraphError(Exception):
    """Base class for all fact graph errors."""


class FactGraphConfigError(FactGraphError):
    """Raised when FACTGRAPH_* configuration is invalid."""


# ---------------------------------------------------------------------------
# Load-time errors
# ---------------------------------------------------------------------------


class FactLoadError(FactGraphError):
    """Raised when the fact sources cannot be loaded. Fail-closed."""

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        fact_id: str | None = None,
        source: str | None = None,
    ) -> None:
        self.message = message
        self.entity = entity
        self.fact_id = fact_id
        self.source = source
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.entity is not None:
            parts.append(f"entity={self.entity}")
        if self.fact_id is not None:
            parts.append(f"fact_id={self.fact_id}")
        if self.source is not None:
            parts.append(f"source={self.source}")
        return " | ".join(parts)


class FactSourceError(FactLoadError):
    """Raised when a source document is unreadable or not shaped like a fact file."""


class DuplicateFactKeyError(FactLoadError):
    """Raised when the same (entity, fact_id) pair is defined twice."""

    def __init__(self, entity: str, fact_id: str, source: str | None = None) -> None:
        super().__init__(
            f"Duplicate fact key '{entity}.{fact_id}': fact ids must be unique per entity",
            entity=entity,
            fact_id=fact_id,
            source=source,
        )


class InvalidFactDefinitionError(FactLoadError):
    """Raised when a fact violates the leaf/derived schema rules."""

    def __init__(
        self,
        entity: str | None,
        fact_id: str | None,
        rule: str,
        source: str | None = None,
    ) -> None:
        self.rule = rule
        super().__init__(
            f"Invalid fact definition: {rule}",
            entity=entity,
            fact_id=fact_id,
            source=source,
        )


# ---------------------------------------------------------------------------
# Per-formula errors
# ---------------------------------------------------------------------------


class FormulaError(FactGraphError):
    """Base class for errors raised while parsing or evaluating one formula.

    Attributes:
        formula: The formula text being processed, when known.
        expression: The ad-hoc expression being evaluated when the error was
            raised, set by eval_expression. Differs from formula when the
            failure is inside a derived fact it references.
    """

    def __init__(self, message: str, formula: str | None = None) -> None:
        self.formula = formula
        self.expression: str | None = None
        self.detail = message
        if formula is not None:
            message = f"{message} (in formula '{formula}')"
        super().__init__(message)


class ParseError(FormulaError):
    """Raised for malformed formula syntax.

    Attributes:
        position: Zero-based character offset of the problem.
        fragment: The offending substring.
        reason: Short description of what was expected.
    """

    def __init__(self, reason: str, formula: str, position: int, fragment: str) -> None:
        self.reason = reason
        self.position = position
        self.fragment = fragment
        super().__init__(f"{reason} at position {position}: '{fragment}'", formula)


class UnknownFactReference(FormulaError):
    """Raised when a formula references a fact that is not in the store."""

    def __init__(self, key: FactKey, formula: str | None = None) -> None:
        self.key = key
        super().__init__(f"Unknown fact: {{{key}}}", formula)


class MissingNumericValue(FormulaError):
    """Raised when a leaf fact used in arithmetic has no numeric value."""

    def __init__(self, key: FactKey, formula: str | None = None) -> None:
        self.key = key
        super().__init__(f"Fact {{{key}}} has no numeric value", formula)


class NonComputableFactError(FormulaError):
    """Raised when a fact marked noCompute is referenced in a formula."""

    def __init__(self, key: FactKey, formula: str | None = None) -> None:
        self.key = key
        super().__init__(
            f"Fact {{{key}}} is marked noCompute (not a computable quantity)", formula
        )


class CircularDependencyError(FormulaError):
    """Raised when derived facts reference each other in a cycle.

    Attributes:
        chain: Keys along the cycle; the first and last entries are the same fact.
    """

    def __init__(self, chain: Sequence[FactKey], formula: str | None = None) -> None:
        self.chain = tuple(chain)
        rendered = " -> ".join(str(k) for k in self.chain)
        super().__init__(f"Circular dependency: {rendered}", formula)


class DivisionByZeroError(FormulaError):
    """Raised when a divisor evaluates to zero."""

    def __init__(self, formula: str, divisor: str) -> None:
        self.divisor = divisor
        super().__init__(f"Division by zero: divisor '{divisor}' evaluated to 0", formula)


class InvalidArithmeticError(FormulaError):
    """Raised for arithmetic with no finite Decimal result (overflow, complex power)."""
