"""Result and option types for formula evaluation."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class FormatMode(StrEnum):
    """Display modes supported by the formatter."""

    CURRENCY = "currency"
    PERCENT = "percent"
    NUMBER = "number"
    AUTO = "auto"


class FactInput(BaseModel):
    """A leaf fact that contributed to an evaluated result."""

    ref: str = Field(..., description="Composite key 'entity.factId'")
    entity: str
    fact_id: str
    value: str | None = Field(default=None, description="Display string from source")
    numeric: Decimal | None = Field(default=None, description="Numeric used in arithmetic")
    as_of: str | None = Field(default=None, description="When the value was observed")

    model_config = ConfigDict(frozen=True, extra="forbid")


class EvaluationResult(BaseModel):
    """Outcome of evaluating a formula against a fact store.

    inputs lists every leaf fact that transitively contributed, in the order
    their references first appear in the formula, each key at most once.
    """

    numeric: Decimal = Field(..., description="Computed value")
    display: str = Field(..., description="Formatted display string")
    inputs: list[FactInput] = Field(default_factory=list)
    formula: str = Field(..., description="The evaluated formula text")

    model_config = ConfigDict(frozen=True, extra="forbid")


class CalcOptions(BaseModel):
    """Display options for an ad-hoc expression.

    format None means auto. prefix and suffix are added verbatim.
    """

    format: FormatMode | None = None
    precision: int | None = Field(default=None, ge=0, le=20)
    prefix: str = ""
    suffix: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")
