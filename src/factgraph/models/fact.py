"""Fact model: one canonical, typed statement about an entity.

A fact is either a leaf (sourced value and/or numeric) or derived (a
compute formula over other facts). The record is immutable after load;
evaluated results of derived facts live in the store's memo, never here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PRINTF_PLACEHOLDER_RE: Final = re.compile(r"%(?:\.(\d+))?f")


@dataclass(frozen=True, slots=True, order=True)
class FactKey:
    """Typed (entity, fact_id) lookup key. Renders as "entity.factId"."""

    entity: str
    fact_id: str

    def __str__(self) -> str:
        return f"{self.entity}.{self.fact_id}"


def _coerce_decimal(v: object) -> Decimal | None:
    if v is None or isinstance(v, Decimal):
        return v
    if isinstance(v, bool):
        raise ValueError("boolean is not a number")
    if isinstance(v, (int, float, str)):
        try:
            result = Decimal(str(v).strip())
        except InvalidOperation as e:
            raise ValueError(f"'{v}' is not a number") from e
        if not result.is_finite():
            raise ValueError(f"'{v}' is not a finite number")
        return result
    raise ValueError(f"Cannot convert {type(v).__name__} to Decimal")


class Fact(BaseModel):
    """A canonical fact as read from source.

    Source files use camelCase keys (asOf, noCompute, formatDivisor); both
    those and the snake_case field names are accepted.
    """

    entity: str = Field(..., min_length=1, description="Entity the fact is attached to")
    fact_id: str = Field(..., min_length=1, alias="factId", description="Id unique per entity")
    value: str | None = Field(default=None, description="Pre-formatted display string")
    numeric: Decimal | None = Field(default=None, description="Canonical numeric magnitude")
    as_of: str | None = Field(default=None, alias="asOf", description="When the value was true")
    source: str | None = Field(default=None, description="Citation")
    note: str | None = Field(default=None, description="Free-text annotation")
    compute: str | None = Field(default=None, description="Formula, derived facts only")
    label: str | None = Field(default=None, description="Human-readable label")
    measure: str | None = Field(default=None, description="Measure id for grouping")
    low: Decimal | None = Field(default=None, description="Lower bound of a range value")
    high: Decimal | None = Field(default=None, description="Upper bound of a range value")
    no_compute: bool = Field(
        default=False,
        alias="noCompute",
        description="If True, the fact may not be used in arithmetic",
    )
    format: str | None = Field(
        default=None,
        description="printf-style display format for derived facts, e.g. '%.1f billion'",
    )
    format_divisor: Decimal | None = Field(
        default=None,
        alias="formatDivisor",
        description="Divisor applied to the computed value before format",
    )

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("numeric", "low", "high", "format_divisor", mode="before")
    @classmethod
    def coerce_decimal(cls, v: object) -> Decimal | None:
        """Coerce YAML ints/floats/strings to Decimal via their string form."""
        return _coerce_decimal(v)

    @field_validator("value", "as_of", mode="before")
    @classmethod
    def coerce_text(cls, v: object) -> str | None:
        """YAML turns 2025-12-01 into a date and 1900 into an int; keep them as text."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, bool):
            raise ValueError("boolean is not a display value")
        if isinstance(v, (int, float, Decimal, date)):
            return str(v)
        raise ValueError(f"Expected a string, got {type(v).__name__}")

    @model_validator(mode="after")
    def check_leaf_or_derived(self) -> Fact:
        """Enforce leaf/derived exclusivity."""
        if self.compute is not None:
            if not self.compute.strip():
                raise ValueError("compute formula must not be empty")
            if self.numeric is not None:
                raise ValueError("derived fact (compute) must not also supply numeric")
            if self.value is not None:
                raise ValueError("derived fact (compute) must not also supply value")
        else:
            if self.value is None and self.numeric is None:
                raise ValueError("leaf fact must supply value and/or numeric")
            if self.format is not None or self.format_divisor is not None:
                raise ValueError("format/formatDivisor only apply to derived facts")
        if self.format is not None and PRINTF_PLACEHOLDER_RE.search(self.format) is None:
            raise ValueError("format must contain a %f or %.Nf placeholder")
        if self.format_divisor is not None and self.format_divisor == 0:
            raise ValueError("formatDivisor must be non-zero")
        return self

    @property
    def key(self) -> FactKey:
        """Composite lookup key."""
        return FactKey(self.entity, self.fact_id)

    @property
    def computed(self) -> bool:
        """True iff the fact is derived from a formula."""
        return self.compute is not None
