"""Display formatting for computed values.

Modes:
- currency: $ plus the value scaled to K/M/B/T ("$350B", "-$5B", "$1.5K")
- percent: value * 100 with "%" ("43%")
- number: thousands separators ("1,234")
- auto: percent for ratios in [0, 1], currency when the inputs are dollar
  amounts, otherwise number (see FormatHint.choose_mode)

All rounding is ROUND_HALF_UP. Pure functions; nothing here reads the
fact store.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Final

from factgraph.calc.ast import BinaryOp, Expression, unwrap_grouping
from factgraph.config import FormatConfig
from factgraph.errors import InvalidArithmeticError
from factgraph.models.evaluation import FactInput, FormatMode
from factgraph.models.fact import PRINTF_PLACEHOLDER_RE

CURRENCY_SYMBOL: Final[str] = "$"
CURRENCY_UNITS: Final[tuple[tuple[str, Decimal], ...]] = (
    ("K", Decimal("1e3")),
    ("M", Decimal("1e6")),
    ("B", Decimal("1e9")),
    ("T", Decimal("1e12")),
)
FORMAT_PRECISION: Final[int] = 60

_DEFAULT_CONFIG: Final = FormatConfig()


@dataclass(frozen=True)
class FormatHint:
    """What auto mode knows about where a value came from.

    Attributes:
        is_ratio: The formula's outermost operation is a division.
        percent_inputs: Every input's display value is a percentage.
        currency_inputs: At least one input's display value is a dollar amount.
    """

    is_ratio: bool = False
    percent_inputs: bool = False
    currency_inputs: bool = False

    @classmethod
    def from_expression(cls, node: Expression, inputs: Sequence[FactInput]) -> FormatHint:
        """Derive hints from a parsed formula and its resolved inputs."""
        root = unwrap_grouping(node)
        values = [i.value.strip() for i in inputs if i.value]
        all_percent = bool(inputs) and len(values) == len(inputs)
        return cls(
            is_ratio=isinstance(root, BinaryOp) and root.op == "/",
            percent_inputs=all_percent and all(v.endswith("%") for v in values),
            currency_inputs=any(v.lstrip("-~").startswith(CURRENCY_SYMBOL) for v in values),
        )

    def choose_mode(self, numeric: Decimal) -> FormatMode:
        """Resolve auto mode to a concrete mode for this value."""
        if Decimal(0) <= numeric <= Decimal(1) and (self.is_ratio or self.percent_inputs):
            return FormatMode.PERCENT
        if self.currency_inputs and not self.is_ratio:
            return FormatMode.CURRENCY
        return FormatMode.NUMBER


def _working_precision(value: Decimal, places: int) -> int:
    # enough digits for the integer part (x100 for percent) plus the decimals
    return max(FORMAT_PRECISION, abs(value.adjusted()) + places + 4)


def _quantize(value: Decimal, places: int) -> Decimal:
    rounded = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    # -0.00 renders as 0.00
    return abs(rounded) if rounded == 0 else rounded


def _max_config_places(config: FormatConfig) -> int:
    return max(config.percent_precision, config.unit_precision, config.fraction_precision)


def _grouped(value: Decimal, places: int) -> str:
    return f"{_quantize(value, places):,.{places}f}"


def _format_currency(numeric: Decimal, precision: int | None, config: FormatConfig) -> str:
    magnitude = abs(numeric)
    unit_index = -1
    for index, (_, divisor) in enumerate(CURRENCY_UNITS):
        if magnitude >= divisor:
            unit_index = index

    scaled = magnitude / CURRENCY_UNITS[unit_index][1] if unit_index >= 0 else magnitude
    places = precision if precision is not None else config.auto_precision(scaled)
    rounded = _quantize(scaled, places)

    # 999.96B at one decimal rounds to 1000.0B; show it as 1T instead
    if rounded >= 1000 and unit_index + 1 < len(CURRENCY_UNITS):
        unit_index += 1
        scaled = magnitude / CURRENCY_UNITS[unit_index][1]
        if precision is None:
            places = config.auto_precision(rounded / 1000)
        rounded = _quantize(scaled, places)

    letter = CURRENCY_UNITS[unit_index][0] if unit_index >= 0 else ""
    sign = "-" if numeric < 0 and rounded != 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{rounded:,.{places}f}{letter}"


def format_value(
    numeric: Decimal | int | float,
    mode: FormatMode | str | None = FormatMode.AUTO,
    precision: int | None = None,
    prefix: str = "",
    suffix: str = "",
    *,
    hint: FormatHint | None = None,
    config: FormatConfig | None = None,
) -> str:
    """Render a number for display.

    Args:
        numeric: Value to format. ints and floats are converted via str().
        mode: currency, percent, number or auto. None means auto.
        precision: Decimal places. None selects the configured default.
        prefix: Prepended verbatim.
        suffix: Appended verbatim.
        hint: Provenance hints consulted by auto mode.
        config: Precision policy; defaults to FormatConfig().

    Returns:
        The formatted string.

    Raises:
        InvalidArithmeticError: If numeric is NaN or infinite.
        ValueError: If mode is not a known format mode.
    """
    value = numeric if isinstance(numeric, Decimal) else Decimal(str(numeric))
    if not value.is_finite():
        raise InvalidArithmeticError(f"Cannot format non-finite value {value}")
    config = config or _DEFAULT_CONFIG
    resolved = FormatMode(mode) if mode is not None else FormatMode.AUTO
    if resolved is FormatMode.AUTO:
        resolved = (hint or FormatHint()).choose_mode(value)

    places_bound = precision if precision is not None else _max_config_places(config)
    with localcontext() as ctx:
        ctx.prec = _working_precision(value, places_bound)
        if resolved is FormatMode.CURRENCY:
            core = _format_currency(value, precision, config)
        elif resolved is FormatMode.PERCENT:
            places = precision if precision is not None else config.percent_precision
            core = f"{_grouped(value * 100, places)}%"
        else:
            places = precision if precision is not None else config.auto_precision(value)
            core = _grouped(value, places)

    return f"{prefix}{core}{suffix}"


def apply_printf_format(
    numeric: Decimal,
    fmt: str,
    divisor: Decimal | None = None,
) -> str:
    """Fill the first %f / %.Nf placeholder in fmt.

    Used for derived facts that declare their own display format, e.g.
    format "$%.1f billion" with formatDivisor 1e9.
    """
    if not numeric.is_finite():
        raise InvalidArithmeticError(f"Cannot format non-finite value {numeric}")
    requested = [int(d) for d in PRINTF_PLACEHOLDER_RE.findall(fmt) if d]
    scale = abs(divisor.adjusted()) if divisor else 0
    with localcontext() as ctx:
        ctx.prec = _working_precision(numeric, max(requested, default=0) + scale)
        shown = numeric / divisor if divisor else numeric

        def _fill(match: re.Match[str]) -> str:
            decimals = match.group(1)
            places = int(decimals) if decimals else 0
            return f"{_quantize(shown, places):.{places}f}"

        return PRINTF_PLACEHOLDER_RE.sub(_fill, fmt, count=1)
