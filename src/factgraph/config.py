"""Environment-driven configuration for the fact graph.

Environment variables:
    FACTGRAPH_FACTS_DIR: Default directory of fact YAML files (default: unset)
    FACTGRAPH_INFER_NUMERIC: "1" to derive numeric from value strings at load (default: off)
    FACTGRAPH_PERCENT_PRECISION: Default decimals for percent output (default: 0)
    FACTGRAPH_WHOLE_NUMBER_THRESHOLD: Magnitude at or above which auto precision
        drops decimals (default: 100)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Final

from factgraph.errors import FactGraphConfigError

ENV_FACTS_DIR: Final[str] = "FACTGRAPH_FACTS_DIR"
ENV_INFER_NUMERIC: Final[str] = "FACTGRAPH_INFER_NUMERIC"
ENV_PERCENT_PRECISION: Final[str] = "FACTGRAPH_PERCENT_PRECISION"
ENV_WHOLE_NUMBER_THRESHOLD: Final[str] = "FACTGRAPH_WHOLE_NUMBER_THRESHOLD"

DEFAULT_PERCENT_PRECISION: Final[int] = 0
DEFAULT_WHOLE_NUMBER_THRESHOLD: Final[Decimal] = Decimal("100")
DEFAULT_UNIT_PRECISION: Final[int] = 1
DEFAULT_FRACTION_PRECISION: Final[int] = 2


@dataclass(frozen=True)
class FormatConfig:
    """Precision policy for the formatter (immutable).

    Auto precision, applied when the caller passes no precision:
    integral values and values with magnitude >= whole_number_threshold get 0
    decimals, values >= 1 get unit_precision, smaller values get
    fraction_precision. Currency applies this to the scaled magnitude
    (350 for $350B), not the raw number.

    Attributes:
        percent_precision: Decimals used by percent mode when none is given.
        whole_number_threshold: Magnitude from which decimals are dropped.
        unit_precision: Decimals for magnitudes in [1, whole_number_threshold).
        fraction_precision: Decimals for magnitudes below 1.
    """

    percent_precision: int = DEFAULT_PERCENT_PRECISION
    whole_number_threshold: Decimal = DEFAULT_WHOLE_NUMBER_THRESHOLD
    unit_precision: int = DEFAULT_UNIT_PRECISION
    fraction_precision: int = DEFAULT_FRACTION_PRECISION

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for name in ("percent_precision", "unit_precision", "fraction_precision"):
            value = getattr(self, name)
            if value < 0:
                raise FactGraphConfigError(f"{name} must be a non-negative integer, got {value}")
        if self.whole_number_threshold < 1:
            raise FactGraphConfigError(
                f"whole_number_threshold must be >= 1, got {self.whole_number_threshold}"
            )

    def auto_precision(self, magnitude: Decimal) -> int:
        """Pick the number of decimals for a value when the caller gave none."""
        magnitude = abs(magnitude)
        if magnitude == magnitude.to_integral_value():
            return 0
        if magnitude >= self.whole_number_threshold:
            return 0
        if magnitude >= 1:
            return self.unit_precision
        return self.fraction_precision


@dataclass(frozen=True)
class LoaderConfig:
    """Fact source loading options (immutable).

    Attributes:
        facts_dir: Directory scanned when no explicit sources are given.
        infer_numeric: Fill in numeric for leaf facts whose value string parses.
    """

    facts_dir: Path | None = None
    infer_numeric: bool = False


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    if val == "":
        return default
    raise FactGraphConfigError(f"{key} must be a boolean (1/0, true/false), got '{val}'")


def _parse_non_negative_int(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise FactGraphConfigError(f"{env_var} must be a non-negative integer, got '{raw}'") from e
    if value < 0:
        raise FactGraphConfigError(f"{env_var} must be a non-negative integer, got {value}")
    return value


def _parse_decimal(env_var: str, default: Decimal) -> Decimal:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation as e:
        raise FactGraphConfigError(f"{env_var} must be a number, got '{raw}'") from e
    if not value.is_finite():
        raise FactGraphConfigError(f"{env_var} must be finite, got '{raw}'")
    return value


def load_format_config() -> FormatConfig:
    """Load formatter configuration from environment variables.

    Returns:
        FormatConfig with validated values.

    Raises:
        FactGraphConfigError: If any variable is set to an invalid value.
    """
    return FormatConfig(
        percent_precision=_parse_non_negative_int(
            ENV_PERCENT_PRECISION, DEFAULT_PERCENT_PRECISION
        ),
        whole_number_threshold=_parse_decimal(
            ENV_WHOLE_NUMBER_THRESHOLD, DEFAULT_WHOLE_NUMBER_THRESHOLD
        ),
    )


def load_loader_config() -> LoaderConfig:
    """Load fact loader configuration from environment variables."""
    raw_dir = os.environ.get(ENV_FACTS_DIR, "").strip()
    return LoaderConfig(
        facts_dir=Path(raw_dir) if raw_dir else None,
        infer_numeric=_get_env_bool(ENV_INFER_NUMERIC),
    )
