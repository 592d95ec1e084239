"""Tests for environment-driven configuration."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from factgraph.config import (
    ENV_FACTS_DIR,
    ENV_INFER_NUMERIC,
    ENV_PERCENT_PRECISION,
    ENV_WHOLE_NUMBER_THRESHOLD,
    FormatConfig,
    load_format_config,
    load_loader_config,
)
from factgraph.errors import FactGraphConfigError


class TestFormatConfig:
    """Tests for FormatConfig."""

    def test_defaults(self) -> None:
        """Unset variables give the documented defaults."""
        config = load_format_config()
        assert config == FormatConfig()
        assert config.percent_precision == 0
        assert config.whole_number_threshold == Decimal(100)

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variables override the defaults."""
        monkeypatch.setenv(ENV_PERCENT_PRECISION, "1")
        monkeypatch.setenv(ENV_WHOLE_NUMBER_THRESHOLD, "1000")

        config = load_format_config()

        assert config.percent_precision == 1
        assert config.whole_number_threshold == Decimal(1000)

    @pytest.mark.parametrize(
        ("var", "raw"),
        [
            (ENV_PERCENT_PRECISION, "two"),
            (ENV_PERCENT_PRECISION, "-1"),
            (ENV_WHOLE_NUMBER_THRESHOLD, "lots"),
            (ENV_WHOLE_NUMBER_THRESHOLD, "Infinity"),
            (ENV_WHOLE_NUMBER_THRESHOLD, "0.5"),
        ],
    )
    def test_invalid_env(self, monkeypatch: pytest.MonkeyPatch, var: str, raw: str) -> None:
        """Bad values fail closed instead of falling back to defaults."""
        monkeypatch.setenv(var, raw)
        with pytest.raises(FactGraphConfigError):
            load_format_config()

    def test_negative_precision_rejected(self) -> None:
        """Direct construction validates too."""
        with pytest.raises(FactGraphConfigError, match="unit_precision"):
            FormatConfig(unit_precision=-1)

    @pytest.mark.parametrize(
        ("magnitude", "expected"),
        [
            (Decimal("350"), 0),
            (Decimal("5.0"), 0),
            (Decimal("123.4"), 0),
            (Decimal("27.14"), 1),
            (Decimal("-3.5"), 1),
            (Decimal("0.43"), 2),
        ],
    )
    def test_auto_precision(self, magnitude: Decimal, expected: int) -> None:
        """Integral or large values drop decimals; smaller ones keep more."""
        assert FormatConfig().auto_precision(magnitude) == expected


class TestLoaderConfig:
    """Tests for LoaderConfig."""

    def test_defaults(self) -> None:
        """No facts dir, no inference."""
        config = load_loader_config()
        assert config.facts_dir is None
        assert config.infer_numeric is False

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """FACTGRAPH_FACTS_DIR and FACTGRAPH_INFER_NUMERIC are read."""
        monkeypatch.setenv(ENV_FACTS_DIR, str(tmp_path))
        monkeypatch.setenv(ENV_INFER_NUMERIC, "true")

        config = load_loader_config()

        assert config.facts_dir == tmp_path
        assert config.infer_numeric is True

    @pytest.mark.parametrize("raw", ["0", "false", "NO"])
    def test_boolean_false(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        """Recognized false spellings, case-insensitive."""
        monkeypatch.setenv(ENV_INFER_NUMERIC, raw)
        assert load_loader_config().infer_numeric is False

    def test_boolean_garbage(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unrecognized boolean values are errors."""
        monkeypatch.setenv(ENV_INFER_NUMERIC, "maybe")
        with pytest.raises(FactGraphConfigError, match="FACTGRAPH_INFER_NUMERIC"):
            load_loader_config()
