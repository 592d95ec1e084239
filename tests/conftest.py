"""Pytest configuration and fixtures for factgraph tests.

Fixtures build fact stores from in-memory documents or YAML files written
to tmp_path. FACTGRAPH_* variables are cleared for every test so the
developer's environment never leaks into results.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from factgraph.config import (
    ENV_FACTS_DIR,
    ENV_INFER_NUMERIC,
    ENV_PERCENT_PRECISION,
    ENV_WHOLE_NUMBER_THRESHOLD,
)
from factgraph.store import FactStore
from factgraph.store.loader import load_fact_store

ANTHROPIC_DOC: dict[str, Any] = {
    "entity": "anthropic",
    "facts": {
        "valuation": {
            "value": "$380 billion",
            "numeric": 380_000_000_000,
            "asOf": "2026-02",
            "source": "https://example.com/series-g",
            "measure": "valuation",
        },
        "revenue-run-rate": {
            "value": "$14 billion",
            "numeric": 14_000_000_000,
            "asOf": "2026-01",
            "measure": "revenue",
        },
        "gross-margin": {"value": "40%", "numeric": 0.4, "asOf": "2025"},
        "founded": {"value": "2021", "noCompute": True},
        "headline": {"value": "AI safety company"},
        "valuation-multiple": {
            "compute": "{anthropic.valuation} / {anthropic.revenue-run-rate}",
        },
        "valuation-billions": {
            "compute": "{anthropic.valuation}",
            "format": "$%.0f billion",
            "formatDivisor": 1_000_000_000,
        },
    },
}

OPENAI_DOC: dict[str, Any] = {
    "entity": "openai",
    "facts": {
        "valuation": {"value": "$500 billion", "numeric": 500_000_000_000, "asOf": "2025-10"},
        "revenue-run-rate": {"value": "$20 billion", "numeric": 20_000_000_000},
    },
}


@pytest.fixture(autouse=True)
def clear_factgraph_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove FACTGRAPH_* variables for all tests."""
    for var in (
        ENV_FACTS_DIR,
        ENV_INFER_NUMERIC,
        ENV_PERCENT_PRECISION,
        ENV_WHOLE_NUMBER_THRESHOLD,
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store() -> FactStore:
    """Store with two entities and a few derived facts."""
    return load_fact_store([ANTHROPIC_DOC, OPENAI_DOC])


@pytest.fixture
def make_store() -> Callable[..., FactStore]:
    """Build a store from entity -> {factId: record} mappings.

    Usage:
        make_store({"a": {"x": {"numeric": 1}}}, validate=False)
    """

    def _make(entities: dict[str, dict[str, Any]], validate: bool = True) -> FactStore:
        docs = [{"entity": entity, "facts": facts} for entity, facts in entities.items()]
        return load_fact_store(docs, validate=validate)

    return _make


@pytest.fixture
def write_facts(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a YAML fact file under tmp_path/facts and return its path."""
    facts_dir = tmp_path / "facts"
    facts_dir.mkdir()

    def _write(name: str, text: str) -> Path:
        path = facts_dir / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
