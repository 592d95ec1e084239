"""In-memory fact store.

The store is built once per build from already-validated Fact records and
is read-only afterwards. The one mutable piece is the DerivedCache, which
memoizes evaluated derived facts for the lifetime of the store instance.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from factgraph.errors import DuplicateFactKeyError, UnknownFactReference
from factgraph.models.evaluation import FactInput
from factgraph.models.fact import Fact, FactKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedFact:
    """Evaluated form of a fact: its numeric, display string and leaf inputs."""

    key: FactKey
    numeric: Decimal
    display: str
    inputs: tuple[FactInput, ...] = field(default_factory=tuple)


class DerivedCache:
    """Per-store memo of evaluated derived facts.

    Thread-safe. Evaluation is deterministic, so a race between two threads
    computing the same fact only duplicates work; the first stored entry wins.
    """

    def __init__(self) -> None:
        self._entries: dict[FactKey, ResolvedFact] = {}
        self._lock = threading.Lock()

    def get(self, key: FactKey) -> ResolvedFact | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, resolved: ResolvedFact) -> ResolvedFact:
        """Store an entry unless one exists; return the stored entry."""
        with self._lock:
            return self._entries.setdefault(resolved.key, resolved)

    def clear(self) -> None:
        """Drop all entries. For testing only."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


class FactStore:
    """Read-only index of canonical facts keyed by (entity, fact_id).

    Facts keep their source order; get_facts_for_entity returns them in the
    order they were defined.
    """

    def __init__(self, facts: Iterable[Fact], source_count: int | None = None) -> None:
        """Build the index.

        Args:
            facts: Validated fact records, in source order.
            source_count: Number of source documents, for the load summary.

        Raises:
            DuplicateFactKeyError: If an (entity, fact_id) pair appears twice.
        """
        self._facts: dict[FactKey, Fact] = {}
        self._by_entity: dict[str, dict[str, Fact]] = {}
        for fact in facts:
            key = fact.key
            if key in self._facts:
                raise DuplicateFactKeyError(fact.entity, fact.fact_id)
            self._facts[key] = fact
            self._by_entity.setdefault(fact.entity, {})[fact.fact_id] = fact
        self.source_count = source_count
        self.cache = DerivedCache()
        logger.debug(
            "Indexed %d facts across %d entities", len(self._facts), len(self._by_entity)
        )

    def get_fact(self, entity: str, fact_id: str) -> Fact | None:
        """Look up a fact; None when it does not exist."""
        return self._facts.get(FactKey(entity, fact_id))

    def require_fact(self, key: FactKey, formula: str | None = None) -> Fact:
        """Look up a fact by key.

        Raises:
            UnknownFactReference: If no fact has this key.
        """
        fact = self._facts.get(key)
        if fact is None:
            raise UnknownFactReference(key, formula)
        return fact

    def get_all_facts(self) -> list[Fact]:
        """All facts in load order."""
        return list(self._facts.values())

    def get_facts_for_entity(self, entity: str) -> dict[str, Fact]:
        """Facts of one entity keyed by fact id, in source order. Empty if unknown."""
        return dict(self._by_entity.get(entity, {}))

    def entities(self) -> list[str]:
        """Entity names in first-seen order."""
        return list(self._by_entity)

    def derived_facts(self) -> list[Fact]:
        """All facts with a compute formula, in load order."""
        return [f for f in self._facts.values() if f.computed]

    def filter_facts(self, query: str = "", include_computed: bool = True) -> list[Fact]:
        """Dashboard filter over entity, fact id, value and measure.

        Args:
            query: Case-insensitive substring; empty matches everything.
            include_computed: If False, derived facts are dropped.
        """
        q = query.strip().lower()
        results = []
        for fact in self._facts.values():
            if not include_computed and fact.computed:
                continue
            if q and not any(
                q in (text or "").lower()
                for text in (fact.entity, fact.fact_id, fact.value, fact.measure)
            ):
                continue
            results.append(fact)
        return results

    def summary(self) -> dict[str, Any]:
        """Counts shown at the top of the fact dashboard."""
        facts = list(self._facts.values())
        return {
            "computed": sum(1 for f in facts if f.computed),
            "entities": len(self._by_entity),
            "facts": len(facts),
            "measures": len({f.measure for f in facts if f.measure}),
        }

    def __len__(self) -> int:
        return len(self._facts)

    def __contains__(self, key: object) -> bool:
        return key in self._facts

    def __iter__(self) -> Iterator[Fact]:
        return iter(self._facts.values())
