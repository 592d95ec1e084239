"""Fact store: the read-only index of canonical facts.

load_fact_store lives in factgraph.store.loader; it depends on the calc
package for graph validation, which in turn depends on this package.
"""

from factgraph.store.fact_store import DerivedCache, FactStore, ResolvedFact

__all__ = ["DerivedCache", "FactStore", "ResolvedFact"]
