"""Fail-closed loader for fact source files.

Each source is one YAML document per entity:

    entity: anthropic
    facts:
      valuation:
        value: "$380 billion"
        numeric: 380000000000
        asOf: 2026-02
      ps-ratio:
        compute: "{anthropic.valuation} / {anthropic.revenue}"

Any malformed document, invalid fact or duplicate key aborts the whole
load. YAML mappings silently keep the last of two equal keys, so documents
are composed to a node tree and checked for duplicates before construction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import ValidationError

from factgraph.calc.engine import validate_fact_graph
from factgraph.calc.numeric import parse_numeric_value
from factgraph.config import LoaderConfig, load_loader_config
from factgraph.errors import (
    DuplicateFactKeyError,
    FactSourceError,
    InvalidFactDefinitionError,
)
from factgraph.models.fact import Fact, FactKey
from factgraph.store.fact_store import FactStore

logger = logging.getLogger(__name__)

FACT_FILE_SUFFIXES: Final[tuple[str, ...]] = (".yaml", ".yml")
DOCUMENT_KEYS: Final[frozenset[str]] = frozenset({"entity", "facts"})
RESERVED_RECORD_KEYS: Final[frozenset[str]] = frozenset({"entity", "factId", "fact_id"})

SourceItem = str | Path | Mapping[str, Any]


def _iter_sources(sources: Iterable[SourceItem]) -> Iterator[tuple[str, Any]]:
    """Yield (source label, parsed document) pairs in a stable order."""
    for index, item in enumerate(sources):
        if isinstance(item, Mapping):
            yield f"<mapping {index}>", item
            continue
        path = Path(item)
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.suffix in FACT_FILE_SUFFIXES)
            for file in files:
                yield str(file), _read_yaml(file)
        elif path.is_file():
            yield str(path), _read_yaml(path)
        else:
            raise FactSourceError("Fact source not found", source=str(path))


def _read_yaml(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FactSourceError(f"Cannot read fact source: {e}", source=str(path)) from e
    return parse_fact_document(text, str(path))


def parse_fact_document(text: str, source: str = "<string>") -> Any:
    """Parse one YAML fact document, rejecting duplicate mapping keys.

    Raises:
        DuplicateFactKeyError: If a fact id repeats within the document.
        InvalidFactDefinitionError: If a field repeats within one fact.
        FactSourceError: On YAML syntax errors or other duplicate keys.
    """
    loader = yaml.SafeLoader(text)
    try:
        node = loader.get_single_node()
        if node is None:
            raise FactSourceError("Fact source is empty", source=source)
        _check_duplicate_keys(node, source)
        return loader.construct_document(node)
    except yaml.YAMLError as e:
        raise FactSourceError(f"Invalid YAML: {e}", source=source) from e
    finally:
        loader.dispose()


def _scalar_keys(node: yaml.MappingNode) -> Iterator[tuple[str, yaml.Node, yaml.Node]]:
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode):
            yield key_node.value, key_node, value_node


def _duplicates(node: yaml.MappingNode) -> Iterator[tuple[str, yaml.Node]]:
    seen: set[str] = set()
    for key, key_node, _ in _scalar_keys(node):
        if key in seen:
            yield key, key_node
        seen.add(key)


def _at(source: str, node: yaml.Node) -> str:
    return f"{source}:{node.start_mark.line + 1}"


def _check_duplicate_keys(node: yaml.Node, source: str) -> None:
    if not isinstance(node, yaml.MappingNode):
        return
    duplicate = next(_duplicates(node), None)
    if duplicate is not None:
        key, key_node = duplicate
        raise FactSourceError(f"Duplicate top-level key '{key}'", source=_at(source, key_node))

    entity = None
    facts_node = None
    for key, _, value_node in _scalar_keys(node):
        if key == "entity" and isinstance(value_node, yaml.ScalarNode):
            entity = value_node.value
        elif key == "facts":
            facts_node = value_node
    if not isinstance(facts_node, yaml.MappingNode):
        return

    duplicate = next(_duplicates(facts_node), None)
    if duplicate is not None:
        fact_id, key_node = duplicate
        raise DuplicateFactKeyError(entity or "?", fact_id, source=_at(source, key_node))
    for fact_id, _, record_node in _scalar_keys(facts_node):
        if not isinstance(record_node, yaml.MappingNode):
            continue
        duplicate = next(_duplicates(record_node), None)
        if duplicate is not None:
            field_name, key_node = duplicate
            raise InvalidFactDefinitionError(
                entity,
                fact_id,
                f"field '{field_name}' is defined twice",
                source=_at(source, key_node),
            )


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"])
        msg = item["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def facts_from_document(
    document: Any,
    source: str,
    infer_numeric: bool = False,
) -> list[Fact]:
    """Build Fact records from one parsed document.

    Args:
        document: Parsed mapping with 'entity' and 'facts'.
        source: Label used in error messages.
        infer_numeric: Fill numeric from the value string for leaf facts
            that have none, when the string parses unambiguously.

    Raises:
        FactSourceError: If the document is not shaped like a fact file.
        InvalidFactDefinitionError: If a fact record is invalid.
    """
    if not isinstance(document, Mapping):
        raise FactSourceError("Fact document must be a mapping", source=source)
    unknown = set(document) - DOCUMENT_KEYS
    if unknown:
        raise FactSourceError(
            f"Unknown top-level keys: {sorted(map(str, unknown))}", source=source
        )
    entity = document.get("entity")
    if not isinstance(entity, str) or not entity.strip():
        raise FactSourceError("Fact document needs a non-empty 'entity' string", source=source)
    records = document.get("facts")
    if not isinstance(records, Mapping):
        raise FactSourceError(
            "Fact document needs a 'facts' mapping", entity=entity, source=source
        )

    facts: list[Fact] = []
    for fact_id, record in records.items():
        fact_id = str(fact_id)
        if not isinstance(record, Mapping):
            raise InvalidFactDefinitionError(
                entity, fact_id, "fact record must be a mapping", source=source
            )
        clash = RESERVED_RECORD_KEYS & set(record)
        if clash:
            raise InvalidFactDefinitionError(
                entity,
                fact_id,
                f"record must not redefine {sorted(clash)}",
                source=source,
            )
        data = dict(record)
        if infer_numeric and "numeric" not in data and "compute" not in data:
            parsed = parse_numeric_value(data.get("value"))
            if parsed is not None:
                data["numeric"] = parsed
        try:
            facts.append(Fact.model_validate({**data, "entity": entity, "fact_id": fact_id}))
        except ValidationError as e:
            raise InvalidFactDefinitionError(
                entity, fact_id, _describe_validation_error(e), source=source
            ) from e
    return facts


def load_fact_store(
    sources: Iterable[SourceItem] | None = None,
    *,
    config: LoaderConfig | None = None,
    validate: bool = True,
) -> FactStore:
    """Load fact sources into a read-only FactStore.

    Args:
        sources: YAML files, directories of YAML files, or parsed mappings.
            None loads every fact file in FACTGRAPH_FACTS_DIR.
        config: Loader options. Defaults to load_loader_config().
        validate: Run the full-graph validation pass before returning.
            Malformed formulas and unknown references are logged; a cycle
            is raised.

    Returns:
        The populated store.

    Raises:
        FactLoadError: On any malformed source, invalid fact or duplicate key.
        CircularDependencyError: If validate is True and derived facts
            reference each other in a cycle.
    """
    config = config or load_loader_config()
    if sources is None:
        if config.facts_dir is None:
            raise FactSourceError("No fact sources given and FACTGRAPH_FACTS_DIR is not set")
        sources = [config.facts_dir]

    facts: list[Fact] = []
    origin: dict[FactKey, str] = {}
    source_count = 0
    for label, document in _iter_sources(sources):
        source_count += 1
        for fact in facts_from_document(document, label, config.infer_numeric):
            if fact.key in origin:
                raise DuplicateFactKeyError(
                    fact.entity, fact.fact_id, source=f"{origin[fact.key]}, {label}"
                )
            origin[fact.key] = label
            facts.append(fact)

    store = FactStore(facts, source_count=source_count)
    logger.info(
        "Loaded %d facts (%d computed) from %d sources",
        len(store),
        len(store.derived_facts()),
        source_count,
    )
    if validate:
        validate_fact_graph(store)
    return store
