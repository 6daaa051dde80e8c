"""
Schema enrichment passes.

apply_schema back-fills tables, fields and indexes from a schema dump, so
that fields and indexes point at the table they belong to even when no
export record says so. link_index_tables then lets anything that uses an
index also reference the index's table directly.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from exportgraph.errors import EnrichmentError
from exportgraph.graph.builder import ExportGraph
from exportgraph.models import NodeId, NodeKind

logger = logging.getLogger(__name__)


def _load_tables(path: Path) -> list[dict[str, Any]]:
    try:
        with path.open(encoding="utf-8") as handle:
            tables = json.load(handle)
    except OSError as e:
        raise EnrichmentError(f"failed to open schema dump file: {e}", path=str(path)) from e
    except json.JSONDecodeError as e:
        raise EnrichmentError(f"failed to decode schema dump file: {e}", path=str(path)) from e

    if not isinstance(tables, list):
        raise EnrichmentError("schema dump must be a JSON array of tables", path=str(path))
    return tables


def _names(entries: Optional[list[dict[str, Any]]]) -> list[str]:
    return [
        entry["name"] for entry in entries or [] if isinstance(entry, dict) and entry.get("name")
    ]


def apply_schema(graph: ExportGraph, schema_json: Optional[Path | str]) -> int:
    """
    Reconcile the graph with a schema dump.

    The dump is an array of ``{"name", "fields": [{"name"}], "indexes":
    [{"name"}]}`` objects. Every table gets a node; every field and index
    gets a node that references its table.

    Returns:
        Number of tables applied

    Raises:
        EnrichmentError: If the file can't be read or has the wrong shape
    """
    if not schema_json:
        return 0

    path = Path(schema_json)
    tables = _load_tables(path)

    for table in tables:
        if not isinstance(table, dict) or not table.get("name"):
            raise EnrichmentError("schema table without a name", path=str(path))

        table_id = NodeId.of(table["name"], NodeKind.TABLE)
        graph.ensure_node(table_id, table["name"])

        for index_name in _names(table.get("indexes")):
            index_id = NodeId.of(index_name, NodeKind.INDEX)
            graph.ensure_node(index_id, index_name)
            graph.add_reference(index_id, table_id)

        for field_name in _names(table.get("fields")):
            field_id = NodeId.of(field_name, NodeKind.FIELD)
            graph.ensure_node(field_id, field_name)
            graph.add_reference(field_id, table_id)

    logger.info("applied schema for %d table(s)", len(tables))
    return len(tables)


def link_index_tables(graph: ExportGraph) -> int:
    """
    Wherever a node references an index, also reference the index's table.

    Exactly one hop: the tables an index references directly are copied
    onto every node referencing that index. Additions are collected first
    and applied afterwards, so the result doesn't depend on visiting order.

    Returns:
        Number of references added
    """
    additions: list[tuple[NodeId, NodeId]] = []

    for node in graph.nodes_sorted():
        for ref in node.refs_sorted():
            if ref.kind is not NodeKind.INDEX:
                continue
            index = graph.get_node(ref)
            if index is None:
                continue
            for inner in index.refs_sorted():
                if inner.kind is NodeKind.TABLE and inner not in node.refs:
                    additions.append((node.id, inner))

    unique = list(dict.fromkeys(additions))
    for from_id, to_id in unique:
        graph.add_reference(from_id, to_id)
    return len(unique)
