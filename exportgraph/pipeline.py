"""
End-to-end graph construction.

Walks an export tree, decodes every file into one ExportGraph, runs the
optional enrichment passes and the index/table closure:

    walk_source -> decode_file -> ExportGraph.apply
                -> apply_module_usage / apply_system_procedures / apply_schema
                -> link_index_tables

Any fatal error aborts the whole build; a partially built graph is never
returned.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from exportgraph.enrich import (
    DEFAULT_USED_SINCE,
    apply_module_usage,
    apply_schema,
    apply_system_procedures,
    check_module_files,
    link_index_tables,
)
from exportgraph.graph import ExportGraph
from exportgraph.models import NodeId, NodeKind
from exportgraph.parser import decode_file
from exportgraph.parser.lexer import Tokenizer, tokenize

logger = logging.getLogger(__name__)

SOURCE_DIRS = frozenset(
    {"Exports", "Forms", "Imports", "Methods", "Procedures", "Processes", "Queries", "Reports"}
)
EXPORT_SUFFIX = ".txt"


@dataclass(frozen=True)
class BuildOptions:
    """
    Optional inputs of a build.

    Attributes:
        modules_csv: Module directory CSV (needs usage_csv)
        usage_csv: Invocation log CSV (needs modules_csv)
        used_since: Invocations on or after this date count as use
        special_json: ``{"systemProcedures": [...]}`` allow-list
        schema_json: Schema dump with tables, fields and indexes

    Raises:
        ConfigurationError: On construction, if only one CSV is given
    """

    modules_csv: Optional[Path] = None
    usage_csv: Optional[Path] = None
    used_since: date = DEFAULT_USED_SINCE
    special_json: Optional[Path] = None
    schema_json: Optional[Path] = None

    def __post_init__(self) -> None:
        check_module_files(self.modules_csv, self.usage_csv)


@dataclass
class BuildResult:
    """
    Result of building the graph of an export tree.

    Attributes:
        graph: The finished graph
        files_decoded: Number of export files processed
        build_time_seconds: Total time taken
    """

    graph: ExportGraph
    files_decoded: int = 0
    build_time_seconds: float = 0.0


def walk_source(source_root: Path | str) -> Iterator[Path]:
    """
    Yield the export files of a source tree in sorted order.

    Only ``*.txt`` files directly inside one of the SOURCE_DIRS
    subdirectories count; ``.git`` is never entered.

    Raises:
        FileNotFoundError: If the root doesn't exist
        NotADirectoryError: If the root is not a directory
    """
    root = Path(source_root)
    if not root.exists():
        raise FileNotFoundError(f"Directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    for path in sorted(root.rglob(f"*{EXPORT_SUFFIX}")):
        relative = path.relative_to(root)
        if ".git" in relative.parts:
            continue
        if len(relative.parts) == 2 and relative.parts[0] in SOURCE_DIRS and path.is_file():
            yield path


def build_graph(
    source_root: Path | str,
    options: Optional[BuildOptions] = None,
    tokenizer: Tokenizer = tokenize,
) -> BuildResult:
    """
    Build the complete reference graph of an export tree.

    Args:
        source_root: Directory holding Methods/, Forms/, ... subdirectories
        options: Enrichment inputs; no enrichment when omitted
        tokenizer: Tokenizer for embedded source text

    Returns:
        BuildResult with the finished graph

    Raises:
        ExportGraphError: On any decode, configuration or enrichment error
    """
    options = options or BuildOptions()
    start_time = time.time()

    graph = ExportGraph()
    result = BuildResult(graph=graph)

    for path in walk_source(source_root):
        logger.debug("decoding %s", path)
        graph.apply(decode_file(path, tokenizer=tokenizer))
        result.files_decoded += 1

    apply_module_usage(graph, options.modules_csv, options.usage_csv, options.used_since)
    apply_system_procedures(graph, options.special_json)
    apply_schema(graph, options.schema_json)
    added = link_index_tables(graph)
    logger.debug("added %d index table reference(s)", added)

    result.build_time_seconds = time.time() - start_time
    logger.info(
        "decoded %d file(s) into %d node(s) in %.2fs",
        result.files_decoded,
        graph.node_count,
        result.build_time_seconds,
    )
    return result


def called_missing_methods(graph: ExportGraph) -> list[tuple[NodeId, NodeId]]:
    """Calls to methods that are not part of the export, sorted."""
    return [
        (caller, callee)
        for caller, callee in graph.missing_references()
        if callee.kind is NodeKind.METHOD
    ]
