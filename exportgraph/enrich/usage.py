"""
Usage enrichment passes.

Static analysis can't see every invocation path: modules started by the
scheduler, by other systems, or by users from a menu never appear as calls
in the export. These passes mark such nodes as used from external evidence.

    apply_module_usage       module directory CSV + invocation log CSV
    apply_system_procedures  allow-list of externally invoked procedures

Both only extend ExportGraph.used; neither creates nodes.
"""

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from exportgraph.errors import ConfigurationError, EnrichmentError
from exportgraph.graph.builder import ExportGraph
from exportgraph.models import NodeId, NodeKind, parse_full_name
from exportgraph.parser.records import TEXT_ENCODING

logger = logging.getLogger(__name__)

DEFAULT_USED_SINCE = date(2024, 1, 1)

# Module directory: column 0 = dotted module name, column 6 = logic id
MODULE_NAME_COLUMN = 0
MODULE_ID_COLUMN = 6

# Invocation log: column 0 = ISO date, column 13 = logic id
USAGE_DATE_COLUMN = 0
USAGE_ID_COLUMN = 13


def check_module_files(modules_csv: Optional[Path | str], usage_csv: Optional[Path | str]) -> None:
    """
    Validate that the module CSV files are supplied together or not at all.

    Raises:
        ConfigurationError: If exactly one of the two files is given
    """
    if bool(modules_csv) != bool(usage_csv):
        raise ConfigurationError(
            "module CSV files must both be provided",
            modules_csv=str(modules_csv) if modules_csv else None,
            usage_csv=str(usage_csv) if usage_csv else None,
        )


def _read_rows(path: Path) -> Iterator[tuple[int, list[str]]]:
    """Yield (line number, row) for every data row, skipping the header."""
    try:
        with path.open(newline="", encoding=TEXT_ENCODING, errors="replace") as handle:
            reader = csv.reader(handle, skipinitialspace=True)
            next(reader, None)
            for row in reader:
                yield reader.line_num, row
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise EnrichmentError(f"error reading CSV file: {e}", path=str(path)) from e


def _column(row: list[str], index: int, path: Path, line: int) -> str:
    try:
        return row[index].strip()
    except IndexError:
        raise EnrichmentError(
            f"row has no column {index}", path=str(path), line=line
        ) from None


def read_module_directory(modules_csv: Path | str) -> dict[str, str]:
    """Map logic id -> dotted module name."""
    path = Path(modules_csv)
    names: dict[str, str] = {}
    for line, row in _read_rows(path):
        names[_column(row, MODULE_ID_COLUMN, path, line)] = _column(
            row, MODULE_NAME_COLUMN, path, line
        )
    return names


def read_used_ids(usage_csv: Path | str, since: date = DEFAULT_USED_SINCE) -> set[str]:
    """
    Return the logic ids invoked on or after ``since``.

    Only the date part (first ten characters) of the timestamp is used.
    """
    path = Path(usage_csv)
    used: set[str] = set()
    for line, row in _read_rows(path):
        raw_date = _column(row, USAGE_DATE_COLUMN, path, line)
        try:
            invoked = date.fromisoformat(raw_date[:10])
        except ValueError:
            raise EnrichmentError(
                f"error parsing date {raw_date!r} from usage CSV", path=str(path), line=line
            ) from None
        if invoked >= since:
            used.add(_column(row, USAGE_ID_COLUMN, path, line))
    return used


def apply_module_usage(
    graph: ExportGraph,
    modules_csv: Optional[Path | str],
    usage_csv: Optional[Path | str],
    since: date = DEFAULT_USED_SINCE,
) -> set[NodeId]:
    """
    Mark modules invoked on or after ``since`` as used.

    Args:
        graph: Graph to annotate
        modules_csv: Module directory export (logic id -> module name)
        usage_csv: Per-invocation log export (date, ..., logic id)
        since: Cutoff date, inclusive

    Returns:
        The ids marked used by this pass

    Raises:
        ConfigurationError: If only one of the two files is given
        EnrichmentError: If a file can't be read, a date can't be parsed,
            or a logged id is not in the module directory
    """
    check_module_files(modules_csv, usage_csv)
    if not modules_csv:
        return set()

    names = read_module_directory(modules_csv)
    used_ids = read_used_ids(usage_csv, since)

    marked: set[NodeId] = set()
    for logic_id in sorted(used_ids):
        name = names.get(logic_id)
        if name is None:
            raise EnrichmentError(
                f"unknown module with logic id {logic_id}", path=str(modules_csv)
            )

        # Some names are truncated in the directory and lose their extension.
        if "." not in name:
            logger.warning("module name %r for logic id %s is truncated - skipping", name, logic_id)
            continue

        node_id, _ = parse_full_name(name)
        if node_id.kind is NodeKind.UNKNOWN:
            logger.debug("module %r has an unknown extension - skipping", name)
            continue

        graph.mark_used(node_id)
        marked.add(node_id)

    logger.info("marked %d module(s) used from invocation history", len(marked))
    return marked


def apply_system_procedures(graph: ExportGraph, special_json: Optional[Path | str]) -> set[NodeId]:
    """
    Mark procedures listed under ``systemProcedures`` as used.

    The file looks like ``{"systemProcedures": ["name", ...]}``.

    Raises:
        EnrichmentError: If the file can't be read or decoded
    """
    if not special_json:
        return set()

    path = Path(special_json)
    try:
        with path.open(encoding="utf-8") as handle:
            special = json.load(handle)
    except OSError as e:
        raise EnrichmentError(f"failed to open JSON file: {e}", path=str(path)) from e
    except json.JSONDecodeError as e:
        raise EnrichmentError(f"failed to decode JSON file: {e}", path=str(path)) from e

    if not isinstance(special, dict):
        raise EnrichmentError("expected a JSON object", path=str(path))

    marked = set()
    for name in special.get("systemProcedures") or []:
        node_id = NodeId.of(str(name), NodeKind.PUBLIC_PROCEDURE)
        graph.mark_used(node_id)
        marked.add(node_id)
    return marked
