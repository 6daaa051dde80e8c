"""
exportgraph CLI

Command-line interface for the export reference graph.
Provides commands for rendering the graph, listing calls to methods that
are not in the export, and listing the units of one kind.

Commands:
    exportgraph graph <root>     Render the reference graph (dot or neo)
    exportgraph missing <root>   List calls to methods missing from the export
    exportgraph list <root>      List the units of one kind

Usage:
    $ exportgraph graph ./bill-source > calls.dot
    $ exportgraph graph ./bill-source --format neo --special special.json
    $ exportgraph missing ./bill-source
    $ exportgraph list ./bill-source --kind public_procedure
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from exportgraph import __version__
from exportgraph.errors import ExportGraphError
from exportgraph.graph import get_output, write_graph
from exportgraph.graph.output import OUTPUT_FORMATS
from exportgraph.models import NodeKind
from exportgraph.pipeline import BuildOptions, BuildResult, build_graph, called_missing_methods
from exportgraph.enrich import DEFAULT_USED_SINCE

# Initialize Typer app and Rich console
app = typer.Typer(
    name="exportgraph",
    help="exportgraph: call/reference graphs from Equinox source exports",
    add_completion=False,
)
# Diagnostics go to stderr; stdout carries the rendered graph only.
console = Console(stderr=True)
logger = logging.getLogger(__name__)

LISTABLE_KINDS = [
    NodeKind.METHOD.value,
    NodeKind.FORM.value,
    NodeKind.REPORT.value,
    NodeKind.PUBLIC_PROCEDURE.value,
    NodeKind.QUERY.value,
    NodeKind.IMPORT.value,
    NodeKind.EXPORT.value,
    NodeKind.TABLE.value,
    NodeKind.FIELD.value,
    NodeKind.INDEX.value,
    NodeKind.WORK_AREA.value,
]

SourceRoot = typer.Argument(
    ...,
    help="Root of the export tree (Methods/, Forms/, Procedures/ ... inside)",
    exists=True,
    file_okay=False,
    dir_okay=True,
    resolve_path=True,
)


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}")


def _build(source_root: Path, options: Optional[BuildOptions] = None) -> BuildResult:
    """Build the graph, turning any fatal error into exit status 1."""
    try:
        return build_graph(source_root, options)
    except ExportGraphError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", highlight=False)
        raise typer.Exit(1)


@app.command()
def graph(
    source_root: Path = SourceRoot,
    fmt: str = typer.Option(
        "dot",
        "--format",
        "-f",
        help=f"Output format: {', '.join(OUTPUT_FORMATS)}",
    ),
    modules_csv: Optional[Path] = typer.Option(
        None,
        "--modules",
        help="Module directory CSV (name in column 0, logic id in column 6)",
        exists=True,
        dir_okay=False,
    ),
    usage_csv: Optional[Path] = typer.Option(
        None,
        "--usage",
        help="Module invocation log CSV (date in column 0, logic id in column 13)",
        exists=True,
        dir_okay=False,
    ),
    used_since: str = typer.Option(
        DEFAULT_USED_SINCE.isoformat(),
        "--used-since",
        help="Invocations on or after this date (YYYY-MM-DD) mark a module used",
    ),
    special_json: Optional[Path] = typer.Option(
        None,
        "--special",
        help='JSON file with {"systemProcedures": [...]} to always mark used',
        exists=True,
        dir_okay=False,
    ),
    schema_json: Optional[Path] = typer.Option(
        None,
        "--schema",
        help="Schema dump JSON with tables, fields and indexes",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """
    Render the reference graph of an export tree to stdout.

    This command:
    1. Decodes every export file under the source root
    2. Applies the optional usage and schema inputs
    3. Writes the graph as Graphviz (dot) or a Cypher script (neo)
    """
    if fmt not in OUTPUT_FORMATS:
        raise typer.BadParameter(
            f"expected one of {', '.join(OUTPUT_FORMATS)}", param_hint="--format"
        )

    try:
        options = BuildOptions(
            modules_csv=modules_csv,
            usage_csv=usage_csv,
            used_since=_parse_date(used_since).date(),
            special_json=special_json,
            schema_json=schema_json,
        )
    except ExportGraphError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", highlight=False)
        raise typer.Exit(1)

    result = _build(source_root, options)
    write_graph(result.graph, get_output(fmt, sys.stdout))

    logger.info(
        "%d file(s), %d node(s), %d reference(s) in %.2fs",
        result.files_decoded,
        result.graph.node_count,
        result.graph.edge_count,
        result.build_time_seconds,
    )


@app.command()
def missing(source_root: Path = SourceRoot) -> None:
    """
    List calls to methods that are not part of the export.
    """
    result = _build(source_root)
    for caller, callee in called_missing_methods(result.graph):
        typer.echo(f"{caller} calls missing method {callee}")


@app.command("list")
def list_kind(
    source_root: Path = SourceRoot,
    kind: str = typer.Option(
        NodeKind.METHOD.value,
        "--kind",
        "-k",
        help=f"Kind of unit to list: {', '.join(LISTABLE_KINDS)}",
    ),
) -> None:
    """
    List the units of one kind, sorted by name.
    """
    if kind not in LISTABLE_KINDS:
        raise typer.BadParameter(
            f"expected one of {', '.join(LISTABLE_KINDS)}", param_hint="--kind"
        )

    result = _build(source_root)
    for node in result.graph.nodes_of_kind(NodeKind(kind)):
        typer.echo(node.label)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]exportgraph[/bold] version {__version__}")
        raise typer.Exit()


# Version and logging options
@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Log decoding details to stderr",
    ),
) -> None:
    """
    exportgraph: call/reference graphs from Equinox source exports.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


if __name__ == "__main__":
    app()
