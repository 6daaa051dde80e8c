"""
Graph serialization.

write_graph walks an ExportGraph in a fixed order and feeds a renderer:

    start()
    add_node(...)        one per node, sorted by (label, id string)
    add_reference(...)   per node in the same order, targets sorted
    add_node(...)        one per missing target, sorted by name
    end()

Renderers only ever see this sequence, so their output never depends on
dict or set iteration order. Two renderers are provided:

    DotGraphOutput  Graphviz ``digraph``, nodes coloured by kind
    NeoGraphOutput  Cypher MERGE script, safe to re-run against Neo4j
"""

import re
import sys
from typing import Optional, Protocol, TextIO

from exportgraph.graph.builder import ExportGraph
from exportgraph.models import NodeId, NodeKind

USED_TAG = "used"
MISSING_TAG = "missing"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9]")


def sanitise_id(node_id: NodeId) -> str:
    """
    Render a NodeId as an identifier both Graphviz and Cypher accept.

    Example:
        >>> sanitise_id(NodeId.of("Cust-Update", NodeKind.METHOD))
        'a_cust_update_method'
    """
    return "a_" + _UNSAFE_ID_CHARS.sub("_", node_id.key)


def to_camel(tag: str) -> str:
    """``public_procedure`` -> ``PublicProcedure``."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\s-]+", tag) if part)


class GraphOutput(Protocol):
    """A renderer fed by write_graph."""

    def start(self) -> None: ...

    def add_node(self, node_id: NodeId, label: str, tags: list[str]) -> None: ...

    def add_reference(self, from_id: NodeId, to_id: NodeId) -> None: ...

    def end(self) -> None: ...


class DotGraphOutput:
    """Graphviz output. Pipe into ``dot -Tsvg`` to draw it."""

    COLOURS = (
        (NodeKind.FORM.value, "lightgreen"),
        (NodeKind.REPORT.value, "orange"),
        (NodeKind.PUBLIC_PROCEDURE.value, "yellow"),
    )

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self.out = out if out is not None else sys.stdout

    def start(self) -> None:
        self.out.write("digraph calls {\n")

    def end(self) -> None:
        self.out.write("}\n")

    def add_node(self, node_id: NodeId, label: str, tags: list[str]) -> None:
        colour = self._colour(tags)
        escaped = label.replace("\\", "\\\\").replace('"', '\\"')
        self.out.write(
            f'\t{sanitise_id(node_id)} [label="{escaped}" style="filled" fillcolor="{colour}"]\n'
        )

    def add_reference(self, from_id: NodeId, to_id: NodeId) -> None:
        self.out.write(f"\t{sanitise_id(from_id)} -> {sanitise_id(to_id)}\n")

    def _colour(self, tags: list[str]) -> str:
        for tag, colour in self.COLOURS:
            if tag in tags:
                return colour
        if NodeKind.METHOD.value in tags:
            return "red" if MISSING_TAG in tags else "lightblue"
        return ""


class NeoGraphOutput:
    """
    Cypher upsert script for Neo4j.

    Every statement is a MERGE, so loading the script twice leaves the
    database unchanged.
    """

    CALL_KINDS = frozenset({NodeKind.METHOD, NodeKind.PUBLIC_PROCEDURE})

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self.out = out if out is not None else sys.stdout

    def start(self) -> None:
        pass

    def end(self) -> None:
        pass

    def add_node(self, node_id: NodeId, label: str, tags: list[str]) -> None:
        escaped = label.replace("\\", "\\\\").replace('"', '\\"')
        labels = "".join(f":{to_camel(tag)}" for tag in tags)
        self.out.write(
            f'MERGE (n:Node {{id:"{sanitise_id(node_id)}"}}) SET n.name="{escaped}" SET n {labels};\n'
        )

    def add_reference(self, from_id: NodeId, to_id: NodeId) -> None:
        relation = "calls" if to_id.kind in self.CALL_KINDS else "references"
        self.out.write(
            f'MERGE (f:Node {{id: "{sanitise_id(from_id)}"}}) '
            f'MERGE (t:Node {{id: "{sanitise_id(to_id)}"}}) '
            f"MERGE (f)-[:{relation}]->(t);\n"
        )


OUTPUT_FORMATS = {
    "dot": DotGraphOutput,
    "neo": NeoGraphOutput,
}


def get_output(fmt: str, out: Optional[TextIO] = None) -> GraphOutput:
    """
    Select a renderer by format name.

    Raises:
        ValueError: For an unknown format name
    """
    try:
        factory = OUTPUT_FORMATS[fmt]
    except KeyError:
        raise ValueError(
            f"unknown output format {fmt!r}, expected one of {sorted(OUTPUT_FORMATS)}"
        ) from None
    return factory(out)


def write_graph(graph: ExportGraph, output: GraphOutput) -> None:
    """
    Serialize ``graph`` through ``output`` in deterministic order.

    Every reference target is emitted either as a node or, if it was never
    defined, as a node tagged ``missing``.
    """
    output.start()

    ordered = graph.nodes_sorted()

    for node in ordered:
        tags = [node.kind.value]
        if graph.is_used(node.id):
            tags.append(USED_TAG)
        output.add_node(node.id, node.label, tags)

    missing: set[NodeId] = set()
    for node in ordered:
        for ref in node.refs_sorted():
            if graph.get_node(ref) is None:
                missing.add(ref)
            output.add_reference(node.id, ref)

    for ref in sorted(missing, key=lambda ref: (ref.name, ref.key)):
        output.add_node(ref, ref.name, [ref.kind.value, MISSING_TAG])

    output.end()
