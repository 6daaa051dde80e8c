"""
Tests for graph serialization.

Tests the write_graph traversal order and the dot and neo renderers.
"""

import io
import re

import pytest

from exportgraph.graph import DotGraphOutput, ExportGraph, NeoGraphOutput, get_output, write_graph
from exportgraph.graph.output import sanitise_id, to_camel
from exportgraph.models import Node, NodeId, NodeKind
from exportgraph.parser import decode_stream
from tests.fixtures import FORM_ENTRY, LIBRARY_LIB, METHOD_FOO, METHOD_POST, REPORT_DAILY


class RecordingOutput:
    """Renderer that keeps the calls it receives."""

    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append(("start",))

    def add_node(self, node_id, label, tags):
        self.calls.append(("node", node_id, label, tuple(tags)))

    def add_reference(self, from_id, to_id):
        self.calls.append(("ref", from_id, to_id))

    def end(self):
        self.calls.append(("end",))


def build(*contents):
    graph = ExportGraph()
    for content in contents:
        graph.apply(decode_stream(io.BytesIO(content)))
    return graph


def render(graph, fmt):
    out = io.StringIO()
    write_graph(graph, get_output(fmt, out))
    return out.getvalue()


def method(name):
    return NodeId(name, NodeKind.METHOD)


class TestHelpers:
    """Tests for id and tag formatting."""

    def test_sanitise_id(self):
        """Test that ids are prefixed and non-alphanumerics replaced."""
        assert sanitise_id(NodeId.of("Cust-Update", NodeKind.METHOD)) == "a_cust_update_method"
        assert sanitise_id(NodeId.of("1st pass", NodeKind.REPORT)) == "a_1st_pass_report"

    def test_to_camel(self):
        """Test tag to label conversion."""
        assert to_camel("public_procedure") == "PublicProcedure"
        assert to_camel("used") == "Used"

    def test_unknown_format(self):
        """Test that an unknown format name raises ValueError."""
        with pytest.raises(ValueError, match="unknown output format"):
            get_output("svg", io.StringIO())


class TestWriteGraph:
    """Tests for the serialization traversal."""

    def test_call_sequence(self):
        """Test the exact sequence of renderer calls."""
        graph = build(METHOD_FOO)
        output = RecordingOutput()
        write_graph(graph, output)

        assert output.calls == [
            ("start",),
            ("node", method("foo"), "foo", ("method",)),
            ("ref", method("foo"), method("bar")),
            ("node", method("bar"), "bar", ("method", "missing")),
            ("end",),
        ]

    def test_used_tag(self):
        """Test that used nodes carry the used tag."""
        graph = build(METHOD_FOO)
        graph.mark_used(method("foo"))
        output = RecordingOutput()
        write_graph(graph, output)

        assert ("node", method("foo"), "foo", ("method", "used")) in output.calls

    def test_every_reference_target_is_emitted(self):
        """Test that no reference points at an id that was never emitted."""
        graph = build(METHOD_FOO, METHOD_POST, LIBRARY_LIB, FORM_ENTRY, REPORT_DAILY)
        output = RecordingOutput()
        write_graph(graph, output)

        emitted = [call[1] for call in output.calls if call[0] == "node"]
        assert len(emitted) == len(set(emitted))
        for call in output.calls:
            if call[0] == "ref":
                assert call[2] in emitted

    def test_order_does_not_depend_on_insertion(self):
        """Test that input order doesn't change the output."""
        first = build(METHOD_FOO, METHOD_POST, LIBRARY_LIB, FORM_ENTRY, REPORT_DAILY)
        second = build(REPORT_DAILY, FORM_ENTRY, LIBRARY_LIB, METHOD_POST, METHOD_FOO)

        assert render(first, "dot") == render(second, "dot")
        assert render(first, "neo") == render(second, "neo")

    def test_empty_graph(self):
        """Test the dot output of an empty graph."""
        assert render(ExportGraph(), "dot") == "digraph calls {\n}\n"
        assert render(ExportGraph(), "neo") == ""


class TestDotOutput:
    """Tests for the Graphviz renderer."""

    def test_missing_method(self):
        """Test the dot output for a call to a missing method."""
        assert render(build(METHOD_FOO), "dot") == (
            "digraph calls {\n"
            '\ta_foo_method [label="foo" style="filled" fillcolor="lightblue"]\n'
            "\ta_foo_method -> a_bar_method\n"
            '\ta_bar_method [label="bar" style="filled" fillcolor="red"]\n'
            "}\n"
        )

    @pytest.mark.parametrize(
        "tags,colour",
        [
            (["form"], "lightgreen"),
            (["report", "used"], "orange"),
            (["public_procedure", "missing"], "yellow"),
            (["method", "used"], "lightblue"),
            (["method", "missing"], "red"),
            (["table"], ""),
        ],
    )
    def test_colours(self, tags, colour):
        """Test the fill colour chosen per kind."""
        out = io.StringIO()
        DotGraphOutput(out).add_node(NodeId("x", NodeKind(tags[0])), "x", tags)
        assert f'fillcolor="{colour}"' in out.getvalue()

    def test_label_is_escaped(self):
        """Test that quotes in labels are escaped."""
        out = io.StringIO()
        DotGraphOutput(out).add_node(method("q"), 'say "hi"', ["method"])
        assert 'label="say \\"hi\\""' in out.getvalue()


class TestNeoOutput:
    """Tests for the Cypher renderer."""

    def test_missing_method(self):
        """Test the neo output for a call to a missing method."""
        assert render(build(METHOD_FOO), "neo") == (
            'MERGE (n:Node {id:"a_foo_method"}) SET n.name="foo" SET n :Method;\n'
            'MERGE (f:Node {id: "a_foo_method"}) MERGE (t:Node {id: "a_bar_method"}) '
            "MERGE (f)-[:calls]->(t);\n"
            'MERGE (n:Node {id:"a_bar_method"}) SET n.name="bar" SET n :Method:Missing;\n'
        )

    def test_reference_relation(self):
        """Test that non-callable targets are references, not calls."""
        out = io.StringIO()
        output = NeoGraphOutput(out)
        output.add_reference(method("post"), NodeId("customers", NodeKind.TABLE))
        output.add_reference(method("post"), NodeId("audit", NodeKind.PUBLIC_PROCEDURE))

        lines = out.getvalue().splitlines()
        assert lines[0].endswith("MERGE (f)-[:references]->(t);")
        assert lines[1].endswith("MERGE (f)-[:calls]->(t);")

    def test_tags_become_labels(self):
        """Test that tags are rendered as camel-cased node labels."""
        out = io.StringIO()
        NeoGraphOutput(out).add_node(
            NodeId("audit", NodeKind.PUBLIC_PROCEDURE), "Audit", ["public_procedure", "used"]
        )
        assert out.getvalue().endswith("SET n :PublicProcedure:Used;\n")


DOT_NODE = re.compile(r"^\t(\w+) \[label=")
DOT_EDGE = re.compile(r"^\t(\w+) -> (\w+)$")
NEO_NODE = re.compile(r'^MERGE \(n:Node \{id:"(\w+)"\}\)')
NEO_EDGE = re.compile(r'^MERGE \(f:Node \{id: "(\w+)"\}\) MERGE \(t:Node \{id: "(\w+)"\}\)')


class TestRenderersAgree:
    """Tests that both renderers describe the same graph."""

    def test_same_nodes_and_edges(self):
        """Test that dot and neo emit the same node ids and edges."""
        graph = build(METHOD_FOO, METHOD_POST, LIBRARY_LIB, FORM_ENTRY, REPORT_DAILY)
        dot = render(graph, "dot").splitlines()
        neo = render(graph, "neo").splitlines()

        dot_nodes = [m.group(1) for m in map(DOT_NODE.match, dot) if m]
        dot_edges = [m.groups() for m in map(DOT_EDGE.match, dot) if m]
        neo_nodes = [m.group(1) for m in map(NEO_NODE.match, neo) if m]
        neo_edges = [m.groups() for m in map(NEO_EDGE.match, neo) if m]

        assert dot_nodes == neo_nodes
        assert dot_edges == neo_edges
        assert len(dot_edges) == graph.edge_count

    def test_same_missing_flags(self):
        """Test that dot and neo agree on which nodes are missing."""
        graph = build(METHOD_FOO, METHOD_POST, LIBRARY_LIB, FORM_ENTRY, REPORT_DAILY)

        # dot emits missing nodes after the edges; missing methods are red
        dot_flags = []
        seen_edge = False
        for line in render(graph, "dot").splitlines():
            if DOT_EDGE.match(line):
                seen_edge = True
            node = DOT_NODE.match(line)
            if node:
                node_id = node.group(1)
                if node_id.endswith("_method"):
                    assert ('fillcolor="red"' in line) == seen_edge
                dot_flags.append((node_id, seen_edge))

        neo_flags = [
            (node.group(1), ":Missing" in line)
            for line in render(graph, "neo").splitlines()
            if (node := NEO_NODE.match(line))
        ]

        assert dot_flags == neo_flags
        assert [node_id for node_id, missing in neo_flags if missing] == [
            "a_audit_public_procedure",
            "a_bar_method",
        ]

    def test_node_ids_are_unique(self):
        """Test that a name shared by two kinds yields two nodes."""
        graph = ExportGraph()
        graph.add_node(Node(id=method("ledger"), label="Ledger", refs={NodeId("ledger", NodeKind.TABLE)}))

        ids = [m.group(1) for m in map(DOT_NODE.match, render(graph, "dot").splitlines()) if m]
        assert ids == ["a_ledger_method", "a_ledger_table"]
