"""
Graph Assembler for exportgraph

This module owns the global reference graph: every decoded unit becomes a
node, every reference an edge, plus the orthogonal "used" annotation.

Design Decisions:
    - Uses a NetworkX DiGraph keyed by NodeId for directed references
    - Stores Node objects as node attributes; Node.refs is authoritative and
      the edges mirror it
    - Targets that were never defined still exist in the DiGraph as bare
      placeholders (no "node" attribute); they are the "missing" nodes
    - Only schema objects (tables, fields, indexes, work areas) are created
      implicitly when referenced

Graph Properties:
    - Directed: edges point from referrer to referenced unit
    - May have cycles (mutual calls are valid)
    - May have dangling edges (target never exported)
    - Inserting a node with an existing id replaces it; last decode wins
"""

from typing import Iterable, Iterator, Optional

import networkx as nx

from exportgraph.models import SYNTHESIZABLE_KINDS, DecodedFile, Node, NodeId, NodeKind


class ExportGraph:
    """
    The reference graph of an exported application.

    Attributes:
        graph: The underlying NetworkX DiGraph
        used: Ids marked as used; an id may be used without being a node

    Usage:
        graph = ExportGraph()
        graph.apply(decode_file("Methods/custupdate.txt"))
        for caller, callee in graph.missing_references():
            print(caller, callee)
    """

    def __init__(self) -> None:
        """Initialize an empty graph."""
        self._graph: nx.DiGraph = nx.DiGraph()
        self._used: set[NodeId] = set()

    @property
    def graph(self) -> nx.DiGraph:
        """Access the underlying NetworkX graph."""
        return self._graph

    @property
    def used(self) -> frozenset[NodeId]:
        return frozenset(self._used)

    @property
    def node_count(self) -> int:
        """Number of defined (or synthesized) nodes; placeholders excluded."""
        return sum(1 for _ in self.nodes())

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def __contains__(self, node_id: object) -> bool:
        return isinstance(node_id, NodeId) and self.get_node(node_id) is not None

    def add_node(self, node: Node) -> None:
        """
        Insert a node, replacing any previous node with the same id.

        Referenced tables, fields, indexes and work areas are created as
        placeholders if they don't exist yet, and marked used either way.

        Args:
            node: The Node to add
        """
        if node.id in self._graph:
            old_targets = list(self._graph.successors(node.id))
            self._graph.remove_edges_from([(node.id, t) for t in old_targets])
            self._prune(old_targets)

        self._graph.add_node(node.id, node=node)
        for ref in node.refs:
            self._graph.add_edge(node.id, ref)

        for ref in node.refs:
            if ref.kind not in SYNTHESIZABLE_KINDS:
                continue
            if self.get_node(ref) is None:
                self._graph.add_node(ref, node=Node.placeholder(ref))
            self._used.add(ref)

    def add_reference(self, from_id: NodeId, to_id: NodeId) -> None:
        """
        Add one reference to an existing node.

        Raises:
            KeyError: If ``from_id`` is not a node of the graph
        """
        node = self.get_node(from_id)
        if node is None:
            raise KeyError(from_id)
        node.refs.add(to_id)
        self._graph.add_edge(from_id, to_id)

    def ensure_node(self, node_id: NodeId, label: str) -> Node:
        """Return the node for ``node_id``, creating a bare one if absent."""
        node = self.get_node(node_id)
        if node is None:
            node = Node(id=node_id, label=label)
            self._graph.add_node(node_id, node=node)
        return node

    def apply(self, decoded: DecodedFile) -> None:
        """Add everything one successfully decoded file contributes."""
        for node in decoded.nodes:
            self.add_node(node)
        self._used.update(decoded.used)

    def mark_used(self, node_id: NodeId) -> None:
        self._used.add(node_id)

    def is_used(self, node_id: NodeId) -> bool:
        return node_id in self._used

    def get_node(self, node_id: NodeId) -> Optional[Node]:
        """
        Retrieve a Node by its id.

        Returns:
            The Node if defined, None for unknown ids and missing placeholders
        """
        if node_id not in self._graph:
            return None
        return self._graph.nodes[node_id].get("node")

    def nodes(self) -> Iterator[Node]:
        """Iterate over all defined nodes (in no particular order)."""
        for _, node in self._graph.nodes(data="node"):
            if node is not None:
                yield node

    def nodes_sorted(self) -> list[Node]:
        """All defined nodes in serialization order."""
        return sorted(self.nodes(), key=Node.sort_key)

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [node for node in self.nodes_sorted() if node.kind is kind]

    def missing_references(self) -> list[tuple[NodeId, NodeId]]:
        """
        Every reference whose target has no node, sorted.

        Returns:
            ``(from_id, to_id)`` pairs ordered by referrer then target
        """
        missing = []
        for node in self.nodes_sorted():
            for ref in node.refs_sorted():
                if self.get_node(ref) is None:
                    missing.append((node.id, ref))
        return missing

    def _prune(self, node_ids: Iterable[NodeId]) -> None:
        """Drop placeholders that are no longer referenced by anything."""
        for node_id in node_ids:
            if self.get_node(node_id) is None and self._graph.in_degree(node_id) == 0:
                self._graph.remove_node(node_id)

