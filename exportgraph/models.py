"""
Core Data Models for exportgraph

This module defines the canonical data structures used throughout the system:
- NodeKind: The kind of unit a graph node stands for
- NodeId: Value identity of a node (lower-cased name + kind)
- Node: One unit with its display label and outgoing references
- DecodedFile: Everything one export file contributes to the graph

These models are designed to be:
- Immutable where they act as keys (frozen dataclasses)
- Deterministically ordered for serialization
- Clear in their semantic meaning
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NodeKind(Enum):
    """
    Kind of a graph node.

    The value is the tag string used in rendered output.
    """

    EXPORT = "export"
    FIELD = "field"
    FORM = "form"
    IMPORT = "import"
    INDEX = "index"
    METHOD = "method"
    PUBLIC_PROCEDURE_LIBRARY = "public_procedure_library"
    PROCESS = "process"
    PUBLIC_PROCEDURE = "public_procedure"
    QUERY = "query"
    REPORT = "report"
    TABLE = "table"
    WORK_AREA = "work_area"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


# Schema objects may be referenced without ever being exported themselves.
SYNTHESIZABLE_KINDS = frozenset(
    {NodeKind.TABLE, NodeKind.FIELD, NodeKind.INDEX, NodeKind.WORK_AREA}
)

EXTENSION_KINDS: dict[str, NodeKind] = {
    "jcl": NodeKind.METHOD,
    "imp": NodeKind.IMPORT,
    "exp": NodeKind.EXPORT,
    "frm": NodeKind.FORM,
    "qry": NodeKind.QUERY,
    "rep": NodeKind.REPORT,
    "ppl": NodeKind.PUBLIC_PROCEDURE_LIBRARY,
}


@dataclass(frozen=True)
class NodeId:
    """
    Value identity of a graph node.

    Attributes:
        name: Lower-cased unit name
        kind: The NodeKind of the unit

    Invariants:
        - name is always lower-cased (use NodeId.of to build one from raw text)
    """

    name: str
    kind: NodeKind

    def __post_init__(self) -> None:
        if self.name != self.name.lower():
            raise ValueError(f"NodeId name must be lower-cased: {self.name!r}")

    def __lt__(self, other: "NodeId") -> bool:
        return self.key < other.key

    @classmethod
    def of(cls, name: str, kind: NodeKind) -> "NodeId":
        """Build a NodeId from a raw, any-case name."""
        return cls(name=name.lower(), kind=kind)

    @property
    def key(self) -> str:
        """The id string, e.g. ``"customers_table"``."""
        return f"{self.name}_{self.kind.value}"

    def __str__(self) -> str:
        return self.name


def parse_full_name(full_name: str) -> tuple[NodeId, str]:
    """
    Split a ``<name>.<ext>`` module name into its NodeId and display label.

    Unrecognised (or absent) extensions map to NodeKind.UNKNOWN.

    Example:
        >>> node_id, label = parse_full_name("CustUpdate.JCL")
        >>> node_id.key, label
        ('custupdate_method', 'CustUpdate')
    """
    label, _, ext = full_name.partition(".")
    ext = ext.split(".")[0].strip().lower()
    kind = EXTENSION_KINDS.get(ext, NodeKind.UNKNOWN)
    return NodeId.of(label, kind), label


@dataclass
class Node:
    """
    A single unit in the export: a method, form, procedure, table, etc.

    Attributes:
        id: The node's value identity
        label: Original-case display name
        refs: Outgoing references (unordered, deduplicated)
    """

    id: NodeId
    label: str
    refs: set[NodeId] = field(default_factory=set)

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def kind(self) -> NodeKind:
        return self.id.kind

    @classmethod
    def placeholder(cls, node_id: NodeId) -> "Node":
        """A reference-less node standing in for a unit never exported."""
        return cls(id=node_id, label=node_id.name)

    def refs_sorted(self) -> list[NodeId]:
        """References ordered by their id string."""
        return sorted(self.refs, key=lambda ref: ref.key)

    def sort_key(self) -> tuple[str, str]:
        """Serialization order: label first, id string as tie-breaker."""
        return (self.label, self.id.key)


@dataclass(frozen=True)
class LocalCall:
    """
    A deferred local procedure call found while decoding one file.

    Attributes:
        caller: Id of the unit that made the call
        callee_name: Raw target name, resolvable only within the same library
    """

    caller: Optional[NodeId]
    callee_name: str


@dataclass
class DecodedFile:
    """
    Result of decoding one export file.

    Attributes:
        path: File the result was decoded from
        nodes: Flushed units, in flush order
        used: Ids marked used while decoding (PPC targets, resolved local calls)
    """

    path: str
    nodes: list[Node] = field(default_factory=list)
    used: set[NodeId] = field(default_factory=set)

    def find(self, node_id: NodeId) -> Optional[Node]:
        """Return the last flushed node with this id, if any."""
        for node in reversed(self.nodes):
            if node.id == node_id:
                return node
        return None

    @property
    def node_count(self) -> int:
        return len(self.nodes)
