"""
Graph module for exportgraph.

This module provides the NetworkX-based reference graph and its
deterministic serialization to Graphviz and Cypher.
"""

from exportgraph.graph.builder import ExportGraph
from exportgraph.graph.output import (
    DotGraphOutput,
    NeoGraphOutput,
    get_output,
    write_graph,
)

__all__ = [
    "ExportGraph",
    "DotGraphOutput",
    "NeoGraphOutput",
    "get_output",
    "write_graph",
]
