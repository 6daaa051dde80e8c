"""
exportgraph

Decodes Equinox source exports into a call/reference graph of methods,
forms, reports, public procedures and the schema objects they touch.
"""

from exportgraph.models import NodeId, NodeKind, Node

__all__ = ["NodeId", "NodeKind", "Node"]
__version__ = "0.1.0"
