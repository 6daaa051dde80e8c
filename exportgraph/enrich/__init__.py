"""
Enrichment passes, run after every export file has been decoded.
"""

from exportgraph.enrich.schema import apply_schema, link_index_tables
from exportgraph.enrich.usage import (
    DEFAULT_USED_SINCE,
    apply_module_usage,
    apply_system_procedures,
    check_module_files,
)

__all__ = [
    "DEFAULT_USED_SINCE",
    "apply_module_usage",
    "apply_schema",
    "apply_system_procedures",
    "check_module_files",
    "link_index_tables",
]
