"""
CLI module for exportgraph.

The command-line interface providing graph, missing and list commands.
"""

from cli.main import app

__all__ = ["app"]
