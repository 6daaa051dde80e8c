"""
Parser module for exportgraph.

This module decodes tagged-record export files and extracts method calls
from the source text embedded in them.
"""

from exportgraph.parser.records import (
    RecordDecoder,
    decode_file,
    decode_stream,
)
from exportgraph.parser.statements import extract_method_refs
from exportgraph.parser.lexer import Token, TokenKind, tokenize

__all__ = [
    "RecordDecoder",
    "decode_file",
    "decode_stream",
    "extract_method_refs",
    "Token",
    "TokenKind",
    "tokenize",
]
