"""
Test fixtures for exportgraph.

This module provides sample export records and helper functions
for building export files and source trees in tests.
"""

from pathlib import Path
from typing import Union

ENCODING = "cp1252"


def record(tag: str, value: str, width: str = "16") -> bytes:
    """One plain record line, e.g. ``TBL,16,CUSTOMERS,``."""
    return f"{tag},{width},{value},\n".encode(ENCODING)


def text_block(text: str) -> bytes:
    """A TXT header, the raw body and the XTX sentinel."""
    body = text.encode(ENCODING)
    return f"TXT,132,{len(body):5d},\n".encode(ENCODING) + body + b"XTX,132,\n"


def export(*parts: Union[bytes, str]) -> bytes:
    """Concatenate records into the bytes of one export file."""
    return b"".join(part.encode(ENCODING) if isinstance(part, str) else part for part in parts)


def write_tree(root: Path, files: dict[str, bytes]) -> Path:
    """Write ``{"Methods/foo.txt": b"..."}`` under root and return root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


# Method foo calls method BAR, which is not part of the export
METHOD_FOO = export(
    record("FIL", "foo.JCL", "130"),
    text_block('execute method "BAR.jcl"\n'),
)

# Method that touches the schema and calls a public procedure
METHOD_POST = export(
    record("FIL", "Post.JCL", "130"),
    record("TBL", "Customers"),
    record("FLD", "CustName"),
    record("IDX", "CustByName"),
    record("WRK", "Totals"),
    record("PPC", "Audit"),
    text_block('/* post the batch */\nexecute form "entry.frm"\nexecute method "foo.jcl"\n'),
)

# Library lib with procedures alpha and beta; alpha calls beta locally
LIBRARY_LIB = export(
    record("FIL", "LIB.PPL", "130"),
    text_block("library header\n"),
    record("PPD", "alpha", "17"),
    record("LPC", "beta", "20"),
    record("PPD", "beta", "17"),
    record("TBL", "Ledger"),
)

FORM_ENTRY = export(
    record("FIL", "Entry.FRM", "130"),
    record("GRP", "header"),
    text_block('execute method "post.jcl"\n'),
)

REPORT_DAILY = export(
    record("FIL", "Daily.REP", "130"),
    record("TBL", "Ledger"),
)

SAMPLE_TREE = {
    "Methods/foo.txt": METHOD_FOO,
    "Methods/post.txt": METHOD_POST,
    "Procedures/lib.txt": LIBRARY_LIB,
    "Forms/entry.txt": FORM_ENTRY,
    "Reports/daily.txt": REPORT_DAILY,
}
