"""
Tagged-record decoder for Equinox export files.

An export file is a sequence of newline-terminated records. Each record
starts with a four character tag (``FIL,``, ``TXT,``, ...), usually followed
by a fixed-width length token and the comma separated payload:

    FIL,130,CUSTUPDATE.JCL,...
    TBL,16,CUSTOMERS,...
    TXT,132,   27,
    execute method "post.jcl"
    XTX,...

``TXT,`` records are the only ones with a body: the header line carries a
byte count, exactly that many raw (Windows-1252) bytes follow, and a ``XTX,``
sentinel record closes the block.

Design Decisions:
    - The decoder never touches the graph. It returns a DecodedFile, which
      the assembler applies only after the whole file decoded, so a corrupt
      file contributes nothing.
    - Public procedure libraries are split into one unit per ``PPD,``; the
      library header itself is never flushed.
    - ``LPC,`` calls are buffered and resolved at end of file against the
      procedures defined in that same file.

Academic Context:
    Input: Byte stream of one export file
    Transformation: Record dispatch with a single pending unit
    Output: DecodedFile with flushed nodes and used marks
    Limitation: Only call/reference topology is recovered
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from exportgraph.errors import DecodeError, UnhandledStatementError
from exportgraph.models import (
    DecodedFile,
    LocalCall,
    Node,
    NodeId,
    NodeKind,
    parse_full_name,
)
from exportgraph.parser.lexer import Tokenizer, tokenize
from exportgraph.parser.statements import extract_method_refs

logger = logging.getLogger(__name__)

TEXT_ENCODING = "cp1252"
TAG_LENGTH = 4

# Records that append one reference to the current unit.
REFERENCE_TAGS: dict[str, NodeKind] = {
    "FLD,": NodeKind.FIELD,
    "IDX,": NodeKind.INDEX,
    "WRK,": NodeKind.WORK_AREA,
    "SUB,": NodeKind.TABLE,
    "TBL,": NodeKind.TABLE,
    "PPC,": NodeKind.PUBLIC_PROCEDURE,
}

# Records that carry nothing we model.
IGNORED_TAGS = frozenset(
    {
        "GRP,",
        "BLK,", "KLB,",
        "VAD,", "VAR,",
        "LPD,",
        "AUD,", "AUT,",
        "DBS,",
        "OBN,", "OBP,", "EQP,",
        "DTW,", "DPW,", "DLW,", "DBP,", "DLD,", "OBD,",
        "DLC,",
        "OBC,",
    }
)


@dataclass
class PendingUnit:
    """
    The unit currently being decoded.

    Attributes:
        id: Identity, None until a FIL or PPD record names the unit
        label: Original-case name
        refs: References collected so far
    """

    id: Optional[NodeId] = None
    label: str = ""
    refs: set[NodeId] = field(default_factory=set)

    @property
    def kind(self) -> Optional[NodeKind]:
        return self.id.kind if self.id is not None else None

    @property
    def display_name(self) -> str:
        return self.label or "<unnamed>"

    def add_ref(self, name: str, kind: NodeKind) -> NodeId:
        ref = NodeId.of(name, kind)
        self.refs.add(ref)
        return ref

    def to_node(self) -> Node:
        assert self.id is not None
        return Node(id=self.id, label=self.label, refs=set(self.refs))


def record_field(line: str) -> str:
    """
    Return the first payload field of a record line.

    The tag and the fixed-width length token that follows it are skipped.

    Example:
        >>> record_field("FIL,130,CUSTUPDATE.JCL,1,2\\n")
        'CUSTUPDATE.JCL'
    """
    parts = line[TAG_LENGTH:].rstrip("\r\n").split(",")
    if len(parts) > 1 and parts[0].strip().isdigit():
        parts = parts[1:]
    return parts[0]


class RecordDecoder:
    """
    Decodes the records of one export file.

    Usage:
        decoder = RecordDecoder("Methods/custupdate.txt")
        with open(path, "rb") as stream:
            decoded = decoder.decode(stream)
    """

    def __init__(self, path: str = "<stream>", tokenizer: Tokenizer = tokenize) -> None:
        self.path = path
        self._tokenizer = tokenizer
        self._handlers: dict[str, Callable[[str, BinaryIO], None]] = {
            "FIL,": self._on_file,
            "TXT,": self._on_text,
            "PPD,": self._on_procedure_definition,
            "LPC,": self._on_local_call,
        }
        self._reset()

    def _reset(self) -> None:
        self._result = DecodedFile(path=self.path)
        self._unit = PendingUnit()
        self._seen_procedure = False
        self._local_calls: list[LocalCall] = []
        self._procedures: set[NodeId] = set()

    def decode(self, stream: BinaryIO) -> DecodedFile:
        """
        Decode every record in ``stream``.

        Returns:
            The DecodedFile for this stream

        Raises:
            DecodeError: On malformed lengths, truncated bodies, a missing
                XTX sentinel, a corrupt library header or an I/O failure
        """
        self._reset()
        try:
            while True:
                raw = stream.readline()
                if not raw:
                    break
                line = raw.decode(TEXT_ENCODING, errors="replace")
                self._dispatch(line, stream)
        except OSError as e:
            raise DecodeError(f"failed to read export file: {e}", path=self.path) from e

        if self._unit.kind is not NodeKind.PUBLIC_PROCEDURE_LIBRARY:
            self._flush()

        self._resolve_local_calls()
        return self._result

    def _dispatch(self, line: str, stream: BinaryIO) -> None:
        if not line.strip():
            return

        tag = line[:TAG_LENGTH]
        handler = self._handlers.get(tag)
        if handler is not None:
            handler(line, stream)
        elif tag in REFERENCE_TAGS:
            self._on_reference(tag, line)
        elif tag in IGNORED_TAGS:
            pass
        else:
            logger.warning("unrecognised record %r in %s - skipping", tag, self.path)

    def _on_file(self, line: str, stream: BinaryIO) -> None:
        if self._unit.kind is not NodeKind.PUBLIC_PROCEDURE_LIBRARY and (
            self._unit.id is not None or self._unit.refs
        ):
            self._flush()

        node_id, label = parse_full_name(record_field(line))
        self._unit = PendingUnit(id=node_id, label=label)
        self._seen_procedure = False

    def _on_reference(self, tag: str, line: str) -> None:
        ref = self._unit.add_ref(record_field(line), REFERENCE_TAGS[tag])
        if ref.kind is NodeKind.PUBLIC_PROCEDURE:
            self._result.used.add(ref)

    def _on_text(self, line: str, stream: BinaryIO) -> None:
        count_field = record_field(line).strip()
        try:
            count = int(count_field)
        except ValueError:
            raise DecodeError(
                "malformed TXT length", path=self.path, record=line.strip()
            ) from None
        if count < 0:
            raise DecodeError("negative TXT length", path=self.path, record=line.strip())

        body = stream.read(count)
        if len(body) < count:
            raise DecodeError(
                f"truncated TXT body: expected {count} bytes, got {len(body)}",
                path=self.path,
                record=line.strip(),
            )

        sentinel = stream.readline()
        if not sentinel.startswith(b"XTX,"):
            raise DecodeError(
                "expected XTX record after TXT body",
                path=self.path,
                record=sentinel.decode(TEXT_ENCODING, errors="replace").strip(),
                unit=self._unit.display_name,
            )

        text = body.decode(TEXT_ENCODING, errors="replace")

        # Library headers carry no calls of their own.
        if self._unit.kind is NodeKind.PUBLIC_PROCEDURE_LIBRARY:
            return
        try:
            names = extract_method_refs(
                text, source=self._unit.display_name, tokenizer=self._tokenizer
            )
        except UnhandledStatementError as e:
            raise UnhandledStatementError(e.message, path=self.path, **e.context) from e
        for name in names:
            self._unit.add_ref(name, NodeKind.METHOD)

    def _on_procedure_definition(self, line: str, stream: BinaryIO) -> None:
        name = record_field(line)

        if self._seen_procedure:
            self._flush()
        else:
            if self._unit.kind is not NodeKind.PUBLIC_PROCEDURE_LIBRARY:
                raise DecodeError(
                    "found public procedure definition outside of a public procedure library",
                    path=self.path,
                    record=line.strip(),
                    kind=str(self._unit.kind),
                )
            if self._unit.refs:
                raise DecodeError(
                    "found public procedure library with references outside of the procedure definitions",
                    path=self.path,
                    record=line.strip(),
                    unit=self._unit.display_name,
                )

        self._seen_procedure = True
        self._unit = PendingUnit(id=NodeId.of(name, NodeKind.PUBLIC_PROCEDURE), label=name)

    def _on_local_call(self, line: str, stream: BinaryIO) -> None:
        self._local_calls.append(LocalCall(caller=self._unit.id, callee_name=record_field(line)))

    def _flush(self) -> None:
        if self._unit.id is None:
            logger.warning("unit without a FIL record in %s - not added", self.path)
            return
        node = self._unit.to_node()
        self._result.nodes.append(node)
        if node.kind is NodeKind.PUBLIC_PROCEDURE:
            self._procedures.add(node.id)

    def _resolve_local_calls(self) -> None:
        """Turn LPC records that name a procedure of this library into calls."""
        for call in self._local_calls:
            target = NodeId.of(call.callee_name, NodeKind.PUBLIC_PROCEDURE)
            if target not in self._procedures:
                logger.debug(
                    "local call to %s in %s has no procedure in this file - dropped",
                    call.callee_name,
                    self.path,
                )
                continue

            caller = self._result.find(call.caller) if call.caller is not None else None
            if caller is None:
                raise DecodeError(
                    "local procedure call from a unit that was never added",
                    path=self.path,
                    callee=call.callee_name,
                )
            caller.refs.add(target)
            self._result.used.add(target)


def decode_stream(
    stream: BinaryIO,
    path: str = "<stream>",
    tokenizer: Tokenizer = tokenize,
) -> DecodedFile:
    """Decode an already-open binary stream."""
    return RecordDecoder(path, tokenizer=tokenizer).decode(stream)


def decode_file(path: Path | str, tokenizer: Tokenizer = tokenize) -> DecodedFile:
    """
    Decode one export file from disk.

    Args:
        path: Export file to read

    Returns:
        The DecodedFile for the file

    Raises:
        DecodeError: If the file can't be read or is corrupt
    """
    path = Path(path)
    try:
        stream = path.open("rb")
    except OSError as e:
        raise DecodeError(f"failed to open export file: {e}", path=str(path)) from e

    with stream:
        return decode_stream(stream, path=str(path), tokenizer=tokenizer)
