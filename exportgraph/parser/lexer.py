"""
Statement tokenizer for embedded Equinox source text.

The statement extractor only depends on the Tokenizer interface: any
callable turning a text blob into a stream of Token(kind, literal) pairs
that ends with an EOF token. This module provides the default
implementation, a single-pass regex scanner that knows just enough of the
language to find execute statements:

    - whitespace runs and newlines (newlines terminate statements)
    - /* ... */ comments
    - "..." string constants (no escapes, single line)
    - numbers, identifiers and keywords (keywords are case-insensitive)
    - any other character as a one-character operator

Unterminated strings and comments are reported as ILLEGAL tokens rather
than raised, leaving the decision to the caller.
"""

import re
from enum import Enum
from typing import Callable, Iterable, Iterator, NamedTuple


class TokenKind(Enum):
    EOF = "eof"
    ILLEGAL = "illegal"
    WS = "ws"
    NEWLINE = "newline"
    COMMENT = "comment"
    STRING_CONSTANT = "string_constant"
    NUMBER = "number"
    IDENTIFIER = "identifier"
    OPERATOR = "operator"

    # Statement keywords
    EXECUTE = "execute"
    PUBLIC = "public"
    PROCEDURE = "procedure"

    # Execute actions
    EXPORT = "export"
    TASK = "task"
    FORM = "form"
    FORM_SWAP = "formswap"
    QUERY = "query"
    PROCESS = "process"
    SYSTEM = "system"
    REPORT = "report"
    REPORT_PREVIEW = "reportpreview"
    SHELL = "shell"
    COMMAND = "command"
    IMPORT = "import"
    EMPTY_DATABASE = "emptydatabase"
    METHOD_SWAP = "methodswap"
    METHOD_SETUP = "methodsetup"
    OPTIMISE_DATABASE = "optimisedatabase"
    OPTIMISE_TABLE = "optimisetable"
    OPTIMISE_TABLE_INDEXES = "optimisetableindexes"
    OPTIMISE_DATABASE_INDEXES = "optimisedatabaseindexes"
    OPTIMISE_ALL_DATABASES = "optimisealldatabases"
    OPTIMISE_ALL_DATABASES_INDEXES = "optimisealldatabasesindexes"
    OPTIMISE_DATABASE_HELPER = "optimisedatabasehelper"
    CONVERT_ALL_DATABASES = "convertalldatabases"
    METHOD = "method"


class Token(NamedTuple):
    kind: TokenKind
    literal: str


Tokenizer = Callable[[str], Iterable[Token]]

_LEXEMES = frozenset(
    {
        TokenKind.EOF,
        TokenKind.ILLEGAL,
        TokenKind.WS,
        TokenKind.NEWLINE,
        TokenKind.COMMENT,
        TokenKind.STRING_CONSTANT,
        TokenKind.NUMBER,
        TokenKind.IDENTIFIER,
        TokenKind.OPERATOR,
    }
)

KEYWORDS: dict[str, TokenKind] = {
    kind.value: kind for kind in TokenKind if kind not in _LEXEMES
}

_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\r?\n)
  | (?P<ws>[ \t\f\v\r]+)
  | (?P<comment>/\*.*?\*/)
  | (?P<open_comment>/\*.*\Z)
  | (?P<string>"[^"\r\n]*")
  | (?P<open_string>"[^"\r\n]*)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<word>[A-Za-z_][A-Za-z0-9_$#@]*)
  | (?P<operator>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_GROUP_KINDS = {
    "newline": TokenKind.NEWLINE,
    "ws": TokenKind.WS,
    "comment": TokenKind.COMMENT,
    "open_comment": TokenKind.ILLEGAL,
    "string": TokenKind.STRING_CONSTANT,
    "open_string": TokenKind.ILLEGAL,
    "number": TokenKind.NUMBER,
    "operator": TokenKind.OPERATOR,
}


def tokenize(text: str) -> Iterator[Token]:
    """
    Scan ``text`` into tokens, finishing with a single EOF token.

    Example:
        >>> [t.kind.name for t in tokenize('execute method "a.jcl"')]
        ['EXECUTE', 'WS', 'METHOD', 'WS', 'STRING_CONSTANT', 'EOF']
    """
    for match in _TOKEN_RE.finditer(text):
        group = match.lastgroup
        literal = match.group()
        if group == "word":
            yield Token(KEYWORDS.get(literal.lower(), TokenKind.IDENTIFIER), literal)
        else:
            yield Token(_GROUP_KINDS[group], literal)
    yield Token(TokenKind.EOF, "")
