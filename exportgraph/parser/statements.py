"""
Execute-statement extraction for embedded source text.

Groups tokens into execute statements and turns ``execute method "x.jcl"``
calls into method references.

Design Decisions:
    - The tokenizer is injected; only the Tokenizer interface is relied on
    - A statement runs from an EXECUTE token to the next NEWLINE or EOF
    - A second EXECUTE before the newline restarts the statement
    - Unknown execute actions are fatal: they mean an export construct we
      don't model, and silently skipping it would hide calls

Limitation:
    Calls through variables (``execute method target``) can't be resolved
    statically; they are logged and skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from exportgraph.errors import UnhandledStatementError
from exportgraph.parser.lexer import Token, TokenKind, Tokenizer, tokenize

logger = logging.getLogger(__name__)

# Execute actions that never produce a method reference.
NON_METHOD_ACTIONS = frozenset(
    {
        TokenKind.EXPORT,
        TokenKind.TASK,
        TokenKind.FORM,
        TokenKind.FORM_SWAP,
        TokenKind.QUERY,
        TokenKind.PROCESS,
        TokenKind.SYSTEM,
        TokenKind.REPORT,
        TokenKind.REPORT_PREVIEW,
        TokenKind.SHELL,
        TokenKind.COMMAND,
        TokenKind.IMPORT,
        TokenKind.EMPTY_DATABASE,
        TokenKind.METHOD_SWAP,
        TokenKind.METHOD_SETUP,
        TokenKind.OPTIMISE_DATABASE,
        TokenKind.OPTIMISE_TABLE,
        TokenKind.OPTIMISE_TABLE_INDEXES,
        TokenKind.OPTIMISE_DATABASE_INDEXES,
        TokenKind.OPTIMISE_ALL_DATABASES,
        TokenKind.OPTIMISE_ALL_DATABASES_INDEXES,
        TokenKind.OPTIMISE_DATABASE_HELPER,
        TokenKind.CONVERT_ALL_DATABASES,
    }
)

# Offsets from the EXECUTE token: execute<ws>action<ws>target
ACTION_OFFSET = 2
TARGET_OFFSET = 4


@dataclass
class Statement:
    """The tokens of one execute statement."""

    tokens: list[Token] = field(default_factory=list)

    def add(self, token: Token) -> None:
        self.tokens.append(token)

    def from_execute(self) -> list[Token]:
        """Tokens starting at the first EXECUTE token."""
        for i, token in enumerate(self.tokens):
            if token.kind is TokenKind.EXECUTE:
                return self.tokens[i:]
        return []

    def __str__(self) -> str:
        return "".join(token.literal for token in self.tokens)


def split_statements(tokens: Iterable[Token]) -> list[Statement]:
    """Group a token stream into execute statements."""
    statements: list[Statement] = []
    current: Optional[Statement] = None

    for token in tokens:
        if token.kind is TokenKind.EOF:
            break
        if token.kind is TokenKind.EXECUTE:
            current = Statement()
            current.add(token)
        elif token.kind is TokenKind.NEWLINE:
            if current is not None:
                statements.append(current)
            current = None
        elif current is not None:
            current.add(token)

    if current is not None:
        statements.append(current)
    return statements


def _method_target(literal: str) -> Optional[str]:
    if len(literal) >= 2 and literal[0] == '"' and literal[-1] == '"':
        target = literal[1:-1].lower()
        if target.endswith(".jcl"):
            target = target[: -len(".jcl")]
        return target
    return None


def extract_method_refs(
    text: str,
    source: str = "<text>",
    tokenizer: Tokenizer = tokenize,
) -> list[str]:
    """
    Find the methods called by ``execute method`` statements in ``text``.

    Args:
        text: Embedded source text of one TXT block
        source: Name of the calling unit, for diagnostics
        tokenizer: Callable producing the token stream

    Returns:
        Lower-cased method names (without ``.jcl``), in statement order

    Raises:
        UnhandledStatementError: If an execute action is outside the
            known vocabulary

    Example:
        >>> extract_method_refs('execute method "Post.JCL"\\n')
        ['post']
    """
    refs: list[str] = []

    for statement in split_statements(tokenizer(text)):
        tokens = statement.from_execute()
        if len(tokens) <= ACTION_OFFSET:
            raise UnhandledStatementError(
                "execute statement without an action",
                source=source,
                statement=str(statement),
            )

        action = tokens[ACTION_OFFSET]
        if action.kind in NON_METHOD_ACTIONS:
            continue
        if action.kind is not TokenKind.METHOD:
            for i, token in enumerate(tokens):
                logger.debug("tok %d is %r", i, token.literal)
            raise UnhandledStatementError(
                f"unhandled execute action {action.literal!r}",
                source=source,
                statement=str(statement),
            )

        if len(tokens) <= TARGET_OFFSET:
            raise UnhandledStatementError(
                "execute method without a target",
                source=source,
                statement=str(statement),
            )

        literal = tokens[TARGET_OFFSET].literal
        target = _method_target(literal)
        if target is None:
            logger.warning("call from %s to variable method %r - skipping", source, literal)
            continue
        refs.append(target)

    return refs
