"""
Error hierarchy for exportgraph.

Every fatal condition raised while decoding or enriching derives from
ExportGraphError, which carries a short code plus free-form context
(file path, offending record, ...) for the message shown to the user.
"""

from typing import Any


class ExportGraphError(Exception):
    """Base exception for all exportgraph errors."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"

    def __repr__(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r}, {ctx_str})"


class DecodeError(ExportGraphError):
    """Corrupt or unmodeled export data. Aborts the whole run."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="DECODE_ERROR", message=message, **context)


class UnhandledStatementError(DecodeError):
    """An execute statement with an action keyword we don't model."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, **context)
        self.code = "UNHANDLED_STATEMENT"


class ConfigurationError(ExportGraphError):
    """Invalid combination of inputs, detected before any work is done."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="CONFIGURATION_ERROR", message=message, **context)


class EnrichmentError(ExportGraphError):
    """An auxiliary CSV/JSON input could not be read or understood."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(code="ENRICHMENT_ERROR", message=message, **context)
