# hangcheck/errors.py
"""
Error types for the hangcheck pipeline.

Error Hierarchy:
────────────────
    HangcheckError (base)
    ├── AnalysisInputError   - missing or unreadable input
    ├── SourceParseError     - the front end could not build a tree
    └── EstreeFormatError    - a pre-parsed ESTree document is malformed

Error Codes:
────────────
Each error carries a code of the form HC-NNNN:
  - 0001-0099: input errors
  - 0100-0199: parse errors
  - 0200-0299: ESTree conversion errors

The analyses themselves never raise on well-formed trees: constructs they
do not model are treated as "does not terminate".
"""

from __future__ import annotations

from typing import Optional

from hangcheck.nodes import NO_SPAN, Span

__all__ = [
    "ErrorCode",
    "ErrorCodes",
    "HangcheckError",
    "AnalysisInputError",
    "SourceParseError",
    "EstreeFormatError",
]

# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorCode:
    """A structured error code, rendered as ``PREFIX-NNNN``."""

    __slots__ = ("prefix", "number", "title")

    def __init__(self, prefix: str, number: int, title: str = "") -> None:
        self.prefix = prefix
        self.number = number
        self.title = title

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.title!r})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    MISSING_INPUT = ErrorCode("HC", 1, "missing input")
    UNREADABLE_INPUT = ErrorCode("HC", 2, "unreadable input")
    SYNTAX_ERROR = ErrorCode("HC", 100, "syntax error")
    PARSER_UNAVAILABLE = ErrorCode("HC", 101, "parser unavailable")
    BAD_ESTREE = ErrorCode("HC", 200, "malformed ESTree document")


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════


class HangcheckError(Exception):
    """Base exception for all hangcheck errors."""

    default_code = ErrorCodes.MISSING_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[Span] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.span = span or NO_SPAN
        self.cause = cause

    def __str__(self) -> str:
        if self.span.line:
            return f"{self.code}: {self.span}: {self.message}"
        return f"{self.code}: {self.message}"


class AnalysisInputError(HangcheckError):
    """No usable input was handed to an analysis entry point."""

    default_code = ErrorCodes.MISSING_INPUT


class SourceParseError(HangcheckError):
    """The JavaScript source could not be parsed."""

    default_code = ErrorCodes.SYNTAX_ERROR


class EstreeFormatError(HangcheckError):
    """An ESTree mapping does not have the expected shape."""

    default_code = ErrorCodes.BAD_ESTREE

    def __init__(self, message: str, path: str = "", **kwargs) -> None:
        if path:
            message = f"{message} (at {path})"
        super().__init__(message, **kwargs)
        self.path = path
