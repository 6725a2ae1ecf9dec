"""
Error types for viewc contract parsing, template compilation, and code generation.

Only structurally fatal problems are raised. Everything that can be reported
while compilation continues (shape violations, unresolved fields, ref
conflicts) travels as a validation message inside ``WithValidations``.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class ViewcError(Exception):
    """Base exception for all viewc errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ParseError(ViewcError):
    """
    Raised when a contract or template cannot be read at all.

    Examples:
    - Contract YAML that is not valid YAML
    - Template without a body element
    - Template without exactly one jay-data block
    """

    pass


class ExpressionParseError(ParseError):
    """
    Raised when a binding expression does not match its grammar rule.

    The message always carries the offending expression text followed by
    the parser's own explanation.
    """

    def __init__(
        self, expression: str, detail: str, pos: int = 0, expected: str | None = None
    ):
        self.expression = expression
        self.detail = detail
        self.pos = pos
        message = f"Failed to parse expression [{expression}].\n\nParse error: {detail}"
        if expected:
            message += f"\n\n{expected}"
        super().__init__(message)


class LinkError(ViewcError):
    """
    Raised when a linked contract or imported module cannot be resolved.

    Examples:
    - ``link`` pointing to a missing contract file
    - headfull import whose source module does not exist
    """

    pass


class RecursiveTypeError(ViewcError):
    """
    Raised when a recursive type reference cannot be resolved.

    Examples:
    - Reference path not starting with ``$/``
    - Reference path addressing no object in the enclosing type
    - A placeholder still unresolved when a generator receives the type
    """

    pass


class TemplateCompileError(ViewcError):
    """
    Raised when a template cannot be compiled into any output.

    Examples:
    - ``<recurse>`` with no matching ancestor ref
    - ``<recurse>`` that is not guarded by a loop or condition
    """

    pass


class ValidationError(ViewcError):
    """
    Raised when validations must stop a build (``--strict`` mode).
    """

    def __init__(self, message: str, validations: list[str] | None = None):
        self.validations = list(validations or [])
        super().__init__(message)


class BackendError(ViewcError):
    """
    Raised when a target fails to generate output.

    Examples:
    - Unknown target name
    - A type kind the target has no rendering for
    - Output directory issues
    """

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error, including source location.

    Attributes:
        file: Path to the source file where error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source snippet showing the error location
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "counter.jay-html:10:5"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format snippet with line numbers and an error marker."""
        if not self.snippet:
            return ""

        lines = self.snippet.split("\n")
        formatted = []

        # snippet starts two lines above the error line
        start_line = max(1, self.line - 2)

        for i, line in enumerate(lines):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + line)

            if line_num == self.line:
                marker_pos = len(prefix) + self.column - 1
                formatted.append(" " * marker_pos + "^^^")

        return "\n".join(formatted)


def make_parse_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
    snippet: str | None = None,
) -> ParseError:
    """
    Helper to create a ParseError with optional context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source snippet

    Returns:
        ParseError with context attached when a location is known
    """
    if file and line and column:
        context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
        return ParseError(message, context)
    return ParseError(message)


def make_link_error(message: str, file: Path | None = None) -> LinkError:
    """Helper to create a LinkError, prefixing the importing file when known."""
    if file:
        return LinkError(f"{file}: {message}")
    return LinkError(message)
