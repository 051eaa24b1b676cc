"""Package specific exception hierarchy."""

from __future__ import annotations

from commit_llm.types import Failure, FailureKind


class CommitLLMError(Exception):
    """Base exception for commit_llm package."""


class ConfigurationError(CommitLLMError):
    """Raised when settings carry a value the package cannot use."""


class RecordParseError(CommitLLMError):
    """A single streamed record could not be decoded.

    Never propagates out of the demultiplexer; it is logged and the record skipped.
    """

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"Skipping undecodable record ({reason}): {line[:120]}")
        self.line = line
        self.reason = reason


class CompletionError(CommitLLMError):
    """Fatal failure of a single completion invocation."""

    kind: FailureKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_failure(self) -> Failure:
        """Return the structured failure handed to callers."""
        return Failure(kind=self.kind, message=self.message)


class ResolutionError(CompletionError):
    """Raised when no provider profile or endpoint can be resolved."""

    kind = "resolution"


class TransportError(CompletionError):
    """Raised when the HTTP connection fails."""

    kind = "transport"

    def __init__(self, message: str) -> None:
        super().__init__(f"API request error: {message}")


class TerminalParseError(CompletionError):
    """Raised on an HTTP error status, or when a whole-document response is malformed or carries a vendor error."""

    kind = "terminal_parse"


class EmptyResultError(CompletionError):
    """Raised when a stream ends without any answer text."""

    kind = "empty_result"

    def __init__(self, vendor_error: str | None = None) -> None:
        message = "No valid response data received"
        if vendor_error:
            message = f"{message}: {vendor_error}"
        super().__init__(message)
        self.vendor_error = vendor_error
