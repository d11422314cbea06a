"""
Error types delivered to failure callbacks or raised at construction time.
"""

from enum import Enum
from typing import Any, Optional


class ErrorDomain(str, Enum):
    TRANSPORT = "transport"
    PARSER = "parser"
    CONFIGURATION = "configuration"
    CONSTRUCTION = "construction"


class FetchError(Exception):
    """Base error. `domain` says where it came from, `cause` is the underlying error."""

    domain: ErrorDomain = ErrorDomain.TRANSPORT

    def __init__(self, message: str, cause: Any = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, domain={self.domain.value})"


class TransportError(FetchError):
    """The HTTP call failed: connection, timeout, oversize body or non-2xx status."""

    domain = ErrorDomain.TRANSPORT

    def __init__(self, message: str, cause: Any = None, status_code: int = 0, result=None):
        super().__init__(message, cause)
        self.status_code = status_code
        self.result = result

    @classmethod
    def from_result(cls, result) -> "TransportError":
        """Build the error from a failed FetchResult."""
        message = result.error or f"HTTP {result.status_code}"
        return cls(
            message,
            cause=result.exception,
            status_code=result.status_code,
            result=result,
        )


class UnconfiguredParserError(FetchError):
    domain = ErrorDomain.CONFIGURATION

    def __init__(self, message: str = "No parser configured: set an instance parser or a default parser"):
        super().__init__(message)


class ParseError(FetchError):
    """The parser rejected the response body or broke its contract."""

    domain = ErrorDomain.PARSER


class ConstructionError(FetchError, ValueError):
    domain = ErrorDomain.CONSTRUCTION

    def __init__(self, message: str, value: Optional[Any] = None):
        super().__init__(message)
        self.value = value


class FetcherStateError(FetchError, RuntimeError):
    """A lifecycle method was called in a state that does not allow it."""

    domain = ErrorDomain.CONFIGURATION
