"""Exception hierarchy for the Engage XML API client.

Every failure that aborts an operation surfaces as a subclass of
:class:`EngageError`. Library-level errors (lxml, requests) are wrapped and
chained so the original cause stays available through ``__cause__``.
"""

from typing import Optional


class EngageError(Exception):
    """Base exception for all client errors."""


class EncodingError(EngageError):
    """Raised when a value tree cannot be turned into an XML document."""


class ParseError(EngageError):
    """Raised when a response is not well-formed XML or lacks a result/fault."""


class AuthenticationError(EngageError):
    """Raised when the refresh-token exchange does not yield an access token."""


class TransportError(EngageError):
    """Raised when the blocking HTTP call itself fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OperationFault(EngageError):
    """Well-formed server fault for a specific operation.

    Attributes:
        operation: Name of the XML API operation that failed
        fault_string: Literal fault message returned by the server, if any
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        fault_string: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.fault_string = fault_string
