"""Shared utilities for the Engage XML API client.

This module provides configuration, the exception hierarchy, result types and
logging helpers used across the tree codec, the credential manager and the
gateway.
"""

from .config import (
    ConfigError,
    ConfigValidationError,
    EngageConfig,
)
from .exceptions import (
    AuthenticationError,
    EncodingError,
    EngageError,
    OperationFault,
    ParseError,
    TransportError,
)
from .logging import (
    CorrelationLogger,
    get_logger,
    new_correlation_id,
)
from .result import OperationResponse

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "EngageConfig",
    "AuthenticationError",
    "EncodingError",
    "EngageError",
    "OperationFault",
    "ParseError",
    "TransportError",
    "CorrelationLogger",
    "get_logger",
    "new_correlation_id",
    "OperationResponse",
]
