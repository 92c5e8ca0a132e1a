"""Engage XML API client.

A client for the Engage marketing-platform XML API built on two mechanisms:

- a codec between a generic value tree and XML documents that keeps repeated
  sibling tags, injects attributes by tree depth and renames placeholder tags
- a bearer credential manager that keeps one token valid across many calls,
  backed by a memory, file or redis cache, with a single refresh-and-retry
  when the server reports the token expired

Progressive API Disclosure:
- Level 1: EngagePod - one method per XML API operation
- Level 2: EngageGateway - run any operation from a value tree
- Level 3: encode() / decode() and CredentialManager used directly
"""

__version__ = "0.1.0"
__author__ = "Engage Pod Team"

from .api import EngageGateway, EngagePod, HttpTransport
from .auth import CredentialManager
from .shared.config import EngageConfig
from .shared.exceptions import (
    AuthenticationError,
    EncodingError,
    EngageError,
    OperationFault,
    ParseError,
    TransportError,
)
from .tree import ListNode, MappingNode, ScalarNode, decode, encode

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: per-operation client
    "EngagePod",

    # Level 2: gateway, transport and configuration
    "EngageGateway",
    "HttpTransport",
    "EngageConfig",
    "CredentialManager",

    # Level 3: value tree codec
    "encode",
    "decode",
    "ScalarNode",
    "ListNode",
    "MappingNode",

    # Errors
    "EngageError",
    "EncodingError",
    "ParseError",
    "AuthenticationError",
    "OperationFault",
    "TransportError",
]
