"""Bearer credential management.

Key Components:
    Credential: access token with issue time and derived TTL
    CredentialCache: pluggable storage (memory, file, redis)
    CredentialManager: acquire/refresh/invalidate lifecycle
"""

from .cache import (
    CredentialCache,
    FileCredentialCache,
    MemoryCredentialCache,
    RedisCredentialCache,
    build_cache,
)
from .credentials import Credential
from .manager import TOKEN_EXPIRED_FAULT, CredentialManager, CredentialState

__all__ = [
    "Credential",
    "CredentialCache",
    "MemoryCredentialCache",
    "FileCredentialCache",
    "RedisCredentialCache",
    "build_cache",
    "CredentialManager",
    "CredentialState",
    "TOKEN_EXPIRED_FAULT",
]
