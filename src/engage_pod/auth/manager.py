"""Bearer credential lifecycle.

The manager keeps one long-lived access token valid across many short XML API
calls::

    UNSET -> CACHED -> EXPIRED -> REFRESHING -> CACHED | FAILED

``acquire()`` reads the cache backend on every call, so a token written by
another process becomes visible at the next call. Local backends get an age
check against the injected clock; the redis backend's own expiry is trusted.
A plain miss falls back to the token held in memory while it is still fresh
by that clock, so an unreachable backend costs one exchange per process.
"""

import json
import time
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional

from engage_pod.auth.cache import CredentialCache, build_cache
from engage_pod.auth.credentials import Credential
from engage_pod.shared.config import EngageConfig
from engage_pod.shared.exceptions import AuthenticationError, TransportError
from engage_pod.shared.logging import get_logger
from engage_pod.tree.decoder import fault_string
from engage_pod.tree.node import MappingNode

TOKEN_EXPIRED_FAULT = "The access token has expired."


class CredentialState(Enum):
    """Lifecycle states of the managed credential."""

    UNSET = auto()
    CACHED = auto()
    EXPIRED = auto()
    REFRESHING = auto()
    FAILED = auto()


class CredentialManager:
    """Acquires, caches and refreshes the OAuth bearer token.

    Args:
        config: Client configuration (token URL, OAuth client, TTL defaults)
        transport: Object with ``post(url, fields, headers=None) -> str``
        cache: Cache backend; selected from ``config`` when omitted
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        config: EngageConfig,
        transport: Any,
        cache: Optional[CredentialCache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.transport = transport
        self.cache = cache if cache is not None else build_cache(config)
        self.clock = clock
        self.cache_key = config.cache_key
        self.state = CredentialState.UNSET
        self.refresh_count = 0
        self._credential: Optional[Credential] = None
        self.logger = get_logger(__name__, config.correlation_id, "credentials")

    @property
    def credential(self) -> Optional[Credential]:
        """Credential held in memory; not guaranteed fresh until ``acquire()``."""
        return self._credential

    def acquire(self) -> str:
        """Return a usable access token, refreshing it when missing or stale."""
        credential = self.cache.get(self.cache_key)
        now = self.clock()

        if credential is not None and not self.cache.native_expiry:
            if credential.is_expired(now):
                self.state = CredentialState.EXPIRED
                self.logger.info(
                    "Cached credential is stale",
                    extra={
                        "age_seconds": round(credential.age(now), 1),
                        "ttl_seconds": credential.ttl_seconds,
                    },
                )
                self.cache.delete(self.cache_key)
                self._credential = None
                credential = None
        elif credential is None and self._credential is not None:
            # Miss without a stale entry (backend down or entry removed)
            if not self._credential.is_expired(now):
                credential = self._credential

        if credential is None:
            credential = self.refresh()
        else:
            self._credential = credential
            self.state = CredentialState.CACHED
        return credential.token

    def refresh(self) -> Credential:
        """Exchange the refresh token for a new access token and cache it.

        Raises:
            AuthenticationError: If the response carries no access token
            TransportError: If the token endpoint cannot be reached
        """
        self.state = CredentialState.REFRESHING
        fields = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": self.config.refresh_token,
        }
        self.logger.info("Refreshing access token", extra={"url": self.config.token_url})

        try:
            body = self.transport.post(self.config.token_url, fields)
        except TransportError:
            self.state = CredentialState.FAILED
            raise

        payload = self._parse_token_response(body)
        token = payload.get("access_token")
        if not token:
            self.state = CredentialState.FAILED
            reason = payload.get("error_description") or payload.get("error")
            message = "Token exchange returned no access token"
            if reason:
                message = f"{message}: {reason}"
            raise AuthenticationError(message)

        credential = Credential(
            token=str(token),
            issued_at=self.clock(),
            ttl_seconds=self.derive_ttl(payload.get("expires_in")),
        )
        self.cache.set(self.cache_key, credential)
        self._credential = credential
        self.state = CredentialState.CACHED
        self.refresh_count += 1
        self.logger.info(
            "Access token refreshed",
            extra={"ttl_seconds": credential.ttl_seconds, "refresh_count": self.refresh_count},
        )
        return credential

    def derive_ttl(self, expires_in: Any) -> int:
        """Cache lifetime for a token the server says lives ``expires_in`` seconds.

        The safety buffer is subtracted from the reported lifetime; when the
        server reports none the configured default is used. A buffer larger
        than the lifetime falls back to the raw lifetime.
        """
        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError, OverflowError):
            return self.config.token_ttl_seconds
        if lifetime <= 0:
            return self.config.token_ttl_seconds
        ttl = lifetime - self.config.token_ttl_buffer_seconds
        return ttl if ttl > 0 else lifetime

    def invalidate(self) -> None:
        """Forget the current credential locally and in the cache."""
        self._credential = None
        self.cache.delete(self.cache_key)
        self.state = CredentialState.EXPIRED

    @staticmethod
    def is_token_expired_fault(envelope: Optional[MappingNode]) -> bool:
        """Whether a decoded response reports that the bearer token expired."""
        if not isinstance(envelope, MappingNode):
            return False
        return fault_string(envelope) == TOKEN_EXPIRED_FAULT

    def _parse_token_response(self, body: str) -> Dict[str, Any]:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as e:
            self.state = CredentialState.FAILED
            raise AuthenticationError("Token endpoint returned a non-JSON response") from e
        if not isinstance(payload, dict):
            self.state = CredentialState.FAILED
            raise AuthenticationError("Token endpoint returned an unexpected payload")
        return payload
