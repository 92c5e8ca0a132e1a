"""Credential cache backends.

Backends differ in who judges staleness. Local backends (memory, file) set
``native_expiry = False`` and the credential manager checks the age of the
entry against its own clock. The redis backend sets ``native_expiry = True``:
entries are written with a server-side expiry and anything the server still
returns is trusted as valid.

There is no cross-process locking. Concurrent refreshes from several
processes each write a valid token and the last writer wins.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import redis

from engage_pod.auth.credentials import Credential
from engage_pod.shared.config import EngageConfig
from engage_pod.shared.logging import get_logger


class CredentialCache(ABC):
    """Storage for the shared bearer credential."""

    native_expiry: bool = False

    @abstractmethod
    def get(self, key: str) -> Optional[Credential]:
        """Return the stored credential or ``None`` on a miss."""

    @abstractmethod
    def set(self, key: str, credential: Credential) -> None:
        """Store ``credential`` under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the entry for ``key`` if present."""


class MemoryCredentialCache(CredentialCache):
    """Process-local cache; staleness is checked by the manager."""

    def __init__(self) -> None:
        self._entries: Dict[str, Credential] = {}

    def get(self, key: str) -> Optional[Credential]:
        return self._entries.get(key)

    def set(self, key: str, credential: Credential) -> None:
        self._entries[key] = credential

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class FileCredentialCache(CredentialCache):
    """Credential stored as a small JSON file.

    One file holds one credential, so ``key`` is only used for logging. A file
    that contains a bare token (as written by older clients) is still read:
    its modification time stands in for ``issued_at`` and ``legacy_ttl_seconds``
    for the lifetime.
    """

    def __init__(
        self,
        path: Union[str, Path],
        legacy_ttl_seconds: int = 9900,
    ) -> None:
        self.path = Path(path)
        self.legacy_ttl_seconds = legacy_ttl_seconds
        self.logger = get_logger(__name__, component="file_cache")

    def exists(self) -> bool:
        return self.path.is_file()

    def modified_at(self) -> Optional[float]:
        if not self.exists():
            return None
        return self.path.stat().st_mtime

    def get(self, key: str) -> Optional[Credential]:
        if not self.exists():
            return None
        content = self.path.read_text(encoding="utf-8").strip()
        if not content:
            return None
        try:
            return Credential.from_json(content)
        except ValueError:
            pass

        modified_at = self.modified_at()
        if content.startswith("{") or modified_at is None:
            self.logger.warning(
                "Unreadable credential file ignored",
                extra={"path": str(self.path), "key": key},
            )
            return None
        return Credential(
            token=content,
            issued_at=modified_at,
            ttl_seconds=self.legacy_ttl_seconds,
        )

    def set(self, key: str, credential: Credential) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(directory), prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(credential.to_json())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class RedisCredentialCache(CredentialCache):
    """Remote key/value cache backed by redis with server-side expiry.

    Connection failures are logged and read as a cache miss. The credential
    manager then keeps using the token it holds in memory, so a redis outage
    degrades to one token exchange per process instead of failing every call.
    """

    native_expiry = True

    def __init__(self, client: Optional[Any] = None, url: Optional[str] = None) -> None:
        if client is None:
            if not url:
                raise ValueError("Either a redis client or a redis url is required")
            client = redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        self.client = client
        self.logger = get_logger(__name__, component="redis_cache")

    def get(self, key: str) -> Optional[Credential]:
        try:
            data = self.client.get(key)
        except redis.RedisError as e:
            self.logger.warning(
                "Redis read failed, treating as cache miss",
                extra={"key": key, "error": str(e)},
            )
            return None
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            return Credential.from_json(data)
        except ValueError:
            self.logger.warning("Unreadable credential in redis ignored", extra={"key": key})
            return None

    def set(self, key: str, credential: Credential) -> None:
        try:
            self.client.set(key, credential.to_json(), ex=max(int(credential.ttl_seconds), 1))
        except redis.RedisError as e:
            self.logger.warning(
                "Redis write failed, credential kept in memory only",
                extra={"key": key, "error": str(e)},
            )

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            self.logger.warning(
                "Redis delete failed", extra={"key": key, "error": str(e)}
            )


def build_cache(config: EngageConfig) -> CredentialCache:
    """Select the cache backend named by ``config.token_cache``."""
    if config.token_cache == "redis":
        return RedisCredentialCache(url=config.redis_url)
    if config.token_cache == "file":
        return FileCredentialCache(
            config.token_file, legacy_ttl_seconds=config.token_ttl_seconds
        )
    return MemoryCredentialCache()
