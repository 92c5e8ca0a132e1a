"""Configuration for the Engage XML API client.

The configuration object is immutable and validated on construction. It is
only consumed as input to the gateway, the transport and the credential
manager; loading it from files or the environment is left to the caller.
"""

import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, List, Optional

DEFAULT_TOKEN_TTL_SECONDS = 9900  # 2.75 hours
DEFAULT_TOKEN_TTL_BUFFER_SECONDS = 600
DEFAULT_CACHE_KEY = "sp_a_token"
DEFAULT_TOKEN_FILE = "sp_a_token"

AUTH_TYPES = ("basic", "oauth")
TOKEN_CACHES = ("memory", "file", "redis")

_SECRET_FIELDS = ("password", "client_secret", "refresh_token")
_MASK = "********"


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class EngageConfig:
    """Connection, authentication and credential-cache settings.

    ``engage_server`` selects the pod (``api-campaign-us-<n>``) unless an
    explicit ``base_url`` is given. Under ``auth_type="oauth"`` requests are
    authorized with a bearer token obtained from ``refresh_token``; under
    ``"basic"`` the client logs in with ``username``/``password`` and reuses
    the returned session id.
    """

    engage_server: Optional[str] = None
    base_url: Optional[str] = None
    auth_type: str = "basic"

    # Basic (session) authentication
    username: Optional[str] = None
    password: Optional[str] = None

    # OAuth refresh-token authentication
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None

    # Credential cache
    token_cache: str = "memory"  # memory, file, redis
    token_file: str = DEFAULT_TOKEN_FILE
    redis_url: Optional[str] = None
    cache_key: str = DEFAULT_CACHE_KEY
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    token_ttl_buffer_seconds: int = DEFAULT_TOKEN_TTL_BUFFER_SECONDS

    # Request behaviour
    max_token_retries: int = 1
    timeout_seconds: float = 30.0
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the configuration."""
        if not self.base_url and not self.engage_server:
            raise ConfigValidationError(
                "Either engage_server or base_url must be set",
                field_name="engage_server",
                suggestions=["Set engage_server to the pod number, e.g. '4'"],
            )
        if self.auth_type not in AUTH_TYPES:
            raise ConfigValidationError(
                f"auth_type must be one of {list(AUTH_TYPES)}",
                field_name="auth_type",
            )
        if self.auth_type == "oauth":
            missing = [
                name for name in ("client_id", "client_secret", "refresh_token")
                if not getattr(self, name)
            ]
            if missing:
                raise ConfigValidationError(
                    f"oauth authentication requires {', '.join(missing)}",
                    field_name=missing[0],
                )
        else:
            missing = [
                name for name in ("username", "password") if not getattr(self, name)
            ]
            if missing:
                raise ConfigValidationError(
                    f"basic authentication requires {', '.join(missing)}",
                    field_name=missing[0],
                    suggestions=["Use auth_type='oauth' for token authentication"],
                )
        if self.token_cache not in TOKEN_CACHES:
            raise ConfigValidationError(
                f"token_cache must be one of {list(TOKEN_CACHES)}",
                field_name="token_cache",
            )
        if self.token_cache == "file" and not self.token_file:
            raise ConfigValidationError(
                "token_file must be set when token_cache is 'file'",
                field_name="token_file",
            )
        if self.token_cache == "redis" and not self.redis_url:
            raise ConfigValidationError(
                "redis_url must be set when token_cache is 'redis'",
                field_name="redis_url",
                suggestions=["redis://localhost:6379/0"],
            )
        if not self.cache_key:
            raise ConfigValidationError("cache_key cannot be empty", "cache_key")
        if self.token_ttl_seconds <= 0:
            raise ConfigValidationError(
                "token_ttl_seconds must be > 0", "token_ttl_seconds"
            )
        if self.token_ttl_buffer_seconds < 0:
            raise ConfigValidationError(
                "token_ttl_buffer_seconds must be >= 0", "token_ttl_buffer_seconds"
            )
        if self.max_token_retries < 0:
            raise ConfigValidationError(
                "max_token_retries must be >= 0", "max_token_retries"
            )
        if self.timeout_seconds <= 0:
            raise ConfigValidationError(
                "timeout_seconds must be > 0", "timeout_seconds"
            )

    @property
    def resolved_base_url(self) -> str:
        """Base URL of the pod without a trailing slash."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"https://api-campaign-us-{self.engage_server}.goacoustic.com"

    @property
    def xml_url(self) -> str:
        """Endpoint of the XML API."""
        return f"{self.resolved_base_url}/XMLAPI"

    @property
    def token_url(self) -> str:
        """Endpoint of the OAuth token exchange."""
        return f"{self.resolved_base_url}/oauth/token"

    @property
    def uses_bearer(self) -> bool:
        """Whether requests are authorized with a bearer token."""
        return self.auth_type == "oauth"

    def override(self, **kwargs: Any) -> "EngageConfig":
        """Create a new configuration with specific overrides.

        Example:
            >>> config = EngageConfig(engage_server="4", username="u", password="p")
            >>> config.override(timeout_seconds=5.0).timeout_seconds
            5.0
        """
        return replace(self, **kwargs)

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Convert configuration to dictionary format.

        Args:
            include_secrets: Keep passwords and OAuth secrets in clear text

        Returns:
            Dictionary representation of the configuration
        """
        result = asdict(self)
        if not include_secrets:
            for name in _SECRET_FIELDS:
                if result.get(name):
                    result[name] = _MASK
        return result

    def to_json(self, indent: int = 2, include_secrets: bool = False) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(include_secrets=include_secrets), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngageConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                field_name=unknown[0],
            )
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> "EngageConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration JSON must be an object")
        return cls.from_dict(data)
