"""Bearer credential value object."""

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Credential:
    """Access token together with the bookkeeping needed to judge staleness.

    ``issued_at`` is a timestamp from the credential manager's clock and
    ``ttl_seconds`` the lifetime the manager derived from the token response.
    """

    token: str
    issued_at: float
    ttl_seconds: int

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("Credential token cannot be empty")
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl_seconds

    def age(self, now: float) -> float:
        return now - self.issued_at

    def is_expired(self, now: float) -> bool:
        """Stale once the age strictly exceeds the TTL."""
        return self.age(now) > self.ttl_seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        return cls(
            token=str(data["token"]),
            issued_at=float(data["issued_at"]),
            ttl_seconds=int(data["ttl_seconds"]),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Credential":
        """Parse a serialized credential.

        Raises:
            ValueError: If the payload is not a serialized credential
        """
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValueError(f"Not a serialized credential: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Not a serialized credential")
        try:
            return cls.from_dict(data)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Incomplete credential payload: {e}") from e
