"""Shared fixtures for engage_pod tests."""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from engage_pod.shared.config import EngageConfig


class FakeTransport:
    """Transport double that replays queued bodies and records every call."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def post(self, url: str, fields: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> str:
        self.calls.append({
            "url": url,
            "fields": dict(fields),
            "headers": dict(headers or {}),
        })
        if not self.responses:
            raise AssertionError(f"Unexpected POST to {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["url"].endswith(suffix)]


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def basic_config() -> EngageConfig:
    return EngageConfig(
        engage_server="4",
        auth_type="basic",
        username="user@example.com",
        password="secret",
    )


@pytest.fixture
def oauth_config() -> EngageConfig:
    return EngageConfig(
        engage_server="4",
        auth_type="oauth",
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
    )


@pytest.fixture
def success_xml() -> Callable[[str], str]:
    """Builder for a successful XML API response with extra RESULT content."""
    def build(body: str = "", success: str = "TRUE") -> str:
        return (
            "<Envelope><Body><RESULT>"
            f"<SUCCESS>{success}</SUCCESS>{body}"
            "</RESULT></Body></Envelope>"
        )
    return build


@pytest.fixture
def fault_xml() -> Callable[[str], str]:
    """Builder for a fault response carrying ``message`` as FaultString."""
    def build(message: str) -> str:
        return (
            "<Envelope><Body>"
            "<RESULT><SUCCESS>false</SUCCESS></RESULT>"
            "<Fault><Request/><FaultCode/>"
            f"<FaultString>{message}</FaultString>"
            "<detail><error><errorid>140</errorid></error></detail>"
            "</Fault></Body></Envelope>"
        )
    return build


@pytest.fixture
def token_json() -> Callable[..., str]:
    """Builder for a token endpoint response body."""
    def build(token: Optional[str] = "T", expires_in: Optional[int] = 3600) -> str:
        payload: Dict[str, Any] = {"token_type": "bearer"}
        if token is not None:
            payload["access_token"] = token
        if expires_in is not None:
            payload["expires_in"] = expires_in
        return json.dumps(payload)
    return build
