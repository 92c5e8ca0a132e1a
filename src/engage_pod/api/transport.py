"""Blocking HTTP transport for the XML API and the token endpoint."""

from typing import Dict, Mapping, Optional

import requests

from engage_pod.shared.exceptions import TransportError
from engage_pod.shared.logging import get_logger

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


class HttpTransport:
    """Single form-encoded POST per call, no retries.

    Non-2xx responses that carry a body are returned as-is: the XML API
    reports faults inside the body and the caller decodes them.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger(__name__, component="transport")

    def post(
        self,
        url: str,
        fields: Mapping[str, Optional[str]],
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """POST ``fields`` form-encoded to ``url`` and return the response text.

        Raises:
            TransportError: On connection failures, timeouts or an empty body
        """
        request_headers: Dict[str, str] = {"Content-Type": FORM_CONTENT_TYPE}
        if headers:
            request_headers.update(headers)
        data = {key: ("" if value is None else value) for key, value in fields.items()}

        try:
            response = self.session.post(
                url, data=data, headers=request_headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise TransportError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"HTTP request to {url} failed: {e}") from e

        if not response.ok:
            self.logger.warning(
                "Non-success HTTP status",
                extra={"url": url, "status_code": response.status_code},
            )
        if not response.text:
            raise TransportError(
                f"Empty response from {url}", status_code=response.status_code
            )
        return response.text

    def close(self) -> None:
        self.session.close()
