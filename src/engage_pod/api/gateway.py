"""Operation dispatcher for the XML API.

One call to :meth:`EngageGateway.execute` wraps the operation parameters in
``Envelope/Body/<Operation>``, encodes them, attaches the bearer token (or the
basic-auth session id), performs one blocking POST, decodes the response and
classifies it as success, tolerated fault or :class:`OperationFault`.

The only retry is the token-expiry retry: when the decoded response carries
the "access token has expired" fault, the credential is refreshed and the
whole operation is sent again, at most ``max_token_retries`` times per call.
"""

import time
from typing import Any, Dict, Iterable, Optional, Tuple

from engage_pod.api.transport import HttpTransport
from engage_pod.auth.manager import CredentialManager
from engage_pod.shared.config import EngageConfig
from engage_pod.shared.exceptions import AuthenticationError, OperationFault
from engage_pod.shared.logging import CorrelationLogger, get_logger, new_correlation_id
from engage_pod.shared.result import OperationResponse
from engage_pod.tree.decoder import (
    DecoderConfig,
    TreeDecoder,
    fault_string,
    is_success,
    result_of,
    scalar_value,
)
from engage_pod.tree.encoder import AttributeHints, EncoderConfig, RenameTable, TreeEncoder
from engage_pod.tree.node import MappingNode, Node, ScalarNode, from_python

UNKNOWN_SERVER_ERROR = "Unknown Server Error"
MS_PER_SECOND = 1000


class EngageGateway:
    """Sends XML API operations and classifies their responses.

    Args:
        config: Client configuration
        transport: Object with ``post(url, fields, headers=None) -> str``;
            an :class:`HttpTransport` is created when omitted
        credentials: Credential manager for bearer mode; created from
            ``config`` when omitted and bearer mode is configured
    """

    def __init__(
        self,
        config: EngageConfig,
        transport: Optional[Any] = None,
        credentials: Optional[CredentialManager] = None,
        encoder_config: Optional[EncoderConfig] = None,
        decoder_config: Optional[DecoderConfig] = None,
    ) -> None:
        self.config = config
        self.transport = transport or HttpTransport(timeout=config.timeout_seconds)
        if credentials is None and config.uses_bearer:
            credentials = CredentialManager(config, self.transport)
        self.credentials = credentials
        self.encoder_config = encoder_config or EncoderConfig()
        self.decoder_config = decoder_config or DecoderConfig()

        self.session_id: Optional[str] = None
        self.session_encoding: str = ""
        self.last_raw_response: Optional[str] = None
        self.logger = get_logger(__name__, config.correlation_id, "gateway")

    @property
    def url(self) -> str:
        """XML API endpoint including the basic-auth session encoding."""
        return f"{self.config.xml_url}{self.session_encoding}"

    @staticmethod
    def build_request(operation: str, params: Any = None) -> MappingNode:
        """Wrap operation parameters as ``Envelope/Body/<operation>``."""
        if not operation:
            raise ValueError("Operation name cannot be empty")
        body: Node = ScalarNode(None) if params is None else from_python(params)
        return MappingNode([
            ("Envelope", MappingNode([
                ("Body", MappingNode([(operation, body)])),
            ])),
        ])

    def execute(
        self,
        operation: str,
        params: Any = None,
        rename_table: Optional[RenameTable] = None,
        attribute_hints: Optional[AttributeHints] = None,
        tolerated_faults: Iterable[str] = (),
    ) -> OperationResponse:
        """Run one XML API operation.

        Args:
            operation: Operation element name, e.g. ``"AddRecipient"``
            params: Operation parameters as a tree or plain dict
            rename_table: Placeholder tag renames for the request document
            attribute_hints: Positional attribute hints for the request document
            tolerated_faults: Fault strings to report as a non-raising outcome

        Raises:
            OperationFault: When the server reports failure
            ParseError: When the response is malformed or undiscriminated
            TransportError: When the HTTP call fails
            AuthenticationError: When a bearer token cannot be obtained
        """
        correlation_id = self.config.correlation_id or new_correlation_id()
        logger = self.logger.bind(correlation_id)
        start_time = time.time()

        request = self.build_request(operation, params)
        xml = TreeEncoder(self.encoder_config, correlation_id).encode_to_string(
            request, rename_table, attribute_hints
        )
        decoder = TreeDecoder(self.decoder_config, correlation_id)
        logger.info("Sending operation", extra={"operation": operation})

        attempt = 0
        while True:
            envelope, raw = self._send(xml, decoder)
            if not self._should_retry_token(envelope, attempt):
                break
            attempt += 1
            logger.warning(
                "Access token rejected, refreshing and retrying",
                extra={"operation": operation, "attempt": attempt},
            )
            self.credentials.invalidate()
            self.credentials.refresh()

        processing_time = (time.time() - start_time) * MS_PER_SECOND
        return self._classify(
            operation, envelope, raw, set(tolerated_faults),
            attempt, processing_time, correlation_id, logger,
        )

    def login(self) -> OperationResponse:
        """Open a basic-auth session and remember its id and URL encoding."""
        if not self.config.username or not self.config.password:
            raise AuthenticationError("Basic authentication requires username and password")
        response = self.execute(
            "Login",
            {"USERNAME": self.config.username, "PASSWORD": self.config.password},
        )
        result = response.result or MappingNode()
        self.session_id = scalar_value(result.get("SESSIONID"))
        self.session_encoding = scalar_value(result.get("SESSION_ENCODING")) or ""
        self.logger.info("Session opened", extra={"has_session": self.session_id is not None})
        return response

    def logout(self) -> OperationResponse:
        """Terminate the basic-auth session."""
        response = self.execute("Logout")
        self.session_id = None
        self.session_encoding = ""
        return response

    def _headers(self) -> Dict[str, str]:
        if self.config.uses_bearer and self.credentials is not None:
            return {"Authorization": f"Bearer {self.credentials.acquire()}"}
        return {}

    def _send(self, xml: str, decoder: TreeDecoder) -> Tuple[MappingNode, str]:
        self.last_raw_response = None
        fields = {"jsessionid": self.session_id or "", "xml": xml}
        raw = self.transport.post(self.url, fields, self._headers())
        self.last_raw_response = raw
        return decoder.decode_envelope(raw), raw

    def _should_retry_token(self, envelope: MappingNode, attempt: int) -> bool:
        if not self.config.uses_bearer or self.credentials is None:
            return False
        if attempt >= self.config.max_token_retries:
            return False
        return CredentialManager.is_token_expired_fault(envelope)

    def _classify(
        self,
        operation: str,
        envelope: MappingNode,
        raw: str,
        tolerated_faults: set,
        token_retries: int,
        processing_time: float,
        correlation_id: str,
        logger: CorrelationLogger,
    ) -> OperationResponse:
        result = result_of(envelope)
        fault = fault_string(envelope)
        response = OperationResponse(
            operation=operation,
            envelope=envelope,
            result=result,
            raw_response=raw,
            success=is_success(result),
            fault_string=fault,
            token_retries=token_retries,
            processing_time_ms=processing_time,
            correlation_id=correlation_id,
        )
        if response.success:
            logger.info(
                "Operation succeeded",
                extra={"operation": operation, "processing_time_ms": processing_time},
            )
            return response

        if fault is not None and fault in tolerated_faults:
            response.tolerated = True
            logger.info(
                "Tolerated server fault",
                extra={"operation": operation, "fault_string": fault},
            )
            return response

        logger.warning(
            "Operation failed",
            extra={"operation": operation, "fault_string": fault},
        )
        raise OperationFault(
            f"{operation} Error: {fault or UNKNOWN_SERVER_ERROR}",
            operation=operation,
            fault_string=fault,
        )
