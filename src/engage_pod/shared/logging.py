"""Correlation-aware logging for XML API calls.

Each gateway call carries a correlation id so that the request, any token
refresh and the retry that follows can be tied together in the log output.
Records carry ``component`` and ``correlation_id`` as extra attributes for
structured formatters. Tokens and passwords must never be passed in ``extra``.
"""

import logging
import uuid
from typing import Any, Dict, Optional


def new_correlation_id() -> str:
    """Generate a fresh correlation id for one operation."""
    return uuid.uuid4().hex


class CorrelationLogger:
    """Stdlib logger wrapper that tags records with a component and a call id.

    Args:
        name: Logger name (typically ``__name__``)
        correlation_id: Id of the operation being logged, if any
        component: Short component label; defaults to the last name segment
    """

    def __init__(
        self,
        name: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self.logger = logging.getLogger(name)
        self.correlation_id = correlation_id
        self.component = component or name.rsplit(".", 1)[-1]

    def bind(self, correlation_id: Optional[str]) -> "CorrelationLogger":
        """Same logger and component, tagged with another correlation id."""
        return CorrelationLogger(self.logger.name, correlation_id, self.component)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, extra)

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        fields: Dict[str, Any] = {
            "component": self.component,
            "correlation_id": self.correlation_id,
        }
        if extra:
            fields.update(extra)
        self.logger.log(level, message, extra=fields)


def get_logger(
    name: str,
    correlation_id: Optional[str] = None,
    component: Optional[str] = None,
) -> CorrelationLogger:
    """Get a correlation-aware logger instance."""
    return CorrelationLogger(name, correlation_id, component)
