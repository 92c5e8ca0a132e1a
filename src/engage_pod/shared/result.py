"""Result objects for XML API operations."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from engage_pod.tree.node import MappingNode


@dataclass
class OperationResponse:
    """Outcome of one gateway call.

    ``tolerated`` is set when the server answered with a fault that the
    caller declared harmless (for example removing a contact that is not on
    the list); ``success`` is then ``False`` but no exception was raised.
    """

    operation: str
    envelope: "MappingNode"
    result: Optional["MappingNode"]
    raw_response: str
    success: bool
    tolerated: bool = False
    fault_string: Optional[str] = None
    token_retries: int = 0
    processing_time_ms: float = 0.0
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate response values."""
        if not self.operation:
            raise ValueError("Operation name cannot be empty")
        if self.token_retries < 0:
            raise ValueError("token_retries must be >= 0")

    @property
    def result_dict(self) -> Dict[str, Any]:
        """RESULT block as plain Python values (empty when absent)."""
        if self.result is None:
            return {}
        value = self.result.to_python()
        return value if isinstance(value, dict) else {}

    def get(self, tag: str, default: Any = None) -> Any:
        """Plain value of one RESULT field."""
        return self.result_dict.get(tag, default)
