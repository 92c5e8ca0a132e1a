"""XML API access layer.

Key Components:
    HttpTransport: blocking form-encoded POST via requests
    EngageGateway: per-operation encode/send/decode/classify glue
    EngagePod: thin per-operation client returning plain Python values
"""

from .client import NOT_A_MEMBER_FAULT, EngagePod
from .gateway import EngageGateway
from .transport import HttpTransport

__all__ = [
    "EngagePod",
    "EngageGateway",
    "HttpTransport",
    "NOT_A_MEMBER_FAULT",
]
