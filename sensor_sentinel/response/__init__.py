"""
Response pipeline exports: responder, approval gate and egress sinks.
"""

from .approval import ApprovalGate, ApprovalRequest, ApprovalStatus
from .responder import Responder, escalate_severity, highest_severity
from .schema import ResponseAction, ResponseRecord
from .sinks import LoggingSink, MemorySink, ResponseSink

__all__ = [
    "ApprovalGate",
    "ApprovalRequest",
    "ApprovalStatus",
    "Responder",
    "escalate_severity",
    "highest_severity",
    "ResponseAction",
    "ResponseRecord",
    "LoggingSink",
    "MemorySink",
    "ResponseSink",
]
