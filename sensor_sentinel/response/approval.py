"""
Human-in-the-loop approval gate for invasive corrective actions.

Recalibration and replacement recommendations become pending requests. An
external workflow approves or rejects them; re-baselining a sensor with a
pending request requires an approved one.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from sensor_sentinel.core.exceptions import ApprovalDenied, ApprovalRequired, ApprovalTimeout

from .schema import ResponseAction, ResponseRecord

logger = logging.getLogger(__name__)

INVASIVE_ACTIONS = (
    ResponseAction.RECALIBRATION_RECOMMENDED,
    ResponseAction.REPLACEMENT_RECOMMENDED,
)


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONSUMED = "consumed"


class ApprovalRequest(BaseModel):
    """
    One pending decision for one sensor and one invasive action.

    Fields:
    - request_id: unique identifier
    - sensor_id / action: what is being requested
    - record_id: response record that triggered the request
    - status: PENDING until decided; CONSUMED once acted on
    - decided_by / reason: filled in by the approval workflow
    """

    request_id: str = Field(default_factory=lambda: str(uuid4()))
    sensor_id: str
    action: ResponseAction
    record_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: ApprovalStatus = ApprovalStatus.PENDING
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class ApprovalGate:
    """
    Thread-safe registry of approval requests.

    At most one open (PENDING or APPROVED) request exists per sensor and
    action; repeated recommendations reuse it. Only the last max_closed
    consumed or rejected requests are kept.
    """

    def __init__(self, max_closed: int = 256) -> None:
        self._lock = threading.Lock()
        self._requests: Dict[str, ApprovalRequest] = {}
        self._decided: Dict[str, threading.Event] = {}
        self._closed: Deque[str] = deque()
        self.max_closed = max_closed

    def submit(self, record: ResponseRecord) -> List[ApprovalRequest]:
        """File requests for every invasive action in the record."""
        filed = []
        for action in record.actions_taken:
            if action not in INVASIVE_ACTIONS:
                continue
            with self._lock:
                existing = self._open_request(record.sensor_id, action)
                if existing is not None:
                    filed.append(existing)
                    continue
                request = ApprovalRequest(
                    sensor_id=record.sensor_id,
                    action=action,
                    record_id=record.record_id,
                )
                self._requests[request.request_id] = request
                self._decided[request.request_id] = threading.Event()
            logger.info(
                "Approval requested for %s on sensor %s (request %s)",
                action.value,
                record.sensor_id,
                request.request_id,
            )
            filed.append(request)
        return filed

    def get(self, request_id: str) -> ApprovalRequest:
        with self._lock:
            if request_id not in self._requests:
                raise KeyError(f"Unknown approval request: {request_id}")
            return self._requests[request_id]

    def pending_for(self, sensor_id: str) -> List[ApprovalRequest]:
        with self._lock:
            return [
                r
                for r in self._requests.values()
                if r.sensor_id == sensor_id and r.status == ApprovalStatus.PENDING
            ]

    def open_for(self, sensor_id: str) -> List[ApprovalRequest]:
        with self._lock:
            return [
                r
                for r in self._requests.values()
                if r.sensor_id == sensor_id
                and r.status in (ApprovalStatus.PENDING, ApprovalStatus.APPROVED)
            ]

    def approve(self, request_id: str, approver: str, reason: Optional[str] = None) -> ApprovalRequest:
        return self._decide(request_id, ApprovalStatus.APPROVED, approver, reason)

    def reject(self, request_id: str, approver: str, reason: Optional[str] = None) -> ApprovalRequest:
        return self._decide(request_id, ApprovalStatus.REJECTED, approver, reason)

    def wait(self, request_id: str, timeout: Optional[float] = None) -> ApprovalRequest:
        """
        Block until the request is decided.

        Raises:
            ApprovalTimeout: no decision within timeout
            ApprovalDenied: the request was rejected
        """
        with self._lock:
            event = self._decided.get(request_id)
        if event is None:
            raise KeyError(f"Unknown approval request: {request_id}")
        if not event.wait(timeout):
            raise ApprovalTimeout(f"No decision on approval request {request_id} within {timeout}s")
        request = self.get(request_id)
        if request.status == ApprovalStatus.REJECTED:
            raise ApprovalDenied(f"Approval request {request_id} was rejected: {request.reason}")
        return request

    def authorize(self, sensor_id: str, approval: Optional[ApprovalRequest]) -> None:
        """
        Check that reconfiguring sensor_id is allowed.

        Allowed when the sensor has no open request, or when an approved
        request for this sensor is presented.
        """
        open_requests = self.open_for(sensor_id)
        if not open_requests:
            return
        if approval is None:
            raise ApprovalRequired(
                f"Sensor {sensor_id} has {len(open_requests)} open approval request(s)"
            )
        current = self.get(approval.request_id)
        if current.sensor_id != sensor_id:
            raise ApprovalRequired(f"Approval {current.request_id} is for sensor {current.sensor_id}")
        if current.status == ApprovalStatus.REJECTED:
            raise ApprovalDenied(f"Approval request {current.request_id} was rejected")
        if current.status != ApprovalStatus.APPROVED:
            raise ApprovalRequired(f"Approval request {current.request_id} is {current.status.value}")

    def consume(self, sensor_id: str) -> None:
        """Close every approved or pending request for the sensor after a re-baseline."""
        with self._lock:
            closed = []
            for request_id, request in self._requests.items():
                if request.sensor_id == sensor_id and request.status in (
                    ApprovalStatus.PENDING,
                    ApprovalStatus.APPROVED,
                ):
                    self._requests[request_id] = request.model_copy(
                        update={"status": ApprovalStatus.CONSUMED}
                    )
                    self._decided[request_id].set()
                    closed.append(request_id)
            for request_id in closed:
                self._retire(request_id)

    def _retire(self, request_id: str) -> None:
        self._closed.append(request_id)
        while len(self._closed) > self.max_closed:
            evicted = self._closed.popleft()
            self._requests.pop(evicted, None)
            self._decided.pop(evicted, None)

    def _open_request(self, sensor_id: str, action: ResponseAction) -> Optional[ApprovalRequest]:
        for request in self._requests.values():
            if (
                request.sensor_id == sensor_id
                and request.action == action
                and request.status in (ApprovalStatus.PENDING, ApprovalStatus.APPROVED)
            ):
                return request
        return None

    def _decide(
        self,
        request_id: str,
        status: ApprovalStatus,
        approver: str,
        reason: Optional[str],
    ) -> ApprovalRequest:
        with self._lock:
            if request_id not in self._requests:
                raise KeyError(f"Unknown approval request: {request_id}")
            request = self._requests[request_id]
            if request.status != ApprovalStatus.PENDING:
                raise ValueError(f"Approval request {request_id} is already {request.status.value}")
            decided = request.model_copy(
                update={
                    "status": status,
                    "decided_at": datetime.now(timezone.utc),
                    "decided_by": approver,
                    "reason": reason,
                }
            )
            self._requests[request_id] = decided
            self._decided[request_id].set()
            if status == ApprovalStatus.REJECTED:
                self._retire(request_id)
        logger.info(
            "Approval request %s for sensor %s %s by %s",
            request_id,
            decided.sensor_id,
            status.value,
            approver,
        )
        return decided
