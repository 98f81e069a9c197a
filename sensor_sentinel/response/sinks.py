"""
Egress sinks for response records.

The engine performs no network I/O; records are handed to sinks keyed by
severity. Transports (MQTT, HTTP) are implemented outside this package by
anything that provides emit(record).
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Protocol

from sensor_sentinel.anomaly.schema import Severity

from .responder import highest_severity
from .schema import ResponseRecord

SEVERITY_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.CRITICAL: logging.ERROR,
    Severity.EMERGENCY: logging.CRITICAL,
}


class ResponseSink(Protocol):
    def emit(self, record: ResponseRecord) -> None:
        ...


class LoggingSink:
    """
    Writes each record as one JSON line to a logger, at a level matching
    its severity.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("sensor_sentinel.responses")

    def emit(self, record: ResponseRecord) -> None:
        level = SEVERITY_LOG_LEVELS[record.classification.severity]
        self.logger.log(level, record.model_dump_json())


class MemorySink:
    """
    Keeps records in memory, grouped by severity. Useful for tests and
    for batch replay.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[ResponseRecord] = []
        self._by_severity: Dict[Severity, List[ResponseRecord]] = defaultdict(list)

    def emit(self, record: ResponseRecord) -> None:
        with self._lock:
            self._records.append(record)
            self._by_severity[record.classification.severity].append(record)

    @property
    def records(self) -> List[ResponseRecord]:
        with self._lock:
            return list(self._records)

    def by_severity(self, severity: Severity) -> List[ResponseRecord]:
        with self._lock:
            return list(self._by_severity.get(severity, []))

    def highest_severity(self) -> Optional[Severity]:
        with self._lock:
            if not self._records:
                return None
            return highest_severity(*(r.classification.severity for r in self._records))

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._by_severity.clear()
