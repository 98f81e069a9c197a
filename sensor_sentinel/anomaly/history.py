"""
Bounded per-sensor history of readings and consensus verdicts.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from math import isfinite
from typing import Deque, Iterable, List

from sensor_sentinel.data.schema import Reading

from .schema import ConsensusResult, HistoryEntry


@dataclass
class HistoryWindow:
    """
    Last max_readings (reading, verdict) pairs and last max_anomalies
    flagged entries, both overwritten oldest-first.

    "Recent" anomalies are the last max_anomalies flagged entries that are
    still inside the readings window, so old episodes age out with the
    readings that carried them.
    """

    max_readings: int = 50
    max_anomalies: int = 20
    _entries: Deque[HistoryEntry] = field(default=None, repr=False)
    _anomalies: Deque[HistoryEntry] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._entries = deque(maxlen=self.max_readings)
        self._anomalies = deque(maxlen=self.max_anomalies)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, reading: Reading, consensus: ConsensusResult) -> HistoryEntry:
        entry = HistoryEntry(reading=reading, consensus=consensus)
        self._entries.append(entry)
        if consensus.is_anomaly:
            self._anomalies.append(entry)
        return entry

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    @property
    def anomalies(self) -> List[HistoryEntry]:
        return list(self._anomalies)

    @property
    def latest(self) -> HistoryEntry:
        return self._entries[-1]

    def recent_values(self, n: int) -> List[float]:
        """Finite values of the last n readings, oldest first."""
        entries = list(self._entries)[-n:] if n > 0 else []
        return [e.reading.value for e in entries if isfinite(e.reading.value)]

    def context_values(self, n: int) -> List[float]:
        """Finite values of the n readings preceding the latest one."""
        entries = list(self._entries)[:-1][-n:] if n > 0 else []
        return [e.reading.value for e in entries if isfinite(e.reading.value)]

    def recent_anomaly_count(self) -> int:
        in_window = {id(e) for e in self._entries}
        return sum(1 for e in self._anomalies if id(e) in in_window)

    def clear(self) -> None:
        self._entries.clear()
        self._anomalies.clear()

    def load(self, entries: Iterable[HistoryEntry]) -> None:
        self.clear()
        for entry in entries:
            self._entries.append(entry)
            if entry.consensus.is_anomaly:
                self._anomalies.append(entry)
