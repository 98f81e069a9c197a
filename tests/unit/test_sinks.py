"""
Unit tests for response sinks.
"""

import json
import logging
from datetime import datetime, timezone

from sensor_sentinel.anomaly.schema import AnomalyType, Classification, ConsensusResult, Severity
from sensor_sentinel.data.schema import Reading
from sensor_sentinel.response.responder import Responder
from sensor_sentinel.response.sinks import LoggingSink, MemorySink


def _record(baseline, severity):
    reading = Reading(
        sensor_id="temp-01",
        timestamp=datetime(2025, 2, 7, 10, 0, tzinfo=timezone.utc),
        value=23.0,
    )
    classification = Classification(
        anomaly_type=AnomalyType.SPIKE, severity=severity, evidence="test", rule="spike"
    )
    consensus = ConsensusResult(
        is_anomaly=True, votes_for=4, votes_total=4, quorum=3, agreement_ratio=1.0
    )
    return Responder().respond(reading, classification, baseline, consensus)


def test_memory_sink_groups_by_severity(manual_baseline):
    sink = MemorySink()
    assert sink.highest_severity() is None

    sink.emit(_record(manual_baseline, Severity.INFO))
    sink.emit(_record(manual_baseline, Severity.WARNING))
    sink.emit(_record(manual_baseline, Severity.INFO))

    assert len(sink.records) == 3
    assert len(sink.by_severity(Severity.INFO)) == 2
    assert sink.by_severity(Severity.CRITICAL) == []
    assert sink.highest_severity() == Severity.WARNING

    sink.clear()
    assert sink.records == []


def test_logging_sink_level_follows_severity(manual_baseline, caplog):
    sink = LoggingSink()
    caplog.set_level(logging.DEBUG, logger="sensor_sentinel.responses")

    sink.emit(_record(manual_baseline, Severity.WARNING))
    sink.emit(_record(manual_baseline, Severity.EMERGENCY))

    levels = [r.levelno for r in caplog.records if r.name == "sensor_sentinel.responses"]
    assert levels == [logging.WARNING, logging.CRITICAL]

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["sensor_id"] == "temp-01"
    assert payload["classification"]["severity"] == "emergency"
