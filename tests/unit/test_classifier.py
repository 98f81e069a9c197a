"""
Unit tests for anomaly pattern classification.
"""

import pytest

from sensor_sentinel.anomaly.classifier import Classifier
from sensor_sentinel.anomaly.history import HistoryWindow
from sensor_sentinel.anomaly.schema import AnomalyType, ConsensusResult, Severity

NORMAL_CYCLE = [22.0, 22.05, 21.95, 22.02, 21.98]


def _verdict(flagged: bool) -> ConsensusResult:
    return ConsensusResult(
        is_anomaly=flagged,
        votes_for=4 if flagged else 0,
        votes_total=4,
        quorum=3,
        agreement_ratio=1.0 if flagged else 0.0,
    )


def _history(reading_factory, values, flagged):
    """flagged: iterable of booleans, or a set of flagged indices."""
    history = HistoryWindow()
    for i, reading in enumerate(reading_factory("temp-01", values)):
        is_flagged = flagged[i] if isinstance(flagged, list) else i in flagged
        history.record(reading, _verdict(is_flagged))
    return history


def test_rule_precedence():
    assert Classifier().rule_order == [
        AnomalyType.FLATLINE,
        AnomalyType.DRIFT,
        AnomalyType.NOISE,
        AnomalyType.SPIKE,
    ]


def test_isolated_spike(reading_factory, manual_baseline):
    history = _history(reading_factory, NORMAL_CYCLE + [23.0], {5})

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.SPIKE
    assert result.severity == Severity.INFO
    assert result.magnitude == pytest.approx(10.0)
    assert result.rule == "spike"


def test_few_spikes_are_warning(reading_factory, manual_baseline):
    values = NORMAL_CYCLE * 2 + [23.0] + NORMAL_CYCLE * 2 + [23.0]
    history = _history(reading_factory, values, {10, 21})

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.SPIKE
    assert result.severity == Severity.WARNING


def test_recurring_spikes(reading_factory, manual_baseline):
    values = []
    flagged = set()
    for _ in range(4):
        flagged.add(len(values))
        values.append(23.0)
        values.extend(NORMAL_CYCLE * 2)
    values.append(23.0)
    flagged.add(len(values) - 1)

    result = Classifier().classify(_history(reading_factory, values, flagged), manual_baseline)

    assert result.anomaly_type == AnomalyType.SPIKE
    assert result.severity == Severity.WARNING
    assert "recurring" in result.evidence


def test_drift_critical(reading_factory, manual_baseline):
    values = [22.45, 22.5, 22.55] * 4
    history = _history(reading_factory, values, set(range(len(values))))

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.DRIFT
    assert result.severity == Severity.CRITICAL
    assert result.magnitude == pytest.approx(5.0, abs=0.1)


def test_drift_warning(reading_factory, manual_baseline):
    values = [22.28, 22.3, 22.32] * 4
    history = _history(reading_factory, values, set(range(len(values))))

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.DRIFT
    assert result.severity == Severity.WARNING


def test_drift_needs_repeated_anomalies(reading_factory, manual_baseline):
    values = [22.28, 22.3, 22.32] * 4
    history = _history(reading_factory, values, {10, 11})

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.SPIKE


def test_noise(reading_factory, manual_baseline):
    values = [21.5, 22.5, 21.6, 22.4, 21.55, 22.45, 21.5, 22.5, 21.6, 22.4, 21.55]
    history = _history(reading_factory, values, {10})

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.NOISE
    assert result.severity == Severity.CRITICAL
    assert result.magnitude > 4.0


def test_flatline(reading_factory, manual_baseline):
    history = _history(reading_factory, [22.0] * 10, {9})

    result = Classifier().classify(history, manual_baseline)

    assert result.anomaly_type == AnomalyType.FLATLINE
    assert result.severity == Severity.CRITICAL


def test_flatline_needs_full_window(reading_factory, manual_baseline):
    history = _history(reading_factory, [22.0] * 5, {4})
    assert Classifier().classify(history, manual_baseline).anomaly_type == AnomalyType.SPIKE


def test_flatline_wins_over_drift(reading_factory, manual_baseline):
    values = [23.0] * 12
    history = _history(reading_factory, values, set(range(12)))
    assert Classifier().classify(history, manual_baseline).anomaly_type == AnomalyType.FLATLINE


def test_zero_std_baseline_skips_drift_and_noise(reading_factory, manual_baseline):
    baseline = manual_baseline.model_copy(update={"std": 0.0})
    values = [21.0, 23.0, 21.5, 22.5, 21.0, 23.0, 21.5, 22.5, 21.0, 23.0, 25.0]
    history = _history(reading_factory, values, set(range(len(values))))

    result = Classifier().classify(history, baseline)

    assert result.anomaly_type == AnomalyType.SPIKE
    assert result.magnitude is None
