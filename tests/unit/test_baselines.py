"""
Unit tests for baseline estimation.
"""

import math

import pytest

from sensor_sentinel.anomaly.baselines import BaselineEstimator, establish_baseline
from sensor_sentinel.core.config import BaselineSettings
from sensor_sentinel.core.exceptions import InsufficientSamples, InvalidReading


def test_baseline_statistics_for_known_block():
    values = [float(i) for i in range(1, 101)]
    baseline = establish_baseline(values)

    assert baseline.mean == pytest.approx(50.5)
    assert baseline.std == pytest.approx(math.sqrt((100 ** 2 - 1) / 12.0))
    assert baseline.median == pytest.approx(50.5)
    assert baseline.q1 == pytest.approx(25.75)
    assert baseline.q3 == pytest.approx(75.25)
    assert baseline.iqr == pytest.approx(49.5)
    assert baseline.mad == pytest.approx(25.0)
    assert baseline.min == 1.0
    assert baseline.max == 100.0
    assert baseline.sample_count == 100


def test_baseline_is_deterministic(normal_block):
    first = establish_baseline(normal_block)
    second = establish_baseline(list(normal_block))
    assert first == second


def test_normal_stationary_block(normal_block):
    baseline = establish_baseline(normal_block)

    assert baseline.mean == pytest.approx(22.0, abs=1e-9)
    assert baseline.is_normal
    assert baseline.is_stationary
    assert baseline.mean_drift_sigma < 0.01


def test_insufficient_samples_reports_counts():
    with pytest.raises(InsufficientSamples) as exc_info:
        establish_baseline([1.0] * 50, sensor_id="temp-01")

    assert exc_info.value.required == 100
    assert exc_info.value.received == 50
    assert "temp-01" in str(exc_info.value)


def test_min_samples_override():
    baseline = establish_baseline([1.0, 2.0, 3.0, 4.0, 5.0], min_samples=5)
    assert baseline.sample_count == 5


def test_non_finite_value_in_block_is_rejected(normal_block):
    block = list(normal_block)
    block[10] = float("nan")
    with pytest.raises(InvalidReading):
        establish_baseline(block)


def test_constant_block_has_zero_spread(constant_block):
    baseline = establish_baseline(constant_block)

    assert baseline.std == 0.0
    assert baseline.iqr == 0.0
    assert baseline.mad == 0.0
    assert baseline.mean_drift_sigma == 0.0
    assert baseline.normality_p == 0.0
    assert not baseline.is_normal
    assert baseline.is_stationary


def test_shifted_block_is_not_stationary(normal_block):
    block = normal_block[:50] + [v + 1.0 for v in normal_block[50:]]
    baseline = establish_baseline(block)

    assert not baseline.is_stationary
    assert baseline.mean_drift_sigma > 0.5


def test_estimator_accepts_readings(normal_block, reading_factory):
    estimator = BaselineEstimator(settings=BaselineSettings(min_samples=50))
    baseline = estimator.estimate(reading_factory("temp-01", normal_block))
    assert baseline.sample_count == 100


def test_large_block_uses_omnibus_normality_test(normal_block):
    settings = BaselineSettings(exact_normality_max_samples=50)
    baseline = BaselineEstimator(settings=settings).estimate(normal_block)
    assert 0.0 <= baseline.normality_p <= 1.0
    assert baseline.is_normal
