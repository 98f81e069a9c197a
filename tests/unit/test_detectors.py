"""
Unit tests for anomaly detectors.
"""

import pytest

from sensor_sentinel.anomaly.detectors import (
    CUSUMDetector,
    EWMADetector,
    GrubbsDetector,
    IQRDetector,
    ModifiedZScoreDetector,
    MovingAverageDetector,
    ZScoreDetector,
    grubbs_test,
)
from sensor_sentinel.anomaly.schema import INVALID_INPUT

GRUBBS_SAMPLE = [10.0, 10.1, 9.9, 10.2, 9.8, 10.0, 10.1, 9.9, 10.05, 25.0]


def test_zscore_detector_flags_beyond_threshold():
    detector = ZScoreDetector(mean=10.0, std=2.0, threshold=3.0)

    vote = detector.update(17.0)
    assert vote.is_anomaly
    assert vote.detail["z_score"] == pytest.approx(3.5)

    assert not detector.update(15.0).is_anomaly


def test_zscore_detector_disabled_for_zero_std():
    detector = ZScoreDetector(mean=10.0, std=0.0)

    assert not detector.is_enabled
    vote = detector.update(100.0)
    assert vote.abstained
    assert vote.detail["disabled_reason"] == "zero_std"


def test_zscore_detector_requires_normal_baseline():
    assert not ZScoreDetector(mean=0.0, std=1.0, is_normal=False).is_enabled
    assert ZScoreDetector(mean=0.0, std=1.0, is_normal=False, require_normal=False).is_enabled


def test_non_finite_input_is_voted_anomalous():
    detectors = [
        ZScoreDetector(mean=0.0, std=1.0),
        ModifiedZScoreDetector(median=0.0, mad=1.0),
        IQRDetector(q1=-1.0, q3=1.0),
        GrubbsDetector(),
        CUSUMDetector(target=0.0, k=0.5, h=5.0),
        EWMADetector(),
        MovingAverageDetector(),
    ]
    for detector in detectors:
        for value in (float("nan"), float("inf"), float("-inf")):
            vote = detector.update(value)
            assert vote.is_anomaly, detector.name
            assert not vote.abstained
            assert vote.detail["reason"] == INVALID_INPUT


def test_modified_zscore_detector():
    detector = ModifiedZScoreDetector(median=10.0, mad=1.0)

    vote = detector.update(16.0)
    assert vote.is_anomaly
    assert vote.detail["modified_z"] == pytest.approx(0.6745 * 6.0)
    assert not detector.update(14.0).is_anomaly


def test_modified_zscore_detector_disabled_for_zero_mad():
    detector = ModifiedZScoreDetector(median=10.0, mad=0.0)
    assert detector.config().disabled_reason == "zero_mad"


def test_iqr_detector_fences():
    detector = IQRDetector(q1=10.0, q3=20.0, factor=1.5)

    assert detector.lower_fence == pytest.approx(-5.0)
    assert detector.upper_fence == pytest.approx(35.0)
    assert detector.update(36.0).is_anomaly
    assert detector.update(-6.0).is_anomaly
    assert not detector.update(34.0).is_anomaly


def test_iqr_detector_with_zero_iqr_flags_any_change():
    detector = IQRDetector(q1=5.0, q3=5.0)
    assert detector.is_enabled
    assert not detector.update(5.0).is_anomaly
    assert detector.update(5.01).is_anomaly


def test_grubbs_test_finds_outlier():
    result = grubbs_test(GRUBBS_SAMPLE, alpha=0.05)

    assert result.is_outlier
    assert result.index == 9
    assert result.value == 25.0
    assert result.g_statistic > result.g_critical


def test_grubbs_test_no_outlier_in_uniform_sample():
    result = grubbs_test([1.0, 2.0, 3.0, 4.0, 5.0], alpha=0.05)
    assert not result.is_outlier


def test_grubbs_test_needs_three_values():
    with pytest.raises(ValueError):
        grubbs_test([1.0, 2.0])


def test_grubbs_detector_flags_only_current_outlier():
    detector = GrubbsDetector(alpha=0.05, window_size=30)

    votes = [detector.update(v) for v in GRUBBS_SAMPLE]

    assert votes[0].abstained and votes[1].abstained
    assert votes[-1].is_anomaly
    assert not any(v.is_anomaly for v in votes[:-1])
    # The outlier never enters the window.
    assert detector.get_state()["window"] == GRUBBS_SAMPLE[:-1]


def test_grubbs_detector_abstains_on_constant_window():
    detector = GrubbsDetector()
    votes = [detector.update(3.0) for _ in range(5)]
    assert all(v.abstained for v in votes)
    assert votes[-1].detail["reason"] == "zero_variance"


def test_cusum_detector_resets_exceeding_sum():
    detector = CUSUMDetector(target=0.0, k=0.5, h=5.0)

    vote = detector.update(6.0)
    assert vote.is_anomaly
    assert vote.detail["s_high"] == pytest.approx(5.5)
    assert vote.detail["direction"] == "up"
    assert detector.s_high == 0.0


def test_cusum_upward_alarm_leaves_low_sum_alone():
    detector = CUSUMDetector(target=0.0, k=0.5, h=5.0, s_high=4.9, s_low=4.0)

    vote = detector.update(1.0)

    assert vote.is_anomaly
    assert vote.detail["direction"] == "up"
    assert detector.s_high == 0.0
    assert detector.s_low == pytest.approx(2.5)


def test_cusum_detector_accumulates_small_shift():
    detector = CUSUMDetector(target=0.0, k=0.5, h=5.0)

    flags = [detector.update(2.0).is_anomaly for _ in range(4)]
    assert flags == [False, False, False, True]


def test_cusum_detector_downward_shift():
    detector = CUSUMDetector(target=0.0, k=0.5, h=5.0)
    vote = detector.update(-6.0)
    assert vote.is_anomaly
    assert vote.detail["direction"] == "down"


def test_cusum_detector_disabled_for_zero_threshold():
    assert not CUSUMDetector(target=0.0, k=0.0, h=0.0).is_enabled


def test_ewma_detector_warm_up_and_flag():
    detector = EWMADetector(alpha=0.3, sigma_threshold=3.0)

    first = detector.update(10.0)
    assert first.abstained
    assert first.detail["reason"] == "warming_up"

    second = detector.update(12.0)
    assert second.abstained
    assert detector.ewma == pytest.approx(10.6)
    assert detector.ewma_var == pytest.approx(0.84)

    assert not detector.update(10.6).is_anomaly
    state = detector.get_state()

    assert detector.update(100.0).is_anomaly
    # Flagged values are not folded in.
    assert detector.get_state() == state


def test_ewma_detector_reset():
    detector = EWMADetector()
    detector.update(1.0)
    detector.update(2.0)
    detector.reset()
    assert detector.ewma is None
    assert detector.count == 0


def test_moving_average_detector():
    detector = MovingAverageDetector(window_size=20, threshold_sigma=3.0, min_samples=5)

    warmup = [detector.update(v) for v in (10.0, 11.0, 10.0, 11.0, 10.0)]
    assert all(v.abstained for v in warmup)

    assert not detector.update(10.5).is_anomaly
    assert detector.update(50.0).is_anomaly
    assert detector.window == [10.0, 11.0, 10.0, 11.0, 10.0, 10.5]


def test_moving_average_detector_zero_variance_window():
    detector = MovingAverageDetector(min_samples=5)
    votes = [detector.update(7.0) for _ in range(6)]
    assert votes[-1].abstained
    assert votes[-1].detail["reason"] == "zero_variance"


def test_moving_average_window_is_bounded():
    detector = MovingAverageDetector(window_size=5, min_samples=2)
    for i in range(20):
        detector.update(float(i % 2))
    assert len(detector.window) == 5


def test_stateful_detectors_round_trip_state():
    detector = MovingAverageDetector(min_samples=2)
    for v in (1.0, 2.0, 1.5):
        detector.update(v)

    restored = MovingAverageDetector(min_samples=2)
    restored.set_state(detector.get_state())
    assert restored.window == detector.window


def test_baseline_detectors_are_pure():
    zscore = ZScoreDetector(mean=22.0, std=0.15)
    iqr = IQRDetector(q1=21.9, q3=22.1)

    assert zscore.update(85.0) == zscore.update(85.0)
    assert iqr.update(85.0) == iqr.update(85.0)
