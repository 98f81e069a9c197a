"""
Unit tests for the detector bank and consensus voting.
"""

from sensor_sentinel.anomaly.bank import build_detector_bank
from sensor_sentinel.anomaly.baselines import establish_baseline
from sensor_sentinel.anomaly.consensus import ConsensusEngine
from sensor_sentinel.anomaly.schema import Vote
from sensor_sentinel.core.config import DetectorSettings, GrubbsSettings


def _votes(*flags, abstain=0):
    votes = [Vote(detector_name=f"d{i}", is_anomaly=flag) for i, flag in enumerate(flags)]
    votes += [
        Vote(detector_name=f"a{i}", is_anomaly=False, abstained=True) for i in range(abstain)
    ]
    return votes


def test_bank_order_and_parameters(normal_block):
    baseline = establish_baseline(normal_block)
    bank = build_detector_bank(baseline)

    assert bank.names == [
        "zscore",
        "modified_zscore",
        "iqr",
        "grubbs",
        "cusum",
        "ewma",
        "moving_average",
    ]
    assert bank.enabled_count == 7
    assert not bank.is_degraded

    cusum = bank.get("cusum")
    assert cusum.k == 0.5 * baseline.std
    assert cusum.h == 5.0 * baseline.std
    assert cusum.target == baseline.mean


def test_bank_for_constant_baseline(constant_block):
    baseline = establish_baseline(constant_block)
    bank = build_detector_bank(baseline)

    assert [d.name for d in bank.enabled] == ["iqr", "grubbs", "ewma", "moving_average"]
    reasons = {c.name: c.disabled_reason for c in bank.configs() if not c.enabled}
    assert reasons == {"zscore": "zero_std", "modified_zscore": "zero_mad", "cusum": "zero_std"}


def test_bank_only_updates_enabled_detectors(constant_block):
    bank = build_detector_bank(establish_baseline(constant_block))
    votes = bank.update(5.0)
    assert [v.detector_name for v in votes] == ["iqr", "grubbs", "ewma", "moving_average"]


def test_settings_can_remove_detectors(normal_block):
    settings = DetectorSettings(grubbs=GrubbsSettings(enabled=False))
    bank = build_detector_bank(establish_baseline(normal_block), settings)
    assert "grubbs" not in bank.names
    assert len(bank) == 6


def test_bank_state_snapshot_and_restore(normal_block):
    baseline = establish_baseline(normal_block)
    bank = build_detector_bank(baseline)
    for value in normal_block[:10]:
        bank.update(value)

    other = build_detector_bank(baseline)
    other.restore_state(bank.state_snapshot())
    assert other.state_snapshot() == bank.state_snapshot()


def test_quorum_is_strict_majority():
    engine = ConsensusEngine(min_votes_floor=1)

    assert engine.quorum(1) == 1
    assert engine.quorum(4) == 3
    assert engine.quorum(7) == 4


def test_consensus_split_votes():
    engine = ConsensusEngine()

    assert not engine.evaluate(_votes(True, True, False, False)).is_anomaly
    result = engine.evaluate(_votes(True, True, True, False))
    assert result.is_anomaly
    assert result.votes_for == 3
    assert result.votes_total == 4
    assert result.agreement_ratio == 0.75
    assert result.voters == ["d0", "d1", "d2"]


def test_consensus_single_detector():
    assert ConsensusEngine().evaluate(_votes(True)).is_anomaly


def test_consensus_ignores_abstentions():
    result = ConsensusEngine().evaluate(_votes(True, True, False, abstain=3))
    assert result.votes_total == 3
    assert result.is_anomaly


def test_consensus_with_no_votes():
    result = ConsensusEngine().evaluate(_votes(abstain=2))
    assert not result.is_anomaly
    assert result.votes_total == 0
    assert result.agreement_ratio == 0.0


def test_consensus_floor_raises_quorum():
    engine = ConsensusEngine(min_votes_floor=2)
    assert not engine.evaluate(_votes(True)).is_anomaly
