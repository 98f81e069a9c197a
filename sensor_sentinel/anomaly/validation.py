"""
Cross-sensor validation before recalibration approval.

Works on SensorStatus snapshots only; it never holds more than one
pipeline's lock, and never at the same time as another.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .schema import SensorStatus


class ValidationVerdict(str, Enum):
    ENVIRONMENTAL_CHANGE = "environmental_change"
    SENSOR_FAULT = "sensor_fault"
    INCONCLUSIVE = "inconclusive"


class CrossValidationResult(BaseModel):
    """
    Fields:
    - verdict: environmental_change when most peers moved with the target,
      sensor_fault when the target moved alone
    - target_shift_sigma: target's recent mean shift in its own baseline sigmas
    - peer_shift_sigmas: same measure per peer
    - agreeing_peers: peers shifted past the threshold in the same direction
    """

    sensor_id: str
    verdict: ValidationVerdict
    target_shift_sigma: Optional[float] = None
    peer_shift_sigmas: Dict[str, float] = Field(default_factory=dict)
    agreeing_peers: List[str] = Field(default_factory=list)
    reason: str


def shift_sigma(status: SensorStatus) -> Optional[float]:
    """Signed shift of the recent mean from the baseline mean, in sigmas."""
    if status.recent_mean is None or status.baseline.std <= 0.0:
        return None
    return (status.recent_mean - status.baseline.mean) / status.baseline.std


def cross_validate(
    target: SensorStatus,
    peers: Iterable[SensorStatus],
    drift_sigma: float = 2.0,
) -> CrossValidationResult:
    target_shift = shift_sigma(target)
    peer_shifts: Dict[str, float] = {}
    for peer in peers:
        if peer.sensor_id == target.sensor_id:
            continue
        value = shift_sigma(peer)
        if value is not None:
            peer_shifts[peer.sensor_id] = value

    def result(verdict: ValidationVerdict, reason: str, agreeing: Optional[List[str]] = None):
        return CrossValidationResult(
            sensor_id=target.sensor_id,
            verdict=verdict,
            target_shift_sigma=target_shift,
            peer_shift_sigmas=peer_shifts,
            agreeing_peers=agreeing or [],
            reason=reason,
        )

    if target_shift is None or abs(target_shift) <= drift_sigma:
        return result(ValidationVerdict.INCONCLUSIVE, "target has not shifted beyond threshold")
    if not peer_shifts:
        return result(ValidationVerdict.INCONCLUSIVE, "no comparable peers")

    agreeing = sorted(
        sensor_id
        for sensor_id, value in peer_shifts.items()
        if abs(value) > drift_sigma and (value > 0) == (target_shift > 0)
    )
    if len(agreeing) * 2 > len(peer_shifts):
        return result(
            ValidationVerdict.ENVIRONMENTAL_CHANGE,
            f"{len(agreeing)} of {len(peer_shifts)} peers shifted the same way",
            agreeing,
        )
    if not agreeing:
        return result(ValidationVerdict.SENSOR_FAULT, "target shifted alone")
    return result(
        ValidationVerdict.INCONCLUSIVE,
        f"only {len(agreeing)} of {len(peer_shifts)} peers shifted the same way",
        agreeing,
    )
