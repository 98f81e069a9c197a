"""
Per-sensor detector bank.

Builds the set of detectors for one sensor deterministically from its
Baseline and settings. There is no shared registry: each pipeline owns its
own bank, and a new baseline means a new bank.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sensor_sentinel.core.config import DetectorSettings

from .detectors import (
    CUSUMDetector,
    Detector,
    EWMADetector,
    GrubbsDetector,
    IQRDetector,
    ModifiedZScoreDetector,
    MovingAverageDetector,
    ZScoreDetector,
)
from .schema import Baseline, DetectorConfig, Vote

logger = logging.getLogger(__name__)


class DetectorBank:
    """
    Ordered collection of detectors consulted for every reading.

    Only enabled detectors are updated; disabled ones never vote.
    """

    def __init__(self, detectors: List[Detector], min_enabled: int = 2) -> None:
        self._detectors = list(detectors)
        self.min_enabled = min_enabled

    def __iter__(self):
        return iter(self._detectors)

    def __len__(self) -> int:
        return len(self._detectors)

    def get(self, name: str) -> Optional[Detector]:
        for detector in self._detectors:
            if detector.name == name:
                return detector
        return None

    @property
    def names(self) -> List[str]:
        return [d.name for d in self._detectors]

    @property
    def enabled(self) -> List[Detector]:
        return [d for d in self._detectors if d.is_enabled]

    @property
    def enabled_count(self) -> int:
        return len(self.enabled)

    @property
    def is_degraded(self) -> bool:
        return self.enabled_count < self.min_enabled

    def update(self, value: float) -> List[Vote]:
        return [detector.update(value) for detector in self.enabled]

    def reset(self) -> None:
        for detector in self._detectors:
            detector.reset()

    def configs(self) -> List[DetectorConfig]:
        return [d.config() for d in self._detectors]

    def state_snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {d.name: d.get_state() for d in self._detectors}

    def restore_state(self, states: Dict[str, Dict[str, Any]]) -> None:
        for name, state in states.items():
            detector = self.get(name)
            if detector is None:
                logger.warning("Ignoring state for unknown detector %s", name)
                continue
            detector.set_state(state)


def build_detector_bank(
    baseline: Baseline,
    settings: Optional[DetectorSettings] = None,
    min_enabled: int = 2,
) -> DetectorBank:
    """
    Derive every detector's configuration from the baseline.

    Detectors switched off in settings are left out of the bank entirely;
    detectors whose baseline makes them unusable (zero std, zero MAD,
    non-normal distribution) are kept but report disabled.
    """
    settings = settings or DetectorSettings()
    detectors: List[Detector] = []

    if settings.zscore.enabled:
        detectors.append(
            ZScoreDetector(
                mean=baseline.mean,
                std=baseline.std,
                threshold=settings.zscore.threshold,
                is_normal=baseline.is_normal,
                require_normal=settings.zscore.require_normal,
            )
        )
    if settings.modified_zscore.enabled:
        detectors.append(
            ModifiedZScoreDetector(
                median=baseline.median,
                mad=baseline.mad,
                threshold=settings.modified_zscore.threshold,
            )
        )
    if settings.iqr.enabled:
        detectors.append(IQRDetector(q1=baseline.q1, q3=baseline.q3, factor=settings.iqr.factor))
    if settings.grubbs.enabled:
        detectors.append(
            GrubbsDetector(
                alpha=settings.grubbs.alpha,
                window_size=settings.grubbs.window_size,
                min_samples=settings.grubbs.min_samples,
            )
        )
    if settings.cusum.enabled:
        detectors.append(
            CUSUMDetector(
                target=baseline.mean,
                k=settings.cusum.k_sigma * baseline.std,
                h=settings.cusum.h_sigma * baseline.std,
            )
        )
    if settings.ewma.enabled:
        detectors.append(
            EWMADetector(
                alpha=settings.ewma.alpha,
                sigma_threshold=settings.ewma.sigma_threshold,
            )
        )
    if settings.moving_average.enabled:
        detectors.append(
            MovingAverageDetector(
                window_size=settings.moving_average.window_size,
                threshold_sigma=settings.moving_average.threshold_sigma,
                min_samples=settings.moving_average.min_samples,
            )
        )

    bank = DetectorBank(detectors, min_enabled=min_enabled)
    disabled = [(d.name, d.disabled_reason) for d in bank if not d.is_enabled]
    if disabled:
        logger.info("Detectors disabled by baseline: %s", disabled)
    return bank
