"""
Baseline estimation from known-normal readings.

Computes the reference statistics every detector is configured from. The
computation is pure: the same block always yields a bit-identical Baseline.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from math import isfinite
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
from scipy import stats

from sensor_sentinel.core.config import BaselineSettings
from sensor_sentinel.core.exceptions import InsufficientSamples, InvalidReading
from sensor_sentinel.data.schema import Reading

from .schema import Baseline

logger = logging.getLogger(__name__)

ReadingLike = Union[Reading, float, int]


def _values_of(readings: Iterable[ReadingLike]) -> List[float]:
    values = []
    for item in readings:
        value = item.value if isinstance(item, Reading) else float(item)
        if not isfinite(value):
            raise InvalidReading(f"Baseline block contains a non-finite value: {value}")
        values.append(value)
    return values


@dataclass
class BaselineEstimator:
    """
    Baseline estimator for one block of readings.

    Notes:
    - Population std (ddof=0); quartiles use linear interpolation.
    - Stationarity compares the chronological halves of the block.
    - Normality uses Shapiro-Wilk up to exact_normality_max_samples and the
      D'Agostino-Pearson test above that.
    """

    settings: BaselineSettings

    def estimate(
        self,
        readings: Iterable[ReadingLike],
        min_samples: Optional[int] = None,
        sensor_id: Optional[str] = None,
    ) -> Baseline:
        required = self.settings.min_samples if min_samples is None else min_samples
        values = _values_of(readings)
        if len(values) < required:
            raise InsufficientSamples(required=required, received=len(values), sensor_id=sensor_id)

        arr = np.asarray(values, dtype=float)
        mean = float(np.mean(arr))
        std = float(np.std(arr))
        median = float(np.median(arr))
        q1, q3 = (float(q) for q in np.percentile(arr, [25.0, 75.0], method="linear"))
        mad = float(np.median(np.abs(arr - median)))

        drift_sigma = self._mean_drift_sigma(arr, std)
        normality_p = self._normality_p(arr, std)

        baseline = Baseline(
            mean=mean,
            std=std,
            median=median,
            min=float(np.min(arr)),
            max=float(np.max(arr)),
            q1=q1,
            q3=q3,
            iqr=q3 - q1,
            mad=mad,
            sample_count=len(values),
            is_normal=normality_p > self.settings.normality_alpha,
            normality_p=normality_p,
            is_stationary=drift_sigma < self.settings.stationarity_threshold,
            mean_drift_sigma=drift_sigma,
        )

        if not baseline.is_stationary:
            logger.warning(
                "Baseline block%s is not stationary (drift %.2f sigma)",
                f" for {sensor_id}" if sensor_id else "",
                drift_sigma,
            )
        if std == 0.0:
            logger.warning(
                "Baseline block%s has zero variance; std-dividing detectors will be disabled",
                f" for {sensor_id}" if sensor_id else "",
            )
        return baseline

    def _mean_drift_sigma(self, arr: np.ndarray, std: float) -> float:
        half = len(arr) // 2
        first, second = arr[:half], arr[half:]
        diff = abs(float(np.mean(second)) - float(np.mean(first)))
        if std == 0.0:
            return 0.0
        return diff / std

    def _normality_p(self, arr: np.ndarray, std: float) -> float:
        # Constant data cannot be tested; treat as not normal.
        if std == 0.0:
            return 0.0
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            warnings.simplefilter("ignore", UserWarning)
            if len(arr) <= self.settings.exact_normality_max_samples:
                result = stats.shapiro(arr)
            else:
                result = stats.normaltest(arr)
        p = float(result.pvalue)
        if not isfinite(p):
            return 0.0
        return min(max(p, 0.0), 1.0)


def establish_baseline(
    readings: Sequence[ReadingLike],
    min_samples: Optional[int] = None,
    settings: Optional[BaselineSettings] = None,
    sensor_id: Optional[str] = None,
) -> Baseline:
    """
    Compute a Baseline from known-normal readings.

    Args:
        readings: Ordered Readings (or bare numbers), oldest first
        min_samples: Override for settings.min_samples
        settings: Baseline settings (defaults to BaselineSettings())
        sensor_id: Used for error messages and logs only

    Raises:
        InsufficientSamples: fewer than min_samples readings
        InvalidReading: the block contains a non-finite value
    """
    estimator = BaselineEstimator(settings=settings or BaselineSettings())
    return estimator.estimate(readings, min_samples=min_samples, sensor_id=sensor_id)
