"""
Detectors for statistical deviations.

Implements explainable, independent methods behind one Detector interface:
- Z-score and modified (MAD-based) Z-score against the baseline
- IQR fences
- Grubbs single-outlier test over a closed window
- CUSUM, EWMA and moving-average control charts with running state

Every detector turns a non-finite input into an anomaly vote tagged
"invalid_input". Numerical edge cases (zero std, zero MAD, zero window
variance) make the detector abstain for that reading instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from math import isfinite, sqrt
from typing import Any, ClassVar, Deque, Dict, List, Optional, Sequence

import numpy as np
from scipy import stats

from .schema import INVALID_INPUT, DetectorConfig, GrubbsResult, Vote


class Detector(ABC):
    """
    Common contract: update(value) -> Vote, reset(), is_enabled.

    Subclasses set `name` and implement _evaluate. Stateless detectors keep
    the default get_state/set_state.
    """

    name: ClassVar[str] = "detector"

    @property
    def disabled_reason(self) -> Optional[str]:
        return None

    @property
    def is_enabled(self) -> bool:
        return self.disabled_reason is None

    def update(self, value: float) -> Vote:
        if not self.is_enabled:
            return self._abstain("disabled", disabled_reason=self.disabled_reason)
        if not isfinite(value):
            return Vote(
                detector_name=self.name,
                is_anomaly=True,
                detail={"reason": INVALID_INPUT, "value": str(value)},
            )
        return self._evaluate(float(value))

    @abstractmethod
    def _evaluate(self, value: float) -> Vote:
        ...

    def reset(self) -> None:
        pass

    def params(self) -> Dict[str, float]:
        return {}

    def config(self) -> DetectorConfig:
        return DetectorConfig(
            name=self.name,
            enabled=self.is_enabled,
            params=self.params(),
            disabled_reason=self.disabled_reason,
        )

    def get_state(self) -> Dict[str, Any]:
        return {}

    def set_state(self, state: Dict[str, Any]) -> None:
        pass

    def _vote(self, is_anomaly: bool, **detail: Any) -> Vote:
        return Vote(detector_name=self.name, is_anomaly=is_anomaly, detail=detail)

    def _abstain(self, reason: str, **detail: Any) -> Vote:
        return Vote(
            detector_name=self.name,
            is_anomaly=False,
            abstained=True,
            detail={"reason": reason, **detail},
        )


@dataclass
class ZScoreDetector(Detector):
    """
    Z-score against the baseline mean/std.

    Disabled when std is zero or, with require_normal, when the baseline
    failed the normality test.
    """

    name: ClassVar[str] = "zscore"

    mean: float
    std: float
    threshold: float = 3.0
    is_normal: bool = True
    require_normal: bool = True

    @property
    def disabled_reason(self) -> Optional[str]:
        if self.std <= 0.0:
            return "zero_std"
        if self.require_normal and not self.is_normal:
            return "baseline_not_normal"
        return None

    def _evaluate(self, value: float) -> Vote:
        z = (value - self.mean) / self.std
        return self._vote(abs(z) > self.threshold, z_score=z, threshold=self.threshold)

    def params(self) -> Dict[str, float]:
        return {"mean": self.mean, "std": self.std, "threshold": self.threshold}


@dataclass
class ModifiedZScoreDetector(Detector):
    """
    Robust z-score using median and MAD.

    0.6745 scales MAD to the standard deviation of a normal distribution.
    """

    name: ClassVar[str] = "modified_zscore"
    MAD_NORMALIZATION: ClassVar[float] = 0.6745

    median: float
    mad: float
    threshold: float = 3.5

    @property
    def disabled_reason(self) -> Optional[str]:
        return "zero_mad" if self.mad <= 0.0 else None

    def _evaluate(self, value: float) -> Vote:
        modified_z = self.MAD_NORMALIZATION * (value - self.median) / self.mad
        return self._vote(
            abs(modified_z) > self.threshold,
            modified_z=modified_z,
            threshold=self.threshold,
        )

    def params(self) -> Dict[str, float]:
        return {"median": self.median, "mad": self.mad, "threshold": self.threshold}


@dataclass
class IQRDetector(Detector):
    """
    Tukey fences. Always enabled regardless of distribution shape.
    """

    name: ClassVar[str] = "iqr"

    q1: float
    q3: float
    factor: float = 1.5

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1

    @property
    def lower_fence(self) -> float:
        return self.q1 - self.factor * self.iqr

    @property
    def upper_fence(self) -> float:
        return self.q3 + self.factor * self.iqr

    def _evaluate(self, value: float) -> Vote:
        return self._vote(
            value < self.lower_fence or value > self.upper_fence,
            lower_fence=self.lower_fence,
            upper_fence=self.upper_fence,
        )

    def params(self) -> Dict[str, float]:
        return {"q1": self.q1, "q3": self.q3, "factor": self.factor}


def grubbs_test(values: Sequence[float], alpha: float = 0.05) -> GrubbsResult:
    """
    Two-sided Grubbs test for a single outlier.

    G = max|x - mean| / s (s with ddof=1), compared against the critical
    value derived from Student's t at alpha / (2N) with N - 2 degrees of
    freedom.

    Args:
        values: Closed sample, N >= 3
        alpha: Significance level

    Returns:
        GrubbsResult with the most extreme index/value and pass/fail

    Raises:
        ValueError: fewer than 3 values
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n < 3:
        raise ValueError(f"Grubbs test needs at least 3 values, got {n}")

    mean = float(np.mean(arr))
    sd = float(np.std(arr, ddof=1))
    deviations = np.abs(arr - mean)
    index = int(np.argmax(deviations))

    t = float(stats.t.ppf(1.0 - alpha / (2.0 * n), n - 2))
    g_critical = ((n - 1) / sqrt(n)) * sqrt(t * t / (n - 2 + t * t))
    g_statistic = float(deviations[index]) / sd if sd > 0.0 else 0.0

    return GrubbsResult(
        is_outlier=g_statistic > g_critical,
        index=index,
        value=float(arr[index]),
        g_statistic=g_statistic,
        g_critical=g_critical,
        n=n,
    )


@dataclass
class GrubbsDetector(Detector):
    """
    Grubbs test over the last window_size accepted values plus the current one.

    Votes anomaly only when the current value is the identified outlier.
    Accepted (non-anomalous) values enter the window.
    """

    name: ClassVar[str] = "grubbs"

    alpha: float = 0.05
    window_size: int = 30
    min_samples: int = 3
    _window: Deque[float] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._window = deque(maxlen=self.window_size)

    def _evaluate(self, value: float) -> Vote:
        sample = list(self._window) + [value]
        if len(sample) < self.min_samples:
            self._window.append(value)
            return self._abstain("warming_up", samples=len(sample))
        if max(sample) == min(sample):
            self._window.append(value)
            return self._abstain("zero_variance")

        result = grubbs_test(sample, self.alpha)
        flagged = result.is_outlier and result.index == len(sample) - 1
        if not flagged:
            self._window.append(value)
        return self._vote(
            flagged,
            g_statistic=result.g_statistic,
            g_critical=result.g_critical,
            n=result.n,
        )

    def reset(self) -> None:
        self._window.clear()

    def params(self) -> Dict[str, float]:
        return {
            "alpha": self.alpha,
            "window_size": float(self.window_size),
            "min_samples": float(self.min_samples),
        }

    def get_state(self) -> Dict[str, Any]:
        return {"window": list(self._window)}

    def set_state(self, state: Dict[str, Any]) -> None:
        self._window = deque(state.get("window", []), maxlen=self.window_size)


@dataclass
class CUSUMDetector(Detector):
    """
    Two-sided CUSUM against the baseline mean.

    s_high = max(0, s_high + (x - target) - k)
    s_low  = max(0, s_low - (x - target) - k)

    A sum that exceeds h is flagged and reset to zero immediately. Under a
    sustained shift the sum rebuilds and re-fires, so repeated alarms are
    reported as separate flags rather than one continuous alarm.
    """

    name: ClassVar[str] = "cusum"

    target: float
    k: float
    h: float
    s_high: float = 0.0
    s_low: float = 0.0

    @property
    def disabled_reason(self) -> Optional[str]:
        return "zero_std" if self.h <= 0.0 else None

    def _evaluate(self, value: float) -> Vote:
        deviation = value - self.target
        self.s_high = max(0.0, self.s_high + deviation - self.k)
        self.s_low = max(0.0, self.s_low - deviation - self.k)

        high = self.s_high > self.h
        low = self.s_low > self.h
        vote = self._vote(
            high or low,
            s_high=self.s_high,
            s_low=self.s_low,
            h=self.h,
            direction="up" if high else ("down" if low else None),
        )
        if high:
            self.s_high = 0.0
        if low:
            self.s_low = 0.0
        return vote

    def reset(self) -> None:
        self.s_high = 0.0
        self.s_low = 0.0

    def params(self) -> Dict[str, float]:
        return {"target": self.target, "k": self.k, "h": self.h}

    def get_state(self) -> Dict[str, Any]:
        return {"s_high": self.s_high, "s_low": self.s_low}

    def set_state(self, state: Dict[str, Any]) -> None:
        self.s_high = float(state.get("s_high", 0.0))
        self.s_low = float(state.get("s_low", 0.0))


@dataclass
class EWMADetector(Detector):
    """
    EWMA control chart with its own running mean and variance.

    The first value initializes the mean with zero variance and never flags.
    Flagged values are not folded into the running estimates.
    """

    name: ClassVar[str] = "ewma"

    alpha: float = 0.3
    sigma_threshold: float = 3.0
    ewma: Optional[float] = None
    ewma_var: float = 0.0
    count: int = 0

    def _evaluate(self, value: float) -> Vote:
        if self.ewma is None:
            self.ewma = value
            self.ewma_var = 0.0
            self.count = 1
            return self._abstain("warming_up", ewma=value)

        if self.ewma_var <= 0.0:
            self._fold(value)
            return self._abstain("zero_variance", ewma=self.ewma)

        deviation_sigma = abs(value - self.ewma) / sqrt(self.ewma_var)
        flagged = deviation_sigma > self.sigma_threshold
        vote = self._vote(
            flagged,
            deviation_sigma=deviation_sigma,
            ewma=self.ewma,
            ewma_std=sqrt(self.ewma_var),
        )
        if not flagged:
            self._fold(value)
        return vote

    def _fold(self, value: float) -> None:
        diff = value - self.ewma
        increment = self.alpha * diff
        self.ewma = self.ewma + increment
        self.ewma_var = (1.0 - self.alpha) * (self.ewma_var + diff * increment)
        self.count += 1

    def reset(self) -> None:
        self.ewma = None
        self.ewma_var = 0.0
        self.count = 0

    def params(self) -> Dict[str, float]:
        return {"alpha": self.alpha, "sigma_threshold": self.sigma_threshold}

    def get_state(self) -> Dict[str, Any]:
        return {"ewma": self.ewma, "ewma_var": self.ewma_var, "count": self.count}

    def set_state(self, state: Dict[str, Any]) -> None:
        ewma = state.get("ewma")
        self.ewma = None if ewma is None else float(ewma)
        self.ewma_var = float(state.get("ewma_var", 0.0))
        self.count = int(state.get("count", 0))


@dataclass
class MovingAverageDetector(Detector):
    """
    Rolling mean/std over the last window_size accepted values.

    Warm-up: abstains until min_samples values are in the window. Flagged
    values never enter the window, so outliers cannot widen it.
    """

    name: ClassVar[str] = "moving_average"

    window_size: int = 20
    threshold_sigma: float = 3.0
    min_samples: int = 5
    _values: Deque[float] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._values = deque(maxlen=self.window_size)

    def _evaluate(self, value: float) -> Vote:
        if len(self._values) < self.min_samples:
            self._values.append(value)
            return self._abstain("warming_up", samples=len(self._values))

        values = list(self._values)
        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        std = sqrt(variance)
        if std <= 0.0:
            self._values.append(value)
            return self._abstain("zero_variance", window_mean=mean)

        deviation_sigma = abs(value - mean) / std
        flagged = deviation_sigma > self.threshold_sigma
        if not flagged:
            self._values.append(value)
        return self._vote(
            flagged,
            deviation_sigma=deviation_sigma,
            window_mean=mean,
            window_std=std,
        )

    @property
    def window(self) -> List[float]:
        return list(self._values)

    def reset(self) -> None:
        self._values.clear()

    def params(self) -> Dict[str, float]:
        return {
            "window_size": float(self.window_size),
            "threshold_sigma": self.threshold_sigma,
            "min_samples": float(self.min_samples),
        }

    def get_state(self) -> Dict[str, Any]:
        return {"values": list(self._values)}

    def set_state(self, state: Dict[str, Any]) -> None:
        self._values = deque(state.get("values", []), maxlen=self.window_size)
