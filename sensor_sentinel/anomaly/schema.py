"""
Schema definitions for sensor anomaly detection.

All outputs are deterministic and explainable. Each vote references the
detector that produced it and a diagnostic payload; each classification
carries the evidence that selected it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from sensor_sentinel.data.schema import Reading

INVALID_INPUT = "invalid_input"


class AnomalyType(str, Enum):
    """Pattern assigned to an anomaly episode."""

    SPIKE = "spike"
    DRIFT = "drift"
    FLATLINE = "flatline"
    NOISE = "noise"


class Severity(str, Enum):
    """Severity levels, in escalation order."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"


SEVERITY_ORDER = [Severity.INFO, Severity.WARNING, Severity.CRITICAL, Severity.EMERGENCY]


class Baseline(BaseModel):
    """
    Reference statistics computed from a block of known-normal readings.

    Fields:
    - mean, std (population), median, min, max
    - q1, q3, iqr: linear-interpolation quartiles
    - mad: median absolute deviation from the median
    - sample_count: readings used
    - is_normal / normality_p: goodness-of-fit result
    - is_stationary / mean_drift_sigma: half-to-half mean drift in sigmas

    A std of 0 is valid; detectors that divide by it disable themselves.
    """

    model_config = ConfigDict(frozen=True)

    mean: float
    std: float = Field(ge=0.0)
    median: float
    min: float
    max: float
    q1: float
    q3: float
    iqr: float = Field(ge=0.0)
    mad: float = Field(ge=0.0)
    sample_count: int = Field(ge=1)
    is_normal: bool
    normality_p: float = Field(ge=0.0, le=1.0)
    is_stationary: bool
    mean_drift_sigma: float = Field(ge=0.0)


class DetectorConfig(BaseModel):
    """
    Parameters a detector was built with, derived from the Baseline.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    enabled: bool
    params: Dict[str, float] = Field(default_factory=dict)
    disabled_reason: Optional[str] = None


class Vote(BaseModel):
    """
    One detector's opinion on one reading.

    abstained is True when the detector could not evaluate this reading
    (warm-up, zero variance); abstaining votes do not count toward quorum.
    """

    detector_name: str
    is_anomaly: bool
    abstained: bool = False
    detail: Dict[str, Any] = Field(default_factory=dict)


class ConsensusResult(BaseModel):
    """
    Aggregated verdict for one reading.

    Fields:
    - votes_for: non-abstaining votes flagging an anomaly
    - votes_total: non-abstaining votes
    - quorum: votes required for this total
    - agreement_ratio: votes_for / votes_total (0 with no votes)
    - voters: names of the detectors that voted anomaly
    """

    model_config = ConfigDict(frozen=True)

    is_anomaly: bool
    votes_for: int = Field(ge=0)
    votes_total: int = Field(ge=0)
    quorum: int = Field(ge=1)
    agreement_ratio: float = Field(ge=0.0, le=1.0)
    voters: List[str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    """A reading paired with the consensus verdict it received."""

    model_config = ConfigDict(frozen=True)

    reading: Reading
    consensus: ConsensusResult


class Classification(BaseModel):
    """
    Pattern classification for a flagged anomaly.

    Fields:
    - anomaly_type: SPIKE, DRIFT, FLATLINE or NOISE
    - severity: INFO .. EMERGENCY
    - evidence: human-readable reason the rule matched
    - magnitude: drift sigma or noise ratio where applicable
    - rule: name of the decision rule that matched
    """

    model_config = ConfigDict(frozen=True)

    anomaly_type: AnomalyType
    severity: Severity
    evidence: str
    magnitude: Optional[float] = None
    rule: str


class GrubbsResult(BaseModel):
    """Outcome of a single-outlier Grubbs test over a closed sample."""

    is_outlier: bool
    index: int
    value: float
    g_statistic: float
    g_critical: float
    n: int


class SensorStatus(BaseModel):
    """
    Read-only view of one sensor pipeline, taken under that pipeline's lock
    only. Used for cross-sensor validation and dashboards.
    """

    model_config = ConfigDict(frozen=True)

    sensor_id: str
    generation: int
    baseline: Baseline
    enabled_detectors: List[str]
    degraded: bool
    readings_seen: int
    recent_values: List[float]
    recent_mean: Optional[float] = None
    recent_anomalies: int = 0
    last_reading: Optional[Reading] = None
