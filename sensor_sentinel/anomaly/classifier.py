"""
Pattern classification for flagged anomalies.

A deterministic, ordered decision list: each rule either matches and
produces a Classification or passes. The first match wins, so precedence is
the order of Classifier.rules (FLATLINE, DRIFT, NOISE, SPIKE).

Window conventions:
- FLATLINE counts distinct values in the last flatline_window readings,
  current reading included, and needs a full window.
- DRIFT and NOISE use the recent_window readings that precede the current
  one, so a single spike cannot masquerade as drift or noise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from sensor_sentinel.core.config import ClassifierSettings

from .history import HistoryWindow
from .schema import AnomalyType, Baseline, Classification, Severity


@dataclass(frozen=True)
class ClassificationContext:
    history: HistoryWindow
    baseline: Baseline
    settings: ClassifierSettings

    @property
    def anomaly_count(self) -> int:
        return self.history.recent_anomaly_count()


@dataclass(frozen=True)
class ClassificationRule:
    """A named rule producing a Classification of one type, or None."""

    name: str
    anomaly_type: AnomalyType
    match: Callable[[ClassificationContext], Optional[Classification]]


def _flatline(ctx: ClassificationContext) -> Optional[Classification]:
    window = ctx.settings.flatline_window
    values = ctx.history.recent_values(window)
    if len(values) < window:
        return None
    distinct = len(set(values))
    if distinct > ctx.settings.flatline_max_distinct:
        return None
    return Classification(
        anomaly_type=AnomalyType.FLATLINE,
        severity=Severity.CRITICAL,
        evidence=f"{distinct} distinct value(s) in last {window} readings; sensor may be stuck",
        rule="flatline",
    )


def _drift(ctx: ClassificationContext) -> Optional[Classification]:
    if ctx.baseline.std <= 0.0:
        return None
    values = ctx.history.context_values(ctx.settings.recent_window)
    if not values:
        return None
    drift_sigma = abs(float(np.mean(values)) - ctx.baseline.mean) / ctx.baseline.std
    if drift_sigma <= ctx.settings.drift_sigma:
        return None
    if ctx.anomaly_count < ctx.settings.drift_min_anomalies:
        return None
    severity = (
        Severity.CRITICAL if drift_sigma > ctx.settings.drift_critical_sigma else Severity.WARNING
    )
    return Classification(
        anomaly_type=AnomalyType.DRIFT,
        severity=severity,
        evidence=(
            f"recent mean drifted {drift_sigma:.2f} sigma from baseline "
            f"with {ctx.anomaly_count} recent anomalies"
        ),
        magnitude=drift_sigma,
        rule="drift",
    )


def _noise(ctx: ClassificationContext) -> Optional[Classification]:
    if ctx.baseline.std <= 0.0:
        return None
    values = ctx.history.context_values(ctx.settings.recent_window)
    if len(values) < 2:
        return None
    ratio = float(np.std(values)) / ctx.baseline.std
    if ratio <= ctx.settings.noise_ratio:
        return None
    severity = Severity.CRITICAL if ratio > ctx.settings.noise_critical_ratio else Severity.WARNING
    return Classification(
        anomaly_type=AnomalyType.NOISE,
        severity=severity,
        evidence=f"recent std is {ratio:.2f}x the baseline std",
        magnitude=ratio,
        rule="noise",
    )


def _spike(ctx: ClassificationContext) -> Optional[Classification]:
    count = ctx.anomaly_count
    latest = ctx.history.latest.reading.value if len(ctx.history) else None
    magnitude = None
    if latest is not None and ctx.baseline.std > 0.0:
        magnitude = abs(latest - ctx.baseline.mean) / ctx.baseline.std

    if count <= 1:
        severity, evidence = Severity.INFO, "isolated spike"
    elif count <= ctx.settings.recurring_spike_count:
        severity, evidence = Severity.WARNING, f"{count} spikes in recent window"
    else:
        severity = Severity.WARNING
        evidence = f"recurring spikes ({count} in recent window), investigate root cause"

    return Classification(
        anomaly_type=AnomalyType.SPIKE,
        severity=severity,
        evidence=evidence,
        magnitude=magnitude,
        rule="spike",
    )


DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule("flatline", AnomalyType.FLATLINE, _flatline),
    ClassificationRule("drift", AnomalyType.DRIFT, _drift),
    ClassificationRule("noise", AnomalyType.NOISE, _noise),
    ClassificationRule("spike", AnomalyType.SPIKE, _spike),
]


class Classifier:
    """
    Ordered-rule classifier. SPIKE is the unconditional fallback.
    """

    def __init__(
        self,
        settings: Optional[ClassifierSettings] = None,
        rules: Optional[List[ClassificationRule]] = None,
    ) -> None:
        self.settings = settings or ClassifierSettings()
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    @property
    def rule_order(self) -> List[AnomalyType]:
        return [rule.anomaly_type for rule in self.rules]

    def classify(self, history: HistoryWindow, baseline: Baseline) -> Classification:
        ctx = ClassificationContext(history=history, baseline=baseline, settings=self.settings)
        for rule in self.rules:
            result = rule.match(ctx)
            if result is not None:
                return result
        return _spike(ctx)

    def flatline(self, history: HistoryWindow, baseline: Baseline) -> Optional[Classification]:
        """
        Run the flatline rule alone.

        A stuck sensor often sits inside every detector's normal band, so
        the pipeline checks this on every reading, not only on flagged ones.
        """
        ctx = ClassificationContext(history=history, baseline=baseline, settings=self.settings)
        return _flatline(ctx)
