"""
Responder: maps a classification to actions.

Stateless transform. Invasive actions (recalibration, replacement) are only
ever recommended; executing them goes through the approval gate and an
explicit re-baseline.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from sensor_sentinel.anomaly.schema import (
    SEVERITY_ORDER,
    AnomalyType,
    Baseline,
    Classification,
    ConsensusResult,
    Severity,
)
from sensor_sentinel.data.schema import Reading

from .schema import ResponseAction, ResponseRecord

ALERT_SEVERITIES = {Severity.WARNING, Severity.CRITICAL, Severity.EMERGENCY}
RECALIBRATION_SEVERITIES = {Severity.CRITICAL, Severity.EMERGENCY}


def escalate_severity(
    classification: Classification,
    critical_streak: int,
    streak_threshold: int,
) -> Classification:
    """
    Escalate CRITICAL to EMERGENCY once critical_streak reaches the threshold.

    critical_streak counts consecutive CRITICAL classifications before this
    one. Returns the classification unchanged otherwise.
    """
    if classification.severity != Severity.CRITICAL or critical_streak < streak_threshold:
        return classification
    return classification.model_copy(
        update={
            "severity": Severity.EMERGENCY,
            "evidence": (
                f"{classification.evidence}; escalated after "
                f"{critical_streak} consecutive critical classifications"
            ),
        }
    )


def highest_severity(*severities: Severity) -> Severity:
    """
    Return the highest severity among inputs.
    """
    return SEVERITY_ORDER[max(SEVERITY_ORDER.index(s) for s in severities)]


class Responder:
    """
    Action rules:
    - always "logged"
    - "alert_sent" for WARNING and above
    - "recalibration_recommended" (approval) for DRIFT at CRITICAL or EMERGENCY
    - "replacement_recommended" (approval) for FLATLINE
    """

    def plan(self, classification: Classification) -> Tuple[List[ResponseAction], bool]:
        actions = [ResponseAction.LOGGED]
        requires_approval = False

        if classification.severity in ALERT_SEVERITIES:
            actions.append(ResponseAction.ALERT_SENT)

        if (
            classification.anomaly_type == AnomalyType.DRIFT
            and classification.severity in RECALIBRATION_SEVERITIES
        ):
            actions.append(ResponseAction.RECALIBRATION_RECOMMENDED)
            requires_approval = True

        if classification.anomaly_type == AnomalyType.FLATLINE:
            actions.append(ResponseAction.REPLACEMENT_RECOMMENDED)
            requires_approval = True

        return actions, requires_approval

    def respond(
        self,
        reading: Reading,
        classification: Classification,
        baseline: Baseline,
        consensus: ConsensusResult,
        episode_id: int = 0,
        generation: int = 1,
        degraded: bool = False,
        note: Optional[str] = None,
    ) -> ResponseRecord:
        actions, requires_approval = self.plan(classification)
        return ResponseRecord(
            timestamp=reading.timestamp,
            sensor_id=reading.sensor_id,
            value=reading.value,
            classification=classification,
            baseline=baseline,
            consensus=consensus,
            actions_taken=actions,
            requires_approval=requires_approval,
            episode_id=episode_id,
            generation=generation,
            degraded=degraded,
            note=note,
        )
