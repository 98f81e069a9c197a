"""
Schema for anomaly responses.

Response records contain only factual, observable data: the reading, the
consensus verdict, the classification and the baseline it was judged
against. They are append-only and never mutated after creation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from sensor_sentinel.anomaly.schema import Baseline, Classification, ConsensusResult


class ResponseAction(str, Enum):
    """Actions recorded for a classified anomaly, in the order they are taken."""

    LOGGED = "logged"
    ALERT_SENT = "alert_sent"
    RECALIBRATION_RECOMMENDED = "recalibration_recommended"
    REPLACEMENT_RECOMMENDED = "replacement_recommended"


class ResponseRecord(BaseModel):
    """
    Structured output for one classified anomaly.

    Required fields:
    - record_id: stable unique identifier
    - timestamp: reading timestamp
    - sensor_id / value: the reading that fired
    - classification: type, severity, evidence
    - baseline: snapshot the reading was judged against
    - consensus: vote summary
    - actions_taken: ordered actions
    - requires_approval: True when an invasive action was recommended
    - episode_id: anomaly episode this reading belongs to
    - generation: baseline generation of the pipeline
    """

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime
    sensor_id: str
    value: float
    classification: Classification
    baseline: Baseline
    consensus: ConsensusResult
    actions_taken: List[ResponseAction]
    requires_approval: bool = False
    episode_id: int = Field(0, ge=0)
    generation: int = Field(1, ge=1)
    degraded: bool = False
    note: Optional[str] = None
