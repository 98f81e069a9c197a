"""
Multi-sensor anomaly detection engine.

Owns one SensorPipeline per sensor. Pipelines share no mutable state, so
readings for different sensors can be processed from different threads;
readings for one sensor are serialized by its pipeline.

Flow per reading:
    reading -> detector bank -> consensus -> history -> classifier
            -> responder -> sinks (+ approval request when invasive)
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from sensor_sentinel.core.config import Config, config
from sensor_sentinel.core.exceptions import DegradedConsensus
from sensor_sentinel.data.frames import readings_from_frame
from sensor_sentinel.data.schema import Reading
from sensor_sentinel.response.approval import ApprovalGate, ApprovalRequest
from sensor_sentinel.response.schema import ResponseRecord
from sensor_sentinel.response.sinks import ResponseSink

from .baselines import BaselineEstimator, ReadingLike
from .pipeline import SensorPipeline
from .schema import Baseline, SensorStatus
from .snapshots import PipelineSnapshot
from .validation import CrossValidationResult, cross_validate

logger = logging.getLogger(__name__)


class AnomalyEngine:
    """
    Streaming anomaly engine for numeric sensor time series.

    Notes:
    - A sensor without a valid baseline has no pipeline; its readings raise
      DegradedConsensus until establish_baseline succeeds.
    - Re-baselining a sensor with an open recalibration/replacement request
      needs an approved ApprovalRequest.
    - Records go to every sink in order; sink errors propagate.
    """

    def __init__(
        self,
        settings: Optional[Config] = None,
        sinks: Optional[Iterable[ResponseSink]] = None,
        approval_gate: Optional[ApprovalGate] = None,
    ) -> None:
        self.settings = (settings or config).anomaly
        self.sinks: List[ResponseSink] = list(sinks) if sinks is not None else []
        self.approval_gate = approval_gate or ApprovalGate(
            max_closed=self.settings.response.max_closed_approvals
        )
        self._estimator = BaselineEstimator(settings=self.settings.baseline)
        self._pipelines: Dict[str, SensorPipeline] = {}
        self._registry_lock = threading.Lock()

    @property
    def sensors(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._pipelines)

    def pipeline(self, sensor_id: str) -> SensorPipeline:
        pipeline = self._pipelines.get(sensor_id)
        if pipeline is None:
            raise DegradedConsensus(f"No valid baseline for sensor {sensor_id}")
        return pipeline

    def establish_baseline(
        self,
        sensor_id: str,
        readings: Sequence[ReadingLike],
        min_samples: Optional[int] = None,
    ) -> Baseline:
        """
        Compute a baseline for a sensor.

        A sensor without a pipeline gets one immediately. For a sensor that
        already has a baseline, the result is only returned; installing it
        is a reconfigure (approval-gated when a request is open).

        Raises:
            InsufficientSamples: fewer than min_samples readings
            InvalidReading: the block contains a non-finite value
        """
        baseline = self._estimator.estimate(readings, min_samples=min_samples, sensor_id=sensor_id)

        installed = False
        with self._registry_lock:
            if sensor_id not in self._pipelines:
                self._pipelines[sensor_id] = SensorPipeline(sensor_id, baseline, self.settings)
                installed = True

        logger.info(
            "Baseline %s for %s: mean=%.4f std=%.4f n=%d normal=%s stationary=%s",
            "established" if installed else "computed",
            sensor_id,
            baseline.mean,
            baseline.std,
            baseline.sample_count,
            baseline.is_normal,
            baseline.is_stationary,
        )
        return baseline

    def reconfigure(
        self,
        sensor_id: str,
        baseline: Baseline,
        approval: Optional[ApprovalRequest] = None,
    ) -> int:
        """
        Atomically swap a sensor's baseline and detector configs.

        Returns:
            The new baseline generation

        Raises:
            ApprovalRequired / ApprovalDenied: an open request is not approved
        """
        self.approval_gate.authorize(sensor_id, approval)

        with self._registry_lock:
            pipeline = self._pipelines.get(sensor_id)
            if pipeline is None:
                pipeline = SensorPipeline(sensor_id, baseline, self.settings)
                self._pipelines[sensor_id] = pipeline

        generation = pipeline.generation
        if pipeline.baseline is not baseline:
            generation = pipeline.reconfigure(baseline)

        self.approval_gate.consume(sensor_id)
        return generation

    def rebaseline(
        self,
        sensor_id: str,
        readings: Sequence[ReadingLike],
        request_id: str,
        timeout: Optional[float] = None,
        min_samples: Optional[int] = None,
    ) -> Baseline:
        """
        Wait for approval, recompute the baseline and swap it in.

        Raises:
            ApprovalTimeout: no decision within timeout
            ApprovalDenied: the request was rejected (aborts the re-baseline)
            InsufficientSamples: the new block is too small
        """
        if timeout is None:
            timeout = self.settings.engine.approval_timeout_seconds
        approval = self.approval_gate.wait(request_id, timeout)
        baseline = self._estimator.estimate(readings, min_samples=min_samples, sensor_id=sensor_id)
        self.reconfigure(sensor_id, baseline, approval=approval)
        return baseline

    def process_reading(
        self,
        sensor_id: str,
        timestamp: datetime,
        value: float,
    ) -> Optional[ResponseRecord]:
        """
        Process one reading.

        Returns:
            ResponseRecord if consensus declared an anomaly, else None

        Raises:
            DegradedConsensus: no valid baseline for this sensor
            ReconfigurationInProgress: a baseline swap did not finish in time
        """
        reading = Reading(sensor_id=sensor_id, timestamp=timestamp, value=float(value))
        return self.process(reading)

    def process(self, reading: Reading) -> Optional[ResponseRecord]:
        record = self.pipeline(reading.sensor_id).process(reading)
        if record is None:
            return None

        if record.requires_approval:
            self.approval_gate.submit(record)
        for sink in self.sinks:
            sink.emit(record)
        return record

    def process_frame(self, df: pd.DataFrame, sensor_id: Optional[str] = None) -> List[ResponseRecord]:
        """
        Replay a DataFrame of readings in timestamp order.
        """
        records = []
        for reading in readings_from_frame(df, sensor_id=sensor_id):
            record = self.process(reading)
            if record is not None:
                records.append(record)
        return records

    def status(self, sensor_id: str) -> SensorStatus:
        return self.pipeline(sensor_id).status()

    def snapshot(self) -> Dict[str, SensorStatus]:
        """
        Read-only status of every sensor, taking one pipeline lock at a time.
        """
        with self._registry_lock:
            pipelines = list(self._pipelines.values())
        return {p.sensor_id: p.status() for p in pipelines}

    def cross_validate(
        self,
        sensor_id: str,
        peer_ids: Optional[Iterable[str]] = None,
    ) -> CrossValidationResult:
        """
        Compare a sensor's recent shift with its peers before approving a
        recalibration.
        """
        statuses = self.snapshot()
        if sensor_id not in statuses:
            raise DegradedConsensus(f"No valid baseline for sensor {sensor_id}")
        if peer_ids is None:
            peers = [s for sid, s in statuses.items() if sid != sensor_id]
        else:
            peers = [statuses[sid] for sid in peer_ids if sid in statuses and sid != sensor_id]
        return cross_validate(
            statuses[sensor_id],
            peers,
            drift_sigma=self.settings.classifier.drift_sigma,
        )

    def export_state(self, sensor_id: str) -> PipelineSnapshot:
        return self.pipeline(sensor_id).export_state()

    def restore_state(self, snapshot: PipelineSnapshot, discard_stale: bool = False) -> SensorPipeline:
        """
        Replace (or create) a sensor's pipeline from a snapshot.

        Raises:
            StaleDetectorState: detector state from another generation
        """
        pipeline = SensorPipeline.from_snapshot(
            snapshot, settings=self.settings, discard_stale=discard_stale
        )
        with self._registry_lock:
            self._pipelines[snapshot.sensor_id] = pipeline
        logger.info(
            "Restored %s at generation %d with %d history entries",
            snapshot.sensor_id,
            snapshot.generation,
            len(snapshot.history),
        )
        return pipeline
