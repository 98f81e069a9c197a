"""
Per-sensor anomaly pipeline.

One pipeline owns a sensor's baseline, detector bank and history window.
Readings for one sensor are processed strictly in arrival order under a
single lock; a baseline swap builds the new bank off the lock and installs
it in one step, so no reading is ever judged against a half-updated
baseline.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from sensor_sentinel.core.config import AnomalyConfig
from sensor_sentinel.core.exceptions import (
    DegradedConsensus,
    ReconfigurationInProgress,
    StaleDetectorState,
)
from sensor_sentinel.data.schema import Reading
from sensor_sentinel.response.responder import Responder, escalate_severity
from sensor_sentinel.response.schema import ResponseRecord

from .bank import DetectorBank, build_detector_bank
from .classifier import Classifier
from .consensus import ConsensusEngine
from .history import HistoryWindow
from .schema import (
    INVALID_INPUT,
    AnomalyType,
    Baseline,
    Classification,
    SensorStatus,
    Severity,
)
from .snapshots import DetectorStateSnapshot, PipelineSnapshot

logger = logging.getLogger(__name__)

CRITICAL_SEVERITIES = {Severity.CRITICAL, Severity.EMERGENCY}


class SensorPipeline:
    """
    Detector bank -> consensus -> history -> classifier -> responder for
    one sensor.

    Notes:
    - Detector state mutates on every reading; flagged values are kept out
      of the running estimates by the detectors themselves.
    - Non-finite readings are voted anomalous by every enabled detector,
      never enter the history window and leave detector state untouched.
    - A flat run is reported once even when no detector flags it; it can
      be reported again only after the window stops being flat.
    - A new baseline resets detector state and history and bumps the
      generation number.
    """

    def __init__(
        self,
        sensor_id: str,
        baseline: Baseline,
        settings: Optional[AnomalyConfig] = None,
        generation: int = 1,
    ) -> None:
        self.sensor_id = sensor_id
        self.settings = settings or AnomalyConfig()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()

        self._baseline = baseline
        self._generation = generation
        self._bank = self._build_bank(baseline)
        self._consensus = ConsensusEngine(min_votes_floor=self.settings.consensus.min_votes_floor)
        self._history = HistoryWindow(
            max_readings=self.settings.history.max_readings,
            max_anomalies=self.settings.history.max_anomalies,
        )
        self._classifier = Classifier(self.settings.classifier)
        self._responder = Responder()

        self._readings_seen = 0
        self._episode_id = 0
        self._in_episode = False
        self._quiet_readings = 0
        self._critical_streak = 0
        self._flatline_reported = False

        if self._bank.is_degraded:
            logger.warning(
                "Sensor %s starts degraded: %d detector(s) enabled",
                sensor_id,
                self._bank.enabled_count,
            )

    @property
    def baseline(self) -> Baseline:
        return self._baseline

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def bank(self) -> DetectorBank:
        return self._bank

    @property
    def history(self) -> HistoryWindow:
        return self._history

    def process(self, reading: Reading) -> Optional[ResponseRecord]:
        """
        Run one reading through the pipeline.

        Returns:
            ResponseRecord if consensus declared an anomaly or the sensor
            just went flat, else None

        Raises:
            ReconfigurationInProgress: a baseline swap did not finish in time
            DegradedConsensus: no detector is enabled for this baseline
        """
        if not self._idle.wait(self.settings.engine.reconfigure_wait_seconds):
            raise ReconfigurationInProgress(
                f"Sensor {self.sensor_id} is swapping its baseline; reading at "
                f"{reading.timestamp.isoformat()} rejected"
            )

        with self._lock:
            return self._process_locked(reading)

    def _process_locked(self, reading: Reading) -> Optional[ResponseRecord]:
        bank = self._bank
        if bank.enabled_count == 0:
            raise DegradedConsensus(f"Sensor {self.sensor_id} has no enabled detectors")

        degraded = bank.is_degraded
        if degraded:
            logger.warning(
                "Degraded consensus for %s: only %d detector(s) enabled",
                self.sensor_id,
                bank.enabled_count,
            )

        self._readings_seen += 1
        votes = bank.update(reading.value)
        consensus = self._consensus.evaluate(votes)

        if not reading.is_valid:
            logger.warning("Invalid reading from %s: %r", self.sensor_id, reading.value)
            episode_id = self._advance_episode(flagged=True)
            classification = Classification(
                anomaly_type=AnomalyType.SPIKE,
                severity=Severity.WARNING,
                evidence=f"non-finite reading ({INVALID_INPUT})",
                rule=INVALID_INPUT,
            )
            return self._responder.respond(
                reading,
                classification,
                self._baseline,
                consensus,
                episode_id=episode_id,
                generation=self._generation,
                degraded=degraded,
                note=INVALID_INPUT,
            )

        self._history.record(reading, consensus)
        stuck = self._classifier.flatline(self._history, self._baseline)
        if stuck is None:
            self._flatline_reported = False
        report_stuck = stuck is not None and not self._flatline_reported
        episode_id = self._advance_episode(flagged=consensus.is_anomaly or report_stuck)

        if consensus.is_anomaly:
            classification = self._classifier.classify(self._history, self._baseline)
        elif report_stuck:
            logger.warning("Sensor %s looks stuck: %s", self.sensor_id, stuck.evidence)
            classification = stuck
        else:
            if consensus.votes_for:
                logger.debug(
                    "Split vote on %s below quorum (%d/%d, quorum %d): %s",
                    self.sensor_id,
                    consensus.votes_for,
                    consensus.votes_total,
                    consensus.quorum,
                    consensus.voters,
                )
            return None

        if classification.anomaly_type == AnomalyType.FLATLINE:
            self._flatline_reported = True

        classification = escalate_severity(
            classification,
            self._critical_streak,
            self.settings.response.emergency_critical_streak,
        )
        if classification.severity in CRITICAL_SEVERITIES:
            self._critical_streak += 1
        else:
            self._critical_streak = 0

        return self._responder.respond(
            reading,
            classification,
            self._baseline,
            consensus,
            episode_id=episode_id,
            generation=self._generation,
            degraded=degraded,
        )

    def _advance_episode(self, flagged: bool) -> int:
        if flagged:
            if not self._in_episode:
                self._episode_id += 1
                self._in_episode = True
            self._quiet_readings = 0
        elif self._in_episode:
            self._quiet_readings += 1
            if self._quiet_readings >= self.settings.response.episode_quiet_readings:
                self._in_episode = False
                self._critical_streak = 0
        return self._episode_id

    def reconfigure(self, baseline: Baseline) -> int:
        """
        Install a new baseline atomically and return the new generation.

        Readings arriving meanwhile wait up to reconfigure_wait_seconds.
        """
        self._idle.clear()
        try:
            bank = self._build_bank(baseline)
            with self._lock:
                self._baseline = baseline
                self._bank = bank
                self._generation += 1
                self._history.clear()
                self._in_episode = False
                self._quiet_readings = 0
                self._critical_streak = 0
                self._flatline_reported = False
                generation = self._generation
        finally:
            self._idle.set()

        logger.info(
            "Sensor %s reconfigured to baseline generation %d (mean=%.4f, std=%.4f)",
            self.sensor_id,
            generation,
            baseline.mean,
            baseline.std,
        )
        return generation

    def reset(self) -> None:
        with self._lock:
            self._bank.reset()
            self._history.clear()
            self._flatline_reported = False

    def status(self) -> SensorStatus:
        window = self.settings.classifier.recent_window
        with self._lock:
            values = self._history.recent_values(window)
            entries = self._history.entries
            return SensorStatus(
                sensor_id=self.sensor_id,
                generation=self._generation,
                baseline=self._baseline,
                enabled_detectors=[d.name for d in self._bank.enabled],
                degraded=self._bank.is_degraded,
                readings_seen=self._readings_seen,
                recent_values=values,
                recent_mean=sum(values) / len(values) if values else None,
                recent_anomalies=self._history.recent_anomaly_count(),
                last_reading=entries[-1].reading if entries else None,
            )

    def export_state(self) -> PipelineSnapshot:
        with self._lock:
            return PipelineSnapshot(
                sensor_id=self.sensor_id,
                generation=self._generation,
                baseline=self._baseline,
                detector_states=[
                    DetectorStateSnapshot(name=name, generation=self._generation, state=state)
                    for name, state in self._bank.state_snapshot().items()
                ],
                history=self._history.entries,
            )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: PipelineSnapshot,
        settings: Optional[AnomalyConfig] = None,
        discard_stale: bool = False,
    ) -> "SensorPipeline":
        """
        Rebuild a pipeline for a warm restart.

        Raises:
            StaleDetectorState: a detector state was produced under another
                baseline generation and discard_stale is False
        """
        stale = snapshot.stale_detectors()
        if stale and not discard_stale:
            raise StaleDetectorState(
                f"Snapshot for {snapshot.sensor_id} (generation {snapshot.generation}) "
                f"holds state from other generations for: {stale}"
            )
        if stale:
            logger.warning(
                "Discarding stale detector state for %s: %s", snapshot.sensor_id, stale
            )

        pipeline = cls(
            snapshot.sensor_id,
            snapshot.baseline,
            settings=settings,
            generation=snapshot.generation,
        )
        pipeline._bank.restore_state(
            {s.name: s.state for s in snapshot.detector_states if s.name not in stale}
        )
        pipeline._history.load(snapshot.history)
        return pipeline

    def _build_bank(self, baseline: Baseline) -> DetectorBank:
        return build_detector_bank(
            baseline,
            self.settings.detectors,
            min_enabled=self.settings.consensus.min_enabled_detectors,
        )
