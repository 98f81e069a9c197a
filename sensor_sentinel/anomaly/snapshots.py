"""
Persisted pipeline state for warm restarts.

A snapshot holds the baseline, every detector's running state and the
history window for one sensor. Detector states are tagged with the baseline
generation they were produced under so state from an older baseline is
never reused silently.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field

from .schema import Baseline, HistoryEntry

logger = logging.getLogger(__name__)


class DetectorStateSnapshot(BaseModel):
    name: str
    generation: int = Field(ge=1)
    state: Dict[str, Any] = Field(default_factory=dict)


class PipelineSnapshot(BaseModel):
    """
    Fields:
    - sensor_id: sensor the state belongs to
    - generation: baseline generation of the snapshot
    - baseline: baseline in force when the snapshot was taken
    - detector_states: per-detector running state, tagged with a generation
    - history: history window entries, oldest first
    - saved_at: capture time
    """

    sensor_id: str
    generation: int = Field(ge=1)
    baseline: Baseline
    detector_states: List[DetectorStateSnapshot] = Field(default_factory=list)
    history: List[HistoryEntry] = Field(default_factory=list)
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def stale_detectors(self) -> List[str]:
        return [s.name for s in self.detector_states if s.generation != self.generation]


class FileSnapshotStore:
    """
    One JSON file per sensor under a directory.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, sensor_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", sensor_id)
        return self.directory / f"{safe}.json"

    def save(self, snapshot: PipelineSnapshot) -> Path:
        path = self.path_for(snapshot.sensor_id)
        tmp = path.parent / (path.name + ".tmp")
        tmp.write_text(snapshot.model_dump_json(), encoding="utf-8")
        tmp.replace(path)
        logger.debug("Saved snapshot for %s (generation %d)", snapshot.sensor_id, snapshot.generation)
        return path

    def load(self, sensor_id: str) -> PipelineSnapshot:
        path = self.path_for(sensor_id)
        if not path.exists():
            raise FileNotFoundError(f"No snapshot for sensor {sensor_id} at {path}")
        return PipelineSnapshot.model_validate_json(path.read_text(encoding="utf-8"))

    def exists(self, sensor_id: str) -> bool:
        return self.path_for(sensor_id).exists()

    def delete(self, sensor_id: str) -> None:
        self.path_for(sensor_id).unlink(missing_ok=True)
