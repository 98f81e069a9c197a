"""
Anomaly module: streaming multi-detector anomaly detection for sensors.

Implements baselines, detectors, consensus voting, pattern classification,
per-sensor pipelines and the multi-sensor engine.
"""

from .bank import DetectorBank, build_detector_bank
from .baselines import BaselineEstimator, establish_baseline
from .classifier import Classifier, ClassificationRule
from .consensus import ConsensusEngine
from .detectors import (
	CUSUMDetector,
	Detector,
	EWMADetector,
	GrubbsDetector,
	IQRDetector,
	ModifiedZScoreDetector,
	MovingAverageDetector,
	ZScoreDetector,
	grubbs_test,
)
from .history import HistoryWindow
from .schema import (
	AnomalyType,
	Baseline,
	Classification,
	ConsensusResult,
	DetectorConfig,
	HistoryEntry,
	SensorStatus,
	Severity,
	Vote,
)
from .snapshots import FileSnapshotStore, PipelineSnapshot
from .validation import CrossValidationResult, ValidationVerdict, cross_validate
from .pipeline import SensorPipeline
from .engine import AnomalyEngine

__all__ = [
	"AnomalyEngine",
	"SensorPipeline",
	"AnomalyType",
	"Severity",
	"Baseline",
	"Classification",
	"ConsensusResult",
	"DetectorConfig",
	"HistoryEntry",
	"SensorStatus",
	"Vote",
	"BaselineEstimator",
	"establish_baseline",
	"Detector",
	"ZScoreDetector",
	"ModifiedZScoreDetector",
	"IQRDetector",
	"GrubbsDetector",
	"CUSUMDetector",
	"EWMADetector",
	"MovingAverageDetector",
	"grubbs_test",
	"DetectorBank",
	"build_detector_bank",
	"ConsensusEngine",
	"HistoryWindow",
	"Classifier",
	"ClassificationRule",
	"FileSnapshotStore",
	"PipelineSnapshot",
	"CrossValidationResult",
	"ValidationVerdict",
	"cross_validate",
]
