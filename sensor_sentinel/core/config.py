"""
Application configuration for the sensor anomaly engine.

Provides environment-aware settings with conservative defaults. All detector
thresholds and classifier cut-offs are configurable to avoid hard-coded
"magic numbers".
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaselineSettings(BaseModel):
	"""
	Configuration for baseline estimation.

	Notes:
	- min_samples: readings required before a baseline can be established.
	- stationarity_threshold: max half-to-half mean drift, in baseline sigmas.
	- normality_alpha: p-value above which the block is considered normal.
	- exact_normality_max_samples: Shapiro-Wilk up to this size, D'Agostino above.
	"""

	min_samples: int = Field(100, ge=3)
	stationarity_threshold: float = Field(0.5, gt=0.0)
	normality_alpha: float = Field(0.05, gt=0.0, lt=1.0)
	exact_normality_max_samples: int = Field(5000, ge=3)


class ZScoreSettings(BaseModel):
	enabled: bool = True
	threshold: float = Field(3.0, gt=0.0)
	require_normal: bool = Field(
		True, description="Disable the detector when the baseline fails the normality test"
	)


class ModifiedZScoreSettings(BaseModel):
	enabled: bool = True
	threshold: float = Field(3.5, gt=0.0)


class IQRSettings(BaseModel):
	enabled: bool = True
	factor: float = Field(1.5, gt=0.0)


class GrubbsSettings(BaseModel):
	enabled: bool = True
	alpha: float = Field(0.05, gt=0.0, lt=1.0)
	window_size: int = Field(30, ge=3)
	min_samples: int = Field(3, ge=3)


class CUSUMSettings(BaseModel):
	"""
	CUSUM parameters expressed in baseline sigmas.

	- k_sigma: slack (drift allowance), k = k_sigma * std.
	- h_sigma: decision threshold, h = h_sigma * std (3-5 is typical).
	"""

	enabled: bool = True
	k_sigma: float = Field(0.5, ge=0.0)
	h_sigma: float = Field(5.0, gt=0.0)


class EWMASettings(BaseModel):
	enabled: bool = True
	alpha: float = Field(0.3, gt=0.0, lt=1.0)
	sigma_threshold: float = Field(3.0, gt=0.0)


class MovingAverageSettings(BaseModel):
	enabled: bool = True
	window_size: int = Field(20, ge=2)
	threshold_sigma: float = Field(3.0, gt=0.0)
	min_samples: int = Field(5, ge=2)


class DetectorSettings(BaseModel):
	"""
	Per-detector settings. Each detector can be switched off individually.
	"""

	zscore: ZScoreSettings = ZScoreSettings()
	modified_zscore: ModifiedZScoreSettings = ModifiedZScoreSettings()
	iqr: IQRSettings = IQRSettings()
	grubbs: GrubbsSettings = GrubbsSettings()
	cusum: CUSUMSettings = CUSUMSettings()
	ewma: EWMASettings = EWMASettings()
	moving_average: MovingAverageSettings = MovingAverageSettings()


class ConsensusSettings(BaseModel):
	"""
	Quorum configuration.

	- min_votes_floor: lower bound on the quorum (1 lets a lone detector fire).
	- min_enabled_detectors: below this the pipeline is reported as degraded.
	"""

	min_votes_floor: int = Field(1, ge=1)
	min_enabled_detectors: int = Field(2, ge=1)


class HistorySettings(BaseModel):
	max_readings: int = Field(50, ge=10)
	max_anomalies: int = Field(20, ge=1)


class ClassifierSettings(BaseModel):
	"""
	Decision-tree cut-offs for pattern classification.

	Rationale:
	- FLATLINE looks at unique values only, so it is independent of deviation.
	- DRIFT requires repeated consensus anomalies to avoid labelling one spike.
	"""

	recent_window: int = Field(10, ge=2)
	flatline_window: int = Field(10, ge=3)
	flatline_max_distinct: int = Field(2, ge=1)
	drift_sigma: float = Field(2.0, gt=0.0)
	drift_critical_sigma: float = Field(4.0, gt=0.0)
	drift_min_anomalies: int = Field(5, ge=1)
	noise_ratio: float = Field(2.0, gt=0.0)
	noise_critical_ratio: float = Field(4.0, gt=0.0)
	recurring_spike_count: int = Field(3, ge=1)


class ResponseSettings(BaseModel):
	"""
	Response pipeline configuration.

	- emergency_critical_streak: consecutive CRITICAL classifications that
	  escalate the next one to EMERGENCY.
	- episode_quiet_readings: unflagged readings that close an anomaly episode.
	- max_closed_approvals: consumed or rejected approval requests kept for lookup.
	"""

	emergency_critical_streak: int = Field(3, ge=1)
	episode_quiet_readings: int = Field(5, ge=1)
	max_closed_approvals: int = Field(256, ge=1)


class EngineSettings(BaseModel):
	reconfigure_wait_seconds: float = Field(0.5, ge=0.0)
	approval_timeout_seconds: float = Field(3600.0, gt=0.0)


class AnomalyConfig(BaseModel):
	"""
	Anomaly engine configuration.
	"""

	baseline: BaselineSettings = BaselineSettings()
	detectors: DetectorSettings = DetectorSettings()
	consensus: ConsensusSettings = ConsensusSettings()
	history: HistorySettings = HistorySettings()
	classifier: ClassifierSettings = ClassifierSettings()
	response: ResponseSettings = ResponseSettings()
	engine: EngineSettings = EngineSettings()


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested values use a double underscore, e.g.
	SENTINEL_ANOMALY__DETECTORS__ZSCORE__THRESHOLD=4.0
	"""

	model_config = SettingsConfigDict(
		env_prefix="SENTINEL_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalyConfig = AnomalyConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
