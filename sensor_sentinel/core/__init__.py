"""
Core module: Configuration, logging, and exception handling.
"""

from .config import AnomalyConfig, Config, config
from .exceptions import (
    ApprovalDenied,
    ApprovalRequired,
    ApprovalTimeout,
    ConfigurationError,
    DegradedConsensus,
    InsufficientSamples,
    InvalidReading,
    ReadingIngestionError,
    ReconfigurationInProgress,
    SentinelError,
    StaleDetectorState,
)
from .logging_config import setup_logging

__all__ = [
    "AnomalyConfig",
    "Config",
    "config",
    "setup_logging",
    "SentinelError",
    "InsufficientSamples",
    "InvalidReading",
    "DegradedConsensus",
    "ReconfigurationInProgress",
    "ApprovalRequired",
    "ApprovalDenied",
    "ApprovalTimeout",
    "StaleDetectorState",
    "ConfigurationError",
    "ReadingIngestionError",
]
