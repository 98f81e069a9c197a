"""
Custom exceptions for the sensor anomaly engine.

These exceptions provide clear error semantics across the system.
Use them to distinguish between data issues, baseline problems, approval
gating and configuration errors.
"""

from typing import Optional


class SentinelError(Exception):
    """Base exception for anomaly engine failures."""
    pass


class InsufficientSamples(SentinelError):
    """Raised when a baseline block has fewer readings than required."""

    def __init__(self, required: int, received: int, sensor_id: Optional[str] = None):
        self.required = required
        self.received = received
        self.sensor_id = sensor_id
        target = f" for sensor {sensor_id}" if sensor_id else ""
        super().__init__(
            f"Baseline{target} needs at least {required} readings, got {received}"
        )


class InvalidReading(SentinelError):
    """Raised when a non-finite value appears where it cannot be voted on."""
    pass


class DegradedConsensus(SentinelError):
    """Raised when no valid baseline exists, so no detector can vote."""
    pass


class ReconfigurationInProgress(SentinelError):
    """Raised when a reading arrives while a baseline swap has not finished."""
    pass


class ApprovalRequired(SentinelError):
    """Raised when an invasive reconfiguration is attempted without approval."""
    pass


class ApprovalDenied(SentinelError):
    """Raised when the approval workflow rejected the request."""
    pass


class ApprovalTimeout(SentinelError):
    """Raised when no approval decision arrived in time."""
    pass


class StaleDetectorState(SentinelError):
    """Raised when persisted detector state belongs to another baseline generation."""
    pass


class ConfigurationError(SentinelError):
    """Raised when configuration is invalid or missing."""
    pass


class ReadingIngestionError(SentinelError):
    """Raised when reading files cannot be loaded."""
    pass
