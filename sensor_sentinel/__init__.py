"""
Sensor Sentinel: streaming anomaly detection for IoT sensor readings.
"""

from .anomaly import AnomalyEngine, SensorPipeline

__version__ = "0.1.0"

__all__ = ["AnomalyEngine", "SensorPipeline", "__version__"]
