"""
Data module: reading schema, file ingestion and DataFrame adapters.

Responsible for turning recorded or live samples into Reading objects:

    Acquisition collaborator / recording (CSV, JSON, DataFrame)
        ↓
    Ingestion (sensor_sentinel/data/ingestion.py, frames.py) → Reading
        ↓
    Ready for the anomaly engine
"""

from sensor_sentinel.data.frames import readings_from_frame, records_to_frame
from sensor_sentinel.data.ingestion import (
    CSVReadingSource,
    JSONReadingSource,
    ingest_readings,
)
from sensor_sentinel.data.schema import Reading

__all__ = [
    "Reading",
    "CSVReadingSource",
    "JSONReadingSource",
    "ingest_readings",
    "readings_from_frame",
    "records_to_frame",
]
