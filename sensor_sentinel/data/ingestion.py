"""
Reading ingestion from recorded files.

Supports JSON (array or NDJSON) and CSV sources. Used to replay recorded
sensor data and to load known-normal blocks for baseline estimation.
Gracefully handles malformed entries by skipping them and logging warnings.

Design:
- Format detection from the file extension or explicit format
- Iterator-based for memory efficiency with large recordings
- Bad rows logged but don't crash the pipeline
- Rows are converted to Reading objects; non-finite values are kept
"""

import csv
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from pydantic import ValidationError

from sensor_sentinel.core.exceptions import ReadingIngestionError
from sensor_sentinel.data.schema import Reading

logger = logging.getLogger(__name__)


# Epoch values at or above this are taken as milliseconds (year 3000 in seconds)
EPOCH_MS_THRESHOLD = 32503680000


def _parse_timestamp(raw_ts: Any) -> datetime:
    """
    Parse epoch seconds/milliseconds (number or numeric string) or ISO 8601.

    Epoch values and naive ISO strings are taken as UTC.
    """
    try:
        ts_float = float(raw_ts)
    except (TypeError, ValueError):
        ts_float = None

    if ts_float is not None:
        if ts_float >= EPOCH_MS_THRESHOLD:
            ts_float /= 1000
        return datetime.fromtimestamp(ts_float, tz=timezone.utc)

    timestamp = datetime.fromisoformat(str(raw_ts).strip().replace("Z", "+00:00"))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def _to_reading(
    row: Dict[str, Any],
    default_sensor_id: Optional[str],
    location: str,
) -> Optional[Reading]:
    """
    Convert a raw row into a Reading, or None if the row is malformed.

    Accepted keys: sensor_id (or sensor), timestamp (ISO 8601 or epoch
    seconds/milliseconds), value.
    """
    sensor_id = row.get("sensor_id") or row.get("sensor") or default_sensor_id
    raw_ts = row.get("timestamp")
    raw_value = row.get("value")

    if sensor_id is None or raw_ts in (None, "") or raw_value in (None, ""):
        logger.warning(f"Missing field(s) at {location}: {row}")
        return None

    try:
        timestamp = _parse_timestamp(raw_ts)
        value = float(raw_value)
        return Reading(sensor_id=str(sensor_id), timestamp=timestamp, value=value)
    except (ValueError, TypeError, OverflowError, OSError, ValidationError) as e:
        logger.warning(f"Malformed reading at {location}: {e}")
        return None


class BaseReadingSource(ABC):
    """
    Abstract base class for reading sources.

    Each source type (JSON, CSV) implements this interface.
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        sensor_id: Optional[str] = None,
        encoding: str = "utf-8",
    ):
        """
        Initialize reading source.

        Args:
            filepath: Path to the recording
            sensor_id: Sensor id for rows that don't carry one
            encoding: File encoding (default utf-8)

        Raises:
            ReadingIngestionError: If file doesn't exist
        """
        self.filepath = Path(filepath)
        self.sensor_id = sensor_id
        self.encoding = encoding

        if not self.filepath.exists():
            raise ReadingIngestionError(f"Reading file not found: {self.filepath}")

    @abstractmethod
    def ingest(self) -> Iterator[Reading]:
        """
        Ingest readings from source.

        Yields:
            Reading objects in file order
        """
        pass


class JSONReadingSource(BaseReadingSource):
    """
    Ingests JSON readings (JSON array or one object per line).

    Example NDJSON:
        {"sensor_id": "temp-01", "timestamp": "2025-02-07T10:30:45Z", "value": 22.01}
        {"sensor_id": "temp-01", "timestamp": "2025-02-07T10:30:46Z", "value": 22.03}
    """

    def ingest(self) -> Iterator[Reading]:
        try:
            with open(self.filepath, "r", encoding=self.encoding) as f:
                content = f.read().lstrip("\ufeff").strip()
        except OSError as e:
            logger.error(f"Error reading JSON file {self.filepath}: {e}")
            raise ReadingIngestionError(f"Failed to read JSON readings: {e}") from e

        if content.startswith("["):
            try:
                rows = json.loads(content)
            except json.JSONDecodeError as e:
                raise ReadingIngestionError(f"Invalid JSON array: {e}") from e

            for idx, row in enumerate(rows):
                if not isinstance(row, dict):
                    logger.warning(f"Non-dict entry at index {idx}: {type(row)}")
                    continue
                reading = _to_reading(row, self.sensor_id, f"index {idx}")
                if reading is not None:
                    yield reading
            return

        for line_num, line in enumerate(content.split("\n"), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Malformed JSON at line {line_num}: {line[:100]}")
                continue
            if not isinstance(row, dict):
                logger.warning(f"NDJSON line {line_num} not a dict: {type(row)}")
                continue
            reading = _to_reading(row, self.sensor_id, f"line {line_num}")
            if reading is not None:
                yield reading


class CSVReadingSource(BaseReadingSource):
    """
    Ingests CSV readings. First row must contain headers.

    Example:
        sensor_id,timestamp,value
        temp-01,2025-02-07T10:30:45Z,22.01
        temp-01,2025-02-07T10:30:46Z,nan
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        sensor_id: Optional[str] = None,
        encoding: str = "utf-8",
        delimiter: str = ",",
    ):
        super().__init__(filepath, sensor_id, encoding)
        self.delimiter = delimiter

    def ingest(self) -> Iterator[Reading]:
        try:
            with open(self.filepath, "r", encoding=self.encoding, newline="") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)

                if reader.fieldnames is None:
                    raise ReadingIngestionError("CSV file is empty")

                # Normalize BOM in header if present
                reader.fieldnames = [name.lstrip("\ufeff") for name in reader.fieldnames]

                for line_num, row in enumerate(reader, start=2):  # Row 1 is header
                    reading = _to_reading(row, self.sensor_id, f"line {line_num}")
                    if reading is not None:
                        yield reading
        except ReadingIngestionError:
            raise
        except OSError as e:
            logger.error(f"Error reading CSV file {self.filepath}: {e}")
            raise ReadingIngestionError(f"Failed to read CSV readings: {e}") from e


def ingest_readings(
    filepath: Union[str, Path],
    format: str = "auto",
    sensor_id: Optional[str] = None,
) -> Iterator[Reading]:
    """
    Convenience function to ingest readings from a file.

    Args:
        filepath: Path to the recording
        format: "json", "csv", or "auto" for detection by extension
        sensor_id: Sensor id for rows that don't carry one

    Yields:
        Reading objects

    Raises:
        ReadingIngestionError: If file not found or format unsupported

    Example:
        block = list(ingest_readings("normal_week.csv", sensor_id="temp-01"))
        engine.establish_baseline("temp-01", block)
    """
    filepath = Path(filepath)

    if format == "auto":
        suffix = filepath.suffix.lower()
        if suffix in (".json", ".ndjson", ".jsonl"):
            format = "json"
        elif suffix == ".csv":
            format = "csv"
        else:
            raise ReadingIngestionError(f"Cannot detect format of {filepath}")

    if format == "json":
        source: BaseReadingSource = JSONReadingSource(filepath, sensor_id=sensor_id)
    elif format == "csv":
        source = CSVReadingSource(filepath, sensor_id=sensor_id)
    else:
        raise ReadingIngestionError(f"Unknown format: {format}")

    yield from source.ingest()
