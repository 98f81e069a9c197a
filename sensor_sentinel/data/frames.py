"""
pandas adapters for batch replay.

Converts a DataFrame of recorded samples into Reading objects (in timestamp
order per sensor) and flattens ResponseRecords back into a DataFrame for
offline inspection.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

import pandas as pd

from sensor_sentinel.data.schema import Reading

if TYPE_CHECKING:
    from sensor_sentinel.response.schema import ResponseRecord

logger = logging.getLogger(__name__)

READING_COLUMNS = ("sensor_id", "timestamp", "value")

RECORD_COLUMNS = [
    "record_id",
    "timestamp",
    "sensor_id",
    "value",
    "anomaly_type",
    "severity",
    "magnitude",
    "evidence",
    "episode_id",
    "generation",
    "votes_for",
    "votes_total",
    "actions_taken",
    "requires_approval",
]


def readings_from_frame(
    df: pd.DataFrame,
    sensor_id: Optional[str] = None,
) -> List[Reading]:
    """
    Convert a DataFrame into Readings sorted by timestamp (stable per sensor).
    Naive timestamps are taken as UTC.

    Args:
        df: Frame with "timestamp" and "value" columns and either a
            "sensor_id" column or a DatetimeIndex named "timestamp"
        sensor_id: Used when the frame has no sensor_id column

    Returns:
        List of Reading objects
    """
    frame = df
    if "timestamp" not in frame.columns and isinstance(frame.index, pd.DatetimeIndex):
        frame = frame.reset_index().rename(columns={frame.index.name or "index": "timestamp"})

    if "sensor_id" not in frame.columns:
        if sensor_id is None:
            raise ValueError("Frame has no sensor_id column and no sensor_id was given")
        frame = frame.assign(sensor_id=sensor_id)

    missing = [c for c in READING_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Frame is missing columns: {missing}")

    frame = frame.assign(timestamp=pd.to_datetime(frame["timestamp"], utc=True))
    frame = frame.sort_values("timestamp", kind="stable")

    readings = [
        Reading(
            sensor_id=str(row.sensor_id),
            timestamp=row.timestamp.to_pydatetime(),
            value=float(row.value),
        )
        for row in frame.itertuples(index=False)
    ]
    logger.debug("Converted %d frame rows to readings", len(readings))
    return readings


def records_to_frame(records: Iterable["ResponseRecord"]) -> pd.DataFrame:
    """
    Flatten ResponseRecords into one row per record.
    """
    rows = []
    for record in records:
        rows.append(
            {
                "record_id": record.record_id,
                "timestamp": record.timestamp,
                "sensor_id": record.sensor_id,
                "value": record.value,
                "anomaly_type": record.classification.anomaly_type.value,
                "severity": record.classification.severity.value,
                "magnitude": record.classification.magnitude,
                "evidence": record.classification.evidence,
                "episode_id": record.episode_id,
                "generation": record.generation,
                "votes_for": record.consensus.votes_for,
                "votes_total": record.consensus.votes_total,
                "actions_taken": [a.value for a in record.actions_taken],
                "requires_approval": record.requires_approval,
            }
        )
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)
