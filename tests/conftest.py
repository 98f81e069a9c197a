"""
Pytest configuration and shared fixtures.

Provides test configuration instances and known-normal reading blocks for
unit and integration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Sequence

from scipy import stats

from sensor_sentinel.anomaly.schema import Baseline
from sensor_sentinel.core.config import Config
from sensor_sentinel.data.schema import Reading

T0 = datetime(2025, 2, 7, 10, 0, tzinfo=timezone.utc)


def normal_quantile_block(mean: float, scale: float, n: int = 100) -> List[float]:
    """
    Exact normal quantiles, interleaved low/high so both halves of the block
    share the same mean (stationary) and the whole block passes Shapiro-Wilk.
    """
    quantiles = [mean + scale * float(stats.norm.ppf((i + 0.5) / n)) for i in range(n)]
    block = []
    for i in range(n // 2):
        block.append(quantiles[i])
        block.append(quantiles[n - 1 - i])
    return block


def make_readings(sensor_id: str, values: Sequence[float], start: datetime = T0) -> List[Reading]:
    return [
        Reading(sensor_id=sensor_id, timestamp=start + timedelta(seconds=i), value=v)
        for i, v in enumerate(values)
    ]


@pytest.fixture
def test_config(tmp_path) -> Config:
    """
    Fixture providing test configuration with explicit values.

    Logs go to a temporary directory so tests never write into the repo.
    """
    return Config(log_level="WARNING", logs_dir=tmp_path / "logs")


@pytest.fixture
def normal_block() -> List[float]:
    """100 known-normal temperature readings around 22.0 C (sigma ~0.15)."""
    return normal_quantile_block(22.0, 0.15)


@pytest.fixture
def tight_block() -> List[float]:
    """100 known-normal readings around 22.0 C (sigma ~0.1)."""
    return normal_quantile_block(22.0, 0.1)


@pytest.fixture
def block_factory() -> Callable[..., List[float]]:
    return normal_quantile_block


@pytest.fixture
def constant_block() -> List[float]:
    """Zero-variance block, e.g. a sensor reporting a fixed set point."""
    return [5.0] * 100


@pytest.fixture
def reading_factory() -> Callable[..., List[Reading]]:
    return make_readings


@pytest.fixture
def manual_baseline() -> Baseline:
    """Hand-written baseline with round numbers: mean 22.0, std 0.1."""
    return Baseline(
        mean=22.0,
        std=0.1,
        median=22.0,
        min=21.7,
        max=22.3,
        q1=21.93,
        q3=22.07,
        iqr=0.14,
        mad=0.07,
        sample_count=100,
        is_normal=True,
        normality_p=0.9,
        is_stationary=True,
        mean_drift_sigma=0.01,
    )


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
