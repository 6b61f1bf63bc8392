"""Shared pytest fixtures for tsgen tests.

Provides structlog capture, CliRunner fixtures and small builders for
configurations and shard groups.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from tsgen.config import Config, build_config
from tsgen.storage.meta import ShardGroupInfo

# Fixed, shard-aligned start time well in the past
START_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    This fixture ensures structlog outputs to stdout so that capsys
    can capture the output in tests.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Create a Click test runner with an isolated filesystem.

    Yields:
        CliRunner instance with isolated filesystem.
    """
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def start_time() -> datetime:
    return START_TIME


@pytest.fixture
def make_config(tmp_path: Path):  # type: ignore[no-untyped-def]
    """Factory for validated configurations rooted in tmp_path.

    Example:
        >>> config = make_config(tags=[2, 2], points=10, shards=3)
    """

    def _make(
        *,
        tags: list[int] | None = None,
        points: int = 10,
        shards: int = 1,
        fields: int = 1,
        concurrency: int = 1,
        shard_duration: str = "1h",
        build_tsi: bool = False,
        seed: int | None = None,
    ) -> Config:
        return build_config(
            {
                "data_path": str(tmp_path / "data"),
                "meta_path": str(tmp_path / "meta"),
                "database": "db",
                "rp": "autogen",
                "start_time": START_TIME,
                "shard_count": shards,
                "shard_duration": shard_duration,
            },
            {
                "tags": [{"cardinality": c} for c in (tags or [2, 2])],
                "points_per_series": points,
                "fields": fields,
                "concurrency": concurrency,
                "build_tsi": build_tsi,
                "seed": seed,
            },
        )

    return _make


@pytest.fixture
def shard_groups() -> list[ShardGroupInfo]:
    """Three consecutive one-hour shard groups starting at START_TIME."""
    hour = timedelta(hours=1)
    return [
        ShardGroupInfo(id=i + 1, start_time=START_TIME + i * hour, end_time=START_TIME + (i + 1) * hour)
        for i in range(3)
    ]
