"""Unit tests for tsgen.cli.output."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest

from tsgen.cli import output
from tsgen.plan import RunPlan

pytestmark = pytest.mark.unit


@pytest.fixture
def plain_console() -> Iterator[None]:
    """Swap in an uncolored, wide console that writes to stdout."""
    original = output.console
    output.console = output.create_console(no_color=True)
    output.console.width = 200
    try:
        yield
    finally:
        output.console = original


def make_plan(**overrides: object) -> RunPlan:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    values: dict[str, object] = {
        "data_path": "/data",
        "meta_path": "/meta",
        "concurrency": 2,
        "tag_cardinalities": [10, 10, 10],
        "points_per_series": 100,
        "shard_count": 3,
        "database": "db",
        "rp": "autogen",
        "shard_duration": timedelta(hours=24),
        "start_time": start,
        "end_time": start + timedelta(hours=72),
    }
    values.update(overrides)
    return RunPlan(**values)  # type: ignore[arg-type]


class TestCreateConsole:
    """Tests for create_console."""

    def test_no_color(self) -> None:
        assert output.create_console(no_color=True).no_color is True


class TestMessages:
    """Tests for message helpers."""

    def test_success(self, plain_console: None, capsys: pytest.CaptureFixture[str]) -> None:
        output.success("Wrote 3 shards")
        out = capsys.readouterr().out
        assert "✓" in out
        assert "Wrote 3 shards" in out

    def test_error_does_not_interpret_markup(
        self, plain_console: None, capsys: pytest.CaptureFixture[str]
    ) -> None:
        output.error("bad value [bold]x[/bold]")
        out = capsys.readouterr().out
        assert "✗" in out
        assert "[bold]x[/bold]" in out


class TestPrintSummary:
    """Tests for the summary table."""

    def test_rows_printed(self, plain_console: None, capsys: pytest.CaptureFixture[str]) -> None:
        output.print_summary(make_plan())
        out = capsys.readouterr().out
        assert "Total points per shard" in out
        assert "100,000" in out
        assert "300,000" in out
        assert "[10, 10, 10]" in out
        assert "db/autogen (Shard duration: 24h0m0s)" in out

    def test_tenant_row(self, plain_console: None, capsys: pytest.CaptureFixture[str]) -> None:
        output.print_summary(make_plan(tenant="org+bucket", meta_path=None))
        out = capsys.readouterr().out
        assert "org+bucket" in out
        assert "Meta Path" not in out


def test_set_no_color() -> None:
    original = output.console
    try:
        output.set_no_color(True)
        assert output.console.no_color is True
    finally:
        output.console = original
