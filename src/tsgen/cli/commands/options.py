"""Options and run steps shared by the generator commands."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

import click

from tsgen.cli.output import info, success

F = TypeVar("F", bound=Callable[..., Any])


def _apply(options: list[Callable[[F], F]], f: F) -> F:
    for option in reversed(options):
        f = option(f)
    return f


def common_options(f: F) -> F:
    """Options every generator command accepts."""
    return _apply(
        [
            click.option(
                "--print",
                "print_only",
                is_flag=True,
                default=False,
                help="Print the data summary only; write nothing.",
            ),
            click.option(
                "--config",
                "config_path",
                type=click.Path(exists=True, dir_okay=False),
                default=None,
                help="YAML config file; command-line options take precedence.",
            ),
            click.option(
                "-c",
                "--concurrency",
                type=int,
                default=None,
                help="Shards written in parallel [default: 1]",
            ),
            click.option(
                "--start-time",
                default=None,
                help="Start time, RFC 3339 [default: now - (shards * shard-duration)]",
            ),
            click.option(
                "-t",
                "--tags",
                default=None,
                help="Comma-separated tag cardinalities [default: 10,10,10]",
            ),
            click.option(
                "-p",
                "--points",
                type=int,
                default=None,
                help="Points per series per shard [default: 100]",
            ),
        ],
        f,
    )


def shard_options(f: F) -> F:
    """Options for commands that lay out a database with shard groups."""
    return _apply(
        [
            click.option(
                "--data-path",
                default=None,
                help="Path to data directory [default: ~/.tsgen/data]",
            ),
            click.option(
                "--meta-path",
                default=None,
                help="Path to meta directory [default: ~/.tsgen/meta]",
            ),
            click.option(
                "--shards",
                type=int,
                default=None,
                help="Number of shards to create [default: 1]",
            ),
            click.option(
                "--shard-duration",
                default=None,
                help="Shard duration, e.g. 24h or 1h30m [default: 24h]",
            ),
            click.option(
                "--tsi",
                "build_tsi",
                is_flag=True,
                default=False,
                help="Build a per-shard index.",
            ),
        ],
        f,
    )


def report_elapsed(start: float) -> None:
    """Print the total wall time of a run."""
    info("")
    info(f"Total time: {time.perf_counter() - start:0.1f} seconds")


def report_result(shards: int, points: int) -> None:
    success(f"Wrote {points:,} points to {shards:,} shard(s)")
