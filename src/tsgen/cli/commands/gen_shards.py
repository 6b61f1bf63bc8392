"""tsgen gen-shards command - float random values, several fields per point."""

from __future__ import annotations

import time

import click

from tsgen.cli.commands.options import common_options, report_elapsed, report_result, shard_options
from tsgen.cli.errors import handle_errors
from tsgen.cli.output import print_summary


@click.command("gen-shards")
@common_options
@shard_options
@click.option("--db", "database", default=None, help="Database to create [default: db]")
@click.option("--rp", default=None, help="Default retention policy [default: autogen]")
@click.option(
    "-f",
    "--fields",
    type=int,
    default=None,
    help="Fields per point [default: 1]",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Seed for random values [default: 123]",
)
def gen_shards(
    print_only: bool,
    config_path: str | None,
    concurrency: int | None,
    start_time: str | None,
    tags: str | None,
    points: int | None,
    data_path: str | None,
    meta_path: str | None,
    shards: int | None,
    shard_duration: str | None,
    build_tsi: bool,
    database: str | None,
    rp: str | None,
    fields: int | None,
    seed: int | None,
) -> None:
    """Generate shards of float random values.

    Field `v{f}` draws values from [0, 10*(f+1)). The database is dropped
    and recreated before any shard is written.

    Examples:

        tsgen gen-shards --print -t 10,10,10 -p 100

        tsgen gen-shards --shards 7 -c 4 -f 3 --tsi
    """
    # Import here to avoid heavy imports at CLI startup
    from tsgen.config import resolve_config
    from tsgen.plan import create_database, execute, gen_shards_generators, plan_from_config

    with handle_errors("read"):
        config = resolve_config(
            config_path,
            db={
                "data_path": data_path,
                "meta_path": meta_path,
                "database": database,
                "rp": rp,
                "start_time": start_time,
                "shard_count": shards,
                "shard_duration": shard_duration,
            },
            generator={
                "concurrency": concurrency,
                "points_per_series": points,
                "fields": fields,
                "seed": seed,
                "build_tsi": build_tsi or None,
            },
            tags=tags,
        )

    print_summary(plan_from_config(config))
    if print_only:
        return

    start = time.perf_counter()
    try:
        with handle_errors("write"):
            layout = create_database(config)
            gens = gen_shards_generators(config, layout.groups)
            result = execute(config, layout.shard_path, layout.groups, gens)
        report_result(len(result.shards), result.points_written)
    finally:
        report_elapsed(start)
