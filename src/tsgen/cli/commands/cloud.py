"""tsgen cloud command - one static shard for a single org and bucket."""

from __future__ import annotations

import time

import click

from tsgen.cli.commands.options import common_options, report_elapsed, report_result
from tsgen.cli.errors import handle_errors
from tsgen.cli.output import print_summary


@click.command("cloud")
@common_options
@click.option(
    "--data-path",
    default="out/data",
    show_default=True,
    help="Path to storage data.",
)
@click.option(
    "--duration",
    default=None,
    help="Duration to spread data over [default: 24h]",
)
@click.option("--org-id", required=True, help="Org ID of the generated series.")
@click.option("--bucket-id", required=True, help="Bucket ID of the generated series.")
def cloud(
    print_only: bool,
    config_path: str | None,
    concurrency: int | None,
    start_time: str | None,
    tags: str | None,
    points: int | None,
    data_path: str,
    duration: str | None,
    org_id: str,
    bucket_id: str,
) -> None:
    """Generate one unbounded shard of multi-tenant integer constant values.

    Points are spread evenly from the start time over `--duration`. No
    metadata is written; the shard is `<data-path>/db/rp/1`.

    Examples:

        tsgen cloud --org-id 0000000000000001 --bucket-id 0000000000000002 --print
    """
    # Import here to avoid heavy imports at CLI startup
    from tsgen.config import resolve_config
    from tsgen.plan import cloud_generators, execute, plan_from_config, prepare_static_layout

    with handle_errors("read"):
        config = resolve_config(
            config_path,
            db={
                "data_path": data_path,
                "database": "db",
                "rp": "rp",
                "start_time": start_time,
                "shard_count": 1,
                "shard_duration": duration,
            },
            generator={
                "concurrency": concurrency,
                "points_per_series": points,
                "fields": 1,
                "build_tsi": False,
                "org_id": org_id,
            },
            tags=tags,
        )

    plan = plan_from_config(config, tenant=f"{org_id}+{bucket_id}")
    print_summary(plan.model_copy(update={"meta_path": None}))
    if print_only:
        return

    start = time.perf_counter()
    try:
        with handle_errors("write"):
            shard_path, groups = prepare_static_layout(
                config.db.data_path, config.db.database, config.db.rp
            )
            gens = cloud_generators(config, groups, org_id=org_id, bucket_id=bucket_id)
            result = execute(config, shard_path, groups, gens)
        report_result(len(result.shards), result.points_written)
    finally:
        report_elapsed(start)
