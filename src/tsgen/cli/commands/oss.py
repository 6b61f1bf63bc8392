"""tsgen oss command - integer constant values, optionally multi-tenant."""

from __future__ import annotations

import time

import click

from tsgen.cli.commands.options import common_options, report_elapsed, report_result, shard_options
from tsgen.cli.errors import handle_errors
from tsgen.cli.output import print_summary

# Database and retention policy holding every tenant's data.
TENANT_DATABASE = "db"
TENANT_RP = "rp"


@click.command("oss")
@common_options
@shard_options
@click.option(
    "--db",
    "database",
    default=None,
    help="Database (single tenant) or bucket ID (multi-tenant) [default: db]",
)
@click.option("--rp", default=None, help="Default retention policy [default: autogen]")
@click.option(
    "--org-id",
    default=None,
    help="Org ID; generates multi-tenant data for bucket --db.",
)
def oss(
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
    org_id: str | None,
) -> None:
    """Generate shards of integer constant values.

    With `--org-id`, series are written to the `db/rp` database under the
    measurement `<org>\\0\\0<bucket>` and carry a leading `_m=m0` tag.

    Examples:

        tsgen oss --print

        tsgen oss --org-id 0000000000000001 --db 0000000000000002 --shards 3
    """
    # Import here to avoid heavy imports at CLI startup
    from tsgen.config import resolve_config
    from tsgen.plan import create_database, execute, oss_generators, plan_from_config

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
                "fields": 1,
                "build_tsi": build_tsi or None,
                "org_id": org_id,
            },
            tags=tags,
        )

    bucket_id: str | None = None
    tenant: str | None = None
    if config.generator.org_id is not None:
        bucket_id = config.db.database
        tenant = f"{config.generator.org_id}+{bucket_id}"
        db = config.db.model_copy(update={"database": TENANT_DATABASE, "rp": TENANT_RP})
        config = config.model_copy(update={"db": db})

    print_summary(plan_from_config(config, tenant=tenant))
    if print_only:
        return

    start = time.perf_counter()
    try:
        with handle_errors("write"):
            layout = create_database(config)
            gens = oss_generators(
                config,
                layout.groups,
                org_id=config.generator.org_id,
                bucket_id=bucket_id,
            )
            result = execute(config, layout.shard_path, layout.groups, gens)
        report_result(len(result.shards), result.points_written)
    finally:
        report_elapsed(start)
