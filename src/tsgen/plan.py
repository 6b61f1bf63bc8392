"""Run planning for the CLI commands.

This module turns a validated Config into the pieces a run needs:
- RunPlan: the summary printed before anything is written
- gen_shards_generators / oss_generators / cloud_generators: per-shard
  series generators for each command
- create_database / prepare_static_layout: on-disk layout before a run
- execute: open the series catalog and drive the Generator
"""

from __future__ import annotations

import math
import random
import shutil
from collections.abc import Sequence
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from tsgen.config import TENANT_TAG_KEY, Config, format_duration
from tsgen.generator import Generator, RunResult
from tsgen.sequences import (
    ConstantStringSequence,
    CounterByteSequence,
    FloatRandomValuesSequence,
    IntegerConstantValuesSequence,
    TagsValuesSequence,
)
from tsgen.sequences.base import Sequence as TagSequence
from tsgen.sequences.base import to_nanos
from tsgen.series import SeriesGenerator, tenant_measurement
from tsgen.storage.catalog import SERIES_DIR, SeriesCatalog
from tsgen.storage.meta import Database, ShardGroupInfo, static_shard_groups

DEFAULT_MEASUREMENT = b"m0"
DEFAULT_FIELD = "v0"
DEFAULT_GEN_SHARDS_SEED = 123

# Value of the leading TENANT_TAG_KEY tag in multi-tenant series.
TENANT_TAG_VALUE = "m0"


class RunPlan(BaseModel):
    """What a run will generate.

    Attributes:
        data_path: Root of the data directory
        meta_path: Metadata directory (None when no metadata is written)
        concurrency: Shards written in parallel
        tag_cardinalities: Cardinality of each tag dimension
        points_per_series: Points per series per shard
        fields: Fields per point
        shard_count: Number of shards
        database: Database name
        rp: Retention policy name
        shard_duration: Time covered by each shard
        build_tsi: Whether a per-shard index is built
        tenant: ``org+bucket`` for multi-tenant runs
        start_time: Start of the first shard
        end_time: End of the last shard
    """

    model_config = ConfigDict(frozen=True)

    data_path: str
    meta_path: str | None = None
    concurrency: int
    tag_cardinalities: list[int]
    points_per_series: int
    fields: int = 1
    shard_count: int
    database: str
    rp: str
    shard_duration: timedelta
    build_tsi: bool = False
    tenant: str | None = None
    start_time: datetime
    end_time: datetime

    @property
    def series_per_shard(self) -> int:
        """Distinct series keys written to each shard."""
        return math.prod(self.tag_cardinalities)

    @property
    def points_per_shard(self) -> int:
        return self.series_per_shard * self.fields * self.points_per_series

    @property
    def total_points(self) -> int:
        return self.points_per_shard * self.shard_count

    def rows(self) -> list[tuple[str, str]]:
        """Label/value pairs for the printed summary, in display order."""
        rows = [("Data Path", self.data_path)]
        if self.meta_path is not None:
            rows.append(("Meta Path", self.meta_path))
        rows += [
            ("Concurrency", f"{self.concurrency:,}"),
            ("Tag cardinalities", str(self.tag_cardinalities)),
            ("Points per series per shard", f"{self.points_per_series:,}"),
            ("Fields per point", f"{self.fields:,}"),
            ("Total points per shard", f"{self.points_per_shard:,}"),
            ("Total series", f"{self.series_per_shard:,}"),
            ("Total points", f"{self.total_points:,}"),
            ("Shard Count", f"{self.shard_count:,}"),
        ]
        if self.tenant is not None:
            rows.append(("Tenant+Bucket", self.tenant))
        rows += [
            (
                "Database",
                f"{self.database}/{self.rp} (Shard duration: {format_duration(self.shard_duration)})",
            ),
            ("TSI", str(self.build_tsi).lower()),
            ("Start time", self.start_time.isoformat()),
            ("End time", self.end_time.isoformat()),
        ]
        return rows


def plan_from_config(config: Config, *, tenant: str | None = None) -> RunPlan:
    """Build the run summary for a validated configuration."""
    db = config.db
    g = config.generator
    assert db.start_time is not None
    return RunPlan(
        data_path=db.data_path,
        meta_path=db.meta_path,
        concurrency=g.concurrency,
        tag_cardinalities=g.cardinalities,
        points_per_series=g.points_per_series,
        fields=g.fields,
        shard_count=db.shard_count,
        database=db.database,
        rp=db.rp,
        shard_duration=db.shard_duration,
        build_tsi=g.build_tsi,
        tenant=tenant,
        start_time=db.start_time,
        end_time=db.end_time,
    )


def tag_sequence(
    names: Sequence[str],
    cardinalities: Sequence[int],
    *,
    tenant: bool = False,
) -> TagsValuesSequence:
    """Build a fresh tag enumerator.

    Args:
        names: Tag key of each dimension
        cardinalities: Cardinality of each dimension
        tenant: Prepend the constant ``_m=m0`` dimension

    Returns:
        TagsValuesSequence over the requested dimensions
    """
    keys = list(names)
    seqs: list[TagSequence] = [CounterByteSequence(c) for c in cardinalities]
    if tenant:
        keys.insert(0, TENANT_TAG_KEY)
        seqs.insert(0, ConstantStringSequence(TENANT_TAG_VALUE))
    return TagsValuesSequence(keys, seqs)


def _point_delta(duration: timedelta, points: int) -> int:
    return to_nanos(duration) // points


def gen_shards_generators(
    config: Config,
    groups: Sequence[ShardGroupInfo],
) -> list[list[SeriesGenerator]]:
    """One float random series generator per field for every shard.

    Field ``f`` is named ``v{f}`` and draws values from [0, 10*(f+1)). Every
    value sequence gets its own seed drawn from the configured seed
    (default 123), so a run is reproducible.
    """
    g = config.generator
    seed = g.seed if g.seed is not None else DEFAULT_GEN_SHARDS_SEED
    seeds = random.Random(seed)  # noqa: S311 - not used for security
    delta = _point_delta(config.db.shard_duration, g.points_per_series)

    gens: list[list[SeriesGenerator]] = []
    for sgi in groups:
        shard: list[SeriesGenerator] = []
        for f in range(g.fields):
            values = FloatRandomValuesSequence(
                g.points_per_series,
                sgi.start_time,
                delta,
                float(10 * (f + 1)),
                seed=seeds.getrandbits(64),
            )
            tags = tag_sequence(g.tag_names, g.cardinalities)
            shard.append(SeriesGenerator(DEFAULT_MEASUREMENT, f"v{f}", values, tags))
        gens.append(shard)
    return gens


def oss_generators(
    config: Config,
    groups: Sequence[ShardGroupInfo],
    *,
    org_id: str | None = None,
    bucket_id: str | None = None,
) -> list[SeriesGenerator]:
    """One integer constant (value 1) series generator per shard.

    With org_id set, the measurement is ``org\\x00\\x00bucket`` and every
    series carries the ``_m=m0`` tag ahead of the generated dimensions.
    """
    g = config.generator
    delta = _point_delta(config.db.shard_duration, g.points_per_series)
    tenant = org_id is not None

    gens: list[SeriesGenerator] = []
    for sgi in groups:
        name = (
            tenant_measurement(org_id, bucket_id or config.db.database)
            if org_id is not None
            else DEFAULT_MEASUREMENT
        )
        values = IntegerConstantValuesSequence(g.points_per_series, sgi.start_time, delta, 1)
        tags = tag_sequence(g.tag_names, g.cardinalities, tenant=tenant)
        gens.append(SeriesGenerator(name, DEFAULT_FIELD, values, tags))
    return gens


def cloud_generators(
    config: Config,
    groups: Sequence[ShardGroupInfo],
    *,
    org_id: str,
    bucket_id: str,
) -> list[SeriesGenerator]:
    """Multi-tenant generators whose points span the configured start/end time.

    The shard groups are unbounded, so timestamps start at the configured
    start time rather than the group's.
    """
    g = config.generator
    db = config.db
    assert db.start_time is not None
    delta = _point_delta(db.time_span, g.points_per_series)

    gens: list[SeriesGenerator] = []
    for _ in groups:
        values = IntegerConstantValuesSequence(g.points_per_series, db.start_time, delta, 1)
        tags = tag_sequence(g.tag_names, g.cardinalities, tenant=True)
        gens.append(
            SeriesGenerator(tenant_measurement(org_id, bucket_id), DEFAULT_FIELD, values, tags)
        )
    return gens


def create_database(config: Config) -> Database:
    """Drop and recreate the configured database with its shard groups.

    Returns:
        The created Database; its groups and shard_path drive the run
    """
    db = config.db
    assert db.start_time is not None
    database = Database(
        data_path=db.data_path,
        meta_path=db.meta_path,
        database=db.database,
        rp=db.rp,
        start_time=db.start_time,
        shard_count=db.shard_count,
        shard_duration=db.shard_duration,
    )
    database.create()
    return database


def prepare_static_layout(
    data_path: str | Path,
    database: str = "db",
    rp: str = "rp",
) -> tuple[Path, list[ShardGroupInfo]]:
    """Recreate ``<data_path>/<database>`` for the single static shard group.

    Returns:
        (shard_path, groups)
    """
    db_path = Path(data_path) / database
    if db_path.exists():
        shutil.rmtree(db_path)
    shard_path = db_path / rp
    groups = static_shard_groups()
    for sgi in groups:
        (shard_path / str(sgi.id)).mkdir(parents=True, exist_ok=True)
    return shard_path, groups


def execute(
    config: Config,
    shard_path: Path,
    groups: Sequence[ShardGroupInfo],
    gens: Sequence[SeriesGenerator | Sequence[SeriesGenerator]],
) -> RunResult:
    """Write every shard and compact the series catalog.

    The catalog lives in ``<data_path>/<database>/_series``.

    Raises:
        ErrorList: If any shard or catalog partition failed
    """
    g = config.generator
    generator = Generator(g.concurrency, build_tsi=g.build_tsi)
    catalog_path = Path(config.db.data_path) / config.db.database / SERIES_DIR
    with SeriesCatalog(catalog_path) as catalog:
        return generator.run(config.db.database, shard_path, groups, gens, catalog)
