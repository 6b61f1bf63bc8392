"""Generation orchestrator.

Generator drives every shard's series generators through a shard writer
and an index, then compacts the shared series catalog:

Phase 1 (write): one task per shard group on a pool of ``concurrency``
workers. Series registrations are batched (``batch_size`` per call) and
value blocks are forwarded to the shard's writer in time order. A failing
shard is recorded and does not stop its siblings.

Phase 2 (compact): starts only after every phase 1 task has finished,
then compacts each catalog partition on a fresh pool of the same size.

Errors from both phases are raised together as one ErrorList once
phase 2 has completed.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Protocol

import pyarrow as pa
from pydantic import BaseModel, ConfigDict, Field

from tsgen.errors import ErrorList, PartitionCompactionError, ShardWriteError
from tsgen.observability import (
    get_logger,
    log_shard_written,
    partition_operation,
    record_shard_result,
    shard_operation,
)
from tsgen.series import SeriesGenerator
from tsgen.storage.catalog import SeriesCatalog
from tsgen.storage.index import INDEX_DIR, ShardIndex
from tsgen.storage.meta import ShardGroupInfo
from tsgen.storage.shard import ShardWriter

# Number of series registered with the index per call.
DEFAULT_BATCH_SIZE = 1000


class BlockWriter(Protocol):
    """Write path for one shard."""

    @property
    def err(self) -> Exception | None: ...

    def write(self, key: bytes, block: pa.RecordBatch) -> None: ...

    def close(self) -> None: ...


class SeriesRegistry(Protocol):
    """Anything that accepts batches of series registrations."""

    def create_series_list_if_not_exists(
        self,
        keys: Sequence[bytes],
        names: Sequence[bytes],
        tag_sets: Sequence[Mapping[str, str]],
    ) -> Any: ...


WriterFactory = Callable[[Path, int], BlockWriter]
IndexFactory = Callable[[Path, SeriesCatalog], ShardIndex]


def default_writer_factory(shard_path: Path, shard_id: int) -> BlockWriter:
    return ShardWriter(shard_path, shard_id)


def default_index_factory(path: Path, catalog: SeriesCatalog) -> ShardIndex:
    return ShardIndex(path, catalog)


class ShardResult(BaseModel):
    """Outcome of writing one shard.

    Attributes:
        shard_id: Shard group ID
        series_written: Series generated (counted once per field)
        points_written: Points forwarded to the shard writer
    """

    model_config = ConfigDict(frozen=True)

    shard_id: int
    series_written: int
    points_written: int


class RunResult(BaseModel):
    """Outcome of a successful run.

    Attributes:
        shards: Per-shard results, in shard group order
        partitions_compacted: Catalog partitions compacted in phase 2
        elapsed_seconds: Wall time for both phases
    """

    model_config = ConfigDict(frozen=True)

    shards: list[ShardResult] = Field(default_factory=list)
    partitions_compacted: int = 0
    elapsed_seconds: float = 0.0

    @property
    def series_written(self) -> int:
        return sum(s.series_written for s in self.shards)

    @property
    def points_written(self) -> int:
        return sum(s.points_written for s in self.shards)


class Generator:
    """Two-phase, bounded-concurrency shard generator.

    Attributes:
        concurrency: Maximum number of shards (or partitions) processed at once
        build_tsi: Build a per-shard inverted index in addition to the catalog
        batch_size: Series registrations per index call

    Example:
        >>> g = Generator(concurrency=4)
        >>> with SeriesCatalog(db_path / "_series") as catalog:
        ...     result = g.run("db", shard_path, groups, gens, catalog)
        >>> result.points_written
        120000
    """

    def __init__(
        self,
        concurrency: int = 1,
        *,
        build_tsi: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        writer_factory: WriterFactory | None = None,
        index_factory: IndexFactory | None = None,
    ) -> None:
        if concurrency < 1:
            msg = f"concurrency must be >= 1, got {concurrency}"
            raise ValueError(msg)
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise ValueError(msg)

        self.concurrency = concurrency
        self.build_tsi = build_tsi
        self.batch_size = batch_size
        self._writer_factory = writer_factory or default_writer_factory
        self._index_factory = index_factory or default_index_factory
        self._log = get_logger()

    def run(
        self,
        database: str,
        shard_path: str | Path,
        groups: Sequence[ShardGroupInfo],
        gens: Sequence[SeriesGenerator | Sequence[SeriesGenerator]],
        catalog: SeriesCatalog,
    ) -> RunResult:
        """Write every shard, then compact the catalog.

        Args:
            database: Database name (for logging)
            shard_path: Directory containing one sub-directory per shard
            groups: Shard groups to write
            gens: Series generators for each shard group (same order as groups)
            catalog: Shared series catalog (already open)

        Returns:
            RunResult with per-shard counts

        Raises:
            ErrorList: If any shard or partition failed
        """
        if len(groups) != len(gens):
            msg = f"got {len(gens)} generator sets for {len(groups)} shard groups"
            raise ValueError(msg)

        start = time.perf_counter()
        shard_path = Path(shard_path)
        log = self._log.bind(database=database, concurrency=self.concurrency)
        log.info("generation_started", shards=len(groups), tsi=self.build_tsi)

        results, errors = self._write_shards(database, shard_path, groups, gens, catalog)
        compacted, compact_errors = self._compact_partitions(database, catalog)
        errors.extend(compact_errors)

        elapsed = time.perf_counter() - start
        err = ErrorList.from_errors(errors)
        if err is not None:
            log.error("generation_failed", errors=len(err), elapsed_seconds=round(elapsed, 3))
            raise err

        result = RunResult(
            shards=results,
            partitions_compacted=compacted,
            elapsed_seconds=elapsed,
        )
        log.info(
            "generation_completed",
            series=result.series_written,
            points=result.points_written,
            elapsed_seconds=round(elapsed, 3),
        )
        return result

    def _write_shards(
        self,
        database: str,
        shard_path: Path,
        groups: Sequence[ShardGroupInfo],
        gens: Sequence[SeriesGenerator | Sequence[SeriesGenerator]],
        catalog: SeriesCatalog,
    ) -> tuple[list[ShardResult], list[Exception]]:
        futures: list[tuple[ShardGroupInfo, Future[ShardResult]]] = []
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="tsgen-shard"
        ) as pool:
            for sgi, shard_gens in zip(groups, gens, strict=True):
                if isinstance(shard_gens, SeriesGenerator):
                    shard_gens = [shard_gens]
                fut = pool.submit(
                    self._write_shard, database, shard_path, sgi, list(shard_gens), catalog
                )
                futures.append((sgi, fut))
            # every shard task must finish before compaction starts
            wait([f for _, f in futures])

        results: list[ShardResult] = []
        errors: list[Exception] = []
        for sgi, fut in futures:
            exc = fut.exception()
            if exc is None:
                results.append(fut.result())
            elif isinstance(exc, ShardWriteError):
                errors.append(exc)
            else:
                errors.append(ShardWriteError(sgi.id, exc))
        return results, errors

    def _write_shard(
        self,
        database: str,
        shard_path: Path,
        sgi: ShardGroupInfo,
        gens: list[SeriesGenerator],
        catalog: SeriesCatalog,
    ) -> ShardResult:
        with shard_operation(
            "write",
            shard_id=sgi.id,
            database=database,
            start_time=sgi.start_time,
            end_time=sgi.end_time,
            log_end=False,
        ) as s:
            index: ShardIndex | None = None
            try:
                registry: SeriesRegistry = catalog
                if self.build_tsi:
                    index = self._index_factory(shard_path / str(sgi.id) / INDEX_DIR, catalog)
                    index.open()
                    registry = index

                writer = self._writer_factory(shard_path, sgi.id)
                try:
                    series_n, points_n = self._write_series(sgi, writer, registry, gens)
                finally:
                    writer.close()
                if writer.err is not None:
                    raise writer.err

                if index is not None:
                    index.compact()
                    index.wait()
            finally:
                if index is not None:
                    index.close()
            record_shard_result(s, series=series_n, points=points_n)

        log_shard_written(sgi.id, series_n, points_n, database=database)
        return ShardResult(shard_id=sgi.id, series_written=series_n, points_written=points_n)

    def _write_series(
        self,
        sgi: ShardGroupInfo,
        writer: BlockWriter,
        registry: SeriesRegistry,
        gens: list[SeriesGenerator],
    ) -> tuple[int, int]:
        keys: list[bytes] = []
        names: list[bytes] = []
        tag_sets: list[dict[str, str]] = []
        series_n = 0
        points_n = 0

        def flush() -> None:
            nonlocal keys, names, tag_sets
            # the registry may keep the batch; start a new one
            registry.create_series_list_if_not_exists(keys, names, tag_sets)
            self._log.debug("index_batch_flushed", shard_id=sgi.id, series=len(keys))
            keys, names, tag_sets = [], [], []

        for gen in gens:
            while gen.next():
                keys.append(gen.series_key())
                names.append(gen.name)
                tag_sets.append(gen.tags())
                if len(keys) == self.batch_size:
                    flush()

                key = gen.key()
                for block in gen.values_generator().blocks():
                    writer.write(key, block)
                    points_n += block.num_rows

                if writer.err is not None:
                    raise writer.err
                series_n += 1

        if keys:
            flush()
        return series_n, points_n

    def _compact_partitions(
        self, database: str, catalog: SeriesCatalog
    ) -> tuple[int, list[Exception]]:
        partitions = list(catalog.partitions)
        futures: list[tuple[int, Future[int]]] = []
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="tsgen-compact"
        ) as pool:
            for p in partitions:
                futures.append((p.id, pool.submit(self._compact_partition, database, p)))
            wait([f for _, f in futures])

        compacted = 0
        errors: list[Exception] = []
        for partition_id, fut in futures:
            exc = fut.exception()
            if exc is None:
                compacted += 1
            else:
                errors.append(PartitionCompactionError(partition_id, exc))
        return compacted, errors

    def _compact_partition(self, database: str, partition: Any) -> int:
        with partition_operation("compact", partition_id=partition.id, database=database):
            return partition.compact()
