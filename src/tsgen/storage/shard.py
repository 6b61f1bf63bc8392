"""Shard block writer.

ShardWriter owns the open files of one shard and persists each value block
as a Parquet row group tagged with its composite series key. Blocks for the
same key must arrive in time order; keys arrive in generation order.

Files are named ``{generation:09d}-{sequence:09d}.parquet`` inside the shard
directory. Each value type gets its own file, and a file rolls over to the
next sequence number once it holds max_points_per_file points.
"""

from __future__ import annotations

from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import structlog

from tsgen.errors import BlockWriterError
from tsgen.sequences.base import BLOCK_TIME_COLUMN, BLOCK_VALUE_COLUMN

logger = structlog.get_logger(__name__)

SHARD_FILE_EXTENSION = "parquet"
KEY_COLUMN = "key"

DEFAULT_MAX_POINTS_PER_FILE = 10_000_000


def shard_file_schema(value_type: pa.DataType) -> pa.Schema:
    """Schema of a shard file holding values of value_type."""
    return pa.schema(
        [
            pa.field(KEY_COLUMN, pa.binary(), nullable=False),
            pa.field(BLOCK_TIME_COLUMN, pa.int64(), nullable=False),
            pa.field(BLOCK_VALUE_COLUMN, value_type, nullable=False),
        ]
    )


class _OpenFile:
    def __init__(self, path: Path, schema: pa.Schema) -> None:
        self.path = path
        self.writer = pq.ParquetWriter(str(path), schema, compression="zstd")
        self.points = 0


class ShardWriter:
    """Block writer for one shard.

    Errors do not raise from write(): the first failure is recorded,
    later writes are ignored, and the error is exposed through ``err``.
    close() finalizes every open file regardless of prior errors.

    Example:
        >>> with ShardWriter("/data/db/rp", shard_id=1) as w:
        ...     for block in values.blocks():
        ...         w.write(key, block)
        ...     if w.err:
        ...         raise w.err
    """

    def __init__(
        self,
        path: str | Path,
        shard_id: int,
        *,
        generation: int = 1,
        max_points_per_file: int = DEFAULT_MAX_POINTS_PER_FILE,
    ) -> None:
        """Initialize the writer.

        Args:
            path: Retention policy directory containing shard directories
            shard_id: Shard group ID; files go to ``path/shard_id``
            generation: Generation number embedded in file names
            max_points_per_file: Points after which a file is rolled
        """
        self.shard_id = shard_id
        self.dir = Path(path) / str(shard_id)
        self.generation = generation
        self.max_points_per_file = max_points_per_file

        self.points_written = 0
        self.blocks_written = 0
        self.files: list[Path] = []

        self._sequence = 0
        self._open: dict[pa.DataType, _OpenFile] = {}
        self._err: Exception | None = None
        self._closed = False
        self._log = logger.bind(shard_id=shard_id)

    @property
    def err(self) -> Exception | None:
        """First error encountered, if any."""
        return self._err

    def write(self, key: bytes, block: pa.RecordBatch) -> None:
        """Append one block of values for key.

        Args:
            key: Composite series key
            block: RecordBatch with ``time`` and ``value`` columns
        """
        if self._err is not None:
            return
        if self._closed:
            self._err = BlockWriterError(f"shard {self.shard_id}: write after close")
            return
        if block.num_rows == 0:
            return

        try:
            value_type = block.schema.field(BLOCK_VALUE_COLUMN).type
            f = self._file_for(value_type, block.num_rows)
            batch = pa.RecordBatch.from_arrays(
                [
                    pa.array([key] * block.num_rows, type=pa.binary()),
                    block.column(BLOCK_TIME_COLUMN),
                    block.column(BLOCK_VALUE_COLUMN),
                ],
                schema=f.writer.schema,
            )
            f.writer.write_batch(batch)
        except (OSError, pa.ArrowException, KeyError) as exc:
            self._err = BlockWriterError(f"shard {self.shard_id}: {exc}")
            self._log.error("block_write_failed", error=str(exc))
            return

        f.points += block.num_rows
        self.points_written += block.num_rows
        self.blocks_written += 1

    def _file_for(self, value_type: pa.DataType, n: int) -> _OpenFile:
        f = self._open.get(value_type)
        if f is not None and f.points > 0 and f.points + n > self.max_points_per_file:
            f.writer.close()
            f = None
        if f is None:
            self.dir.mkdir(parents=True, exist_ok=True)
            self._sequence += 1
            path = self.dir / (
                f"{self.generation:09d}-{self._sequence:09d}.{SHARD_FILE_EXTENSION}"
            )
            f = _OpenFile(path, shard_file_schema(value_type))
            self._open[value_type] = f
            self.files.append(path)
        return f

    def close(self) -> None:
        """Finalize all open files."""
        if self._closed:
            return
        self._closed = True
        for f in self._open.values():
            try:
                f.writer.close()
            except (OSError, pa.ArrowException) as exc:
                if self._err is None:
                    self._err = BlockWriterError(f"shard {self.shard_id}: {exc}")
        self._open.clear()
        self._log.debug(
            "shard_writer_closed",
            points=self.points_written,
            blocks=self.blocks_written,
            files=len(self.files),
        )

    def __enter__(self) -> ShardWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
