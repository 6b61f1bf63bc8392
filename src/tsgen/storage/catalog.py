"""Shared series catalog.

The catalog assigns an ID to every distinct series key across all shards of
a database. Keys are spread over PARTITION_N partitions by a stable hash;
each partition guards its state with its own lock so registrations coming
from many shard tasks at once never interleave within a partition.

New entries are appended to a per-partition log (JSON lines). Compaction
rewrites the deduplicated entries, sorted by key, to ``index.parquet``
and truncates the log.
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import structlog

logger = structlog.get_logger(__name__)

PARTITION_N = 8
SERIES_DIR = "_series"
LOG_FILENAME = "series.log"
INDEX_FILENAME = "index.parquet"

CATALOG_SCHEMA = pa.schema(
    [
        pa.field("id", pa.uint64(), nullable=False),
        pa.field("key", pa.binary(), nullable=False),
        pa.field("name", pa.binary(), nullable=False),
        pa.field("tags", pa.map_(pa.string(), pa.string()), nullable=False),
    ]
)


def partition_id_for(key: bytes) -> int:
    """Stable partition assignment for a series key."""
    digest = hashlib.blake2b(key, digest_size=8).digest()
    return int.from_bytes(digest, "big") % PARTITION_N


class _Entry:
    __slots__ = ("id", "name", "tags")

    def __init__(self, series_id: int, name: bytes, tags: dict[str, str]) -> None:
        self.id = series_id
        self.name = name
        self.tags = tags


class SeriesPartition:
    """One partition of the series catalog.

    Attributes:
        id: Partition number in [0, PARTITION_N)
        path: Partition directory
    """

    def __init__(self, partition_id: int, path: Path) -> None:
        self.id = partition_id
        self.path = path
        self._lock = threading.Lock()
        self._entries: dict[bytes, _Entry] = {}
        self._seq = 0
        self._log_file = path / LOG_FILENAME

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def open(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        index = self.path / INDEX_FILENAME
        if index.exists():
            for row in pq.read_table(str(index)).to_pylist():
                self._add(row["key"], row["name"], dict(row["tags"]), row["id"])
        if self._log_file.exists():
            with self._log_file.open(encoding="utf-8") as fh:
                for line in fh:
                    rec = json.loads(line)
                    self._add(
                        bytes.fromhex(rec["key"]),
                        bytes.fromhex(rec["name"]),
                        rec["tags"],
                        rec["id"],
                    )

    def _add(self, key: bytes, name: bytes, tags: dict[str, str], series_id: int) -> None:
        self._entries[key] = _Entry(series_id, name, tags)
        self._seq = max(self._seq, (series_id - self.id - 1) // PARTITION_N + 1)

    def _next_id(self) -> int:
        series_id = self._seq * PARTITION_N + self.id + 1
        self._seq += 1
        return series_id

    def create_series_if_not_exists(
        self,
        keys: Sequence[bytes],
        names: Sequence[bytes],
        tag_sets: Sequence[Mapping[str, str]],
    ) -> list[int]:
        """Register keys owned by this partition; returns their series IDs."""
        ids: list[int] = []
        with self._lock:
            new_lines: list[str] = []
            for key, name, tags in zip(keys, names, tag_sets, strict=True):
                entry = self._entries.get(key)
                if entry is None:
                    entry = _Entry(self._next_id(), name, dict(tags))
                    self._entries[key] = entry
                    new_lines.append(
                        json.dumps(
                            {
                                "id": entry.id,
                                "key": key.hex(),
                                "name": name.hex(),
                                "tags": entry.tags,
                            }
                        )
                    )
                ids.append(entry.id)

            if new_lines:
                with self._log_file.open("a", encoding="utf-8") as fh:
                    fh.write("\n".join(new_lines) + "\n")
        return ids

    def compact(self) -> int:
        """Rewrite the partition as a sorted, deduplicated index file.

        Returns:
            Number of series in the compacted index
        """
        with self._lock:
            keys = sorted(self._entries)
            table = pa.table(
                {
                    "id": [self._entries[k].id for k in keys],
                    "key": keys,
                    "name": [self._entries[k].name for k in keys],
                    "tags": [list(self._entries[k].tags.items()) for k in keys],
                },
                schema=CATALOG_SCHEMA,
            )
            tmp = self.path / f"{INDEX_FILENAME}.tmp"
            pq.write_table(table, str(tmp))
            tmp.replace(self.path / INDEX_FILENAME)
            self._log_file.unlink(missing_ok=True)
            return len(keys)


class SeriesCatalog:
    """Database-wide series catalog shared by every shard task.

    Example:
        >>> catalog = SeriesCatalog("/data/db/_series")
        >>> catalog.open()
        >>> catalog.create_series_list_if_not_exists(
        ...     [b"m0,tag0=0"], [b"m0"], [{"tag0": "0"}]
        ... )
        [1]
        >>> for p in catalog.partitions:
        ...     p.compact()
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.partitions = [
            SeriesPartition(i, self.path / f"{i:02x}") for i in range(PARTITION_N)
        ]

    def open(self) -> None:
        for p in self.partitions:
            p.open()
        logger.debug("series_catalog_opened", path=str(self.path))

    def close(self) -> None:
        logger.debug("series_catalog_closed", path=str(self.path), series=self.series_n())

    def series_n(self) -> int:
        return sum(len(p) for p in self.partitions)

    def create_series_list_if_not_exists(
        self,
        keys: Sequence[bytes],
        names: Sequence[bytes],
        tag_sets: Sequence[Mapping[str, str]],
    ) -> list[int]:
        """Register a batch of series, returning one ID per key (in order).

        Safe for concurrent callers. Keys already present keep their ID.

        Raises:
            ValueError: If the three lists differ in length
        """
        if not (len(keys) == len(names) == len(tag_sets)):
            msg = (
                f"mismatched series batch: {len(keys)} keys, "
                f"{len(names)} names, {len(tag_sets)} tag sets"
            )
            raise ValueError(msg)

        by_partition: dict[int, list[int]] = {}
        for i, key in enumerate(keys):
            by_partition.setdefault(partition_id_for(key), []).append(i)

        ids = [0] * len(keys)
        for pid, idx in by_partition.items():
            assigned = self.partitions[pid].create_series_if_not_exists(
                [keys[i] for i in idx],
                [names[i] for i in idx],
                [tag_sets[i] for i in idx],
            )
            for i, series_id in zip(idx, assigned, strict=True):
                ids[i] = series_id
        return ids

    def __enter__(self) -> SeriesCatalog:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
