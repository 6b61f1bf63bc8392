"""Per-shard inverted index.

ShardIndex is the optional alternative to registering series only in the
shared catalog: every batch is still registered in the catalog (to obtain
series IDs), and is also added to a shard-local inverted index mapping
measurement -> tag key -> tag value -> series IDs.

Compaction runs on a background thread; wait() blocks until it finishes
and re-raises any failure. The index is owned by a single shard task.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Mapping, Sequence
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import structlog

from tsgen.errors import TsgenError
from tsgen.storage.catalog import SeriesCatalog

logger = structlog.get_logger(__name__)

INDEX_DIR = "index"
POSTINGS_FILENAME = "postings.parquet"

POSTINGS_SCHEMA = pa.schema(
    [
        pa.field("name", pa.binary(), nullable=False),
        pa.field("tag_key", pa.string(), nullable=False),
        pa.field("tag_value", pa.string(), nullable=False),
        pa.field("series_ids", pa.list_(pa.uint64()), nullable=False),
    ]
)

_Postings = dict[bytes, dict[str, dict[str, set[int]]]]


class ShardIndex:
    """Inverted index for one shard.

    Example:
        >>> idx = ShardIndex("/data/db/rp/1/index", catalog)
        >>> idx.open()
        >>> idx.create_series_list_if_not_exists(keys, names, tags)
        >>> idx.compact()
        >>> idx.wait()
        >>> idx.close()
    """

    def __init__(self, path: str | Path, catalog: SeriesCatalog) -> None:
        self.path = Path(path)
        self.catalog = catalog
        self._postings: _Postings = defaultdict(lambda: defaultdict(lambda: defaultdict(set)))
        self._series: set[int] = set()
        self._compaction: threading.Thread | None = None
        self._compaction_err: BaseException | None = None
        self._opened = False

    @property
    def series_n(self) -> int:
        return len(self._series)

    def open(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self._opened = True

    def create_series_list_if_not_exists(
        self,
        keys: Sequence[bytes],
        names: Sequence[bytes],
        tag_sets: Sequence[Mapping[str, str]],
    ) -> list[int]:
        """Register a batch in the catalog and add it to this shard's postings."""
        if not self._opened:
            msg = f"index not open: {self.path}"
            raise TsgenError(msg)

        ids = self.catalog.create_series_list_if_not_exists(keys, names, tag_sets)
        for series_id, name, tags in zip(ids, names, tag_sets, strict=True):
            self._series.add(series_id)
            by_key = self._postings[name]
            for k, v in tags.items():
                by_key[k][v].add(series_id)
        return ids

    def compact(self) -> None:
        """Start a background compaction of the postings to disk."""
        if self._compaction is not None and self._compaction.is_alive():
            return
        self._compaction_err = None
        self._compaction = threading.Thread(
            target=self._run_compaction,
            name=f"compact-{self.path.parent.name}",
            daemon=True,
        )
        self._compaction.start()

    def _run_compaction(self) -> None:
        try:
            self._write_postings()
        except Exception as exc:  # noqa: BLE001 - surfaced by wait()
            self._compaction_err = exc

    def _write_postings(self) -> None:
        rows: dict[str, list[object]] = {"name": [], "tag_key": [], "tag_value": [], "series_ids": []}
        for name in sorted(self._postings):
            by_key = self._postings[name]
            for tag_key in sorted(by_key):
                by_value = by_key[tag_key]
                for tag_value in sorted(by_value):
                    rows["name"].append(name)
                    rows["tag_key"].append(tag_key)
                    rows["tag_value"].append(tag_value)
                    rows["series_ids"].append(sorted(by_value[tag_value]))

        table = pa.table(rows, schema=POSTINGS_SCHEMA)
        tmp = self.path / f"{POSTINGS_FILENAME}.tmp"
        pq.write_table(table, str(tmp))
        tmp.replace(self.path / POSTINGS_FILENAME)
        logger.debug("shard_index_compacted", path=str(self.path), postings=table.num_rows)

    def wait(self) -> None:
        """Block until any running compaction finishes.

        Raises:
            TsgenError: If the compaction failed
        """
        if self._compaction is not None:
            self._compaction.join()
            self._compaction = None
        if self._compaction_err is not None:
            err, self._compaction_err = self._compaction_err, None
            msg = f"index compaction failed: {err}"
            raise TsgenError(msg) from err

    def close(self) -> None:
        if self._compaction is not None:
            self._compaction.join()
            self._compaction = None
        self._opened = False
