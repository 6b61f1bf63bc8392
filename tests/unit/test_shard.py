"""Unit tests for the Parquet shard block writer."""

from __future__ import annotations

from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from tsgen.errors import BlockWriterError
from tsgen.sequences import FloatConstantValuesSequence, IntegerConstantValuesSequence
from tsgen.storage.shard import KEY_COLUMN, ShardWriter

pytestmark = pytest.mark.unit


def int_block(n: int, start: int = 0) -> pa.RecordBatch:
    seq = IntegerConstantValuesSequence(n, start, 1, 1)
    assert seq.next()
    return seq.values()


class TestShardWriter:
    """Tests for ShardWriter."""

    def test_writes_blocks_with_key(self, tmp_path: Path) -> None:
        with ShardWriter(tmp_path, 1) as w:
            w.write(b"m0,tag0=0#!~#v0", int_block(3))
            w.write(b"m0,tag0=1#!~#v0", int_block(2))

        assert w.err is None
        assert w.points_written == 5
        assert w.blocks_written == 2
        assert w.files == [tmp_path / "1" / "000000001-000000001.parquet"]

        table = pq.read_table(w.files[0])
        assert table.num_rows == 5
        assert table.column(KEY_COLUMN).to_pylist()[:3] == [b"m0,tag0=0#!~#v0"] * 3
        assert table.column("time").to_pylist() == [0, 1, 2, 0, 1]

    def test_one_file_per_value_type(self, tmp_path: Path) -> None:
        floats = FloatConstantValuesSequence(2, 0, 1, 0.5)
        assert floats.next()
        with ShardWriter(tmp_path, 1) as w:
            w.write(b"a", int_block(2))
            w.write(b"b", floats.values())
        assert len(w.files) == 2
        assert pq.read_table(w.files[1]).schema.field("value").type == pa.float64()

    def test_rolls_files(self, tmp_path: Path) -> None:
        with ShardWriter(tmp_path, 7, max_points_per_file=5) as w:
            for i in range(3):
                w.write(b"k", int_block(3, start=i * 3))
        assert [p.name for p in w.files] == [
            "000000001-000000001.parquet",
            "000000001-000000002.parquet",
            "000000001-000000003.parquet",
        ]
        assert sum(pq.read_table(p).num_rows for p in w.files) == 9

    def test_empty_block_is_ignored(self, tmp_path: Path) -> None:
        seq = IntegerConstantValuesSequence(0, 0, 1, 1)
        with ShardWriter(tmp_path, 1) as w:
            w.write(b"k", seq.values())
        assert w.files == []
        assert w.err is None

    def test_first_error_is_kept_and_later_writes_ignored(self, tmp_path: Path) -> None:
        bad = pa.RecordBatch.from_pydict({"time": pa.array([1], type=pa.int64())})
        with ShardWriter(tmp_path, 3) as w:
            w.write(b"k", int_block(2))
            w.write(b"k", bad)
            w.write(b"k", int_block(2, start=2))

        assert isinstance(w.err, BlockWriterError)
        assert "shard 3" in str(w.err)
        assert w.points_written == 2
        assert pq.read_table(w.files[0]).num_rows == 2

    def test_write_after_close(self, tmp_path: Path) -> None:
        w = ShardWriter(tmp_path, 1)
        w.close()
        w.write(b"k", int_block(1))
        assert isinstance(w.err, BlockWriterError)
        assert "write after close" in str(w.err)

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        w = ShardWriter(tmp_path, 1)
        w.write(b"k", int_block(1))
        w.close()
        w.close()
        assert w.err is None
