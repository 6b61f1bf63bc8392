"""Unit tests for the metadata store and database layout."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from tsgen.errors import TsgenError
from tsgen.sequences.base import EPOCH
from tsgen.storage.meta import (
    META_FILENAME,
    MAX_TIME,
    Database,
    MetaStore,
    ShardGroupInfo,
    static_shard_groups,
    truncate_time,
)

pytestmark = pytest.mark.unit

DAY = timedelta(hours=24)


class TestTruncateTime:
    """Tests for truncate_time."""

    def test_truncates_to_duration(self) -> None:
        ts = datetime(2024, 1, 1, 13, 45, tzinfo=timezone.utc)
        assert truncate_time(ts, timedelta(hours=1)) == datetime(2024, 1, 1, 13, tzinfo=timezone.utc)
        assert truncate_time(ts, DAY) == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_naive_is_utc(self) -> None:
        assert truncate_time(datetime(2024, 1, 1, 5), DAY) == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestShardGroupInfo:
    """Tests for ShardGroupInfo."""

    def test_contains_is_half_open(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        sgi = ShardGroupInfo(id=1, start_time=start, end_time=start + DAY)
        assert sgi.contains(start)
        assert not sgi.contains(start + DAY)

    def test_id_must_be_positive(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(ValueError):
            ShardGroupInfo(id=0, start_time=start, end_time=start + DAY)


class TestMetaStore:
    """Tests for MetaStore."""

    def test_create_database_and_shard_groups(self, tmp_path: Path) -> None:
        store = MetaStore(tmp_path)
        store.open()
        store.create_database_with_retention_policy("db", "rp", DAY)
        ts = datetime(2024, 1, 2, 6, tzinfo=timezone.utc)
        first = store.create_shard_group("db", "rp", ts)
        again = store.create_shard_group("db", "rp", ts + timedelta(hours=1))
        second = store.create_shard_group("db", "rp", ts - DAY)
        store.close()

        assert first == again
        assert first.id == 1
        assert second.id == 2
        assert first.start_time == datetime(2024, 1, 2, tzinfo=timezone.utc)

        store = MetaStore(tmp_path)
        store.open()
        groups = store.shard_groups("db", "rp")
        assert [g.id for g in groups] == [2, 1]

    def test_persists_yaml(self, tmp_path: Path) -> None:
        store = MetaStore(tmp_path)
        store.open()
        store.create_database_with_retention_policy("db", "rp", DAY)
        store.close()

        doc = yaml.safe_load((tmp_path / META_FILENAME).read_text())
        assert "db" in doc["databases"]
        assert doc["databases"]["db"]["default_retention_policy"] == "rp"

    def test_duplicate_database(self, tmp_path: Path) -> None:
        store = MetaStore(tmp_path)
        store.open()
        store.create_database_with_retention_policy("db", "rp", DAY)
        with pytest.raises(TsgenError, match="already exists"):
            store.create_database_with_retention_policy("db", "rp", DAY)

    def test_drop_database(self, tmp_path: Path) -> None:
        store = MetaStore(tmp_path)
        store.open()
        store.create_database_with_retention_policy("db", "rp", DAY)
        store.drop_database("db")
        assert store.database("db") is None

    def test_unknown_database(self, tmp_path: Path) -> None:
        store = MetaStore(tmp_path)
        store.open()
        with pytest.raises(TsgenError, match="database not found"):
            store.create_shard_group("nope", "rp", datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_not_open(self, tmp_path: Path) -> None:
        with pytest.raises(TsgenError, match="not open"):
            MetaStore(tmp_path).database("db")


class TestDatabase:
    """Tests for Database layout."""

    def make_db(self, tmp_path: Path, shard_count: int = 3) -> Database:
        return Database(
            data_path=tmp_path / "data",
            meta_path=tmp_path / "meta",
            database="db",
            rp="autogen",
            start_time=datetime(2024, 1, 1, 7, tzinfo=timezone.utc),
            shard_count=shard_count,
            shard_duration=DAY,
        )

    def test_create_lays_out_shards(self, tmp_path: Path) -> None:
        db = self.make_db(tmp_path)
        groups = db.create()

        assert [g.id for g in groups] == [1, 2, 3]
        assert groups[0].start_time == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert groups[2].end_time == datetime(2024, 1, 4, tzinfo=timezone.utc)
        assert db.shard_path == tmp_path / "data" / "db" / "autogen"
        for g in groups:
            assert (db.shard_path / str(g.id)).is_dir()

    def test_create_drops_existing(self, tmp_path: Path) -> None:
        self.make_db(tmp_path).create()
        stale = tmp_path / "data" / "db" / "autogen" / "1" / "stale.parquet"
        stale.write_text("x")

        groups = self.make_db(tmp_path, shard_count=2).create()
        assert not stale.exists()
        assert len(groups) == 2


def test_static_shard_groups() -> None:
    (sgi,) = static_shard_groups()
    assert sgi.id == 1
    assert sgi.start_time == EPOCH
    assert sgi.end_time == MAX_TIME
