"""Metadata store for databases, retention policies and shard groups.

This module provides:
- ShardGroupInfo: identity and time window of one shard
- MetaStore: YAML-backed metadata persisted under the meta path
- Database: drops, recreates and lays out a database on disk
- static_shard_groups: single unbounded shard group for tenant-scoped loads
"""

from __future__ import annotations

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field

from tsgen.errors import TsgenError
from tsgen.sequences.base import EPOCH

logger = structlog.get_logger(__name__)

META_FILENAME = "meta.yaml"

# Largest representable time; used as the end of unbounded shard groups.
MAX_TIME = datetime(2262, 4, 11, 23, 47, 16, 854775, tzinfo=timezone.utc)


class ShardGroupInfo(BaseModel):
    """One shard's identity and time window [start_time, end_time).

    Attributes:
        id: Shard group ID (also the shard directory name)
        start_time: Inclusive start of the window
        end_time: Exclusive end of the window
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    start_time: datetime
    end_time: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start_time <= ts < self.end_time


class RetentionPolicyInfo(BaseModel):
    """Retention policy and its shard groups."""

    name: str
    shard_group_duration: timedelta
    shard_groups: list[ShardGroupInfo] = Field(default_factory=list)


class DatabaseInfo(BaseModel):
    """Database metadata."""

    name: str
    default_retention_policy: str
    retention_policies: dict[str, RetentionPolicyInfo] = Field(default_factory=dict)

    def retention_policy(self, name: str) -> RetentionPolicyInfo:
        try:
            return self.retention_policies[name]
        except KeyError:
            msg = f"retention policy not found: {self.name}.{name}"
            raise TsgenError(msg) from None


class MetaData(BaseModel):
    """Root of the persisted metadata document."""

    max_shard_group_id: int = 0
    databases: dict[str, DatabaseInfo] = Field(default_factory=dict)


def truncate_time(ts: datetime, duration: timedelta) -> datetime:
    """Round ts down to a multiple of duration since the Unix epoch (UTC)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return EPOCH + ((ts - EPOCH) // duration) * duration


class MetaStore:
    """YAML-backed metadata service.

    Not safe for concurrent use; metadata is only touched while preparing
    a run, before any shard is written.

    Example:
        >>> store = MetaStore("/tmp/meta")
        >>> store.open()
        >>> db = store.create_database_with_retention_policy("db", "rp", timedelta(hours=24))
        >>> sgi = store.create_shard_group("db", "rp", datetime(2024, 1, 1, tzinfo=timezone.utc))
        >>> store.close()
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: MetaData | None = None
        self._log = logger.bind(meta_path=str(self.path))

    @property
    def data(self) -> MetaData:
        if self._data is None:
            msg = "meta store is not open"
            raise TsgenError(msg)
        return self._data

    def open(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        meta_file = self.path / META_FILENAME
        if meta_file.exists():
            raw = yaml.safe_load(meta_file.read_text()) or {}
            self._data = MetaData.model_validate(raw)
        else:
            self._data = MetaData()
        self._log.debug("meta_opened", databases=list(self._data.databases))

    def close(self) -> None:
        if self._data is not None:
            self._save()
        self._data = None

    def _save(self) -> None:
        doc = self.data.model_dump(mode="json")
        (self.path / META_FILENAME).write_text(yaml.safe_dump(doc, sort_keys=False))

    def database(self, name: str) -> DatabaseInfo | None:
        return self.data.databases.get(name)

    def drop_database(self, name: str) -> None:
        if self.data.databases.pop(name, None) is not None:
            self._log.info("database_dropped", database=name)
            self._save()

    def create_database_with_retention_policy(
        self,
        name: str,
        rp: str,
        shard_group_duration: timedelta,
    ) -> DatabaseInfo:
        """Create a database whose default retention policy is rp.

        Raises:
            TsgenError: If the database already exists
        """
        if name in self.data.databases:
            msg = f"database already exists: {name}"
            raise TsgenError(msg)

        info = DatabaseInfo(
            name=name,
            default_retention_policy=rp,
            retention_policies={
                rp: RetentionPolicyInfo(name=rp, shard_group_duration=shard_group_duration)
            },
        )
        self.data.databases[name] = info
        self._save()
        self._log.info("database_created", database=name, rp=rp)
        return info

    def create_shard_group(self, database: str, rp: str, timestamp: datetime) -> ShardGroupInfo:
        """Create (or return the existing) shard group covering timestamp."""
        db = self.database(database)
        if db is None:
            msg = f"database not found: {database}"
            raise TsgenError(msg)
        policy = db.retention_policy(rp)

        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        for sgi in policy.shard_groups:
            if sgi.contains(timestamp):
                return sgi

        start = truncate_time(timestamp, policy.shard_group_duration)
        self.data.max_shard_group_id += 1
        sgi = ShardGroupInfo(
            id=self.data.max_shard_group_id,
            start_time=start,
            end_time=start + policy.shard_group_duration,
        )
        policy.shard_groups.append(sgi)
        policy.shard_groups.sort(key=lambda g: g.start_time)
        self._save()
        return sgi

    def shard_groups(self, database: str, rp: str) -> list[ShardGroupInfo]:
        db = self.database(database)
        if db is None:
            return []
        return list(db.retention_policy(rp).shard_groups)


class Database:
    """Lays out a database on disk: metadata, retention policy and shard directories.

    Attributes:
        info: Database metadata after create()
        shard_path: Directory holding one sub-directory per shard
        groups: Shard groups created, ordered by start time
    """

    def __init__(
        self,
        *,
        data_path: str | Path,
        meta_path: str | Path,
        database: str,
        rp: str,
        start_time: datetime,
        shard_count: int,
        shard_duration: timedelta,
    ) -> None:
        self.data_path = Path(data_path)
        self.meta_path = Path(meta_path)
        self.database = database
        self.rp = rp
        self.start_time = start_time
        self.shard_count = shard_count
        self.shard_duration = shard_duration

        self.info: DatabaseInfo | None = None
        self.shard_path = self.data_path / database / rp
        self.groups: list[ShardGroupInfo] = []

    @property
    def database_path(self) -> Path:
        return self.data_path / self.database

    def create(self) -> list[ShardGroupInfo]:
        """Drop and recreate the database, then create its shard groups.

        Returns:
            The shard groups, ordered by start time
        """
        store = MetaStore(self.meta_path)
        store.open()
        try:
            store.drop_database(self.database)
            if self.database_path.exists():
                shutil.rmtree(self.database_path)

            self.info = store.create_database_with_retention_policy(
                self.database, self.rp, self.shard_duration
            )
            self.shard_path = self.database_path / self.info.default_retention_policy

            ts = truncate_time(self.start_time, self.shard_duration)
            for _ in range(self.shard_count):
                sgi = store.create_shard_group(self.database, self.rp, ts)
                (self.shard_path / str(sgi.id)).mkdir(parents=True, exist_ok=True)
                ts += self.shard_duration

            self.groups = store.shard_groups(self.database, self.rp)
        finally:
            store.close()

        for sgi in self.groups:
            logger.debug(
                "shard_group_created",
                shard_id=sgi.id,
                start_time=sgi.start_time.isoformat(),
                end_time=sgi.end_time.isoformat(),
            )
        return self.groups


def static_shard_groups() -> list[ShardGroupInfo]:
    """Return the single shard group (ID 1) spanning all representable time."""
    return [ShardGroupInfo(id=1, start_time=EPOCH, end_time=MAX_TIME)]
