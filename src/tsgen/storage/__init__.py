"""On-disk storage collaborators.

This module provides the stores a generation run writes into:
- MetaStore / Database: shard group metadata and directory layout
- ShardWriter: Parquet block writer for one shard
- SeriesCatalog: shared, partitioned series catalog
- ShardIndex: optional per-shard inverted index
"""

from __future__ import annotations

from tsgen.storage.catalog import SeriesCatalog
from tsgen.storage.index import ShardIndex
from tsgen.storage.meta import Database, MetaStore, ShardGroupInfo, static_shard_groups
from tsgen.storage.shard import ShardWriter

__all__ = [
    "Database",
    "MetaStore",
    "SeriesCatalog",
    "ShardGroupInfo",
    "ShardIndex",
    "ShardWriter",
    "static_shard_groups",
]
