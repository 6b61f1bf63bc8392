"""tsgen - bulk time-series shard generator.

Generates synthetic time-series data directly into on-disk shards: every
combination of the configured tag dimensions becomes a series, each series
receives a fixed number of points per shard, and a shared series catalog is
compacted once every shard has been written.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
