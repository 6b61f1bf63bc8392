"""Base sequence protocols and time helpers.

This module defines the two restartable producer contracts every
generator is built from:
- Sequence: yields one scalar (a tag value) per step
- ValuesSequence: yields one timestamped block of values per step

Both follow the same lifecycle: construct once with fixed parameters,
drain with repeated next() calls, then reset() to replay for the next series.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pyarrow as pa

# Maximum number of points carried by a single block passed to a shard writer.
MAX_POINTS_PER_BLOCK = 1000

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

BLOCK_TIME_COLUMN = "time"
BLOCK_VALUE_COLUMN = "value"

INTEGER_BLOCK_SCHEMA = pa.schema(
    [
        pa.field(BLOCK_TIME_COLUMN, pa.int64(), nullable=False),
        pa.field(BLOCK_VALUE_COLUMN, pa.int64(), nullable=False),
    ]
)

FLOAT_BLOCK_SCHEMA = pa.schema(
    [
        pa.field(BLOCK_TIME_COLUMN, pa.int64(), nullable=False),
        pa.field(BLOCK_VALUE_COLUMN, pa.float64(), nullable=False),
    ]
)


def to_unix_nanos(value: datetime | int) -> int:
    """Convert a datetime to Unix nanoseconds.

    Naive datetimes are treated as UTC. Integers are returned unchanged.

    Args:
        value: Datetime or nanosecond timestamp

    Returns:
        Nanoseconds since the Unix epoch
    """
    if isinstance(value, int):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(microseconds=1) * 1000


def to_nanos(value: timedelta | int) -> int:
    """Convert a duration to nanoseconds (integers are returned unchanged)."""
    if isinstance(value, int):
        return value
    return value // timedelta(microseconds=1) * 1000


class Sequence(ABC):
    """A restartable, finite producer of scalar values.

    next() advances and returns False exactly once all values for the
    current pass have been produced (and keeps returning False until
    reset()). value() returns the current scalar.

    Example:
        >>> seq = CounterByteSequence(3)
        >>> values = []
        >>> while seq.next():
        ...     values.append(seq.value())
        >>> values
        ['0', '1', '2']
    """

    @property
    @abstractmethod
    def count(self) -> int:  # pragma: no cover - abstract method
        """Number of values produced per pass (the cardinality)."""
        ...

    @abstractmethod
    def reset(self) -> None:  # pragma: no cover - abstract method
        """Rewind to the initial state."""
        ...

    @abstractmethod
    def next(self) -> bool:  # pragma: no cover - abstract method
        """Advance to the next value.

        Returns:
            True if a value is available, False once exhausted
        """
        ...

    @abstractmethod
    def value(self) -> str:  # pragma: no cover - abstract method
        """Return the current value."""
        ...


class ValuesSequence(ABC):
    """A restartable producer of time-ordered value blocks for one series.

    Each next() produces a block of at most MAX_POINTS_PER_BLOCK points;
    values() returns it as a pyarrow RecordBatch with ``time`` and
    ``value`` columns.
    """

    @abstractmethod
    def reset(self) -> None:  # pragma: no cover - abstract method
        """Rewind to the first block."""
        ...

    @abstractmethod
    def next(self) -> bool:  # pragma: no cover - abstract method
        """Produce the next block.

        Returns:
            True if a block is available, False once exhausted
        """
        ...

    @abstractmethod
    def values(self) -> pa.RecordBatch:  # pragma: no cover - abstract method
        """Return the current block."""
        ...

    def blocks(self) -> Iterator[pa.RecordBatch]:
        """Drain the remaining blocks of the current pass.

        Yields:
            Each block in time order
        """
        while self.next():
            yield self.values()
