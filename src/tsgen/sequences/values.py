"""Value block generators.

Constant sequences are fully deterministic: reset() replays the exact same
timestamps and values. Random sequences own a private random.Random; reset()
rewinds the timestamps but not the generator, so each series gets fresh
values while a fixed seed still reproduces the whole stream.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta

import pyarrow as pa

from tsgen.sequences.base import (
    FLOAT_BLOCK_SCHEMA,
    INTEGER_BLOCK_SCHEMA,
    MAX_POINTS_PER_BLOCK,
    ValuesSequence,
    to_nanos,
    to_unix_nanos,
)


class _BlockValuesSequence(ValuesSequence):
    """Shared timing and block splitting for all value sequences."""

    schema: pa.Schema = INTEGER_BLOCK_SCHEMA

    def __init__(
        self,
        count: int,
        start: datetime | int,
        delta: timedelta | int,
        *,
        max_block_size: int = MAX_POINTS_PER_BLOCK,
    ) -> None:
        if count < 0:
            msg = f"count must be >= 0, got {count}"
            raise ValueError(msg)
        if max_block_size < 1:
            msg = f"max_block_size must be >= 1, got {max_block_size}"
            raise ValueError(msg)

        self.count = count
        self.start = to_unix_nanos(start)
        self.delta = to_nanos(delta)
        self.max_block_size = max_block_size

        self._remaining = count
        self._t = self.start
        self._block = pa.RecordBatch.from_pylist([], schema=self.schema)
        self.reset()

    def reset(self) -> None:
        self._remaining = self.count
        self._t = self.start

    def next(self) -> bool:
        if self._remaining == 0:
            return False

        c = min(self._remaining, self.max_block_size)
        self._remaining -= c

        times = [self._t + i * self.delta for i in range(c)]
        self._t += c * self.delta

        self._block = pa.RecordBatch.from_arrays(
            [pa.array(times, type=pa.int64()), self._values(c)],
            schema=self.schema,
        )
        return True

    def values(self) -> pa.RecordBatch:
        return self._block

    def _values(self, n: int) -> pa.Array:  # pragma: no cover - abstract method
        raise NotImplementedError


class IntegerConstantValuesSequence(_BlockValuesSequence):
    """Integer points that all carry the same value.

    Example:
        >>> seq = IntegerConstantValuesSequence(2500, 0, 10, 1)
        >>> [block.num_rows for block in seq.blocks()]
        [1000, 1000, 500]
    """

    schema = INTEGER_BLOCK_SCHEMA

    def __init__(
        self,
        count: int,
        start: datetime | int,
        delta: timedelta | int,
        value: int,
        *,
        max_block_size: int = MAX_POINTS_PER_BLOCK,
    ) -> None:
        self.value = value
        super().__init__(count, start, delta, max_block_size=max_block_size)

    def _values(self, n: int) -> pa.Array:
        return pa.array([self.value] * n, type=pa.int64())


class FloatConstantValuesSequence(_BlockValuesSequence):
    """Float points that all carry the same value."""

    schema = FLOAT_BLOCK_SCHEMA

    def __init__(
        self,
        count: int,
        start: datetime | int,
        delta: timedelta | int,
        value: float,
        *,
        max_block_size: int = MAX_POINTS_PER_BLOCK,
    ) -> None:
        self.value = value
        super().__init__(count, start, delta, max_block_size=max_block_size)

    def _values(self, n: int) -> pa.Array:
        return pa.array([self.value] * n, type=pa.float64())


class IntegerRandomValuesSequence(_BlockValuesSequence):
    """Integer points drawn uniformly from [0, max_value)."""

    schema = INTEGER_BLOCK_SCHEMA

    def __init__(
        self,
        count: int,
        start: datetime | int,
        delta: timedelta | int,
        max_value: int,
        *,
        seed: int | None = None,
        max_block_size: int = MAX_POINTS_PER_BLOCK,
    ) -> None:
        if max_value < 1:
            msg = f"max_value must be >= 1, got {max_value}"
            raise ValueError(msg)
        self.max_value = max_value
        self.seed = seed
        self._rng = random.Random(seed)  # noqa: S311 - not used for security
        super().__init__(count, start, delta, max_block_size=max_block_size)

    def _values(self, n: int) -> pa.Array:
        return pa.array([self._rng.randrange(self.max_value) for _ in range(n)], type=pa.int64())


class FloatRandomValuesSequence(_BlockValuesSequence):
    """Float points drawn uniformly from [0, scale)."""

    schema = FLOAT_BLOCK_SCHEMA

    def __init__(
        self,
        count: int,
        start: datetime | int,
        delta: timedelta | int,
        scale: float,
        *,
        seed: int | None = None,
        max_block_size: int = MAX_POINTS_PER_BLOCK,
    ) -> None:
        self.scale = scale
        self.seed = seed
        self._rng = random.Random(seed)  # noqa: S311 - not used for security
        super().__init__(count, start, delta, max_block_size=max_block_size)

    def _values(self, n: int) -> pa.Array:
        return pa.array([self._rng.random() * self.scale for _ in range(n)], type=pa.float64())
