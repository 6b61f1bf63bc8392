"""Tag value sequences and the tag cross-product enumerator.

TagsValuesSequence walks every combination of its dimensions in odometer
order: the last declared dimension varies fastest and carries leftward on
overflow. The walk is iterative, so dimension count never affects stack depth,
and only one value per dimension is held in memory at a time.
"""

from __future__ import annotations

import math

from tsgen.sequences.base import Sequence


def counter_width(count: int) -> int:
    """Number of decimal digits used to zero-pad values in [0, count).

    Args:
        count: Cardinality (>= 1)

    Returns:
        ceil(log10(count)), with a minimum of 1
    """
    if count <= 1:
        return 1
    return max(1, math.ceil(math.log10(count)))


class CounterByteSequence(Sequence):
    """Zero-padded decimal strings "0".."count-1".

    Example:
        >>> seq = CounterByteSequence(12)
        >>> seq.next(), seq.value()
        (True, '00')
    """

    def __init__(self, count: int) -> None:
        """Initialize the counter.

        Args:
            count: Cardinality; must be >= 1
        """
        if count < 1:
            msg = f"cardinality must be > 0, got {count}"
            raise ValueError(msg)
        self._count = count
        self._format = f"{{:0{counter_width(count)}d}}"
        self._i = -1
        self._value = ""

    @property
    def count(self) -> int:
        return self._count

    def reset(self) -> None:
        self._i = -1
        self._value = ""

    def next(self) -> bool:
        if self._i + 1 >= self._count:
            self._i = self._count
            return False
        self._i += 1
        self._value = self._format.format(self._i)
        return True

    def value(self) -> str:
        return self._value


class ConstantStringSequence(Sequence):
    """Yields one fixed string, once per pass."""

    def __init__(self, value: str) -> None:
        self._constant = value
        self._emitted = False

    @property
    def count(self) -> int:
        return 1

    def reset(self) -> None:
        self._emitted = False

    def next(self) -> bool:
        if self._emitted:
            return False
        self._emitted = True
        return True

    def value(self) -> str:
        return self._constant


class TagsValuesSequence:
    """Odometer over N keyed Sequences.

    Emits every combination of the dimension values exactly once, ordered
    lexicographically by (dim0, dim1, ..., dimN-1) with the last dimension
    varying fastest. With no dimensions, a single empty tag set is produced.

    Attributes:
        keys: Tag key of each dimension, in declaration order
        counts: Current odometer position of each dimension

    Example:
        >>> tags = TagsValuesSequence(
        ...     ["tag0", "tag1"], [CounterByteSequence(2), CounterByteSequence(3)]
        ... )
        >>> combos = []
        >>> while tags.next():
        ...     combos.append(tuple(tags.value().values()))
        >>> combos
        [('0', '0'), ('0', '1'), ('0', '2'), ('1', '0'), ('1', '1'), ('1', '2')]
    """

    def __init__(self, keys: list[str], sequences: list[Sequence]) -> None:
        """Initialize the enumerator.

        Args:
            keys: Tag key names, one per dimension
            sequences: Value sequence for each key

        Raises:
            ValueError: If the lists differ in length or keys repeat
        """
        if len(keys) != len(sequences):
            msg = f"got {len(keys)} tag keys for {len(sequences)} sequences"
            raise ValueError(msg)
        if len(set(keys)) != len(keys):
            msg = f"duplicate tag keys: {keys}"
            raise ValueError(msg)

        self.keys = list(keys)
        self._sequences = list(sequences)
        self.counts = [0] * len(keys)
        self._started = False
        self._done = False

    @property
    def count(self) -> int:
        """Total number of combinations (product of cardinalities)."""
        return math.prod(s.count for s in self._sequences)

    def reset(self) -> None:
        for s in self._sequences:
            s.reset()
        self.counts = [0] * len(self.keys)
        self._started = False
        self._done = False

    def next(self) -> bool:
        if self._done:
            return False

        if not self._started:
            self._started = True
            for s in self._sequences:
                if not s.next():
                    self._done = True
                    return False
            return True

        for i in range(len(self._sequences) - 1, -1, -1):
            s = self._sequences[i]
            if s.next():
                self.counts[i] += 1
                return True
            # carry into the dimension to the left
            s.reset()
            s.next()
            self.counts[i] = 0

        self._done = True
        return False

    def value(self) -> dict[str, str]:
        """Return the current tag set in declaration order."""
        return {k: s.value() for k, s in zip(self.keys, self._sequences, strict=True)}
