"""Sequence algebra for synthetic series.

This module provides the restartable producers that series are built from:
- CounterByteSequence / ConstantStringSequence: tag values
- TagsValuesSequence: odometer over every tag combination
- *ValuesSequence: fixed-size, time-ordered value blocks

All sequences support:
- reset() to replay for the next series without reconstruction
- Deterministic output for constant and counter sequences
- Seeded random.Random instances for random value sequences
"""

from __future__ import annotations

from tsgen.sequences.base import MAX_POINTS_PER_BLOCK, Sequence, ValuesSequence
from tsgen.sequences.tags import (
    ConstantStringSequence,
    CounterByteSequence,
    TagsValuesSequence,
)
from tsgen.sequences.values import (
    FloatConstantValuesSequence,
    FloatRandomValuesSequence,
    IntegerConstantValuesSequence,
    IntegerRandomValuesSequence,
)

__all__ = [
    "MAX_POINTS_PER_BLOCK",
    "ConstantStringSequence",
    "CounterByteSequence",
    "FloatConstantValuesSequence",
    "FloatRandomValuesSequence",
    "IntegerConstantValuesSequence",
    "IntegerRandomValuesSequence",
    "Sequence",
    "TagsValuesSequence",
    "ValuesSequence",
]
