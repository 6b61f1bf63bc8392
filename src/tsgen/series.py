"""Series generator and series key encoding.

A SeriesGenerator binds a measurement name, a field name, a tag enumerator
and a value sequence into one stream of series. Driven to exhaustion it
yields every tag combination for its (measurement, field) pair exactly once,
each with a fresh value stream.
"""

from __future__ import annotations

from collections.abc import Mapping

from tsgen.sequences.base import ValuesSequence
from tsgen.sequences.tags import TagsValuesSequence

# Separator between the series key and the field name in a composite key.
FIELD_KEY_SEPARATOR = b"#!~#"

# Separator between tenant (org) and bucket in a multi-tenant measurement name.
TENANT_SEPARATOR = b"\x00\x00"

_MEASUREMENT_ESCAPES = {ord(","): b"\\,", ord(" "): b"\\ "}
_TAG_ESCAPES = {ord(","): b"\\,", ord("="): b"\\=", ord(" "): b"\\ "}


def _escape(value: bytes, escapes: dict[int, bytes]) -> bytes:
    if not any(b in escapes for b in value):
        return value
    out = bytearray()
    for b in value:
        out += escapes.get(b, bytes((b,)))
    return bytes(out)


def make_series_key(name: bytes, tags: Mapping[str, str]) -> bytes:
    """Encode a measurement and tag set as a series key.

    Tags are written sorted by key: ``name,k1=v1,k2=v2``.

    Args:
        name: Measurement name
        tags: Tag set

    Returns:
        Encoded series key
    """
    key = bytearray(_escape(name, _MEASUREMENT_ESCAPES))
    for k in sorted(tags):
        key += b","
        key += _escape(k.encode(), _TAG_ESCAPES)
        key += b"="
        key += _escape(tags[k].encode(), _TAG_ESCAPES)
    return bytes(key)


def series_field_key(series_key: bytes, field: str) -> bytes:
    """Combine a series key and field name into the composite storage key."""
    return series_key + FIELD_KEY_SEPARATOR + field.encode()


def tenant_measurement(org_id: str, bucket_id: str) -> bytes:
    """Build a multi-tenant measurement name: ``org\\x00\\x00bucket``."""
    return org_id.encode() + TENANT_SEPARATOR + bucket_id.encode()


class SeriesGenerator:
    """Stream of series for one (measurement, field) pair.

    Attributes:
        name: Measurement name
        field: Field name

    Example:
        >>> tags = TagsValuesSequence(["tag0"], [CounterByteSequence(2)])
        >>> values = IntegerConstantValuesSequence(10, 0, 1, 1)
        >>> gen = SeriesGenerator(b"m0", "v0", values, tags)
        >>> while gen.next():
        ...     print(gen.key())
        b'm0,tag0=0#!~#v0'
        b'm0,tag0=1#!~#v0'
    """

    def __init__(
        self,
        name: bytes,
        field: str,
        values: ValuesSequence,
        tags: TagsValuesSequence,
    ) -> None:
        self.name = name
        self.field = field
        self._values = values
        self._tags = tags
        self._tag_set: dict[str, str] = {}
        self._series_key = b""

    @property
    def series_count(self) -> int:
        """Number of series this generator yields per pass."""
        return self._tags.count

    def next(self) -> bool:
        """Advance to the next series.

        Returns:
            False once every tag combination has been produced
        """
        if not self._tags.next():
            return False

        self._values.reset()
        self._tag_set = self._tags.value()
        self._series_key = make_series_key(self.name, self._tag_set)
        return True

    def reset(self) -> None:
        self._tags.reset()
        self._values.reset()

    def series_key(self) -> bytes:
        """Measurement + tags key used for index registration."""
        return self._series_key

    def key(self) -> bytes:
        """Composite key (series key + field) used by the write path."""
        return series_field_key(self._series_key, self.field)

    def tags(self) -> dict[str, str]:
        return dict(self._tag_set)

    def values_generator(self) -> ValuesSequence:
        return self._values
