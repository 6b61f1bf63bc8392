"""Configuration models for tsgen.

This module provides:
- DBConfig: database layout settings (env prefix TSGEN_)
- GeneratorConfig / TagConfig: what to generate
- Config: both sections, loadable from YAML
- build_config: validate everything at once and report every problem

Validation never stops at the first problem: field errors from both
sections and the cross-field checks are collected into one ErrorList
before anything is written.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from tsgen.errors import ConfigurationError, ErrorList
from tsgen.sequences.tags import counter_width
from tsgen.storage.meta import truncate_time

# Tag key that carries the measurement name in multi-tenant series.
TENANT_TAG_KEY = "_m"

_DURATION_UNITS: dict[str, timedelta] = {
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "μs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``24h``, ``1h30m`` or ``90s``.

    Args:
        text: Sequence of decimal numbers, each with a unit suffix

    Returns:
        Parsed duration

    Raises:
        ValueError: If the text is not a valid positive duration

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    s = text.strip()
    if not s:
        msg = "invalid duration: empty string"
        raise ValueError(msg)

    total = timedelta(0)
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if m is None:
            msg = f"invalid duration: {text!r}"
            raise ValueError(msg)
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()

    if total <= timedelta(0):
        msg = f"duration must be > 0: {text!r}"
        raise ValueError(msg)
    return total


def _decimal(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(value: timedelta) -> str:
    """Render a duration the way Go does (``1h30m0s``, ``1.5s``, ``500ms``).

    Example:
        >>> format_duration(timedelta(milliseconds=250))
        '250ms'
    """
    us = value // timedelta(microseconds=1)
    if us < 0:
        return "-" + format_duration(-value)
    if us == 0:
        return "0s"
    if us < 1000:
        return f"{us}µs"
    if us < 1_000_000:
        return f"{_decimal(us, 1000)}ms"

    whole_seconds, frac = divmod(us, 1_000_000)
    hours, rem = divmod(whole_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    secs = _decimal(seconds * 1_000_000 + frac, 1_000_000)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def parse_tag_cardinalities(text: str) -> list[int]:
    """Parse comma-separated tag cardinalities (e.g. ``10,10,10``).

    Raises:
        ConfigurationError: If an entry is not an integer
    """
    values: list[int] = []
    for part in text.split(","):
        try:
            values.append(int(part.strip()))
        except ValueError:
            raise ConfigurationError(f"cannot parse tag cardinality: {part}") from None
    return values


def tag_key_names(prefix: str, n: int) -> list[str]:
    """Generate n tag key names zero-padded to a common width (tag0, tag1, ...)."""
    width = counter_width(n)
    return [f"{prefix}{i:0{width}d}" for i in range(n)]


class DBConfig(BaseSettings):
    """Database layout configuration.

    Can be loaded from environment variables with the TSGEN_ prefix.

    Attributes:
        data_path: Root of the data directory
        meta_path: Directory holding the metadata document
        database: Database name
        rp: Retention policy name
        start_time: Start of the first shard (default: now - time span)
        shard_count: Number of shard groups to create
        shard_duration: Duration of each shard group
    """

    model_config = SettingsConfigDict(
        env_prefix="TSGEN_",
        env_file=".env",
        extra="ignore",
    )

    data_path: str = Field(default="", description="Path to data directory")
    meta_path: str = Field(default="", description="Path to meta directory")
    database: str = Field(default="db", min_length=1, description="Database name")
    rp: str = Field(default="autogen", min_length=1, description="Retention policy name")
    start_time: datetime | None = Field(default=None, description="Start time (RFC 3339)")
    shard_count: int = Field(default=1, ge=1, description="Number of shards to create")
    shard_duration: timedelta = Field(default=timedelta(hours=24), description="Shard duration")

    @field_validator("shard_duration", mode="before")
    @classmethod
    def parse_shard_duration(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("start_time")
    @classmethod
    def start_time_utc(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def apply_defaults(self) -> DBConfig:
        if not self.data_path:
            self.data_path = str(Path.home() / ".tsgen" / "data")
        if not self.meta_path:
            self.meta_path = str(Path.home() / ".tsgen" / "meta")
        if self.start_time is None:
            now = datetime.now(timezone.utc)
            self.start_time = truncate_time(now, self.shard_duration) - self.time_span
        return self

    @property
    def time_span(self) -> timedelta:
        """Total duration covered by all shards."""
        return self.shard_duration * self.shard_count

    @property
    def end_time(self) -> datetime:
        assert self.start_time is not None
        return self.start_time + self.time_span


class TagConfig(BaseModel):
    """One tag dimension.

    Attributes:
        name: Tag key (default: tag prefix + position)
        cardinality: Number of distinct values
    """

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    cardinality: int = Field(..., ge=1, description="Number of distinct tag values")


class GeneratorConfig(BaseModel):
    """What to generate.

    Attributes:
        tag_prefix: Prefix for unnamed tag keys
        tags: Tag dimensions, in odometer order
        points_per_series: Points per series per shard
        fields: Fields (series generators) per shard
        concurrency: Shards written in parallel
        seed: Seed for random value sequences
        build_tsi: Build a per-shard inverted index
        org_id: Tenant ID for multi-tenant measurement names
    """

    model_config = ConfigDict(extra="forbid")

    tag_prefix: str = Field(default="tag", min_length=1)
    tags: list[TagConfig] = Field(
        default_factory=lambda: [TagConfig(cardinality=10) for _ in range(3)]
    )
    points_per_series: int = Field(default=100, ge=1, description="Points per series per shard")
    fields: int = Field(default=1, ge=1, description="Fields per point")
    concurrency: int = Field(default=1, ge=1, description="Concurrency")
    seed: int | None = Field(default=None, description="Random seed")
    build_tsi: bool = Field(default=False, description="Build per-shard index")
    org_id: str | None = Field(default=None, description="Tenant (org) ID")

    @model_validator(mode="after")
    def assign_tag_names(self) -> GeneratorConfig:
        names = tag_key_names(self.tag_prefix, len(self.tags))
        for tag, default in zip(self.tags, names, strict=True):
            if not tag.name:
                tag.name = default
        return self

    @property
    def cardinalities(self) -> list[int]:
        return [t.cardinality for t in self.tags]

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]


class Config(BaseModel):
    """Complete run configuration."""

    db: DBConfig
    generator: GeneratorConfig


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a YAML configuration file.

    The document may contain ``db`` and ``generator`` sections.

    Raises:
        ConfigurationError: If the file is missing or not valid YAML
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"config file not found: {p}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"invalid YAML in {p}", internal_details=str(e)
        ) from None

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config file {p} must contain a mapping")
    return raw


def _pydantic_errors(err: PydanticValidationError, section: str) -> list[ConfigurationError]:
    errors: list[ConfigurationError] = []
    for e in err.errors():
        loc = ".".join(str(x) for x in (section, *e["loc"]))
        errors.append(ConfigurationError(e["msg"], field_path=loc))
    return errors


def validate_config(config: Config, *, now: datetime | None = None) -> None:
    """Cross-field checks that need a fully parsed configuration.

    Raises:
        ErrorList: Every problem found
    """
    errors: list[Exception] = []
    now = now or datetime.now(timezone.utc)
    db = config.db

    if db.end_time > now:
        latest = truncate_time(now, db.shard_duration) - db.time_span
        errors.append(
            ConfigurationError(f"start time must be ≤ {latest.isoformat()}", field_path="db.start_time")
        )

    seen: set[str] = set()
    if config.generator.org_id is not None:
        seen.add(TENANT_TAG_KEY)
    for tag in config.generator.tags:
        if tag.name in seen:
            errors.append(
                ConfigurationError(
                    f"tag name {tag.name} is reserved for multi-tenant series"
                    if tag.name == TENANT_TAG_KEY and config.generator.org_id is not None
                    else f"duplicate tag name: {tag.name}",
                    field_path="generator.tags",
                )
            )
        seen.add(tag.name)

    err = ErrorList.from_errors(errors)
    if err is not None:
        raise err


def build_config(
    db: dict[str, Any] | None = None,
    generator: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> Config:
    """Validate both sections and return a Config.

    Args:
        db: DBConfig values (missing values fall back to env, then defaults)
        generator: GeneratorConfig values
        now: Reference time for the start time check (default: now)

    Raises:
        ErrorList: Every validation problem, in section order
    """
    errors: list[Exception] = []
    db_cfg: DBConfig | None = None
    gen_cfg: GeneratorConfig | None = None

    try:
        db_cfg = DBConfig(**(db or {}))
    except PydanticValidationError as e:
        errors.extend(_pydantic_errors(e, "db"))

    try:
        gen_cfg = GeneratorConfig(**(generator or {}))
    except PydanticValidationError as e:
        errors.extend(_pydantic_errors(e, "generator"))

    if db_cfg is None or gen_cfg is None:
        raise ErrorList(errors)

    config = Config(db=db_cfg, generator=gen_cfg)
    validate_config(config, now=now)
    return config


def resolve_config(
    path: str | Path | None = None,
    *,
    db: dict[str, Any] | None = None,
    generator: dict[str, Any] | None = None,
    tags: str | None = None,
    now: datetime | None = None,
) -> Config:
    """Merge a config file with command-line overrides and validate the result.

    Precedence: overrides, then the file, then environment (db only), then
    defaults. Overrides set to None are ignored.

    Args:
        path: Optional YAML config file
        db: DBConfig overrides
        generator: GeneratorConfig overrides
        tags: Comma-separated tag cardinalities; replaces any configured tags
        now: Reference time for the start time check

    Raises:
        ErrorList: Every problem found, tag parsing first
        ConfigurationError: If the file cannot be read
    """
    file_data = load_config(path) if path is not None else {}
    db_values = {**(file_data.get("db") or {}), **_given(db)}
    gen_values = {**(file_data.get("generator") or {}), **_given(generator)}

    errors: list[BaseException] = []
    if tags is not None:
        try:
            gen_values["tags"] = [{"cardinality": c} for c in parse_tag_cardinalities(tags)]
        except ConfigurationError as e:
            errors.append(e)

    try:
        config = build_config(db_values, gen_values, now=now)
    except ErrorList as e:
        errors.extend(e.errors)
        raise ErrorList(errors) from None

    err = ErrorList.from_errors(errors)
    if err is not None:
        raise err
    return config


def _given(values: dict[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (values or {}).items() if v is not None}
