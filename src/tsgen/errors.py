"""Custom exception hierarchy for tsgen.

This module defines the exception classes used throughout tsgen:
- TsgenError: Base exception for all tsgen errors
- ConfigurationError: A single configuration/validation problem
- ErrorList: Aggregate of every failure observed in one phase
- ShardWriteError: A shard failed during the write phase
- PartitionCompactionError: An index partition failed to compact
- BlockWriterError: The bundled block writer could not persist a block

User-facing messages are safe to display; technical details are logged
internally via structlog and never rendered.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import structlog

logger = structlog.get_logger(__name__)


class TsgenError(Exception):
    """Base exception for tsgen.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details for logging only.

    Example:
        >>> raise TsgenError(
        ...     "Shard directory missing",
        ...     internal_details="stat /data/db/rp/3: no such file or directory",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize TsgenError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "tsgen_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(TsgenError):
    """Raised for one invalid setting.

    Attributes:
        field_path: Dot-separated path to the invalid field (e.g., "db.shard_count").

    Example:
        >>> raise ConfigurationError("must be > 0", field_path="generator.fields")
        # str(): "generator.fields: must be > 0"
    """

    def __init__(
        self,
        user_message: str,
        *,
        field_path: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            user_message: Safe message to display to the user.
            field_path: Dot-separated path to the field (optional).
            internal_details: Technical details for internal logging only.
        """
        full_message = f"{field_path}: {user_message}" if field_path else user_message
        super().__init__(full_message, internal_details=internal_details)
        self.field_path = field_path


class ErrorList(TsgenError):
    """Aggregate of several errors reported as one.

    The rendered message is every error followed by a newline, in the
    order they were collected.

    Attributes:
        errors: The collected errors.

    Example:
        >>> err = ErrorList([ValueError("a"), ValueError("b")])
        >>> str(err)
        'a\\nb\\n'
    """

    def __init__(self, errors: Iterable[BaseException]) -> None:
        """Initialize ErrorList.

        Args:
            errors: Errors to aggregate.
        """
        self.errors: list[BaseException] = list(errors)
        super().__init__("".join(f"{e}\n" for e in self.errors))

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    @classmethod
    def from_errors(cls, errors: Iterable[BaseException]) -> ErrorList | None:
        """Build an ErrorList, or None when there is nothing to report.

        Args:
            errors: Errors collected during a phase.

        Returns:
            ErrorList containing every error, or None if empty.
        """
        collected = list(errors)
        if not collected:
            return None
        return cls(collected)


class ShardWriteError(TsgenError):
    """Raised when writing one shard fails.

    Attributes:
        shard_id: ID of the shard group that failed.
        cause: Underlying exception.
    """

    def __init__(self, shard_id: int, cause: BaseException) -> None:
        super().__init__(f"error writing shard {shard_id}: {cause}")
        self.shard_id = shard_id
        self.cause = cause


class PartitionCompactionError(TsgenError):
    """Raised when compacting one index partition fails.

    Attributes:
        partition_id: ID of the partition that failed.
        cause: Underlying exception.
    """

    def __init__(self, partition_id: int, cause: BaseException) -> None:
        super().__init__(f"error compacting partition {partition_id}: {cause}")
        self.partition_id = partition_id
        self.cause = cause


class BlockWriterError(TsgenError):
    """Raised by the shard block writer when a block cannot be persisted."""

    pass
