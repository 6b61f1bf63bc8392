"""CLI error handling for tsgen.

Wraps tsgen exceptions in user-friendly messages with the CLI exit codes.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import click

from tsgen.cli.output import error
from tsgen.errors import ErrorList, TsgenError

# Exit codes following sysexits.h convention
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (validation, generation failure)
EXIT_SYSTEM_ERROR = 2  # System error (permissions, write failure)


class CLIError(click.ClickException):
    """CLI-specific exception with exit code support.

    Attributes:
        message: User-facing error message.
        exit_code: Exit code for the CLI (default: 1).
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        """Initialize CLIError.

        Args:
            message: User-facing error message.
            exit_code: Exit code for the CLI.
        """
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        """Display the error message using Rich formatting.

        Args:
            file: Output file (unused, for Click compatibility).
        """
        error(self.format_message())


def format_error_list(err: ErrorList) -> list[str]:
    """One display line per collected error.

    Example:
        >>> format_error_list(ErrorList([ValueError("a"), ValueError("b")]))
        ['a', 'b']
    """
    return [str(e) for e in err]


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    """Handle permission errors.

    Args:
        path: Path that caused the permission error.
        operation: Operation that failed (read, write, etc.).

    Raises:
        CLIError: Always raises with formatted error message.
    """
    raise CLIError(
        f"Permission denied: Cannot {operation} {path}",
        exit_code=EXIT_SYSTEM_ERROR,
    )


@contextmanager
def handle_errors(operation: str = "write") -> Iterator[None]:
    """Translate tsgen failures into CLI exits.

    ErrorList prints one error per line and exits 1. Other tsgen errors
    exit 1 with their user message. Permission and other OS errors exit 2.

    Example:
        >>> with handle_errors():
        ...     run_generation()
    """
    try:
        yield
    except ErrorList as e:
        for line in format_error_list(e):
            error(line)
        raise SystemExit(EXIT_USER_ERROR) from None
    except TsgenError as e:
        error(e.user_message)
        raise SystemExit(EXIT_USER_ERROR) from None
    except PermissionError as e:
        handle_permission_error(str(e.filename or ""), operation)
    except OSError as e:
        raise CLIError(f"I/O error: {e}", exit_code=EXIT_SYSTEM_ERROR) from None
