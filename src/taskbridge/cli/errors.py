"""
Standardized error handling and exit codes for the taskbridge CLI.

Every command runs inside :func:`handle_errors`, which turns a
TaskBridgeError into a red ``Error:`` line and exit code 1.
"""

import contextlib
from collections.abc import Iterator
from enum import IntEnum

import typer
from rich.console import Console

from taskbridge.core.tasks.exceptions import (
    BackendNotImplementedError,
    ConfigurationError,
    TaskBridgeError,
    TaskNotFoundError,
    TransportError,
)

err_console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for taskbridge CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Any taskbridge error."""

    USER_ERROR = 2
    """Invalid input (nothing to update, bad option value)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
    """
    err_console.print(f"[red]Error:[/red] {problem}", markup=True, highlight=False)

    if reason:
        err_console.print(f"[dim]{reason}[/dim]")

    if solution:
        err_console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_task_not_found_error(task_id: str) -> None:
    """Print error when a task ID is not found."""
    print_error(
        f"Task not found: {task_id}",
        solution="taskbridge list  # to see available tasks",
    )


def _guidance(error: TaskBridgeError) -> tuple[str | None, str | None]:
    if isinstance(error, ConfigurationError):
        return (
            f"Missing: {', '.join(error.missing)}" if error.missing else None,
            "Add the settings to ~/.config/taskbridge/config.json",
        )
    if isinstance(error, BackendNotImplementedError):
        return None, "taskbridge --backend local ...  # the local backend supports every operation"
    if isinstance(error, TransportError) and error.status_code in (401, 403):
        return "The remote service rejected the credentials", None
    return None, None


@contextlib.contextmanager
def handle_errors(debug: bool = False) -> Iterator[None]:
    """
    Report taskbridge errors and exit with code 1.

    Args:
        debug: Also print the traceback
    """
    try:
        yield
    except TaskNotFoundError as e:
        if debug:
            err_console.print_exception()
        print_task_not_found_error(e.task_id)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except TaskBridgeError as e:
        if debug:
            err_console.print_exception()
        reason, solution = _guidance(e)
        print_error(str(e), reason=reason, solution=solution)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
