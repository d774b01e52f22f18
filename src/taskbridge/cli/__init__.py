"""
taskbridge CLI - Main application entry point.

This module sets up the Typer CLI application and registers the task
commands.
"""

import logging

import typer
from rich.console import Console

from taskbridge import __version__
from taskbridge.cli import task
from taskbridge.core.config.env import load_layered_env

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Help panel names for command grouping
PANEL_TASKS = "Work with Tasks"
PANEL_SETUP = "Backends and Storage"

app = typer.Typer(
    name="taskbridge",
    help="One task interface over local storage, GitHub, Jira, Trello, Asana, Azure DevOps and Monday",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    backend: str | None = typer.Option(
        None,
        "--backend",
        "-b",
        help="Backend to use (default: TASKBRIDGE_BACKEND or the configured provider)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    taskbridge - provider-agnostic task management.

    Quick Start:
        taskbridge create "Write docs" -p high   # Create a local task
        taskbridge list                          # List tasks
        taskbridge -b github list                # List GitHub issues

    Configuration:
        ~/.config/taskbridge/config.json         # User config
        .taskbridge.json                         # Project config (overrides user)
        TASKBRIDGE_BACKEND, TASKBRIDGE_HOME      # Environment overrides
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format=LOG_FORMAT)

    ctx.obj = {"debug": debug, "backend": backend}


app.command(name="list", rich_help_panel=PANEL_TASKS)(task.list_tasks)
app.command(name="show", rich_help_panel=PANEL_TASKS)(task.show)
app.command(name="create", rich_help_panel=PANEL_TASKS)(task.create)
app.command(name="update", rich_help_panel=PANEL_TASKS)(task.update)
app.command(name="delete", rich_help_panel=PANEL_TASKS)(task.delete)
app.command(name="comment", rich_help_panel=PANEL_TASKS)(task.comment)
app.command(name="history", rich_help_panel=PANEL_TASKS)(task.history)

app.command(name="backends", rich_help_panel=PANEL_SETUP)(task.backends)
app.command(name="migrate", rich_help_panel=PANEL_SETUP)(task.migrate)


@app.command(rich_help_panel=PANEL_SETUP)
def version() -> None:
    """Show taskbridge version and exit."""
    console.print(f"taskbridge version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
