"""
Task commands for the taskbridge CLI.

Each command opens a Workspace, runs one backend operation, and closes
the workspace again. The backend comes from ``--backend`` on the main
command, then TASKBRIDGE_BACKEND, then the configured active provider.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from taskbridge.cli.errors import ExitCode, handle_errors, print_error, print_task_not_found_error
from taskbridge.core.bootstrap import Workspace, create_workspace
from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.store.migration import MigrationState
from taskbridge.core.tasks.backend import TaskBackend
from taskbridge.core.tasks.models import (
    CreateTaskInput,
    Task,
    TaskFilter,
    TaskStatus,
    UpdateTaskInput,
    vocabulary_value,
)

console = Console()

T = TypeVar("T")

STATUS_COLORS = {
    TaskStatus.TODO.value: "white",
    TaskStatus.BACKLOG.value: "dim",
    TaskStatus.IN_PROGRESS.value: "yellow",
    TaskStatus.BLOCKED.value: "red",
    TaskStatus.REVIEW.value: "magenta",
    TaskStatus.DONE.value: "green",
}


def _options(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj or {}


def _run(ctx: typer.Context, action: Callable[[Workspace, TaskBackend], Awaitable[T]]) -> T:
    """Run one async operation against the selected backend."""
    options = _options(ctx)

    async def runner() -> T:
        workspace = create_workspace()
        try:
            backend = workspace.registry.get(options.get("backend"))
            return await action(workspace, backend)
        finally:
            await workspace.aclose()

    with handle_errors(options.get("debug", False)):
        return asyncio.run(runner())


def _print_json(data: Any) -> None:
    console.print(
        json.dumps(data, indent=2), soft_wrap=True, markup=False, highlight=False, emoji=False
    )


def _status_markup(task: Task) -> str:
    status = vocabulary_value(task.status)
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _print_task(task: Task) -> None:
    console.print(f"[bold cyan]{task.id}[/bold cyan] - {task.title}")
    console.print(f"[dim]Status:[/dim] {_status_markup(task)}")
    console.print(f"[dim]Priority:[/dim] {vocabulary_value(task.priority)}")
    console.print(f"[dim]Type:[/dim] {vocabulary_value(task.type)}")
    if task.assignee:
        console.print(f"[dim]Assignee:[/dim] {task.assignee}")
    if task.tags:
        console.print(f"[dim]Tags:[/dim] {', '.join(task.tags)}")
    if task.due_date:
        console.print(f"[dim]Due:[/dim] {task.due_date}")
    if task.blocked_by:
        console.print(f"[dim]Blocked by:[/dim] {', '.join(task.blocked_by)}")
    if task.url:
        console.print(f"[dim]URL:[/dim] {task.url}")

    if task.description:
        console.print("\n[bold]Description:[/bold]")
        console.print(task.description, markup=False)

    if task.comments:
        console.print(f"\n[bold]Comments ({len(task.comments)}):[/bold]")
        for comment in task.comments:
            console.print(f"  [dim]{comment.timestamp}[/dim] [cyan]{comment.author}[/cyan]")
            console.print(f"  {comment.content}", markup=False)


def list_tasks(
    ctx: typer.Context,
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status: todo, in-progress, blocked, review, done, backlog",
    ),
    priority: str | None = typer.Option(
        None,
        "--priority",
        "-p",
        help="Filter by priority: low, medium, high, urgent",
    ),
    assignee: str | None = typer.Option(
        None,
        "--assignee",
        "-a",
        help="Filter by assignee (substring match)",
    ),
    search: str | None = typer.Option(
        None,
        "--search",
        "-q",
        help="Search title and description",
    ),
    tag: list[str] | None = typer.Option(
        None,
        "--tag",
        "-t",
        help="Filter by tag (repeatable; all must match)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List tasks with optional filters.

    Examples:
        taskbridge list                          # All tasks
        taskbridge list --status in-progress     # Work in flight
        taskbridge list -t backend -t api        # Tasks tagged with both
        taskbridge -b github list --search login
    """
    task_filter = TaskFilter(
        status=status,
        priority=priority,
        assignee=assignee,
        search=search,
        tags=tag or None,
    )
    tasks = _run(ctx, lambda _ws, backend: backend.get_tasks(task_filter))

    if json_output:
        _print_json([t.to_json_dict() for t in tasks])
        return

    if not tasks:
        console.print("[dim]No tasks found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Status", width=12)
    table.add_column("Priority", width=8)
    table.add_column("Title", overflow="fold")
    table.add_column("Assignee")

    for task in tasks:
        table.add_row(
            task.id,
            _status_markup(task),
            vocabulary_value(task.priority),
            task.title,
            task.assignee or "",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(tasks)} tasks[/dim]")


def show(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to display"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """Show one task with its comments."""
    task = _run(ctx, lambda _ws, backend: backend.get_task_by_id(task_id))

    if task is None:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if json_output:
        _print_json(task.to_json_dict())
        return

    _print_task(task)


def create(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Task title"),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Task description",
    ),
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Initial status (default: todo)",
    ),
    priority: str | None = typer.Option(
        None,
        "--priority",
        "-p",
        help="Priority: low, medium, high, urgent",
    ),
    task_type: str | None = typer.Option(
        None,
        "--type",
        help="Task type: task, bug, feature, story, epic, subtask",
    ),
    assignee: str | None = typer.Option(
        None,
        "--assignee",
        "-a",
        help="Assignee",
    ),
    tag: list[str] | None = typer.Option(
        None,
        "--tag",
        "-t",
        help="Tag (repeatable)",
    ),
    due: str | None = typer.Option(
        None,
        "--due",
        help="Due date (ISO 8601)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Create a new task.

    Examples:
        taskbridge create "Fix login" -p high -t auth
        taskbridge -b jira create "Upgrade SDK" --type story
    """
    task_input = CreateTaskInput(
        title=title,
        description=description,
        status=status,
        priority=priority,
        type=task_type,
        assignee=assignee,
        tags=tag or None,
        due_date=due,
    )
    task = _run(ctx, lambda _ws, backend: backend.create_task(task_input))

    if json_output:
        _print_json(task.to_json_dict())
        return

    console.print(f"[green]Created task[/green] [bold cyan]{task.id}[/bold cyan] - {task.title}")
    if task.url:
        console.print(f"[dim]{task.url}[/dim]")


def update(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to update"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="New description"
    ),
    status: str | None = typer.Option(None, "--status", "-s", help="New status"),
    priority: str | None = typer.Option(None, "--priority", "-p", help="New priority"),
    assignee: str | None = typer.Option(None, "--assignee", "-a", help="New assignee"),
    tag: list[str] | None = typer.Option(
        None,
        "--tag",
        "-t",
        help="Replace tags (repeatable)",
    ),
    due: str | None = typer.Option(None, "--due", help="New due date (ISO 8601)"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Update fields of an existing task.

    Only the options given are changed.

    Examples:
        taskbridge update 42 --status done
        taskbridge update 42 -p urgent -a alice
    """
    changes: dict[str, Any] = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "assignee": assignee,
        "tags": tag or None,
        "due_date": due,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        print_error(
            "Nothing to update",
            solution="taskbridge update <id> --status done  # pass at least one option",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    task_input = UpdateTaskInput(id=task_id, **changes)
    task = _run(ctx, lambda _ws, backend: backend.update_task(task_input))

    if json_output:
        _print_json(task.to_json_dict())
        return

    console.print(f"[green]Updated task[/green] [bold cyan]{task.id}[/bold cyan] - {task.title}")
    console.print(f"[dim]Changed:[/dim] {', '.join(sorted(changes))}")


def delete(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to delete"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Delete a task.

    Remote backends may archive or close instead (GitHub closes the issue).
    """
    deleted = _run(ctx, lambda _ws, backend: backend.delete_task(task_id))

    if json_output:
        _print_json({"id": task_id, "deleted": deleted})
        if not deleted:
            raise typer.Exit(ExitCode.GENERAL_ERROR)
        return

    if not deleted:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    console.print(f"[green]Deleted task[/green] {task_id}")


def comment(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID to comment on"),
    content: str = typer.Argument(..., help="Comment text"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """Add a comment to a task."""
    task = _run(ctx, lambda _ws, backend: backend.add_comment(task_id, content))

    if json_output:
        _print_json(task.to_json_dict())
        return

    console.print(
        f"[green]Comment added to[/green] [bold cyan]{task.id}[/bold cyan] "
        f"({len(task.comments)} total)"
    )


def history(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Local task ID"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """Show the audit history of a local task, newest first."""

    async def load(workspace: Workspace, _backend: TaskBackend) -> list[AuditLogEntry]:
        return workspace.tasks.get_history(task_id)

    entries = _run(ctx, load)

    if json_output:
        _print_json([entry.to_json_dict() for entry in entries])
        return

    if not entries:
        console.print(f"[dim]No history recorded for {task_id}.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("When", style="dim")
    table.add_column("Field")
    table.add_column("Old", overflow="fold")
    table.add_column("New", overflow="fold")
    table.add_column("By")

    for entry in entries:
        table.add_row(
            entry.timestamp,
            entry.field,
            json.dumps(entry.old_value),
            json.dumps(entry.new_value),
            entry.changed_by,
        )

    console.print(table)


def backends(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """List the available backends and which one is active."""

    async def describe(workspace: Workspace, _backend: TaskBackend) -> list[dict[str, Any]]:
        active = workspace.registry.resolve_name(_options(ctx).get("backend"))
        return [
            {
                "name": name,
                "active": name == active,
                "configured": name == "local"
                or workspace.config.get_provider_config(name) is not None,
            }
            for name in workspace.registry.list_backends()
        ]

    rows = _run(ctx, describe)

    if json_output:
        _print_json(rows)
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Backend")
    table.add_column("Active", justify="center")
    table.add_column("Configured", justify="center")
    for row in rows:
        table.add_row(
            f"[bold]{row['name']}[/bold]" if row["active"] else row["name"],
            "[green]*[/green]" if row["active"] else "",
            "[green]yes[/green]" if row["configured"] else "[dim]no[/dim]",
        )
    console.print(table)


def migrate(ctx: typer.Context) -> None:
    """Import a legacy db.json into the SQLite store."""
    with handle_errors(_options(ctx).get("debug", False)):
        workspace = create_workspace(migrate=False)
        try:
            state = workspace.migrator.migrate()
            legacy_path = workspace.migrator.legacy_path
            backup_path = workspace.migrator.backup_path
        finally:
            asyncio.run(workspace.aclose())

    if state == MigrationState.MIGRATED:
        console.print(f"[green]Migrated[/green] {legacy_path} [dim](backup: {backup_path})[/dim]")
    elif state == MigrationState.NOT_NEEDED:
        console.print("[dim]Nothing to migrate.[/dim]")
    else:
        print_error(
            f"Migration failed for {legacy_path}",
            reason="The legacy file was left in place",
            solution="taskbridge --debug migrate  # to see the details",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)
