"""
Local task backend.

Serves tasks from the LocalStore. This is the only backend that
understands the local-only relationships (sprints, releases, parents,
dependencies) and the only one whose updates are recorded in the audit
trail.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from taskbridge.core.history.trail import DEFAULT_ACTOR, AuditTrail
from taskbridge.core.store.database import LocalStore

from .backend import register_backend
from .exceptions import TaskNotFoundError, TaskValidationError
from .models import (
    Comment,
    CreateTaskInput,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    UpdateTaskInput,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

# Fields that may not be cleared by an update
REQUIRED_FIELDS = {"title", "status", "priority", "type"}

# Fields cleared to an empty value instead of None
EMPTY_DEFAULTS: dict[str, Any] = {"description": "", "tags": [], "blocked_by": []}


@register_backend("local")
class LocalBackend:
    """
    Task backend over the local SQLite store.

    Filters: every TaskFilter criterion is applied client-side with
    :meth:`TaskFilter.matches`. Updates are audited field by field.

    Example:
        >>> backend = LocalBackend(store, AuditTrail(store))
        >>> task = await backend.create_task(CreateTaskInput(title="Fix bug", priority="high"))
        >>> await backend.get_tasks(TaskFilter(priority="high"))
        [Task(id=..., title='Fix bug', ...)]
    """

    name = "local"

    def __init__(
        self,
        store: LocalStore,
        audit: AuditTrail | None = None,
        actor: str = DEFAULT_ACTOR,
    ) -> None:
        self.store = store
        self.audit = audit or AuditTrail(store, actor=actor)
        self.actor = actor

    @property
    def backend_name(self) -> str:
        return self.name

    def _validate_references(self, task_id: str | None, fields: dict[str, Any]) -> None:
        """
        Check that referenced sprints, releases, parents and blockers exist.

        Raises:
            TaskValidationError: On a reference to an unknown entity
        """
        sprint_id = fields.get("sprint_id")
        if sprint_id and self.store.get_sprint(sprint_id) is None:
            raise TaskValidationError(f"Sprint {sprint_id} does not exist", sprint_id=sprint_id)

        release_id = fields.get("release_id")
        if release_id and self.store.get_release(release_id) is None:
            raise TaskValidationError(
                f"Release {release_id} does not exist", release_id=release_id
            )

        parent_id = fields.get("parent_id")
        if parent_id:
            if parent_id == task_id:
                raise TaskValidationError("A task cannot be its own parent", task_id=task_id)
            if self.store.get_task_by_id(parent_id) is None:
                raise TaskValidationError(f"Parent task {parent_id} does not exist", parent_id=parent_id)

        for blocker_id in fields.get("blocked_by") or []:
            if blocker_id == task_id:
                raise TaskValidationError("A task cannot block itself", task_id=task_id)
            if self.store.get_task_by_id(blocker_id) is None:
                raise TaskValidationError(
                    f"Blocking task {blocker_id} does not exist", blocker_id=blocker_id
                )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        tasks = self.store.get_tasks()
        if filter is None:
            return tasks
        return filter.apply(tasks)

    async def get_task_by_id(self, task_id: str) -> Task | None:
        return self.store.get_task_by_id(task_id)

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._validate_references(None, input.model_dump())

        now = utc_now_iso()
        task = Task(
            id=str(uuid.uuid4()),
            title=input.title,
            description=input.description or "",
            status=input.status if input.status is not None else TaskStatus.TODO,
            priority=input.priority if input.priority is not None else TaskPriority.MEDIUM,
            type=input.type if input.type is not None else TaskType.TASK,
            tags=list(input.tags or []),
            assignee=input.assignee,
            due_date=input.due_date,
            created_at=now,
            updated_at=now,
            source=input.source or self.name,
            parent_id=input.parent_id,
            sprint_id=input.sprint_id,
            release_id=input.release_id,
            blocked_by=list(input.blocked_by or []),
            estimated_hours=input.estimated_hours,
        )
        stored = self.store.add_task(task)
        logger.info("Created local task %s", stored.id)
        return stored

    async def update_task(self, input: UpdateTaskInput) -> Task:
        existing = self.store.get_task_by_id(input.id)
        if existing is None:
            raise TaskNotFoundError(input.id, self.name)

        changes = {}
        for name, value in input.changes().items():
            if value is None and name in REQUIRED_FIELDS:
                continue
            if value is None and name in EMPTY_DEFAULTS:
                value = EMPTY_DEFAULTS[name]
            changes[name] = value
        self._validate_references(input.id, changes)

        updated = existing.model_copy(update=changes, deep=True)
        with self.store.transaction():
            self.store.update_task(updated)
            self.audit.log_changes(existing, updated, changes.keys())
        logger.debug("Updated local task %s: %s", input.id, sorted(changes))
        return updated

    async def delete_task(self, task_id: str) -> bool:
        deleted = self.store.delete_task(task_id)
        if deleted:
            logger.info("Deleted local task %s", task_id)
        return deleted

    async def add_comment(self, task_id: str, content: str) -> Task:
        task = self.store.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.name)
        if not content.strip():
            raise TaskValidationError("Comment content cannot be empty", task_id=task_id)

        task.comments.append(
            Comment(
                id=str(uuid.uuid4()),
                author=self.actor,
                content=content,
                timestamp=utc_now_iso(),
            )
        )
        self.store.update_task(task)
        return task

    async def aclose(self) -> None:
        """Nothing to release; the store outlives the backend."""
