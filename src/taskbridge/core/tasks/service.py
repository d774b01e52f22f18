"""
Local-only task features.

Dependencies, checklists, work logging and custom fields exist only for
tasks in the local store. The TaskService mutates them in place through
the LocalStore and records audited fields in the AuditTrail.
"""

from __future__ import annotations

import logging
import uuid

from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.history.trail import AuditTrail
from taskbridge.core.store.database import LocalStore

from .exceptions import TaskNotFoundError, TaskValidationError
from .models import Checklist, ChecklistItem, CustomFieldValue, Task

logger = logging.getLogger(__name__)


class TaskService:
    """
    Operations on local tasks beyond the TaskBackend protocol.

    Every method that targets an unknown task id raises TaskNotFoundError.

    Example:
        >>> service = TaskService(store, AuditTrail(store))
        >>> service.add_dependency("task-b", blocker_id="task-a")
        Task(id='task-b', ..., blocked_by=['task-a'], ...)
    """

    def __init__(self, store: LocalStore, audit: AuditTrail) -> None:
        self.store = store
        self.audit = audit

    def _require_task(self, task_id: str) -> Task:
        task = self.store.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, "local")
        return task

    # ---- dependencies ----

    def add_dependency(self, task_id: str, blocker_id: str) -> Task:
        """
        Mark task_id as blocked by blocker_id.

        Adding an existing dependency is a no-op.

        Raises:
            TaskValidationError: If either task does not exist, or the ids are equal
        """
        if task_id == blocker_id:
            raise TaskValidationError("A task cannot block itself", task_id=task_id)
        task = self.store.get_task_by_id(task_id)
        if task is None:
            raise TaskValidationError(f"Task {task_id} not found", task_id=task_id)
        if self.store.get_task_by_id(blocker_id) is None:
            raise TaskValidationError(f"Blocker {blocker_id} not found", blocker_id=blocker_id)

        if blocker_id in task.blocked_by:
            return task

        old = list(task.blocked_by)
        task.blocked_by.append(blocker_id)
        with self.store.transaction():
            self.audit.log_change(task_id, "blockedBy", old, task.blocked_by)
            self.store.update_task(task)
        return task

    def remove_dependency(self, task_id: str, blocker_id: str) -> Task:
        """
        Remove a blocked-by relationship. Removing a missing one is a no-op.

        The blocker need not exist any more, so links to deleted tasks can
        still be cleaned up.

        Raises:
            TaskValidationError: If the task does not exist
        """
        task = self.store.get_task_by_id(task_id)
        if task is None:
            raise TaskValidationError(f"Task {task_id} not found", task_id=task_id)

        if blocker_id not in task.blocked_by:
            return task

        old = list(task.blocked_by)
        task.blocked_by = [bid for bid in task.blocked_by if bid != blocker_id]
        with self.store.transaction():
            self.audit.log_change(task_id, "blockedBy", old, task.blocked_by)
            self.store.update_task(task)
        return task

    # ---- checklists ----

    def add_checklist(self, task_id: str, title: str) -> Checklist:
        """Append a new, empty checklist to a task."""
        if not title.strip():
            raise TaskValidationError("Checklist title required", task_id=task_id)
        task = self._require_task(task_id)
        checklist = Checklist(id=str(uuid.uuid4()), title=title)
        task.checklists.append(checklist)
        self.store.update_task(task)
        return checklist

    def add_checklist_item(
        self, task_id: str, text: str, checklist_id: str | None = None
    ) -> ChecklistItem:
        """
        Append an item to a checklist.

        Args:
            task_id: Owning task
            text: Item text
            checklist_id: Target checklist; defaults to the task's first one

        Raises:
            TaskValidationError: If the task has no matching checklist
        """
        if not text.strip():
            raise TaskValidationError("Checklist item text required", task_id=task_id)
        task = self._require_task(task_id)
        checklist = self._find_checklist(task, checklist_id)
        item = ChecklistItem(id=str(uuid.uuid4()), text=text)
        checklist.items.append(item)
        self.store.update_task(task)
        return item

    def toggle_checklist_item(self, task_id: str, item_id: str) -> ChecklistItem:
        """Flip an item's completed flag, searching every checklist of the task."""
        task = self._require_task(task_id)
        for checklist in task.checklists:
            for item in checklist.items:
                if item.id == item_id:
                    item.completed = not item.completed
                    self.store.update_task(task)
                    return item
        raise TaskValidationError(f"Checklist item {item_id} not found", item_id=item_id)

    def remove_checklist_item(self, task_id: str, item_id: str) -> bool:
        """
        Remove an item from whichever checklist holds it.

        Returns:
            True if an item was removed
        """
        task = self._require_task(task_id)
        for checklist in task.checklists:
            remaining = [item for item in checklist.items if item.id != item_id]
            if len(remaining) != len(checklist.items):
                checklist.items = remaining
                self.store.update_task(task)
                return True
        return False

    @staticmethod
    def _find_checklist(task: Task, checklist_id: str | None) -> Checklist:
        if checklist_id is None:
            if not task.checklists:
                raise TaskValidationError("No checklist found on this task", task_id=task.id)
            return task.checklists[0]
        for checklist in task.checklists:
            if checklist.id == checklist_id:
                return checklist
        raise TaskValidationError(f"Checklist {checklist_id} not found", checklist_id=checklist_id)

    # ---- time tracking ----

    def log_work(
        self, task_id: str, hours: float | None = None, estimate: float | None = None
    ) -> Task:
        """
        Add spent hours and/or set the estimate.

        Args:
            task_id: Task to update
            hours: Hours to add to actual_hours
            estimate: New estimated_hours

        Raises:
            TaskValidationError: If hours or estimate is negative
        """
        if hours is not None and hours < 0:
            raise TaskValidationError("Logged hours cannot be negative", task_id=task_id)
        if estimate is not None and estimate < 0:
            raise TaskValidationError("Estimate cannot be negative", task_id=task_id)

        task = self._require_task(task_id)
        with self.store.transaction():
            if hours is not None:
                old = task.actual_hours or 0
                task.actual_hours = old + hours
                self.audit.log_change(task_id, "actualHours", old, task.actual_hours)
            if estimate is not None:
                old = task.estimated_hours or 0
                task.estimated_hours = estimate
                self.audit.log_change(task_id, "estimatedHours", old, estimate)
            self.store.update_task(task)
        logger.debug("Logged work on %s: +%s h", task_id, hours)
        return task

    # ---- custom fields ----

    def set_custom_field(self, task_id: str, key: str, value: CustomFieldValue) -> Task:
        """Set one custom field to a scalar value."""
        if not key:
            raise TaskValidationError("Custom field key required", task_id=task_id)
        task = self._require_task(task_id)
        task.custom_fields[key] = value
        self.store.update_task(task)
        return task

    def remove_custom_field(self, task_id: str, key: str) -> Task:
        """Remove a custom field; removing a missing key is a no-op."""
        task = self._require_task(task_id)
        if key in task.custom_fields:
            del task.custom_fields[key]
            self.store.update_task(task)
        return task

    # ---- history ----

    def get_history(self, task_id: str) -> list[AuditLogEntry]:
        """Audit entries of a task, newest first."""
        self._require_task(task_id)
        return self.audit.get_history(task_id)
