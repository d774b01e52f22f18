"""
Sprint and release management for local tasks.

At most one sprint is active at a time. The data model does not enforce
this; starting a sprint does.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from taskbridge.core.history.trail import AuditTrail
from taskbridge.core.store.database import LocalStore
from taskbridge.core.tasks.exceptions import TaskNotFoundError, TaskValidationError
from taskbridge.core.tasks.models import Task, TaskStatus, vocabulary_value

from .models import Release, ReleaseStatus, Sprint, SprintStatus

logger = logging.getLogger(__name__)

# Raw status names counted as finished when a sprint ends
FINISHED_STATUSES = {TaskStatus.DONE.value, "closed", "completed"}


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PlanningService:
    """
    Creates and transitions sprints and releases.

    Example:
        >>> planning = PlanningService(store, AuditTrail(store))
        >>> sprint = planning.create_sprint("Sprint 1", duration_weeks=2, start=True)
        >>> planning.get_active_sprint().id == sprint.id
        True
    """

    def __init__(self, store: LocalStore, audit: AuditTrail) -> None:
        self.store = store
        self.audit = audit

    # ---- sprints ----

    def create_sprint(
        self,
        name: str,
        duration_weeks: int = 2,
        goal: str | None = None,
        start: bool = False,
    ) -> Sprint:
        """
        Create a sprint starting now and lasting duration_weeks.

        Args:
            name: Sprint name
            duration_weeks: Length in weeks (at least 1)
            goal: Optional sprint goal
            start: Activate the sprint immediately

        Raises:
            TaskValidationError: If duration_weeks < 1, or start is requested
                while another sprint is active
        """
        if not name.strip():
            raise TaskValidationError("Sprint name required")
        if duration_weeks < 1:
            raise TaskValidationError("Sprint duration must be at least one week")
        if start:
            self._ensure_no_active_sprint()

        begin = datetime.now(timezone.utc)
        sprint = Sprint(
            id=str(uuid.uuid4()),
            name=name,
            start_date=_iso(begin),
            end_date=_iso(begin + timedelta(weeks=duration_weeks)),
            status=SprintStatus.ACTIVE if start else SprintStatus.PLANNED,
            goal=goal,
        )
        self.store.add_sprint(sprint)
        logger.info("Created sprint %s (%s)", sprint.name, sprint.status.value)
        return sprint

    def _ensure_no_active_sprint(self, except_id: str | None = None) -> None:
        active = self.get_active_sprint()
        if active is not None and active.id != except_id:
            raise TaskValidationError(
                f"Sprint '{active.name}' is already active. End it before starting another.",
                active_sprint_id=active.id,
            )

    def _require_sprint(self, sprint_id: str) -> Sprint:
        sprint = self.store.get_sprint(sprint_id)
        if sprint is None:
            raise TaskValidationError(f"Sprint {sprint_id} not found", sprint_id=sprint_id)
        return sprint

    def start_sprint(self, sprint_id: str) -> Sprint:
        """
        Activate a planned sprint.

        Raises:
            TaskValidationError: If the sprint does not exist, is already
                finished, or another sprint is active
        """
        sprint = self._require_sprint(sprint_id)
        if sprint.status == SprintStatus.ACTIVE:
            return sprint
        if sprint.status != SprintStatus.PLANNED:
            raise TaskValidationError(
                f"Sprint '{sprint.name}' is {sprint.status.value} and cannot be started",
                sprint_id=sprint_id,
            )
        self._ensure_no_active_sprint()

        sprint.status = SprintStatus.ACTIVE
        self.store.update_sprint(sprint)
        logger.info("Started sprint %s", sprint.name)
        return sprint

    def end_sprint(
        self, sprint_id: str | None = None, move_unfinished_to_backlog: bool = False
    ) -> Sprint:
        """
        Mark a sprint completed.

        Args:
            sprint_id: Sprint to end; defaults to the active sprint
            move_unfinished_to_backlog: Detach tasks that are not done from
                the sprint (audited as sprintId changes)

        Raises:
            TaskValidationError: If there is no such sprint or no active sprint
        """
        if sprint_id is None:
            sprint = self.get_active_sprint()
            if sprint is None:
                raise TaskValidationError("No active sprint found to end")
        else:
            sprint = self._require_sprint(sprint_id)

        sprint.status = SprintStatus.COMPLETED
        sprint.end_date = _iso(datetime.now(timezone.utc))

        with self.store.transaction():
            self.store.update_sprint(sprint)
            if move_unfinished_to_backlog:
                moved = 0
                for task in self.store.get_tasks():
                    if task.sprint_id != sprint.id or _is_finished(task):
                        continue
                    self.audit.log_change(task.id, "sprintId", task.sprint_id, None)
                    task.sprint_id = None
                    self.store.update_task(task)
                    moved += 1
                logger.info("Moved %d unfinished tasks out of sprint %s", moved, sprint.name)

        logger.info("Ended sprint %s", sprint.name)
        return sprint

    def get_active_sprint(self) -> Sprint | None:
        """The active sprint, or None."""
        for sprint in self.store.get_sprints():
            if sprint.status == SprintStatus.ACTIVE:
                return sprint
        return None

    def list_sprints(self) -> list[Sprint]:
        """All sprints in creation order."""
        return self.store.get_sprints()

    def assign_task_to_sprint(self, task_id: str, sprint_id: str | None) -> Task:
        """
        Put a task into a sprint, or take it out with sprint_id=None.

        Raises:
            TaskNotFoundError: If the task does not exist
            TaskValidationError: If the sprint does not exist
        """
        task = self.store.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, "local")
        if sprint_id is not None:
            self._require_sprint(sprint_id)

        with self.store.transaction():
            self.audit.log_change(task_id, "sprintId", task.sprint_id, sprint_id)
            task.sprint_id = sprint_id
            self.store.update_task(task)
        return task

    # ---- releases ----

    def create_release(
        self,
        name: str,
        status: ReleaseStatus = ReleaseStatus.PLANNED,
        release_date: str | None = None,
        description: str | None = None,
    ) -> Release:
        """Create a release."""
        if not name.strip():
            raise TaskValidationError("Release name required")
        release = Release(
            id=str(uuid.uuid4()),
            name=name,
            status=status,
            release_date=release_date,
            description=description,
        )
        self.store.add_release(release)
        logger.info("Created release %s", name)
        return release

    def list_releases(self) -> list[Release]:
        """All releases in creation order."""
        return self.store.get_releases()

    def update_release(
        self,
        release_id: str,
        name: str | None = None,
        status: ReleaseStatus | None = None,
        release_date: str | None = None,
        description: str | None = None,
    ) -> Release:
        """
        Change the given fields of a release.

        Raises:
            TaskValidationError: If the release does not exist
        """
        release = self.store.get_release(release_id)
        if release is None:
            raise TaskValidationError(f"Release {release_id} not found", release_id=release_id)

        if name is not None:
            release.name = name
        if status is not None:
            release.status = ReleaseStatus(status)
        if release_date is not None:
            release.release_date = release_date
        if description is not None:
            release.description = description
        self.store.update_release(release)
        return release


def _is_finished(task: Task) -> bool:
    return vocabulary_value(task.status).lower() in FINISHED_STATUSES
