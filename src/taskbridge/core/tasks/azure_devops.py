"""
Azure DevOps Boards backend (REST API 6.0).

Listing is two calls: a WIQL query returns work item ids, then a batch
request fetches the first 50 of them.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .models import (
    CreateTaskInput,
    PriorityValue,
    StatusValue,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    TypeValue,
    vocabulary_value,
)
from .remote import RemoteBackend

logger = logging.getLogger(__name__)

API_VERSION = "6.0"
MAX_BATCH = 50

WIQL_QUERY = (
    "SELECT [System.Id] FROM WorkItems "
    "WHERE [System.TeamProject] = @project AND [System.State] <> 'Removed' "
    "ORDER BY [System.ChangedDate] DESC"
)

STATE_MAP: dict[str, TaskStatus] = {
    "new": TaskStatus.TODO,
    "to do": TaskStatus.TODO,
    "proposed": TaskStatus.TODO,
    "active": TaskStatus.IN_PROGRESS,
    "committed": TaskStatus.IN_PROGRESS,
    "doing": TaskStatus.IN_PROGRESS,
    "in progress": TaskStatus.IN_PROGRESS,
    "resolved": TaskStatus.REVIEW,
    "closed": TaskStatus.DONE,
    "done": TaskStatus.DONE,
}

PRIORITY_MAP: dict[int, TaskPriority] = {
    1: TaskPriority.URGENT,
    2: TaskPriority.HIGH,
    3: TaskPriority.MEDIUM,
    4: TaskPriority.LOW,
}

TYPE_MAP: dict[str, TaskType] = {
    "user story": TaskType.STORY,
    "product backlog item": TaskType.STORY,
    "bug": TaskType.BUG,
    "task": TaskType.TASK,
    "epic": TaskType.EPIC,
    "feature": TaskType.FEATURE,
}

WORK_ITEM_TYPES: dict[str, str] = {
    TaskType.STORY.value: "User Story",
    TaskType.BUG.value: "Bug",
    TaskType.TASK.value: "Task",
    TaskType.SUBTASK.value: "Task",
    TaskType.EPIC.value: "Epic",
    TaskType.FEATURE.value: "Feature",
}


def map_state(state: str | None) -> StatusValue:
    if not state:
        return TaskStatus.TODO
    return STATE_MAP.get(state.lower(), state)


def map_priority(value: Any) -> PriorityValue:
    if value is None:
        return TaskPriority.MEDIUM
    try:
        return PRIORITY_MAP.get(int(value), str(value))
    except (TypeError, ValueError):
        return str(value)


def map_type(name: str | None) -> TypeValue:
    if not name:
        return TaskType.TASK
    return TYPE_MAP.get(name.lower(), name)


def priority_number(value: PriorityValue) -> int | None:
    """Azure priority (1 highest .. 4 lowest) for a canonical priority."""
    for number, priority in PRIORITY_MAP.items():
        if vocabulary_value(value) == priority.value:
            return number
    return None


@register_backend("azure-devops")
class AzureDevOpsBackend(RemoteBackend):
    """
    Task backend for Azure DevOps work items.

    Configuration:
        credentials.token: personal access token
        settings.organization, settings.project: target project

    Filters: applied client-side to the 50 most recently changed work
    items. Only listing and creation are supported.
    """

    name = "azure-devops"
    required_credentials = ("token",)
    required_settings = ("organization", "project")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._token = ""
        self._wit_url = ""

    def _configure(self, provider: ProviderConfig) -> None:
        self._token = provider.credentials["token"]
        organization = provider.settings["organization"]
        project = provider.settings["project"]
        self._wit_url = f"https://dev.azure.com/{organization}/{project}/_apis/wit"

    def _url(self, path: str) -> str:
        return f"{self._wit_url}/{path.lstrip('/')}"

    def _auth(self) -> tuple[str, str]:
        # PAT basic auth uses an empty user name
        return ("", self._token)

    def _default_params(self) -> dict[str, Any]:
        return {"api-version": API_VERSION}

    def _to_task(self, item: dict[str, Any]) -> Task:
        fields = item.get("fields") or {}
        assignee = fields.get("System.AssignedTo")
        if isinstance(assignee, dict):
            assignee = assignee.get("displayName")
        tags = [t.strip() for t in (fields.get("System.Tags") or "").split(";") if t.strip()]
        return Task(
            id=str(item["id"]),
            title=fields.get("System.Title") or "",
            description=fields.get("System.Description") or "",
            status=map_state(fields.get("System.State")),
            priority=map_priority(fields.get("Microsoft.VSTS.Common.Priority")),
            type=map_type(fields.get("System.WorkItemType")),
            tags=tags,
            assignee=assignee,
            created_at=fields.get("System.CreatedDate") or "",
            updated_at=fields.get("System.ChangedDate") or "",
            source=self.name,
            url=((item.get("_links") or {}).get("html") or {}).get("href"),
        )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        result = await self._request_json("POST", "wiql", json={"query": WIQL_QUERY})
        work_items = (result or {}).get("workItems") or []
        if not work_items:
            return []

        ids = ",".join(str(wi["id"]) for wi in work_items[:MAX_BATCH])
        details = await self._request_json("GET", "workitems", params={"ids": ids})
        tasks = [self._to_task(item) for item in (details or {}).get("value") or []]
        if filter is not None:
            tasks = filter.apply(tasks)
        return tasks

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        raw_type = vocabulary_value(input.type) if input.type is not None else TaskType.TASK.value
        work_item_type = WORK_ITEM_TYPES.get(raw_type, raw_type)

        patch: list[dict[str, Any]] = [
            {"op": "add", "path": "/fields/System.Title", "value": input.title},
            {"op": "add", "path": "/fields/System.Description", "value": input.description or ""},
        ]
        if input.priority is not None and (number := priority_number(input.priority)):
            patch.append(
                {"op": "add", "path": "/fields/Microsoft.VSTS.Common.Priority", "value": number}
            )
        if input.tags:
            patch.append({"op": "add", "path": "/fields/System.Tags", "value": "; ".join(input.tags)})
        if input.assignee:
            patch.append({"op": "add", "path": "/fields/System.AssignedTo", "value": input.assignee})

        item = await self._request_json(
            "POST",
            f"workitems/${work_item_type}",
            content=json.dumps(patch),
            headers={"Content-Type": "application/json-patch+json"},
        )
        logger.info("Created Azure DevOps %s %s", work_item_type, item["id"])
        return self._to_task(item)
