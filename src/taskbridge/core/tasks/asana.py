"""Asana backend (REST API 1.0)."""

from __future__ import annotations

import logging
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .exceptions import TransportError
from .models import (
    CreateTaskInput,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    vocabulary_value,
)
from .remote import RemoteBackend

logger = logging.getLogger(__name__)

PAGE_LIMIT = 100

OPT_FIELDS = ",".join(
    [
        "name",
        "notes",
        "completed",
        "created_at",
        "modified_at",
        "due_on",
        "assignee.name",
        "tags.name",
        "permalink_url",
    ]
)


@register_backend("asana")
class AsanaBackend(RemoteBackend):
    """
    Task backend for one Asana project.

    Configuration:
        credentials.token: personal access token
        settings.projectId: project gid

    Filters: applied client-side to the first 100 tasks. ``completed``
    maps to done, everything else to todo. Updating and commenting are not
    supported.
    """

    name = "asana"
    base_url = "https://app.asana.com/api/1.0"
    required_credentials = ("token",)
    required_settings = ("projectId",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._token = ""
        self._project_id = ""

    def _configure(self, provider: ProviderConfig) -> None:
        self._token = provider.credentials["token"]
        self._project_id = str(provider.settings["projectId"])

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}", "Accept": "application/json"}

    def _to_task(self, data: dict[str, Any]) -> Task:
        assignee = data.get("assignee") or {}
        created = data.get("created_at") or ""
        return Task(
            id=str(data["gid"]),
            title=data.get("name") or "",
            description=data.get("notes") or "",
            status=TaskStatus.DONE if data.get("completed") else TaskStatus.TODO,
            priority=TaskPriority.MEDIUM,
            type=TaskType.TASK,
            tags=[tag["name"] for tag in data.get("tags") or [] if tag.get("name")],
            assignee=assignee.get("name"),
            due_date=data.get("due_on"),
            created_at=created,
            updated_at=data.get("modified_at") or created,
            source=self.name,
            url=data.get("permalink_url"),
        )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        body = await self._request_json(
            "GET",
            "/tasks",
            params={"project": self._project_id, "opt_fields": OPT_FIELDS, "limit": PAGE_LIMIT},
        )
        tasks = [self._to_task(item) for item in (body or {}).get("data") or []]
        if filter is not None:
            tasks = filter.apply(tasks)
        return tasks

    async def get_task_by_id(self, task_id: str) -> Task | None:
        self._ensure_initialized()
        try:
            body = await self._request_json(
                "GET", f"/tasks/{task_id}", params={"opt_fields": OPT_FIELDS}
            )
        except TransportError as e:
            if e.status_code in (403, 404):
                return None
            raise
        return self._to_task(body["data"])

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        data: dict[str, Any] = {"name": input.title, "projects": [self._project_id]}
        if input.description is not None:
            data["notes"] = input.description
        if input.due_date:
            data["due_on"] = input.due_date
        if input.status is not None and vocabulary_value(input.status) == TaskStatus.DONE.value:
            data["completed"] = True

        body = await self._request_json(
            "POST", "/tasks", json={"data": data}, params={"opt_fields": OPT_FIELDS}
        )
        logger.info("Created Asana task %s", body["data"]["gid"])
        return self._to_task(body["data"])

    async def delete_task(self, task_id: str) -> bool:
        self._ensure_initialized()
        try:
            await self._request("DELETE", f"/tasks/{task_id}")
        except TransportError as e:
            if e.status_code == 404:
                return False
            raise
        return True
