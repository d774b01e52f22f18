"""
Jira Cloud backend (REST API v3).

Rich text travels as Atlassian Document Format (ADF): descriptions and
comments are wrapped into a single-paragraph document on the way out and
flattened back to plain text on the way in.
"""

from __future__ import annotations

import logging
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .exceptions import ConfigurationError, TaskNotFoundError, TaskValidationError, TransportError
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
    UpdateTaskInput,
    vocabulary_value,
)
from .remote import RemoteBackend

logger = logging.getLogger(__name__)

MAX_RESULTS = 50

TYPE_MAP: dict[str, TaskType] = {
    "story": TaskType.STORY,
    "epic": TaskType.EPIC,
    "bug": TaskType.BUG,
    "task": TaskType.TASK,
    "sub-task": TaskType.SUBTASK,
    "subtask": TaskType.SUBTASK,
}

PRIORITY_MAP: dict[str, TaskPriority] = {
    "highest": TaskPriority.URGENT,
    "high": TaskPriority.HIGH,
    "medium": TaskPriority.MEDIUM,
    "low": TaskPriority.LOW,
    "lowest": TaskPriority.LOW,
}

JIRA_TYPE_NAMES: dict[str, str] = {
    TaskType.STORY.value: "Story",
    TaskType.EPIC.value: "Epic",
    TaskType.BUG.value: "Bug",
    TaskType.TASK.value: "Task",
    TaskType.SUBTASK.value: "Subtask",
}

JIRA_PRIORITY_NAMES: dict[str, str] = {
    TaskPriority.URGENT.value: "Highest",
    TaskPriority.HIGH.value: "High",
    TaskPriority.MEDIUM.value: "Medium",
    TaskPriority.LOW.value: "Low",
}


def map_status(name: str) -> StatusValue:
    """Map a Jira status name onto the canonical vocabulary."""
    lowered = name.lower()
    if lowered in ("done", "closed", "completed", "resolved"):
        return TaskStatus.DONE
    if "in progress" in lowered:
        return TaskStatus.IN_PROGRESS
    if "to do" in lowered or lowered == "todo" or lowered == "open":
        return TaskStatus.TODO
    if "backlog" in lowered:
        return TaskStatus.BACKLOG
    if "review" in lowered:
        return TaskStatus.REVIEW
    if "blocked" in lowered:
        return TaskStatus.BLOCKED
    return name


def map_priority(name: str | None) -> PriorityValue:
    if not name:
        return TaskPriority.MEDIUM
    return PRIORITY_MAP.get(name.lower(), name)


def map_type(name: str | None) -> TypeValue:
    if not name:
        return TaskType.TASK
    return TYPE_MAP.get(name.lower(), name)


def to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text in a one-paragraph ADF document."""
    # ADF rejects empty text nodes
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text or " "}]}],
    }


def from_adf(value: Any) -> str:
    """Flatten an ADF document (or a plain v2 string) to text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return ""

    def collect(node: Any) -> str:
        if not isinstance(node, dict):
            return ""
        if node.get("type") == "text":
            return str(node.get("text", ""))
        if node.get("type") == "hardBreak":
            return "\n"
        return "".join(collect(child) for child in node.get("content") or [])

    blocks = [collect(block) for block in value.get("content") or []]
    return "\n".join(blocks).strip()


def _jql_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


@register_backend("jira")
class JiraBackend(RemoteBackend):
    """
    Task backend for Jira Cloud.

    Configuration:
        credentials.email, credentials.token: basic auth pair
        settings.domain: e.g. "myorg.atlassian.net"
        settings.projectKey: project to list from and create in (required
            for create_task)

    Filters: search and the project scope go into JQL; the remaining
    criteria are applied client-side to the first 50 results. Status
    updates are performed through the issue's workflow transitions.
    """

    name = "jira"
    required_credentials = ("email", "token")
    required_settings = ("domain",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._domain = ""
        self._email = ""
        self._token = ""
        self._project_key = ""

    def _configure(self, provider: ProviderConfig) -> None:
        domain = str(provider.settings["domain"]).strip()
        for scheme in ("https://", "http://"):
            if domain.startswith(scheme):
                domain = domain[len(scheme):]
        self._domain = domain.rstrip("/")
        self._email = provider.credentials["email"]
        self._token = provider.credentials["token"]
        self._project_key = str(provider.settings.get("projectKey") or "")

    def _url(self, path: str) -> str:
        return f"https://{self._domain}/rest/api/3/{path.lstrip('/')}"

    def _auth(self) -> tuple[str, str]:
        return (self._email, self._token)

    def _to_task(self, issue: dict[str, Any]) -> Task:
        fields = issue.get("fields") or {}
        status = (fields.get("status") or {}).get("name") or ""
        priority = (fields.get("priority") or {}).get("name")
        issue_type = (fields.get("issuetype") or {}).get("name")
        assignee = (fields.get("assignee") or {}).get("displayName")
        key = issue["key"]
        return Task(
            id=key,
            title=fields.get("summary") or "",
            description=from_adf(fields.get("description")),
            status=map_status(status) if status else TaskStatus.TODO,
            priority=map_priority(priority),
            type=map_type(issue_type),
            tags=list(fields.get("labels") or []),
            assignee=assignee,
            due_date=fields.get("duedate"),
            created_at=fields.get("created") or "",
            updated_at=fields.get("updated") or "",
            source=self.name,
            url=f"https://{self._domain}/browse/{key}",
        )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        clauses = []
        if self._project_key:
            clauses.append(f"project = {_jql_quote(self._project_key)}")
        if filter is not None and filter.search:
            clauses.append(f"text ~ {_jql_quote(filter.search)}")
        jql = " AND ".join(clauses)
        jql = f"{jql} ORDER BY created DESC" if jql else "ORDER BY created DESC"

        data = await self._request_json(
            "GET", "search", params={"jql": jql, "maxResults": MAX_RESULTS}
        )
        tasks = [self._to_task(issue) for issue in (data or {}).get("issues") or []]

        if filter is not None:
            # search already ran server-side over more than title/description
            tasks = filter.model_copy(update={"search": None}).apply(tasks)
        return tasks

    async def get_task_by_id(self, task_id: str) -> Task | None:
        self._ensure_initialized()
        try:
            issue = await self._request_json("GET", f"issue/{task_id}")
        except TransportError as e:
            # 401 is an auth failure, not a missing issue
            if e.status_code in (403, 404):
                return None
            raise
        return self._to_task(issue)

    async def _fetch_after_write(self, task_id: str) -> Task:
        task = await self.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.name)
        return task

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        if not self._project_key:
            raise ConfigurationError(
                self.name,
                "Project key required in settings to create issues",
                missing=["settings.projectKey"],
            )

        fields: dict[str, Any] = {
            "project": {"key": self._project_key},
            "summary": input.title,
            "issuetype": {"name": _type_name(input.type)},
        }
        if input.description:
            fields["description"] = to_adf(input.description)
        if input.priority is not None:
            fields["priority"] = {"name": _priority_name(input.priority)}
        if input.tags:
            fields["labels"] = input.tags
        if input.due_date:
            fields["duedate"] = input.due_date

        created = await self._request_json("POST", "issue", json={"fields": fields})
        logger.info("Created Jira issue %s", created["key"])
        return await self._fetch_after_write(created["key"])

    async def update_task(self, input: UpdateTaskInput) -> Task:
        self._ensure_initialized()
        changes = input.changes()
        fields: dict[str, Any] = {}
        if changes.get("title"):
            fields["summary"] = changes["title"]
        if "description" in changes:
            fields["description"] = to_adf(changes["description"] or "")
        if changes.get("priority") is not None:
            fields["priority"] = {"name": _priority_name(changes["priority"])}
        if changes.get("tags") is not None:
            fields["labels"] = changes["tags"]
        if "due_date" in changes:
            fields["duedate"] = changes["due_date"]

        try:
            if fields:
                await self._request("PUT", f"issue/{input.id}", json={"fields": fields})
            if changes.get("status") is not None:
                await self._transition(input.id, changes["status"])
        except TransportError as e:
            if e.status_code == 404:
                raise TaskNotFoundError(input.id, self.name) from e
            raise

        return await self._fetch_after_write(input.id)

    async def _transition(self, task_id: str, status: StatusValue) -> None:
        """Move an issue through the workflow transition leading to status."""
        wanted = vocabulary_value(status).lower()
        data = await self._request_json("GET", f"issue/{task_id}/transitions")
        for transition in (data or {}).get("transitions") or []:
            target = (transition.get("to") or {}).get("name") or transition.get("name") or ""
            names = {target.lower(), str(transition.get("name", "")).lower()}
            if wanted in names or vocabulary_value(map_status(target)) == wanted:
                await self._request(
                    "POST",
                    f"issue/{task_id}/transitions",
                    json={"transition": {"id": transition["id"]}},
                )
                return
        raise TaskValidationError(
            f"No workflow transition leads issue {task_id} to status '{vocabulary_value(status)}'",
            task_id=task_id,
        )

    async def delete_task(self, task_id: str) -> bool:
        self._ensure_initialized()
        try:
            await self._request("DELETE", f"issue/{task_id}")
        except TransportError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    async def add_comment(self, task_id: str, content: str) -> Task:
        self._ensure_initialized()
        await self._request("POST", f"issue/{task_id}/comment", json={"body": to_adf(content)})
        return await self._fetch_after_write(task_id)


def _type_name(value: TypeValue | None) -> str:
    if value is None:
        return "Task"
    raw = vocabulary_value(value)
    return JIRA_TYPE_NAMES.get(raw, raw)


def _priority_name(value: PriorityValue) -> str:
    raw = vocabulary_value(value)
    return JIRA_PRIORITY_NAMES.get(raw, raw)
