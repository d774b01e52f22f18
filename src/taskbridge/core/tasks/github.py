"""
GitHub Issues backend.

Maps the issues of one repository onto tasks via the REST v3 API.
Pull requests, which the issues endpoint also returns, are skipped.
"""

from __future__ import annotations

import logging
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .exceptions import ConfigurationError, TaskNotFoundError, TransportError
from .models import (
    CreateTaskInput,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
    UpdateTaskInput,
    vocabulary_value,
)
from .remote import RemoteBackend

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

# Issue lookups answering with these statuses mean "no such issue for us".
# 401 is left out so a bad token surfaces as a TransportError.
MISSING_STATUSES = {403, 404, 410}


@register_backend("github")
class GitHubBackend(RemoteBackend):
    """
    Task backend for GitHub Issues.

    Configuration:
        credentials.token: personal access or app token
        settings.repo: "owner/repo"

    Filters: status and assignee are applied server-side (status "done"
    lists closed issues, anything else lists open ones), tags become the
    ``labels`` parameter, and search is applied client-side. The priority,
    type, sprint_id, release_id and parent_id filters have no issue
    counterpart and are ignored.

    Pull requests share the issue number space but are not tasks: listing
    skips them, lookups by number return None, and updates, deletes and
    comments on them raise TaskNotFoundError or return False without
    touching the pull request. Deleting an issue closes it.
    """

    name = "github"
    base_url = "https://api.github.com"
    required_credentials = ("token",)
    required_settings = ("repo",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._token = ""
        self._owner = ""
        self._repo = ""

    def _configure(self, provider: ProviderConfig) -> None:
        parts = str(provider.settings["repo"]).split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ConfigurationError(
                self.name,
                'Invalid GitHub repository format. Expected "owner/repo".',
                missing=["settings.repo"],
            )
        self._owner, self._repo = parts
        self._token = provider.credentials["token"]

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def _issues_path(self) -> str:
        return f"/repos/{self._owner}/{self._repo}/issues"

    def _to_task(self, issue: dict[str, Any]) -> Task:
        assignee = issue.get("assignee") or {}
        return Task(
            id=str(issue["number"]),
            title=issue.get("title") or "",
            description=issue.get("body") or "",
            status=TaskStatus.DONE if issue.get("state") == "closed" else TaskStatus.TODO,
            priority=TaskPriority.MEDIUM,
            type=TaskType.TASK,
            tags=[label["name"] for label in issue.get("labels") or [] if label.get("name")],
            assignee=assignee.get("login"),
            created_at=issue.get("created_at") or "",
            updated_at=issue.get("updated_at") or "",
            source=self.name,
            url=issue.get("html_url"),
        )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        params: dict[str, Any] = {"per_page": PAGE_SIZE, "state": "open"}
        if filter is not None:
            if filter.status is not None and vocabulary_value(filter.status) == TaskStatus.DONE.value:
                params["state"] = "closed"
            if filter.assignee:
                params["assignee"] = filter.assignee
            if filter.tags:
                params["labels"] = ",".join(filter.tags)

        tasks: list[Task] = []
        page = 1
        while True:
            issues = await self._request_json(
                "GET", self._issues_path, params={**params, "page": page}
            )
            issues = issues or []
            tasks.extend(self._to_task(issue) for issue in issues if "pull_request" not in issue)
            if len(issues) < PAGE_SIZE:
                break
            page += 1

        if filter is not None and filter.search:
            tasks = TaskFilter(search=filter.search).apply(tasks)
        return tasks

    async def get_task_by_id(self, task_id: str) -> Task | None:
        self._ensure_initialized()
        if not task_id.isdigit():
            return None
        try:
            issue = await self._request_json("GET", f"{self._issues_path}/{task_id}")
        except TransportError as e:
            if e.status_code in MISSING_STATUSES:
                return None
            raise
        if "pull_request" in issue:
            return None
        return self._to_task(issue)

    async def _require_issue(self, task_id: str) -> Task:
        task = await self.get_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id, self.name)
        return task

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        body: dict[str, Any] = {"title": input.title}
        if input.description is not None:
            body["body"] = input.description
        if input.assignee:
            body["assignees"] = [input.assignee]
        if input.tags:
            body["labels"] = input.tags

        issue = await self._request_json("POST", self._issues_path, json=body)
        logger.info("Created GitHub issue #%s", issue["number"])
        return self._to_task(issue)

    async def update_task(self, input: UpdateTaskInput) -> Task:
        await self._require_issue(input.id)
        changes = input.changes()
        body: dict[str, Any] = {}
        if changes.get("title"):
            body["title"] = changes["title"]
        if "description" in changes:
            body["body"] = changes["description"] or ""
        if changes.get("status") is not None:
            done = vocabulary_value(changes["status"]) == TaskStatus.DONE.value
            body["state"] = "closed" if done else "open"
        if "assignee" in changes:
            body["assignees"] = [changes["assignee"]] if changes["assignee"] else []
        if changes.get("tags") is not None:
            body["labels"] = changes["tags"]

        try:
            issue = await self._request_json(
                "PATCH", f"{self._issues_path}/{input.id}", json=body
            )
        except TransportError as e:
            if e.status_code in (404, 410):
                raise TaskNotFoundError(input.id, self.name) from e
            raise
        return self._to_task(issue)

    async def delete_task(self, task_id: str) -> bool:
        """Close the issue; GitHub tokens generally cannot delete issues."""
        try:
            await self.update_task(UpdateTaskInput(id=task_id, status=TaskStatus.DONE))
        except TaskNotFoundError:
            return False
        return True

    async def add_comment(self, task_id: str, content: str) -> Task:
        await self._require_issue(task_id)
        await self._request_json(
            "POST", f"{self._issues_path}/{task_id}/comments", json={"body": content}
        )
        return await self._require_issue(task_id)
