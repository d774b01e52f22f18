"""
Monday.com backend (GraphQL API v2).

Every call is a POST of a GraphQL document plus variables to a single
endpoint. A 200 response can still carry an ``errors`` array, which is
raised as a TransportError without a status code.
"""

from __future__ import annotations

import logging
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .exceptions import TransportError
from .models import (
    CreateTaskInput,
    StatusValue,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from .remote import RemoteBackend

logger = logging.getLogger(__name__)

API_URL = "https://api.monday.com/v2"
API_VERSION = "2023-10"
PAGE_LIMIT = 100

ITEMS_QUERY = """
query ($boardIds: [ID!], $limit: Int!) {
  boards(ids: $boardIds) {
    items_page(limit: $limit) {
      items {
        id
        name
        created_at
        updated_at
        url
        column_values { id text type }
      }
    }
  }
}
"""

CREATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemName: String!) {
  create_item(board_id: $boardId, item_name: $itemName) {
    id
    name
    created_at
    updated_at
    url
  }
}
"""

# Labels of Monday's default status column
STATUS_LABELS: dict[str, TaskStatus] = {
    "": TaskStatus.TODO,
    "working on it": TaskStatus.IN_PROGRESS,
    "stuck": TaskStatus.BLOCKED,
    "done": TaskStatus.DONE,
}


def map_status_label(text: str | None) -> StatusValue:
    label = (text or "").strip()
    return STATUS_LABELS.get(label.lower(), label)


@register_backend("monday")
class MondayBackend(RemoteBackend):
    """
    Task backend for one Monday.com board.

    Configuration:
        credentials.token: API token
        settings.boardId: board id

    Filters: applied client-side to the first 100 items. The status column
    label becomes the status; people, date and tags columns fill assignee,
    due date and tags. Only listing and creation are supported.
    """

    name = "monday"
    base_url = API_URL
    required_credentials = ("token",)
    required_settings = ("boardId",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._token = ""
        self._board_id = ""

    def _configure(self, provider: ProviderConfig) -> None:
        self._token = provider.credentials["token"]
        self._board_id = str(provider.settings["boardId"])

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self._token,
            "Content-Type": "application/json",
            "API-Version": API_VERSION,
        }

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        body = await self._request_json(
            "POST", API_URL, json={"query": query, "variables": variables}
        )
        body = body or {}
        if body.get("errors"):
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in body["errors"]
            )
            raise TransportError(self.name, None, f"GraphQL error: {messages}")
        return body.get("data") or {}

    def _to_task(self, item: dict[str, Any]) -> Task:
        status: StatusValue = TaskStatus.TODO
        assignee = None
        due_date = None
        tags: list[str] = []
        for column in item.get("column_values") or []:
            col_type = column.get("type") or ""
            text = column.get("text")
            if col_type == "status" or "status" in (column.get("id") or ""):
                status = map_status_label(text)
            elif col_type in ("people", "person") and text:
                assignee = text
            elif col_type == "date" and text:
                due_date = text
            elif col_type == "tags" and text:
                tags = [t.strip() for t in text.split(",") if t.strip()]

        return Task(
            id=str(item["id"]),
            title=item.get("name") or "",
            status=status,
            priority=TaskPriority.MEDIUM,
            type=TaskType.ITEM,
            tags=tags,
            assignee=assignee,
            due_date=due_date,
            created_at=item.get("created_at") or "",
            updated_at=item.get("updated_at") or "",
            source=self.name,
            url=item.get("url"),
        )

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        data = await self._graphql(
            ITEMS_QUERY, {"boardIds": [self._board_id], "limit": PAGE_LIMIT}
        )
        boards = data.get("boards") or []
        items: list[dict[str, Any]] = []
        if boards:
            items = ((boards[0] or {}).get("items_page") or {}).get("items") or []
        tasks = [self._to_task(item) for item in items]
        if filter is not None:
            tasks = filter.apply(tasks)
        return tasks

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        data = await self._graphql(
            CREATE_ITEM_MUTATION, {"boardId": self._board_id, "itemName": input.title}
        )
        item = data.get("create_item")
        if not item:
            raise TransportError(self.name, None, "create_item returned no item")
        logger.info("Created Monday.com item %s", item["id"])
        return self._to_task(item)
