"""
Trello backend (REST API v1).

Trello has no status field; the name of the list a card sits in is used
as its status instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from taskbridge.core.config.models import ProviderConfig

from .backend import register_backend
from .exceptions import TaskValidationError, TransportError
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

LIST_STATUS_MAP: dict[str, TaskStatus] = {
    "to do": TaskStatus.TODO,
    "todo": TaskStatus.TODO,
    "doing": TaskStatus.IN_PROGRESS,
    "in progress": TaskStatus.IN_PROGRESS,
    "blocked": TaskStatus.BLOCKED,
    "review": TaskStatus.REVIEW,
    "in review": TaskStatus.REVIEW,
    "done": TaskStatus.DONE,
    "backlog": TaskStatus.BACKLOG,
}


def list_status(list_name: str | None) -> StatusValue:
    """Map a Trello list name to a status; unknown names pass through."""
    if not list_name:
        return TaskStatus.TODO
    return LIST_STATUS_MAP.get(list_name.strip().lower(), list_name)


def card_created_at(card_id: str) -> str:
    """
    Creation time encoded in a card id.

    The first 8 hex digits of a Trello object id are a Unix timestamp.
    """
    try:
        seconds = int(card_id[:8], 16)
    except ValueError:
        return ""
    created = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@register_backend("trello")
class TrelloBackend(RemoteBackend):
    """
    Task backend for one Trello board.

    Configuration:
        credentials.key, credentials.token: API key and token
        settings.boardId: board to read and write

    Filters: applied client-side. New cards go into the board's first list.
    Updating cards and commenting are not supported.
    """

    name = "trello"
    base_url = "https://api.trello.com/1"
    required_credentials = ("key", "token")
    required_settings = ("boardId",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._key = ""
        self._token = ""
        self._board_id = ""

    def _configure(self, provider: ProviderConfig) -> None:
        self._key = provider.credentials["key"]
        self._token = provider.credentials["token"]
        self._board_id = str(provider.settings["boardId"])

    def _default_params(self) -> dict[str, Any]:
        return {"key": self._key, "token": self._token}

    def _to_task(self, card: dict[str, Any], list_name: str | None) -> Task:
        created = card_created_at(card["id"])
        members = card.get("idMembers") or []
        return Task(
            id=card["id"],
            title=card.get("name") or "",
            description=card.get("desc") or "",
            status=list_status(list_name),
            priority=TaskPriority.MEDIUM,
            type=TaskType.TASK,
            tags=[label["name"] for label in card.get("labels") or [] if label.get("name")],
            assignee=members[0] if members else None,
            due_date=card.get("due"),
            created_at=created,
            updated_at=card.get("dateLastActivity") or created,
            source=self.name,
            url=card.get("url") or card.get("shortUrl"),
        )

    async def _lists(self) -> list[dict[str, Any]]:
        return await self._request_json("GET", f"/boards/{self._board_id}/lists") or []

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        self._ensure_initialized()
        list_names = {lst["id"]: lst.get("name") for lst in await self._lists()}
        cards = await self._request_json("GET", f"/boards/{self._board_id}/cards") or []
        tasks = [self._to_task(card, list_names.get(card.get("idList"))) for card in cards]
        if filter is not None:
            tasks = filter.apply(tasks)
        return tasks

    async def get_task_by_id(self, task_id: str) -> Task | None:
        self._ensure_initialized()
        try:
            card = await self._request_json("GET", f"/cards/{task_id}")
            card_list = await self._request_json("GET", f"/cards/{task_id}/list")
        except TransportError as e:
            # Trello answers 400 for malformed ids
            if e.status_code in (400, 404):
                return None
            raise
        return self._to_task(card, (card_list or {}).get("name"))

    async def create_task(self, input: CreateTaskInput) -> Task:
        self._ensure_initialized()
        lists = await self._lists()
        if not lists:
            raise TaskValidationError(
                f"Trello board {self._board_id} has no lists to create a card in",
                board_id=self._board_id,
            )
        first = lists[0]

        params: dict[str, Any] = {
            "idList": first["id"],
            "name": input.title,
            "desc": input.description or "",
        }
        if input.due_date:
            params["due"] = input.due_date

        card = await self._request_json("POST", "/cards", params=params)
        logger.info("Created Trello card %s in list %s", card["id"], first.get("name"))
        return self._to_task(card, first.get("name"))

    async def delete_task(self, task_id: str) -> bool:
        self._ensure_initialized()
        try:
            await self._request("DELETE", f"/cards/{task_id}")
        except TransportError as e:
            if e.status_code in (400, 404):
                return False
            raise
        return True
