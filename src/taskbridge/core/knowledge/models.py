"""
Wiki page and discussion models.
"""

from enum import Enum

from pydantic import Field

from taskbridge.core.tasks.models import CamelModel


class DiscussionStatus(str, Enum):
    """Discussion thread states."""

    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class WikiPage(CamelModel):
    """A project documentation page addressed by its slug."""

    id: str
    slug: str
    title: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    last_updated: str = ""


class DiscussionMessage(CamelModel):
    """One message in a discussion thread."""

    id: str
    author: str
    content: str
    timestamp: str


class Discussion(CamelModel):
    """A discussion thread. Messages are append-only."""

    id: str
    title: str
    status: DiscussionStatus = DiscussionStatus.OPEN
    messages: list[DiscussionMessage] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
