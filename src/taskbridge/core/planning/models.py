"""
Sprint and release models.

Planning entities exist only in the local store.
"""

from enum import Enum

from taskbridge.core.tasks.models import CamelModel


class SprintStatus(str, Enum):
    """Sprint lifecycle states. At most one sprint is ACTIVE at a time."""

    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ReleaseStatus(str, Enum):
    """Release lifecycle states."""

    PLANNED = "planned"
    STARTED = "started"
    RELEASED = "released"
    ARCHIVED = "archived"


class Sprint(CamelModel):
    """A time-boxed iteration."""

    id: str
    name: str
    start_date: str
    end_date: str
    status: SprintStatus = SprintStatus.PLANNED
    goal: str | None = None


class Release(CamelModel):
    """A named version that tasks can be targeted at."""

    id: str
    name: str
    status: ReleaseStatus = ReleaseStatus.PLANNED
    release_date: str | None = None
    description: str | None = None
