"""
Canonical task models for taskbridge.

Every backend (local store, GitHub, Jira, Trello, ...) produces and consumes
these models. Python attributes are snake_case; the serialized form uses the
camelCase names of the persisted/legacy format (``dueDate``, ``blockedBy``).

Status, priority and type are open vocabularies: a value matching one of the
canonical enum members is stored as that member, anything else is preserved
verbatim as a plain string so no backend information is lost.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TaskStatus(str, Enum):
    """Canonical task status values.

    Backends map their native states onto these; unmapped states are kept
    as raw strings on the task.
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"
    BACKLOG = "backlog"


class TaskPriority(str, Enum):
    """Canonical priority levels, lowest to highest."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskType(str, Enum):
    """Canonical task/issue type values."""

    EPIC = "epic"
    STORY = "story"
    TASK = "task"
    SUBTASK = "subtask"
    BUG = "bug"
    FEATURE = "feature"
    ITEM = "item"


StatusValue = TaskStatus | str
PriorityValue = TaskPriority | str
TypeValue = TaskType | str
CustomFieldValue = str | int | float | bool


def is_canonical(value: Any) -> bool:
    """Return True if value is a canonical enum member rather than a raw passthrough."""
    return isinstance(value, (TaskStatus, TaskPriority, TaskType))


def vocabulary_value(value: StatusValue | PriorityValue | TypeValue) -> str:
    """Plain string form of a canonical or raw vocabulary value."""
    if isinstance(value, Enum):
        return str(value.value)
    return value


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting both spellings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict using the camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


class Comment(CamelModel):
    """A comment appended to a task. Comments are never edited."""

    id: str
    author: str
    content: str
    timestamp: str


class ChecklistItem(CamelModel):
    """One entry of a checklist."""

    id: str
    text: str
    completed: bool = False


class Checklist(CamelModel):
    """A titled list of checklist items owned by a task."""

    id: str
    title: str
    items: list[ChecklistItem] = Field(default_factory=list)


class Task(CamelModel):
    """
    The canonical unit of work.

    ``id`` is unique within one backend only; callers correlating tasks
    across backends must combine it with ``source``.

    Example:
        >>> task = Task(id="42", title="Fix login", status="in-progress")
        >>> task.status
        <TaskStatus.IN_PROGRESS: 'in-progress'>
        >>> Task(id="43", title="Vendor", status="Waiting on vendor").status
        'Waiting on vendor'
    """

    id: str
    title: str
    description: str = ""
    status: StatusValue = Field(default=TaskStatus.TODO, union_mode="left_to_right")
    priority: PriorityValue = Field(default=TaskPriority.MEDIUM, union_mode="left_to_right")
    type: TypeValue = Field(default=TaskType.TASK, union_mode="left_to_right")
    tags: list[str] = Field(default_factory=list)
    assignee: str | None = None
    due_date: str | None = None
    comments: list[Comment] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    # Origin tracking
    source: str | None = None
    url: str | None = None

    # Relationships (local-only concepts)
    parent_id: str | None = None
    sprint_id: str | None = None
    release_id: str | None = None
    blocked_by: list[str] = Field(default_factory=list)

    # Time tracking
    estimated_hours: float | None = None
    actual_hours: float | None = None

    checklists: list[Checklist] = Field(default_factory=list)
    custom_fields: dict[str, CustomFieldValue] = Field(default_factory=dict)
    git_branch: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", "blocked_by", "comments", "checklists", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _none_dict(cls, v: Any) -> Any:
        return {} if v is None else v

    def touch(self) -> None:
        """Refresh updated_at; every mutation must call this."""
        self.updated_at = utc_now_iso()

    def has_tag(self, tag: str) -> bool:
        """Check if the task carries a tag."""
        return tag in self.tags


class CreateTaskInput(CamelModel):
    """Fields accepted when creating a task."""

    title: str = Field(..., min_length=1)
    description: str | None = None
    status: StatusValue | None = Field(default=None, union_mode="left_to_right")
    priority: PriorityValue | None = Field(default=None, union_mode="left_to_right")
    type: TypeValue | None = Field(default=None, union_mode="left_to_right")
    assignee: str | None = None
    tags: list[str] | None = None
    due_date: str | None = None
    sprint_id: str | None = None
    blocked_by: list[str] | None = None
    parent_id: str | None = None
    release_id: str | None = None
    estimated_hours: float | None = None
    source: str | None = None


class UpdateTaskInput(CamelModel):
    """
    Partial update of a task.

    Only the fields the caller explicitly set are applied; use
    :meth:`changes` to get them.
    """

    id: str
    title: str | None = None
    description: str | None = None
    status: StatusValue | None = Field(default=None, union_mode="left_to_right")
    priority: PriorityValue | None = Field(default=None, union_mode="left_to_right")
    type: TypeValue | None = Field(default=None, union_mode="left_to_right")
    assignee: str | None = None
    tags: list[str] | None = None
    due_date: str | None = None
    sprint_id: str | None = None
    blocked_by: list[str] | None = None
    parent_id: str | None = None
    release_id: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    source: str | None = None

    def changes(self) -> dict[str, Any]:
        """Explicitly provided fields (snake_case), excluding ``id``."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "id"
        }


class TaskFilter(CamelModel):
    """
    Filter for listing tasks.

    Backends apply what they can server-side; :meth:`matches` gives the
    reference client-side semantics.
    """

    status: StatusValue | None = Field(default=None, union_mode="left_to_right")
    priority: PriorityValue | None = Field(default=None, union_mode="left_to_right")
    assignee: str | None = None
    search: str | None = None
    tags: list[str] | None = None
    sprint_id: str | None = None
    release_id: str | None = None
    parent_id: str | None = None
    type: TypeValue | None = Field(default=None, union_mode="left_to_right")

    def matches(self, task: Task) -> bool:
        """Return True if the task satisfies every set criterion."""
        if self.status is not None and _norm(task.status) != _norm(self.status):
            return False
        if self.priority is not None and _norm(task.priority) != _norm(self.priority):
            return False
        if self.type is not None and _norm(task.type) != _norm(self.type):
            return False
        if self.assignee:
            if not task.assignee or self.assignee.lower() not in task.assignee.lower():
                return False
        if self.search:
            term = self.search.lower()
            if term not in task.title.lower() and term not in task.description.lower():
                return False
        if self.tags and not all(task.has_tag(tag) for tag in self.tags):
            return False
        if self.sprint_id is not None and task.sprint_id != self.sprint_id:
            return False
        if self.release_id is not None and task.release_id != self.release_id:
            return False
        if self.parent_id is not None and task.parent_id != self.parent_id:
            return False
        return True

    def apply(self, tasks: list[Task]) -> list[Task]:
        """Filter a list client-side, preserving order."""
        return [task for task in tasks if self.matches(task)]


def _norm(value: StatusValue | PriorityValue | TypeValue) -> str:
    return vocabulary_value(value).lower()
