"""
Audit log models.

One AuditLogEntry is written per changed task field. Entries are immutable
once created.
"""

from typing import Any

from pydantic import ConfigDict

from taskbridge.core.tasks.models import CamelModel


class AuditLogEntry(CamelModel):
    """A single field-level change to a task."""

    model_config = ConfigDict(frozen=True)

    id: str
    task_id: str
    field: str
    old_value: Any = None
    new_value: Any = None
    changed_by: str
    timestamp: str
