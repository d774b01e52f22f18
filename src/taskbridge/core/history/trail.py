"""
Append-only audit trail of task field changes.

Handlers that mutate task fields call :meth:`AuditTrail.log_change` once
per changed field. Values are compared by their canonical JSON form, so a
write is skipped whenever old and new serialize identically, regardless of
object identity or dict key order.
"""

import json
import logging
import uuid
from collections.abc import Iterable
from typing import Any

from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.store.database import LocalStore
from taskbridge.core.tasks.models import Task, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "taskbridge"

# Fields compared as unordered collections
UNORDERED_FIELDS = {"tags"}


def canonical_json(value: Any) -> str:
    """Serialize a value so that deep-equal values produce equal strings."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


class AuditTrail:
    """
    Writes and reads field-level change history through the LocalStore.

    Example:
        >>> trail = AuditTrail(store)
        >>> trail.log_change("t-1", "status", "todo", "done")
        AuditLogEntry(...)
        >>> trail.log_change("t-1", "tags", ["a"], ["a"]) is None
        True
    """

    def __init__(self, store: LocalStore, actor: str = DEFAULT_ACTOR) -> None:
        self.store = store
        self.actor = actor

    def log_change(
        self,
        task_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        changed_by: str | None = None,
    ) -> AuditLogEntry | None:
        """
        Record one field change.

        Args:
            task_id: Task whose field changed
            field: Field name, in the persisted camelCase spelling
            old_value: Value before the change (any JSON value)
            new_value: Value after the change (any JSON value)
            changed_by: Actor; defaults to the trail's actor

        Returns:
            The written entry, or None when the values are equal
        """
        if canonical_json(old_value) == canonical_json(new_value):
            return None

        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            task_id=task_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by or self.actor,
            timestamp=utc_now_iso(),
        )
        self.store.add_audit_log(entry)
        logger.debug("audit %s.%s: %r -> %r", task_id, field, old_value, new_value)
        return entry

    def log_changes(
        self,
        before: Task,
        after: Task,
        fields: Iterable[str],
        changed_by: str | None = None,
    ) -> list[AuditLogEntry]:
        """
        Record every changed field between two versions of a task.

        Tags are compared as a whole, order-insensitive array and logged as
        one replacement entry.

        Args:
            before: Task before the mutation
            after: Task after the mutation
            fields: Python attribute names to compare
            changed_by: Actor; defaults to the trail's actor

        Returns:
            The entries written, one per changed field
        """
        old_data = before.to_json_dict()
        new_data = after.to_json_dict()
        aliases = {name: info.alias or name for name, info in Task.model_fields.items()}

        written = []
        for name in fields:
            key = aliases.get(name, name)
            old_value = old_data.get(key)
            new_value = new_data.get(key)
            if name in UNORDERED_FIELDS and canonical_json(sorted(old_value or [])) == (
                canonical_json(sorted(new_value or []))
            ):
                continue
            entry = self.log_change(before.id, key, old_value, new_value, changed_by)
            if entry is not None:
                written.append(entry)
        return written

    def get_history(self, task_id: str) -> list[AuditLogEntry]:
        """
        Change history of a task.

        Returns:
            Entries ordered newest first
        """
        return self.store.get_audit_logs_for_task(task_id)
