"""
One-shot import of the legacy flat-file database.

Before the SQLite store, all local data lived in a single ``db.json``:

    {
      "tasks": [...], "sprints": [...], "releases": [...],
      "auditLogs": [...], "wikiPages": [...], "discussions": [...],
      "lastUpdated": "2025-01-01T00:00:00.000Z"
    }

The import runs at most once. Its state is read from the filesystem:

    NOT_MIGRATED  db.json exists
    MIGRATING     import transaction in progress
    MIGRATED      db.json.bak exists and db.json does not
    NOT_NEEDED    no legacy file, or nothing to import
    FAILED        last attempt rolled back; db.json left untouched

The rename to ``db.json.bak`` is the marker that prevents a second import.
If the rename fails after a committed import, the next run finds every
legacy task already in the store and retries the rename instead of
importing again.
"""

import json
import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.knowledge.models import Discussion, WikiPage
from taskbridge.core.planning.models import Release, Sprint
from taskbridge.core.store.database import LocalStore
from taskbridge.core.tasks.models import Task

logger = logging.getLogger(__name__)

LEGACY_FILENAME = "db.json"
BACKUP_SUFFIX = ".bak"


class MigrationState(str, Enum):
    """States of the legacy import."""

    NOT_MIGRATED = "not-migrated"
    MIGRATING = "migrating"
    MIGRATED = "migrated"
    NOT_NEEDED = "not-needed"
    FAILED = "failed"


class LegacyFormatError(Exception):
    """Raised when the legacy file cannot be read or parsed."""


class LegacyMigrator:
    """
    Imports a legacy ``db.json`` into a LocalStore.

    Example:
        >>> migrator = LegacyMigrator(store, data_dir / "db.json")
        >>> migrator.migrate()
        <MigrationState.MIGRATED: 'migrated'>
        >>> migrator.migrate()  # second run is a no-op
        <MigrationState.MIGRATED: 'migrated'>
    """

    def __init__(self, store: LocalStore, legacy_path: Path) -> None:
        self.store = store
        self.legacy_path = Path(legacy_path)
        self.backup_path = self.legacy_path.with_name(self.legacy_path.name + BACKUP_SUFFIX)
        self._in_progress = False
        self._failed = False
        self._imported = False

    @property
    def state(self) -> MigrationState:
        """Current state derived from the filesystem marker."""
        if self._in_progress:
            return MigrationState.MIGRATING
        if self.legacy_path.exists():
            if self._imported:
                return MigrationState.MIGRATED
            return MigrationState.FAILED if self._failed else MigrationState.NOT_MIGRATED
        if self.backup_path.exists():
            return MigrationState.MIGRATED
        return MigrationState.NOT_NEEDED

    def _read_legacy(self) -> dict[str, Any]:
        try:
            data = json.loads(self.legacy_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LegacyFormatError(f"Failed to read {self.legacy_path}: {e}") from e
        if not isinstance(data, dict):
            raise LegacyFormatError(f"{self.legacy_path} must contain a JSON object")
        return data

    def migrate(self) -> MigrationState:
        """
        Import the legacy file if it exists and the store has no tasks.

        All entities are written in one transaction. On success the legacy
        file is renamed with a ``.bak`` suffix. On any import failure the
        transaction is rolled back and the legacy file is left in place. A
        failed rename is logged and the result is still MIGRATED.

        Returns:
            The resulting MigrationState
        """
        state = self.state
        if state in (MigrationState.MIGRATED, MigrationState.NOT_NEEDED):
            return state

        try:
            legacy = self._read_legacy()
        except LegacyFormatError as e:
            logger.error("Legacy migration skipped: %s", e)
            self._failed = True
            return MigrationState.FAILED

        legacy_tasks = legacy.get("tasks") or []
        if not legacy_tasks:
            logger.info("Legacy file %s has no tasks; nothing to migrate", self.legacy_path)
            return MigrationState.NOT_NEEDED
        if self.store.count_tasks() > 0:
            if self._already_imported(legacy_tasks):
                logger.info("%s was imported earlier; archiving it", self.legacy_path)
                self._imported = True
                self._archive()
                return MigrationState.MIGRATED
            logger.warning(
                "Store already has tasks; not importing %s to avoid duplicates",
                self.legacy_path,
            )
            return MigrationState.NOT_NEEDED

        logger.info("Migrating legacy database %s to SQLite...", self.legacy_path)
        self._in_progress = True
        try:
            with self.store.transaction():
                counts = self._import(legacy)
        except (ValidationError, sqlite3.Error, ValueError, TypeError) as e:
            logger.error("Failed to migrate legacy database: %s", e)
            self._failed = True
            return MigrationState.FAILED
        finally:
            self._in_progress = False

        self._failed = False
        self._imported = True
        self._archive()
        logger.info("Migration complete: %s", ", ".join(f"{v} {k}" for k, v in counts.items()))
        return MigrationState.MIGRATED

    def _already_imported(self, legacy_tasks: list[Any]) -> bool:
        """True if every legacy task id is already in the store."""
        ids = [t.get("id") for t in legacy_tasks if isinstance(t, dict)]
        return bool(ids) and all(
            isinstance(task_id, str) and self.store.get_task_by_id(task_id) is not None
            for task_id in ids
        )

    def _archive(self) -> bool:
        """Rename the legacy file to its backup name; a failure is logged, not raised."""
        try:
            self.legacy_path.rename(self.backup_path)
        except OSError as e:
            logger.warning(
                "Imported %s but could not rename it to %s: %s. The rename is retried on next start.",
                self.legacy_path,
                self.backup_path.name,
                e,
            )
            return False
        return True

    def _import(self, legacy: dict[str, Any]) -> dict[str, int]:
        counts: dict[str, int] = {}

        tasks = [Task.model_validate(t) for t in legacy.get("tasks") or []]
        for task in tasks:
            if task.id in task.blocked_by:
                task.blocked_by = [b for b in task.blocked_by if b != task.id]
            self.store.add_task(task)
        counts["tasks"] = len(tasks)

        sprints = [Sprint.model_validate(s) for s in legacy.get("sprints") or []]
        for sprint in sprints:
            self.store.add_sprint(sprint)
        counts["sprints"] = len(sprints)

        releases = [Release.model_validate(r) for r in legacy.get("releases") or []]
        for release in releases:
            self.store.add_release(release)
        counts["releases"] = len(releases)

        entries = [AuditLogEntry.model_validate(a) for a in legacy.get("auditLogs") or []]
        for entry in entries:
            self.store.add_audit_log(entry)
        counts["audit entries"] = len(entries)

        pages = [WikiPage.model_validate(w) for w in legacy.get("wikiPages") or []]
        for page in pages:
            self.store.save_wiki_page(page)
        counts["wiki pages"] = len(pages)

        discussions = [Discussion.model_validate(d) for d in legacy.get("discussions") or []]
        for discussion in discussions:
            self.store.save_discussion(discussion)
        counts["discussions"] = len(discussions)

        return counts
