"""
SQLite-backed local store for taskbridge.

The LocalStore is the only writer of local entities: tasks, sprints,
releases, audit log entries, wiki pages and discussions. One connection is
opened at construction and kept for the lifetime of the process.

Nested values (tags, comments, checklists, custom fields, dependencies,
audit values, messages) are stored as JSON text and decoded on every read.
A stored value that fails to decode is replaced by its empty default and a
warning is logged; a row that still does not form a valid model is skipped
with a warning. Reads never fail because of malformed persisted data.

Usage:
    store = LocalStore(Path("~/.local/share/taskbridge/taskbridge.sqlite"))
    store.add_task(Task(id="abc", title="Write docs"))
    task = store.get_task_by_id("abc")
"""

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.knowledge.models import Discussion, WikiPage
from taskbridge.core.planning.models import Release, Sprint
from taskbridge.core.store.schema import (
    AUDIT_COLUMNS,
    DISCUSSION_COLUMNS,
    RELEASE_COLUMNS,
    SPRINT_COLUMNS,
    TASK_COLUMNS,
    TASK_JSON_COLUMNS,
    WIKI_COLUMNS,
    create_schema,
    needs_migration,
)
from taskbridge.core.tasks.models import Task, utc_now_iso

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Row factory that returns rows as dictionaries."""
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _loads(raw: str | None, default: Any, where: str) -> Any:
    """Decode a JSON column, falling back to a copy of default when malformed."""
    fallback = json.loads(json.dumps(default))
    if raw is None or raw == "":
        return fallback
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Malformed JSON in %s; resetting to %r", where, default)
        return fallback
    if default is not None and not isinstance(value, type(default)):
        logger.warning("Unexpected JSON type in %s; resetting to %r", where, default)
        return fallback
    return value


def _validate(model: type[ModelT], data: dict[str, Any], where: str) -> ModelT | None:
    """Build a model from a stored row, or log and return None when it does not validate."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Skipping unreadable row in %s: %s", where, e)
        return None


def _present(items: Iterable[ModelT | None]) -> list[ModelT]:
    return [item for item in items if item is not None]


def _escape_like(text: str) -> str:
    """Escape LIKE wildcards so text matches literally (with ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _insert_sql(table: str, columns: list[str]) -> str:
    names = ", ".join(columns)
    params = ", ".join(f":{c}" for c in columns)
    return f"INSERT INTO {table} ({names}) VALUES ({params})"


def _params(data: dict[str, Any], columns: list[str]) -> dict[str, Any]:
    return {column: data.get(column) for column in columns}


class LocalStore:
    """
    Durable storage for local-only data.

    Write methods commit immediately unless called inside
    :meth:`transaction`, in which case the whole block commits or rolls
    back together.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._configure_conn(self._conn)
        self._transaction_depth = 0

        if needs_migration(self._conn):
            create_schema(self._conn)

        logger.info("LocalStore ready db=%s tasks=%s", self.db_path, self.count_tasks())

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = dict_factory

    def close(self) -> None:
        """Close the connection. Only needed by tests and short-lived CLI runs."""
        self._conn.close()

    # ---- transactions ----

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Group several writes into one atomic transaction.

        Commits when the block exits normally, rolls back if it raises.
        Nested use joins the outer transaction.
        """
        self._transaction_depth += 1
        try:
            yield self._conn
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._conn.rollback()
            raise
        else:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._conn.commit()

    def _write(self, sql: str, params: dict[str, Any] | tuple[Any, ...] = ()) -> int:
        """Execute a write statement and return the affected row count."""
        cursor = self._conn.execute(sql, params)
        if self._transaction_depth == 0:
            self._conn.commit()
        return cursor.rowcount

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        return self._conn.execute(sql, params).fetchall()

    def _query_one(self, sql: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        return self._conn.execute(sql, params).fetchone()

    # ---- tasks ----

    @staticmethod
    def _task_to_row(task: Task) -> dict[str, Any]:
        data = task.to_json_dict()
        for column in TASK_JSON_COLUMNS:
            data[column] = _dumps(data.get(column, TASK_JSON_COLUMNS[column]))
        return _params(data, TASK_COLUMNS)

    @staticmethod
    def _row_to_task(row: dict[str, Any]) -> Task | None:
        data = {k: v for k, v in row.items() if v is not None}
        for column, default in TASK_JSON_COLUMNS.items():
            data[column] = _loads(row.get(column), default, f"tasks.{column} ({row.get('id')})")
        return _validate(Task, data, f"tasks ({row.get('id')})")

    def count_tasks(self) -> int:
        """Number of stored tasks."""
        row = self._query_one("SELECT COUNT(*) AS c FROM tasks")
        return int(row["c"]) if row else 0

    def get_tasks(self) -> list[Task]:
        """All tasks in insertion order."""
        rows = self._query("SELECT * FROM tasks ORDER BY rowid")
        return _present(self._row_to_task(r) for r in rows)

    def get_task_by_id(self, task_id: str) -> Task | None:
        """
        Get a task by ID.

        Returns:
            Task if found, None otherwise
        """
        row = self._query_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if row is None:
            return None
        return self._row_to_task(row)

    def add_task(self, task: Task) -> Task:
        """
        Insert a new task.

        Fills created_at/updated_at with the current time when empty.

        Returns:
            The task as stored

        Raises:
            sqlite3.IntegrityError: If a task with the same id exists
        """
        stored = task.model_copy(deep=True)
        now = utc_now_iso()
        if not stored.created_at:
            stored.created_at = now
        if not stored.updated_at:
            stored.updated_at = stored.created_at
        self._write(_insert_sql("tasks", TASK_COLUMNS), self._task_to_row(stored))
        return stored

    def update_task(self, task: Task) -> bool:
        """
        Overwrite an existing task.

        Refreshes ``task.updated_at`` in place. Unknown ids are a silent
        no-op; callers needing confirmation check get_task_by_id first.

        Returns:
            True if a row was updated
        """
        task.touch()
        assignments = ", ".join(f"{c} = :{c}" for c in TASK_COLUMNS if c != "id")
        changed = self._write(
            f"UPDATE tasks SET {assignments} WHERE id = :id", self._task_to_row(task)
        )
        if changed == 0:
            logger.debug("update_task: no task with id %s", task.id)
        return changed > 0

    def delete_task(self, task_id: str) -> bool:
        """
        Delete a task.

        Returns:
            True if a task was deleted, False if none had that id
        """
        return self._write("DELETE FROM tasks WHERE id = ?", (task_id,)) > 0

    # ---- sprints ----

    def get_sprints(self) -> list[Sprint]:
        """All sprints in insertion order."""
        rows = self._query("SELECT * FROM sprints ORDER BY rowid")
        return _present(_validate(Sprint, r, f"sprints ({r.get('id')})") for r in rows)

    def get_sprint(self, sprint_id: str) -> Sprint | None:
        """Get a sprint by ID, or None."""
        row = self._query_one("SELECT * FROM sprints WHERE id = ?", (sprint_id,))
        return _validate(Sprint, row, f"sprints ({sprint_id})") if row else None

    def add_sprint(self, sprint: Sprint) -> None:
        """Insert a sprint."""
        self._write(
            _insert_sql("sprints", SPRINT_COLUMNS), _params(sprint.to_json_dict(), SPRINT_COLUMNS)
        )

    def update_sprint(self, sprint: Sprint) -> bool:
        """Overwrite a sprint; unknown ids are a no-op."""
        assignments = ", ".join(f"{c} = :{c}" for c in SPRINT_COLUMNS if c != "id")
        return (
            self._write(
                f"UPDATE sprints SET {assignments} WHERE id = :id",
                _params(sprint.to_json_dict(), SPRINT_COLUMNS),
            )
            > 0
        )

    # ---- releases ----

    def get_releases(self) -> list[Release]:
        """All releases in insertion order."""
        rows = self._query("SELECT * FROM releases ORDER BY rowid")
        return _present(_validate(Release, r, f"releases ({r.get('id')})") for r in rows)

    def get_release(self, release_id: str) -> Release | None:
        """Get a release by ID, or None."""
        row = self._query_one("SELECT * FROM releases WHERE id = ?", (release_id,))
        return _validate(Release, row, f"releases ({release_id})") if row else None

    def add_release(self, release: Release) -> None:
        """Insert a release."""
        self._write(
            _insert_sql("releases", RELEASE_COLUMNS),
            _params(release.to_json_dict(), RELEASE_COLUMNS),
        )

    def update_release(self, release: Release) -> bool:
        """Overwrite a release; unknown ids are a no-op."""
        assignments = ", ".join(f"{c} = :{c}" for c in RELEASE_COLUMNS if c != "id")
        return (
            self._write(
                f"UPDATE releases SET {assignments} WHERE id = :id",
                _params(release.to_json_dict(), RELEASE_COLUMNS),
            )
            > 0
        )

    # ---- audit log ----

    def add_audit_log(self, entry: AuditLogEntry) -> None:
        """Append an audit log entry."""
        data = entry.to_json_dict()
        data["oldValue"] = _dumps(entry.old_value)
        data["newValue"] = _dumps(entry.new_value)
        self._write(_insert_sql("audit_logs", AUDIT_COLUMNS), _params(data, AUDIT_COLUMNS))

    def get_audit_logs_for_task(self, task_id: str) -> list[AuditLogEntry]:
        """
        Audit history of one task.

        Returns:
            Entries ordered newest first
        """
        rows = self._query(
            "SELECT * FROM audit_logs WHERE taskId = ? ORDER BY timestamp DESC, rowid DESC",
            (task_id,),
        )
        entries = []
        for row in rows:
            where = f"audit_logs ({row['id']})"
            row["oldValue"] = _loads(row.get("oldValue"), None, where)
            row["newValue"] = _loads(row.get("newValue"), None, where)
            entries.append(_validate(AuditLogEntry, row, where))
        return _present(entries)

    # ---- wiki ----

    @staticmethod
    def _row_to_wiki(row: dict[str, Any]) -> WikiPage | None:
        where = f"wiki_pages ({row.get('slug')})"
        row["tags"] = _loads(row.get("tags"), [], where)
        return _validate(WikiPage, {k: v for k, v in row.items() if v is not None}, where)

    def get_wiki_pages(self) -> list[WikiPage]:
        """All wiki pages in insertion order."""
        rows = self._query("SELECT * FROM wiki_pages ORDER BY rowid")
        return _present(self._row_to_wiki(r) for r in rows)

    def get_wiki_page_by_slug(self, slug: str) -> WikiPage | None:
        """Get a wiki page by slug, or None."""
        row = self._query_one("SELECT * FROM wiki_pages WHERE slug = ?", (slug,))
        return self._row_to_wiki(row) if row else None

    def search_wiki_pages(self, query: str) -> list[WikiPage]:
        """Pages whose title or content contains query literally (case-insensitive)."""
        pattern = f"%{_escape_like(query)}%"
        rows = self._query(
            "SELECT * FROM wiki_pages"
            " WHERE title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\' ORDER BY rowid",
            (pattern, pattern),
        )
        return _present(self._row_to_wiki(r) for r in rows)

    def save_wiki_page(self, page: WikiPage) -> None:
        """Insert a page, or update the existing page with the same slug."""
        data = page.to_json_dict()
        data["tags"] = _dumps(page.tags)
        self._write(
            _insert_sql("wiki_pages", WIKI_COLUMNS)
            + " ON CONFLICT(slug) DO UPDATE SET title = excluded.title,"
            " content = excluded.content, tags = excluded.tags,"
            " lastUpdated = excluded.lastUpdated",
            _params(data, WIKI_COLUMNS),
        )

    # ---- discussions ----

    @staticmethod
    def _row_to_discussion(row: dict[str, Any]) -> Discussion | None:
        where = f"discussions ({row.get('id')})"
        row["messages"] = _loads(row.get("messages"), [], where)
        row["tags"] = _loads(row.get("tags"), [], where)
        return _validate(Discussion, {k: v for k, v in row.items() if v is not None}, where)

    def get_discussions(self) -> list[Discussion]:
        """All discussions in insertion order."""
        rows = self._query("SELECT * FROM discussions ORDER BY rowid")
        return _present(self._row_to_discussion(r) for r in rows)

    def get_discussion_by_id(self, discussion_id: str) -> Discussion | None:
        """Get a discussion by ID, or None."""
        row = self._query_one("SELECT * FROM discussions WHERE id = ?", (discussion_id,))
        return self._row_to_discussion(row) if row else None

    def save_discussion(self, discussion: Discussion) -> None:
        """Insert a discussion, or update the existing one with the same id."""
        data = discussion.to_json_dict()
        data["messages"] = _dumps(data["messages"])
        data["tags"] = _dumps(discussion.tags)
        self._write(
            _insert_sql("discussions", DISCUSSION_COLUMNS)
            + " ON CONFLICT(id) DO UPDATE SET title = excluded.title,"
            " status = excluded.status, messages = excluded.messages,"
            " tags = excluded.tags, updatedAt = excluded.updatedAt",
            _params(data, DISCUSSION_COLUMNS),
        )
