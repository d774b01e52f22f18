"""
SQLite schema for the taskbridge local store.

Schema Design:
- tasks: one row per task; nested fields stored as JSON text
- sprints / releases: planning entities
- audit_logs: append-only field-level change history
- wiki_pages: documentation pages, unique by slug
- discussions: threads with their messages as JSON text
- schema_info: version tracking

Column names keep the camelCase spelling of the legacy JSON format so a
legacy record maps onto a row without renaming.
"""

import sqlite3

# Schema version for migrations
SCHEMA_VERSION = 1

# Columns of the tasks table holding JSON-serialized values, with the
# default used when a stored value is missing or malformed.
TASK_JSON_COLUMNS: dict[str, object] = {
    "tags": [],
    "comments": [],
    "checklists": [],
    "customFields": {},
    "blockedBy": [],
}

TASK_COLUMNS = [
    "id",
    "title",
    "description",
    "status",
    "priority",
    "type",
    "assignee",
    "dueDate",
    "createdAt",
    "updatedAt",
    "source",
    "url",
    "parentId",
    "sprintId",
    "releaseId",
    "gitBranch",
    "estimatedHours",
    "actualHours",
    "tags",
    "comments",
    "checklists",
    "customFields",
    "blockedBy",
]

SPRINT_COLUMNS = ["id", "name", "startDate", "endDate", "status", "goal"]

RELEASE_COLUMNS = ["id", "name", "status", "releaseDate", "description"]

AUDIT_COLUMNS = ["id", "taskId", "field", "oldValue", "newValue", "changedBy", "timestamp"]

WIKI_COLUMNS = ["id", "slug", "title", "content", "tags", "lastUpdated"]

DISCUSSION_COLUMNS = ["id", "title", "status", "messages", "tags", "createdAt", "updatedAt"]


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'todo',
    priority TEXT NOT NULL DEFAULT 'medium',
    type TEXT NOT NULL DEFAULT 'task',
    assignee TEXT,
    dueDate TEXT,
    createdAt TEXT NOT NULL,
    updatedAt TEXT NOT NULL,
    source TEXT,
    url TEXT,
    parentId TEXT,
    sprintId TEXT,
    releaseId TEXT,
    gitBranch TEXT,
    estimatedHours REAL,
    actualHours REAL,
    tags TEXT NOT NULL DEFAULT '[]',
    comments TEXT NOT NULL DEFAULT '[]',
    checklists TEXT NOT NULL DEFAULT '[]',
    customFields TEXT NOT NULL DEFAULT '{}',
    blockedBy TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS sprints (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    startDate TEXT,
    endDate TEXT,
    status TEXT NOT NULL DEFAULT 'planned',
    goal TEXT
);

CREATE TABLE IF NOT EXISTS releases (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'planned',
    releaseDate TEXT,
    description TEXT
);

CREATE TABLE IF NOT EXISTS audit_logs (
    id TEXT PRIMARY KEY,
    taskId TEXT NOT NULL,
    field TEXT NOT NULL,
    oldValue TEXT,
    newValue TEXT,
    changedBy TEXT,
    timestamp TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS wiki_pages (
    id TEXT PRIMARY KEY,
    slug TEXT UNIQUE NOT NULL,
    title TEXT,
    content TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    lastUpdated TEXT
);

CREATE TABLE IF NOT EXISTS discussions (
    id TEXT PRIMARY KEY,
    title TEXT,
    status TEXT NOT NULL DEFAULT 'open',
    messages TEXT NOT NULL DEFAULT '[]',
    tags TEXT NOT NULL DEFAULT '[]',
    createdAt TEXT,
    updatedAt TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_logs_task ON audit_logs(taskId, timestamp);
CREATE INDEX IF NOT EXISTS idx_tasks_sprint ON tasks(sprintId);

CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now')),
    description TEXT
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create all tables and record the schema version.

    Idempotent: tables are created with IF NOT EXISTS.

    Args:
        conn: SQLite connection
    """
    conn.executescript(SCHEMA_SQL)
    conn.execute(
        "INSERT OR IGNORE INTO schema_info (version, description) VALUES (?, ?)",
        (SCHEMA_VERSION, "Tasks, planning, audit log, wiki and discussions"),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version.

    Args:
        conn: SQLite connection

    Returns:
        Highest applied version, or None if the schema was never created
    """
    try:
        row = conn.execute("SELECT MAX(version) AS version FROM schema_info").fetchone()
    except sqlite3.OperationalError:
        return None
    if row is None:
        return None
    version = row["version"] if isinstance(row, dict) else row[0]
    return int(version) if version is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """
    Check whether the schema must be (re)applied.

    Args:
        conn: SQLite connection

    Returns:
        True if the database is older than SCHEMA_VERSION
    """
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION
