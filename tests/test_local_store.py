"""
Tests for the SQLite LocalStore.

Covers task CRUD, lossless round-trips of nested fields, recovery from
malformed persisted JSON, transactions, and the planning, audit and
knowledge tables.
"""

import sqlite3

import pytest

from taskbridge.core.history.models import AuditLogEntry
from taskbridge.core.knowledge.models import Discussion, DiscussionMessage, WikiPage
from taskbridge.core.planning.models import Release, Sprint, SprintStatus
from taskbridge.core.store.database import LocalStore
from taskbridge.core.store.schema import SCHEMA_VERSION, get_schema_version
from taskbridge.core.tasks.models import Checklist, ChecklistItem, Comment, Task


class TestSchema:
    def test_schema_created(self, store):
        assert get_schema_version(store._conn) == SCHEMA_VERSION

    def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "db.sqlite"
        first = LocalStore(path)
        first.add_task(Task(id="t-1", title="Persisted"))
        first.close()

        second = LocalStore(path)
        try:
            assert second.get_task_by_id("t-1").title == "Persisted"
        finally:
            second.close()


class TestTaskCrud:
    def test_add_and_get(self, store, sample_task):
        store.add_task(sample_task)
        loaded = store.get_task_by_id("task-1")
        assert loaded == sample_task

    def test_add_fills_timestamps(self, store):
        stored = store.add_task(Task(id="t-1", title="x"))
        assert stored.created_at
        assert stored.updated_at == stored.created_at

    def test_duplicate_id_rejected(self, store):
        store.add_task(Task(id="t-1", title="x"))
        with pytest.raises(sqlite3.IntegrityError):
            store.add_task(Task(id="t-1", title="y"))

    def test_get_unknown_returns_none(self, store):
        assert store.get_task_by_id("missing") is None

    def test_get_tasks_insertion_order(self, store):
        for i in range(3):
            store.add_task(Task(id=f"t-{i}", title=f"Task {i}"))
        assert [t.id for t in store.get_tasks()] == ["t-0", "t-1", "t-2"]
        assert store.count_tasks() == 3

    def test_update_touches_updated_at(self, store):
        store.add_task(Task(id="t-1", title="x", updated_at="2000-01-01T00:00:00.000Z"))
        task = store.get_task_by_id("t-1")
        task.title = "renamed"

        assert store.update_task(task) is True
        assert task.updated_at > "2000-01-01T00:00:00.000Z"
        assert store.get_task_by_id("t-1").title == "renamed"

    def test_update_unknown_is_silent_noop(self, store):
        assert store.update_task(Task(id="ghost", title="x")) is False
        assert store.get_task_by_id("ghost") is None

    def test_delete(self, store):
        store.add_task(Task(id="t-1", title="x"))
        assert store.delete_task("t-1") is True
        assert store.delete_task("t-1") is False
        assert store.get_task_by_id("t-1") is None

    def test_nested_fields_round_trip(self, store):
        task = Task(
            id="t-1",
            title="Rich",
            tags=["a", "b"],
            comments=[Comment(id="c1", author="me", content="hi", timestamp="2024-01-01")],
            checklists=[
                Checklist(
                    id="cl1",
                    title="Steps",
                    items=[ChecklistItem(id="i1", text="one", completed=True)],
                )
            ],
            custom_fields={"points": 5, "team": "core", "billable": True, "ratio": 0.5},
            blocked_by=["t-0"],
            estimated_hours=3.5,
            status="Waiting on vendor",
        )
        store.add_task(task)
        loaded = store.get_task_by_id("t-1")
        assert loaded.checklists == task.checklists
        assert loaded.custom_fields == task.custom_fields
        assert loaded.tags == ["a", "b"]
        assert loaded.comments[0].content == "hi"
        assert loaded.status == "Waiting on vendor"


class TestMalformedJson:
    def test_malformed_column_resets_to_default(self, store, caplog):
        store.add_task(Task(id="t-1", title="x", tags=["keep"]))
        store._conn.execute(
            "UPDATE tasks SET tags = ?, customFields = ? WHERE id = ?",
            ("{not json", "[1, 2]", "t-1"),
        )
        store._conn.commit()

        task = store.get_task_by_id("t-1")
        assert task is not None
        assert task.tags == []
        assert task.custom_fields == {}
        assert "Malformed JSON" in caplog.text

    def test_invalid_sprint_row_skipped(self, store, caplog):
        store.add_sprint(Sprint(id="s-ok", name="Good", start_date="2024-01-01", end_date="2024-01-14"))
        store._conn.execute("INSERT INTO sprints (id, name, status) VALUES ('s-bad', 'Bad', 'bogus')")
        store._conn.commit()

        assert [s.id for s in store.get_sprints()] == ["s-ok"]
        assert store.get_sprint("s-bad") is None
        assert "Skipping unreadable row in sprints (s-bad)" in caplog.text

    def test_invalid_release_row_skipped(self, store):
        store.add_release(Release(id="r-ok", name="v1"))
        store._conn.execute("INSERT INTO releases (id, name, status) VALUES ('r-bad', 'v2', 'lost')")
        store._conn.commit()

        assert [r.id for r in store.get_releases()] == ["r-ok"]
        assert store.get_release("r-bad") is None

    def test_invalid_discussion_row_skipped(self, store):
        store._conn.execute("INSERT INTO discussions (id, title, status) VALUES ('d-bad', 'T', 'wat')")
        store._conn.commit()

        assert store.get_discussions() == []
        assert store.get_discussion_by_id("d-bad") is None

    def test_invalid_wiki_row_skipped(self, store):
        store.save_wiki_page(WikiPage(id="w-1", slug="ok", title="Fine"))
        store._conn.execute("UPDATE wiki_pages SET title = NULL WHERE slug = 'ok'")
        store._conn.commit()

        assert store.get_wiki_pages() == []
        assert store.get_wiki_page_by_slug("ok") is None


class TestTransactions:
    def test_commit_on_success(self, store):
        with store.transaction():
            store.add_task(Task(id="t-1", title="a"))
            store.add_task(Task(id="t-2", title="b"))
        assert store.count_tasks() == 2

    def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.add_task(Task(id="t-1", title="a"))
                raise RuntimeError("boom")
        assert store.count_tasks() == 0

    def test_nested_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.add_task(Task(id="t-1", title="a"))
                raise RuntimeError("boom")
        assert store.get_task_by_id("t-1") is None


class TestPlanningTables:
    def test_sprint_crud(self, store):
        sprint = Sprint(id="s-1", name="Sprint 1", start_date="2024-01-01", end_date="2024-01-15")
        store.add_sprint(sprint)
        assert store.get_sprint("s-1") == sprint

        sprint.status = SprintStatus.ACTIVE
        assert store.update_sprint(sprint) is True
        assert store.get_sprints()[0].status == SprintStatus.ACTIVE
        assert store.get_sprint("missing") is None

    def test_release_crud(self, store):
        release = Release(id="r-1", name="v1.0", description="First")
        store.add_release(release)
        assert store.get_release("r-1") == release
        assert [r.id for r in store.get_releases()] == ["r-1"]
        assert store.update_release(Release(id="ghost", name="x")) is False


class TestAuditTable:
    def test_newest_first_and_values_preserved(self, store):
        for i, stamp in enumerate(["2024-01-01T00:00:00.000Z", "2024-01-02T00:00:00.000Z"]):
            store.add_audit_log(
                AuditLogEntry(
                    id=f"a-{i}",
                    task_id="t-1",
                    field="tags",
                    old_value=[i],
                    new_value={"n": i},
                    changed_by="me",
                    timestamp=stamp,
                )
            )
        entries = store.get_audit_logs_for_task("t-1")
        assert [e.id for e in entries] == ["a-1", "a-0"]
        assert entries[0].old_value == [1]
        assert entries[0].new_value == {"n": 1}
        assert store.get_audit_logs_for_task("other") == []


class TestKnowledgeTables:
    def test_wiki_upsert_by_slug(self, store):
        store.save_wiki_page(WikiPage(id="w-1", slug="setup", title="Setup", content="pip install"))
        store.save_wiki_page(WikiPage(id="w-2", slug="setup", title="Setup v2", content="uv sync"))
        pages = store.get_wiki_pages()
        assert len(pages) == 1
        assert pages[0].title == "Setup v2"
        assert pages[0].id == "w-1"

    def test_wiki_search_case_insensitive(self, store):
        store.save_wiki_page(WikiPage(id="w-1", slug="a", title="Deploy", content="Use the CLI"))
        store.save_wiki_page(WikiPage(id="w-2", slug="b", title="Other", content="nothing"))
        assert [p.slug for p in store.search_wiki_pages("cli")] == ["a"]

    def test_wiki_search_wildcards_are_literal(self, store):
        store.save_wiki_page(WikiPage(id="w-1", slug="a", title="fooXbar", content="100 percent"))
        store.save_wiki_page(WikiPage(id="w-2", slug="b", title="foo_bar", content="50% done"))
        assert [p.slug for p in store.search_wiki_pages("foo_bar")] == ["b"]
        assert [p.slug for p in store.search_wiki_pages("%")] == ["b"]
        assert store.search_wiki_pages("\\") == []

    def test_discussion_round_trip(self, store):
        discussion = Discussion(
            id="d-1",
            title="Naming",
            messages=[DiscussionMessage(id="m-1", author="a", content="hi", timestamp="t")],
            tags=["design"],
        )
        store.save_discussion(discussion)
        loaded = store.get_discussion_by_id("d-1")
        assert loaded.messages[0].content == "hi"
        assert loaded.tags == ["design"]
        assert store.get_discussion_by_id("nope") is None
