"""
Tests for the AuditTrail.
"""

from taskbridge.core.history.trail import AuditTrail, canonical_json
from taskbridge.core.tasks.models import Task


class TestCanonicalJson:
    def test_key_order_ignored(self):
        assert canonical_json({"a": 1, "b": 2}) == canonical_json({"b": 2, "a": 1})

    def test_list_order_matters(self):
        assert canonical_json([1, 2]) != canonical_json([2, 1])


class TestLogChange:
    def test_identical_values_write_nothing(self, audit, store):
        assert audit.log_change("t-1", "tags", ["a"], ["a"]) is None
        assert audit.log_change("t-1", "customFields", {"x": 1, "y": 2}, {"y": 2, "x": 1}) is None
        assert store.get_audit_logs_for_task("t-1") == []

    def test_change_writes_one_entry(self, audit, store):
        entry = audit.log_change("t-1", "status", "todo", "done")

        assert entry is not None
        assert entry.changed_by == "tester"
        history = store.get_audit_logs_for_task("t-1")
        assert len(history) == 1
        assert history[0].old_value == "todo"
        assert history[0].new_value == "done"

    def test_structured_values_preserved(self, audit):
        audit.log_change("t-1", "checklists", None, [{"id": "c", "items": []}])
        entry = audit.get_history("t-1")[0]
        assert entry.old_value is None
        assert entry.new_value == [{"id": "c", "items": []}]

    def test_explicit_actor(self, audit):
        entry = audit.log_change("t-1", "title", "a", "b", changed_by="bot")
        assert entry.changed_by == "bot"

    def test_default_actor(self, store):
        entry = AuditTrail(store).log_change("t-1", "title", "a", "b")
        assert entry.changed_by == "taskbridge"


class TestLogChanges:
    def test_one_entry_per_changed_field(self, audit):
        before = Task(id="t-1", title="Old", status="todo", priority="low")
        after = before.model_copy(update={"title": "New", "status": "done"})

        entries = audit.log_changes(before, after, ["title", "status", "priority"])

        assert sorted(e.field for e in entries) == ["status", "title"]

    def test_camel_case_field_names(self, audit):
        before = Task(id="t-1", title="x")
        after = before.model_copy(update={"due_date": "2024-06-01"})

        entries = audit.log_changes(before, after, ["due_date"])

        assert entries[0].field == "dueDate"
        assert entries[0].new_value == "2024-06-01"

    def test_tags_reordered_not_logged(self, audit):
        before = Task(id="t-1", title="x", tags=["a", "b"])
        after = before.model_copy(update={"tags": ["b", "a"]})
        assert audit.log_changes(before, after, ["tags"]) == []

    def test_tags_logged_as_whole_array(self, audit):
        before = Task(id="t-1", title="x", tags=["a"])
        after = before.model_copy(update={"tags": ["a", "b"]})

        entries = audit.log_changes(before, after, ["tags"])

        assert len(entries) == 1
        assert entries[0].old_value == ["a"]
        assert entries[0].new_value == ["a", "b"]

    def test_history_newest_first(self, audit):
        audit.log_change("t-1", "status", "todo", "in-progress")
        audit.log_change("t-1", "status", "in-progress", "done")
        history = audit.get_history("t-1")
        assert [e.new_value for e in history] == ["done", "in-progress"]
