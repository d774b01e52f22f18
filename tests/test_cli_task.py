"""
Tests for the taskbridge CLI.

Commands run end to end against the local backend in a temporary
TASKBRIDGE_HOME.
"""

import json

import pytest
from typer.testing import CliRunner

from taskbridge import __version__
from taskbridge.cli import app
from taskbridge.core.store.migration import LEGACY_FILENAME

runner = CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Data directory for the CLI; cwd moved away from any real project files."""
    data_dir = tmp_path / "home"
    monkeypatch.setenv("TASKBRIDGE_HOME", str(data_dir))
    monkeypatch.chdir(tmp_path)
    return data_dir


def invoke(*args: str):
    return runner.invoke(app, list(args))


def create_task(title: str, *options: str) -> dict:
    result = invoke("create", title, *options, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestCreateAndList:
    def test_create_minimal(self, home):
        result = invoke("create", "Write docs")

        assert result.exit_code == 0
        assert "Created task" in result.stdout
        assert "Write docs" in result.stdout

    def test_create_json(self, home):
        task = create_task(
            "Fix login", "-p", "high", "-t", "auth", "-t", "web", "--type", "bug", "-a", "alice"
        )

        assert task["title"] == "Fix login"
        assert task["priority"] == "high"
        assert task["type"] == "bug"
        assert task["tags"] == ["auth", "web"]
        assert task["status"] == "todo"
        assert task["source"] == "local"

    def test_list_json_with_filters(self, home):
        create_task("Fix login", "-t", "auth")
        create_task("Write docs", "-s", "in-progress")

        result = invoke("list", "--json")
        assert result.exit_code == 0
        assert {t["title"] for t in json.loads(result.stdout)} == {"Fix login", "Write docs"}

        result = invoke("list", "--status", "in-progress", "--json")
        assert [t["title"] for t in json.loads(result.stdout)] == ["Write docs"]

        result = invoke("list", "-t", "auth", "--json")
        assert [t["title"] for t in json.loads(result.stdout)] == ["Fix login"]

    def test_list_table(self, home):
        create_task("Docs")
        result = invoke("list")
        assert result.exit_code == 0
        assert "Docs" in result.stdout
        assert "Total: 1 tasks" in result.stdout

    def test_list_empty(self, home):
        result = invoke("list")
        assert result.exit_code == 0
        assert "No tasks found." in result.stdout


class TestShow:
    def test_show(self, home):
        task = create_task("Fix login", "-d", "OAuth [beta] flow")

        result = invoke("show", task["id"])

        assert result.exit_code == 0
        assert "Fix login" in result.stdout
        assert "OAuth [beta] flow" in result.stdout

    def test_show_json(self, home):
        task = create_task("Fix login")
        result = invoke("show", task["id"], "--json")
        assert json.loads(result.stdout)["id"] == task["id"]

    def test_show_missing(self, home):
        result = invoke("show", "nope")
        assert result.exit_code == 1
        assert "Task not found: nope" in result.output


class TestUpdate:
    def test_update_fields(self, home):
        task = create_task("Fix login")

        result = invoke("update", task["id"], "--status", "done", "-a", "bob", "--json")

        assert result.exit_code == 0
        updated = json.loads(result.stdout)
        assert updated["status"] == "done"
        assert updated["assignee"] == "bob"
        assert updated["title"] == "Fix login"

    def test_update_reports_changes(self, home):
        task = create_task("Fix login")
        result = invoke("update", task["id"], "-p", "urgent")
        assert result.exit_code == 0
        assert "Changed: priority" in result.stdout

    def test_nothing_to_update(self, home):
        task = create_task("Fix login")
        result = invoke("update", task["id"])
        assert result.exit_code == 2
        assert "Nothing to update" in result.output

    def test_update_missing(self, home):
        result = invoke("update", "nope", "--title", "x")
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDelete:
    def test_delete(self, home):
        task = create_task("Temp")

        result = invoke("delete", task["id"])

        assert result.exit_code == 0
        assert "Deleted task" in result.stdout
        assert json.loads(invoke("list", "--json").stdout) == []

    def test_delete_missing(self, home):
        result = invoke("delete", "nope")
        assert result.exit_code == 1
        assert "Task not found: nope" in result.output

    def test_delete_missing_json(self, home):
        result = invoke("delete", "nope", "--json")
        assert result.exit_code == 1
        assert json.loads(result.stdout) == {"id": "nope", "deleted": False}


class TestCommentAndHistory:
    def test_comment(self, home):
        task = create_task("Fix login")

        result = invoke("comment", task["id"], "Looks good")

        assert result.exit_code == 0
        assert "(1 total)" in result.stdout

        shown = json.loads(invoke("show", task["id"], "--json").stdout)
        assert shown["comments"][0]["content"] == "Looks good"

    def test_comment_missing_task(self, home):
        result = invoke("comment", "nope", "hi")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_history(self, home):
        task = create_task("Fix login")
        invoke("update", task["id"], "-s", "in-progress")

        result = invoke("history", task["id"], "--json")

        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert entries[0]["field"] == "status"
        assert entries[0]["oldValue"] == "todo"
        assert entries[0]["newValue"] == "in-progress"

    def test_history_empty(self, home):
        task = create_task("Fix login")
        result = invoke("history", task["id"])
        assert result.exit_code == 0
        assert "No history recorded" in result.stdout


class TestBackends:
    def test_list_backends(self, home):
        result = invoke("backends", "--json")

        assert result.exit_code == 0
        rows = {row["name"]: row for row in json.loads(result.stdout)}
        assert rows["local"] == {"name": "local", "active": True, "configured": True}
        assert rows["github"]["configured"] is False
        assert rows["github"]["active"] is False

    def test_backend_option_marks_active(self, home):
        rows = json.loads(invoke("-b", "jira", "backends", "--json").stdout)
        assert [row["name"] for row in rows if row["active"]] == ["jira"]

    def test_unconfigured_remote_backend(self, home):
        result = invoke("-b", "github", "list")
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestMigrate:
    def test_nothing_to_migrate(self, home):
        result = invoke("migrate")
        assert result.exit_code == 0
        assert "Nothing to migrate." in result.stdout

    def test_migrates_legacy_file(self, home):
        home.mkdir(parents=True)
        (home / LEGACY_FILENAME).write_text(
            json.dumps({"tasks": [{"id": "old-1", "title": "From json", "status": "todo"}]})
        )

        result = invoke("migrate")

        assert result.exit_code == 0
        assert "Migrated" in result.stdout
        assert (home / (LEGACY_FILENAME + ".bak")).exists()
        assert json.loads(invoke("show", "old-1", "--json").stdout)["title"] == "From json"


class TestVersion:
    def test_version(self, home):
        result = invoke("version")
        assert result.exit_code == 0
        assert f"taskbridge version {__version__}" in result.stdout
