"""
Tests for layered .env loading.
"""

import os

import pytest

from taskbridge.core.config.env import get_user_env_path, load_layered_env, merge_env_files


@pytest.fixture
def clean_keys(monkeypatch):
    for key in ("TB_ONE", "TB_TWO", "TB_SHELL"):
        monkeypatch.delenv(key, raising=False)
    yield
    # load_layered_env writes os.environ directly
    for key in ("TB_ONE", "TB_TWO", "TB_SHELL"):
        os.environ.pop(key, None)


class TestLoadLayeredEnv:
    def test_user_then_project(self, tmp_path, clean_keys):
        user = tmp_path / "user.env"
        user.write_text("TB_ONE=user\nTB_TWO=user\n")
        project = tmp_path / "project.env"
        project.write_text("TB_TWO=project\n")

        loaded = load_layered_env(user_env_paths=[user], project_env_paths=[project])

        assert loaded == {"TB_ONE", "TB_TWO"}
        assert os.environ["TB_ONE"] == "user"
        assert os.environ["TB_TWO"] == "project"

    def test_shell_env_wins(self, tmp_path, clean_keys, monkeypatch):
        monkeypatch.setenv("TB_SHELL", "shell")
        env_file = tmp_path / ".env"
        env_file.write_text("TB_SHELL=file\n")

        loaded = load_layered_env(user_env_paths=[env_file], project_env_paths=[env_file])

        assert loaded == set()
        assert os.environ["TB_SHELL"] == "shell"

    def test_missing_files(self, tmp_path, clean_keys):
        assert (
            load_layered_env(
                user_env_paths=[tmp_path / "absent"], project_env_paths=[tmp_path / "gone"]
            )
            == set()
        )

    def test_default_project_path(self, tmp_path, clean_keys):
        (tmp_path / ".env").write_text("TB_ONE=from-project-dir\n")
        loaded = load_layered_env(project_dir=tmp_path, user_env_paths=[])
        assert loaded == {"TB_ONE"}
        assert os.environ["TB_ONE"] == "from-project-dir"

    def test_default_user_path_under_xdg(self, tmp_path, clean_keys, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_user_env_path() == tmp_path / "xdg" / "taskbridge" / ".env"

        get_user_env_path().parent.mkdir(parents=True)
        get_user_env_path().write_text("TB_ONE=from-user-dir\n")
        loaded = load_layered_env(project_dir=tmp_path / "nowhere")

        assert loaded == {"TB_ONE"}
        assert os.environ["TB_ONE"] == "from-user-dir"


class TestMergeEnvFiles:
    def test_later_files_win_and_empty_keys_dropped(self, tmp_path):
        first = tmp_path / "a.env"
        first.write_text("TB_ONE=a\nTB_TWO=a\nTB_BARE\n")
        second = tmp_path / "b.env"
        second.write_text("TB_TWO=b\n")

        assert merge_env_files([first, tmp_path / "missing.env", second]) == {
            "TB_ONE": "a",
            "TB_TWO": "b",
        }
