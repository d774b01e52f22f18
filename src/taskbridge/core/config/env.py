"""
.env file support for the environment overrides.

TASKBRIDGE_BACKEND, TASKBRIDGE_HOME and the provider credential variables
are read from the process environment by ``apply_env_overrides``. They can
also be kept in .env files, which are folded into ``os.environ`` once at
CLI start-up:

    exported shell variables > project .env > user .env

A value already exported when the process starts is never replaced.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

ENV_FILENAME = ".env"


def get_user_env_path() -> Path:
    """
    Get path to the user .env file.

    Returns:
        Path to ~/.config/taskbridge/.env (or XDG equivalent)
    """
    return get_xdg_config_home() / "taskbridge" / ENV_FILENAME


def read_env_file(path: Path) -> dict[str, str]:
    """Parse one .env file, dropping keys without a value. Missing files read as empty."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def merge_env_files(paths: Iterable[Path]) -> dict[str, str]:
    """Merge .env files in order; later files win."""
    merged: dict[str, str] = {}
    for path in paths:
        merged.update(read_env_file(Path(path)))
    return merged


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> set[str]:
    """
    Export variables from the user and project .env files.

    Args:
        project_dir: Directory holding the project .env (defaults to cwd)
        user_env_paths: User .env files, lowest priority first
        project_env_paths: Project .env files, lowest priority first

    Returns:
        Names of the variables that were set from .env files
    """
    if user_env_paths is None:
        user_env_paths = [get_user_env_path()]
    if project_env_paths is None:
        project_env_paths = [(project_dir or Path.cwd()) / ENV_FILENAME]

    values = merge_env_files([*user_env_paths, *project_env_paths])
    exported = set(os.environ)
    loaded = {key for key in values if key not in exported}
    for key in loaded:
        os.environ[key] = values[key]

    if loaded:
        logger.debug("Loaded %s from .env files", ", ".join(sorted(loaded)))
    return loaded
