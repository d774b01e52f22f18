"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars

The core only reads configuration; writing config files is the job of
whatever tool manages connections.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .models import AppConfig, ProviderConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: AppConfig | None = None


class ConfigSource(Protocol):
    """What backends and the registry need from configuration."""

    @property
    def active_provider(self) -> str: ...

    def get_provider_config(self, name: str) -> ProviderConfig | None: ...


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_xdg_data_home() -> Path:
    """
    Get XDG data home directory.

    Returns:
        Path to data directory (defaults to ~/.local/share)
    """
    if xdg_data := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/taskbridge/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "taskbridge" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .taskbridge.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".taskbridge.json"


def get_data_dir(config: AppConfig | None = None) -> Path:
    """
    Directory holding the local store and the legacy db.json.

    Resolution: TASKBRIDGE_HOME, then config.data_dir, then
    $XDG_DATA_HOME/taskbridge.
    """
    if home := os.environ.get("TASKBRIDGE_HOME"):
        return Path(home).expanduser()
    if config is not None and config.data_dir is not None:
        return Path(config.data_dir).expanduser()
    return get_xdg_data_home() / "taskbridge"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 20}})
        {'a': 1, 'b': {'x': 10, 'y': 20}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: expected a JSON object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _providers_as_dict(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Normalize the list form of providers so layers deep-merge by name."""
    providers = config_dict.get("providers")
    if isinstance(providers, list):
        result = dict(config_dict)
        result["providers"] = {
            str(p.get("provider", "")).lower(): p for p in providers if isinstance(p, dict)
        }
        return result
    return config_dict


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        TASKBRIDGE_BACKEND - overrides active_provider
        TASKBRIDGE_ACTOR - overrides actor

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if backend := os.environ.get("TASKBRIDGE_BACKEND"):
        result["active_provider"] = backend.strip().lower()

    if actor := os.environ.get("TASKBRIDGE_ACTOR"):
        result["actor"] = actor

    return result


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> AppConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TASKBRIDGE_*)
        2. Project config (.taskbridge.json)
        3. User config (~/.config/taskbridge/config.json)
        4. Defaults

    Args:
        project_dir: Project directory to load .taskbridge.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated AppConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, _providers_as_dict(user_config))

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, _providers_as_dict(project_config))

    merged = apply_env_overrides(merged)

    config = AppConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """Clear the cached configuration."""
    global _config_cache
    _config_cache = None


class ConfigManager:
    """
    Lazily loaded, read-only view of the configuration.

    Backends receive a ConfigManager at construction and only call into it
    on first use, so an incomplete configuration surfaces as a
    ConfigurationError from the operation rather than from construction.

    Example:
        >>> manager = ConfigManager(config=AppConfig(active_provider="local"))
        >>> manager.active_provider
        'local'
        >>> manager.get_provider_config("github") is None
        True
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._config = config
        self._project_dir = project_dir

    def get(self) -> AppConfig:
        """Return the configuration, loading it on first access."""
        if self._config is None:
            self._config = load_config(self._project_dir, use_cache=False)
        return self._config

    @property
    def active_provider(self) -> str:
        """Backend used when a caller names none."""
        return self.get().active_provider

    @property
    def actor(self) -> str:
        """Name recorded on comments and audit entries."""
        return self.get().actor

    @property
    def data_dir(self) -> Path:
        """Directory holding the local store."""
        return get_data_dir(self.get())

    def get_provider_config(self, name: str) -> ProviderConfig | None:
        """
        Connection settings for a backend.

        Returns:
            The ProviderConfig, or None if the backend is not configured or
            is disabled
        """
        provider = self.get().providers.get(name.lower())
        if provider is None or not provider.enabled:
            return None
        return provider
