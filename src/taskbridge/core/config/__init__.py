"""
Configuration models and loading.

Pydantic models for taskbridge configuration with multi-layer merging:
defaults < user < project < env vars.
"""

from .loader import (
    ConfigManager,
    ConfigSource,
    clear_cache,
    get_data_dir,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import AppConfig, ProviderConfig

__all__ = [
    # Models
    "AppConfig",
    "ProviderConfig",
    # Loading
    "ConfigManager",
    "ConfigSource",
    "clear_cache",
    "get_data_dir",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
