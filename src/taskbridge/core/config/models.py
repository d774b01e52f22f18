"""
Configuration data models for taskbridge.

These models define the structure of ~/.config/taskbridge/config.json and
the per-project .taskbridge.json, with validation via Pydantic.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ProviderConfig(BaseModel):
    """
    Connection settings for one backend.

    Credentials are opaque strings (tokens, keys, emails); settings hold
    backend-specific targets such as a repository, board or project.
    """

    provider: str = Field(default="", description="Backend name, e.g. 'github'")
    enabled: bool = Field(default=True, description="Whether the backend may be used")
    credentials: dict[str, str] = Field(
        default_factory=dict, description="Opaque credential map (token, key, email, ...)"
    )
    settings: dict[str, Any] = Field(
        default_factory=dict, description="Backend-specific settings (repo, boardId, ...)"
    )


class AppConfig(BaseModel):
    """
    Top-level taskbridge configuration.

    Example:
        >>> config = AppConfig(
        ...     active_provider="github",
        ...     providers={"github": {"credentials": {"token": "t"},
        ...                           "settings": {"repo": "octo/hello"}}},
        ... )
        >>> config.providers["github"].provider
        'github'
    """

    active_provider: str = Field(
        default="local", description="Backend used when a caller names none"
    )
    providers: dict[str, ProviderConfig] = Field(
        default_factory=dict, description="Per-backend connection settings"
    )
    actor: str = Field(
        default="taskbridge",
        description="Name recorded as comment author and audit changed_by",
    )
    data_dir: Path | None = Field(
        default=None, description="Directory holding the local store (default: XDG data home)"
    )

    @field_validator("providers", mode="before")
    @classmethod
    def normalize_providers(cls, v: Any) -> Any:
        """Accept the list form [{"provider": "github", ...}] as well as a name-keyed dict."""
        if isinstance(v, list):
            return {str(item.get("provider", "")).lower(): item for item in v if isinstance(item, dict)}
        if isinstance(v, dict):
            return {str(name).lower(): cfg for name, cfg in v.items()}
        return v

    def model_post_init(self, __context: Any) -> None:
        for name, provider in self.providers.items():
            if not provider.provider:
                provider.provider = name
