"""
Configuration management for tinycode

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["sap", "copilot", "anthropic", "openai"]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TINYCODE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    log_level: str = "WARNING"

    # Backend selection
    provider: ProviderName = "copilot"
    model: str | None = Field(default=None, description="Model name; provider default when unset")
    max_tokens: int = 8192
    compression_threshold: int = Field(default=5, description="Compress once the live buffer holds this many messages")

    # Workspace and storage
    workspace_root: Path = Field(default_factory=Path.cwd)
    data_dir: Path = Field(default=Path(".tinycode"), description="Relative paths resolve against the workspace root")
    database_url: str = Field(default="", description="Session database URL; defaults to <data_dir>/sessions.db")

    # Tools
    shell_timeout_seconds: float = 10
    confirm_commands: bool = Field(default=True, description="Ask before every shell command")

    # SAP AI Core (content-block backend)
    aicore_service_key: str = Field(
        default="",
        validation_alias=AliasChoices("TINYCODE_AICORE_SERVICE_KEY", "AICORE_SERVICE_KEY"),
        description="Service key JSON; falls back to ~/.tinycode/.aicore.json",
    )
    deployment_id: str = Field(
        default="",
        validation_alias=AliasChoices("TINYCODE_DEPLOYMENT_ID", "DEPLOYMENT_ID"),
    )
    resource_group: str = Field(
        default="default",
        validation_alias=AliasChoices("TINYCODE_RESOURCE_GROUP", "RESOURCE_GROUP"),
    )

    # GitHub Copilot (function-call backend)
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("TINYCODE_GITHUB_TOKEN", "GITHUB_TOKEN"),
        description="GitHub OAuth token exchanged for a Copilot token",
    )
    copilot_chat_url: str = "https://api.githubcopilot.com/chat/completions"
    copilot_token_url: str = "https://api.github.com/copilot_internal/v2/token"

    # Direct vendor APIs
    anthropic_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("TINYCODE_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    anthropic_base_url: str | None = None
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("TINYCODE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str | None = None

    # HTTP
    request_timeout_seconds: float = 300

    @field_validator("model", mode="before")
    @classmethod
    def empty_model_is_default(cls, v: str | None) -> str | None:
        return (v.strip() or None) if isinstance(v, str) else v

    @property
    def resolved_data_dir(self) -> Path:
        """Data directory, anchored at the workspace root when relative."""
        if self.data_dir.is_absolute():
            return self.data_dir
        return self.workspace_root / self.data_dir

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.resolved_data_dir / 'sessions.db'}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
