"""
Pydantic v2 settings for the pack format tracker.

Values come from (lowest to highest precedence) field defaults, environment
variables, and explicit overrides passed by the CLI. Every field is readable
under the ``PACKFORMATS_`` prefix and under the ``INPUT_`` name GitHub Actions
uses for action inputs, e.g. ``PACKFORMATS_CUTOFF_VERSION`` or
``INPUT_CUTOFF_VERSION``. Empty variables are ignored, so an unset action
input falls back to the default.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .catalog import DEFAULT_MANIFEST_URL
from .errors import ConfigurationError
from .http_session import HttpConfig
from .planning import DEFAULT_CUTOFF_VERSION

__all__ = [
    "DEFAULT_COMMIT_TEMPLATE",
    "LogFormat",
    "TrackerSettings",
    "load_settings",
]

DEFAULT_COMMIT_TEMPLATE = "{{type}}{{#scope}}({{scope}}){{/scope}}: add pack formats for {{versions}}"


def _env(name: str, *extra: str) -> AliasChoices:
    return AliasChoices(f"PACKFORMATS_{name.upper()}", f"INPUT_{name.upper()}", *extra)


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


class TrackerSettings(BaseSettings):
    """Runtime configuration for one tracker run."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    output_path: Path = Field(
        Path("formats.json"),
        validation_alias=_env("output_path"),
        description="Mapping file to load and update",
    )
    manifest_url: str = Field(
        DEFAULT_MANIFEST_URL,
        validation_alias=_env("manifest_url"),
        description="Version manifest URL",
    )
    cutoff_version: str = Field(
        DEFAULT_CUTOFF_VERSION,
        validation_alias=_env("cutoff_version"),
        description="Earliest version whose client archive carries version.json",
    )
    concurrency: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=_env("concurrency"),
        description="Simultaneous resolutions (unset or 0 = derive from host)",
    )
    timeout_connect_s: float = Field(10.0, gt=0, validation_alias=_env("timeout_connect_s"))
    timeout_read_s: float = Field(120.0, gt=0, validation_alias=_env("timeout_read_s"))
    user_agent: str = Field("PackFormats/1.0", validation_alias=_env("user_agent"))

    commit_enabled: bool = Field(False, validation_alias=_env("commit_enabled"))
    commit_type: str = Field("chore", validation_alias=_env("commit_type"))
    commit_scope: str = Field("", validation_alias=_env("commit_scope"))
    commit_template: str = Field(DEFAULT_COMMIT_TEMPLATE, validation_alias=_env("commit_template"))
    pr_branch: str = Field("update-pack-formats", validation_alias=_env("pr_branch"))
    pr_base: str = Field("main", validation_alias=_env("pr_base"))
    auto_merge: bool = Field(False, validation_alias=_env("auto_merge"))

    github_token: Optional[SecretStr] = Field(
        None, validation_alias=_env("github_token", "GITHUB_TOKEN")
    )
    github_repository: Optional[str] = Field(
        None,
        validation_alias=_env("github_repository", "GITHUB_REPOSITORY"),
        description="owner/repo the mapping is published to",
    )
    github_api_url: str = Field(
        "https://api.github.com", validation_alias=_env("github_api_url", "GITHUB_API_URL")
    )

    log_level: str = Field("INFO", validation_alias=_env("log_level"))
    log_format: LogFormat = Field(LogFormat.CONSOLE, validation_alias=_env("log_format"))

    @field_validator("output_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @field_validator("cutoff_version", "pr_branch", "pr_base", "commit_type", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("github_repository")
    @classmethod
    def validate_repository(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        owner, sep, repo = v.partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"github_repository must look like 'owner/repo', got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Unsupported log level {v!r}")
        return level

    def http_config(self) -> HttpConfig:
        return HttpConfig(
            user_agent=self.user_agent,
            timeout_connect_s=self.timeout_connect_s,
            timeout_read_s=self.timeout_read_s,
        )

    def token(self) -> Optional[str]:
        if self.github_token is None:
            return None
        value = self.github_token.get_secret_value()
        return value or None


def load_settings(**overrides: Any) -> TrackerSettings:
    """Build settings from the environment plus non-``None`` CLI overrides.

    Raises:
        ConfigurationError: If any value fails validation.
    """

    cleaned: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        # Keyed by the primary alias so an override replaces the matching env value.
        field = TrackerSettings.model_fields.get(key)
        alias = field.validation_alias if field is not None else None
        if isinstance(alias, AliasChoices):
            key = str(alias.choices[0])
        cleaned[key] = value
    try:
        return TrackerSettings(**cleaned)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
