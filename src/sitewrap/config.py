"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "SITEWRAP_SETTINGS_FILE"

DEFAULT_BUILD_COMMAND: tuple[str, ...] = (
    "npx",
    "--no-install",
    "tauri",
    "build",
    "--config",
    "{build_config}",
)
DEFAULT_FAVICON_PATHS: tuple[str, ...] = (
    "/apple-touch-icon.png",
    "/apple-touch-icon-precomposed.png",
    "/favicon.png",
    "/favicon.ico",
)


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "sitewrap"
    env: str = "dev"


class PathsConfig(BaseModel):
    """Filesystem locations used by the build pipeline."""

    template_root: Path | None = None
    staging_root: Path | None = None
    run_summaries_root: Path = Path("./.sitewrap/run_summaries")
    logs_root: Path = Path("./.sitewrap/logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path | None] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if value is None:
                updates[field_name] = None
                continue
            value = value.expanduser()
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class DefaultsConfig(BaseModel):
    """Fallback values for build options the user did not supply."""

    width: int = Field(default=1200, gt=0)
    height: int = Field(default=780, gt=0)
    app_version: str = "1.0.0"
    identifier_prefix: str = "com.sitewrap"


class IconConfig(BaseModel):
    """Icon fetch and discovery limits."""

    fetch_timeout_sec: float = Field(default=5.0, gt=0.0)
    total_budget_sec: float = Field(default=15.0, gt=0.0)
    max_bytes: int = Field(default=5_000_000, ge=1)
    favicon_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_FAVICON_PATHS))
    user_agent: str = "sitewrap-icon-fetcher/1.0"


class ToolchainConfig(BaseModel):
    """External build toolchain invocation settings."""

    build_command: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND), min_length=1)
    install_command: list[str] | None = None
    output_marker: str = "Finished"
    stderr_tail_lines: int = Field(default=40, ge=1)
    platform_args: bool = True
    env: dict[str, str] = Field(default_factory=dict)


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    icon: IconConfig = Field(default_factory=IconConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)

    model_config = SettingsConfigDict(
        env_prefix="SITEWRAP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
