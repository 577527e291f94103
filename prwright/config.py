"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from prwright.utils.platform import get_config_dir, get_data_dir


class LLMConfig(BaseModel):
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    # Smaller model tried when the primary fails during change generation
    fallback_model: str = "claude-3-5-haiku-20241022"
    api_key: str = ""
    local_endpoint: str = "http://localhost:11434/v1"
    max_tokens: int = 4096
    temperature: float = 0.2
    max_retries: int = 3
    retry_base_delay: float = 1.0


class GitHubConfig(BaseModel):
    token: str = ""
    api_url: str = "https://api.github.com"
    user_agent: str = "prwright"
    timeout: float = 30.0


class AgentConfig(BaseModel):
    max_steps: int = 15
    max_repeated_calls: int = 2
    max_changes_per_commit: int = 10
    generation_attempts: int = 3
    default_target_branch: str = "main"
    context_char_limit: int = 6000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PRWRIGHT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Env first so it wins over YAML passed as init kwargs
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()

    def get_state_db(self) -> Path:
        return self.get_data_dir() / "state.db"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _config_file(explicit: str | Path | None) -> Path | None:
    if explicit is not None:
        return Path(explicit)
    from_env = os.environ.get("PRWRIGHT_CONFIG")
    if from_env:
        return Path(from_env)
    default = get_config_dir() / "config.yaml"
    return default if default.exists() else None


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Build settings from an optional YAML file, ``overrides`` and ``PRWRIGHT_*`` env vars.

    Precedence, lowest first: defaults, YAML, ``overrides``, environment.
    A missing file is not an error; a file whose top level is not a mapping is.
    """
    file_data: dict[str, Any] = {}
    path = _config_file(config_path)
    if path is not None and path.exists():
        with open(path) as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        file_data = loaded or {}

    if overrides:
        file_data = _deep_merge(file_data, overrides)
    return Settings(**file_data)
