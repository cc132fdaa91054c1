"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with FLARECORE_ prefix
3. .env file (if FLARECORE_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .flarecore/config.yaml (highest)
   - User config: ~/.config/flarecore/config.yaml
   - Built-in defaults: bundled defaults/config.yaml (lowest)

Nested config uses double underscore delimiter:
  FLARECORE_CONVERSATION__TEMPERATURE=0.2
  FLARECORE_REASONING__HEADER="<thinking>"
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import flarecore.api.types as api_types
import flarecore.config.sources as sources
import flarecore.config.types as types


def _get_env_file() -> str | None:
    """Return FLARECORE_ENV_FILE if it names an existing file."""
    if env_file := _os.environ.get("FLARECORE_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path | None:
    """
    Find the nearest directory containing a .flarecore/ config directory.

    Walks up from `start_path` (default: cwd). Returns None when no
    ancestor has one.
    """
    current = (start_path or _pathlib.Path.cwd()).resolve()
    while True:
        if (current / ".flarecore").is_dir():
            return current
        if current == current.parent:
            return None
        current = current.parent


class Settings(_pydantic_settings.BaseSettings):
    """
    flarecore configuration settings.

    All settings can be overridden via environment variables with the
    FLARECORE_ prefix. For nested config, use double underscore:
    FLARECORE_CONVERSATION__CONTEXT_WINDOW=4

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (FLARECORE_*)
    3. .env file
    4. Project config (.flarecore/config.yaml)
    5. User config (~/.config/flarecore/config.yaml)
    6. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="FLARECORE_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) (highest)
        2. env_settings (FLARECORE_* env vars)
        3. dotenv_settings (.env file)
        4. layered YAML config
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, find_project_root()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings without loading a .env file (test isolation, CI)."""
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Nested config sections
    # =========================================================================

    providers: types.ProvidersConfig = _pydantic.Field(default_factory=types.ProvidersConfig)
    """Provider instances and the default instance name."""

    conversation: types.ConversationConfig = _pydantic.Field(
        default_factory=types.ConversationConfig
    )
    """Request defaults (temperature, max_tokens, stream, context_window)."""

    reasoning: types.ReasoningConfig = _pydantic.Field(default_factory=types.ReasoningConfig)
    """Reasoning tag pair."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    @property
    def reasoning_tag(self) -> api_types.ReasoningTag:
        """The configured reasoning tag pair."""
        return api_types.ReasoningTag.from_header(self.reasoning.header, self.reasoning.footer)
