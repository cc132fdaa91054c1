"""Configuration type definitions for flarecore settings.

This module defines the Pydantic models used to represent configuration
structures nested within the main Settings class:

- ProviderConfig: one backend instance (kind, credentials, URL, models)
- ProvidersConfig: default instance name plus named instances
- ConversationConfig: temperature, max_tokens, stream, context_window
- ReasoningConfig: reasoning tag pair
- LoggingConfig: log level, raw frame logging

Section types use `extra="allow"` so unknown keys are preserved and can be
reported by `get_extra_fields()` rather than silently dropped.
"""

import typing as _typing

import pydantic as _pydantic

import flarecore.constants as _constants

ProviderKind = _typing.Literal["openai", "anthropic", "gemini", "ollama", "openrouter"]


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for config sections.

    Unknown fields are kept in `model_extra` so typos can be audited.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}


# =============================================================================
# Provider Settings
# =============================================================================


class ProviderConfig(_pydantic.BaseModel):
    """
    Configuration for one provider instance.

    YAML section: providers.instances.<name>.*

    Read-only while a request is in flight; callers swap in a new instance
    between requests instead of mutating this one.
    """

    model_config = _pydantic.ConfigDict(frozen=True)

    kind: ProviderKind
    """Backend family implementing this instance."""

    api_key: _pydantic.SecretStr | None = None
    """Credential. Falls back to credentials_path, then the kind's env var."""

    credentials_path: str | None = None
    """JSON file containing {"api_key": "..."}. Supports ~ and $VAR expansion."""

    base_url: str | None = None
    """Override the backend's default endpoint."""

    default_model: str | None = None
    """Model used when a request does not name one."""

    visible_models: frozenset[str] = frozenset()
    """Models offered to users. Empty means all models are visible."""

    enabled: bool = True

    timeout: float | None = None
    """Per-request timeout in seconds. None disables timeouts."""

    @_pydantic.field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None

    def secret(self) -> str | None:
        """The configured api_key as plain text."""
        return self.api_key.get_secret_value() if self.api_key else None


class ProvidersConfig(ConfigBase):
    """
    Provider-related configuration.

    YAML section: providers.*

        providers:
          default: local
          instances:
            local:
              kind: ollama
              base_url: http://gpu-server:11434
            claude:
              kind: anthropic
              credentials_path: ~/.config/flarecore/anthropic.json
    """

    default: str | None = None
    """Instance used when none is named."""

    instances: dict[str, ProviderConfig] = _pydantic.Field(default_factory=dict)

    def get(self, name: str) -> ProviderConfig | None:
        return self.instances.get(name)


# =============================================================================
# Conversation Settings
# =============================================================================


class ConversationConfig(ConfigBase):
    """
    Defaults applied to requests built from settings.

    YAML section: conversation.*
    """

    temperature: float = _pydantic.Field(default=_constants.DEFAULT_TEMPERATURE, ge=0)
    max_tokens: int | None = _pydantic.Field(default=None, ge=1)
    stream: bool = True

    context_window: int = _pydantic.Field(
        default=_constants.UNLIMITED_CONTEXT_WINDOW,
        ge=_constants.UNLIMITED_CONTEXT_WINDOW,
    )
    """Recent user/assistant pairs to send. -1 sends the whole history."""


# =============================================================================
# Reasoning Settings
# =============================================================================


class ReasoningConfig(ConfigBase):
    """
    Reasoning tag configuration.

    YAML section: reasoning.*
    """

    enabled: bool = True
    """Split reasoning blocks from the answer. Turn off for non-reasoning models."""

    header: str = _pydantic.Field(default=_constants.DEFAULT_REASONING_HEADER, min_length=1)

    footer: str | None = None
    """Closing tag. None derives it from the header ('<' becomes '</')."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"

    raw_frames: bool = False
    """Log every decoded frame at DEBUG level."""
