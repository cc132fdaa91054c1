"""Configuration for flarecore."""

from flarecore.config.settings import Settings, find_project_root
from flarecore.config.sources import ConfigFileError
from flarecore.config.types import (
    ConversationConfig,
    LoggingConfig,
    ProviderConfig,
    ProvidersConfig,
    ReasoningConfig,
)

__all__ = [
    "ConfigFileError",
    "ConversationConfig",
    "LoggingConfig",
    "ProviderConfig",
    "ProvidersConfig",
    "ReasoningConfig",
    "Settings",
    "find_project_root",
]
