"""
Provider factory for creating provider clients.

Provides a unified interface for creating clients from configuration.

Provider Type Dispatch:
    Clients are created based on the `kind` field of their instance config.
    For example, `gpu-box` with `kind: ollama` uses the Ollama client.
"""

from __future__ import annotations

import importlib as _importlib
import logging as _logging
import typing as _typing

import flarecore.api.credentials as credentials
import flarecore.api.errors as errors
import flarecore.api.types as types
import flarecore.config as config

if _typing.TYPE_CHECKING:
    import httpx as _httpx

    import flarecore.api.providers.base as base

_logger = _logging.getLogger(__name__)

# Mapping of provider kinds to their implementations
BUILTIN_PROVIDER_TYPES: dict[str, str] = {
    "openai": "flarecore.api.providers.openai.provider",
    "anthropic": "flarecore.api.providers.anthropic.provider",
    "gemini": "flarecore.api.providers.gemini.provider",
    "ollama": "flarecore.api.providers.ollama.provider",
    "openrouter": "flarecore.api.providers.openrouter.provider",
}

_CLIENT_CLASS_NAMES: dict[str, str] = {
    "openai": "OpenAIClient",
    "anthropic": "AnthropicClient",
    "gemini": "GeminiClient",
    "ollama": "OllamaClient",
    "openrouter": "OpenRouterClient",
}

_DESCRIPTIONS: dict[str, str] = {
    "openai": "OpenAI chat completions (requires OPENAI_API_KEY)",
    "anthropic": "Anthropic Messages API (requires ANTHROPIC_API_KEY)",
    "gemini": "Google Gemini generateContent (requires GEMINI_API_KEY)",
    "ollama": "Ollama (local or remote models via OLLAMA_HOST)",
    "openrouter": "OpenRouter (access to multiple model providers)",
}


def get_client_class(kind: str) -> type[base.ProviderClient]:
    """
    Import and return the client class for a provider kind.

    Raises:
        ConfigurationError: If the kind is unknown.
    """
    module_path = BUILTIN_PROVIDER_TYPES.get(kind)
    if module_path is None:
        raise errors.ConfigurationError(
            f"Unknown provider type: {kind}. "
            f"Available types: {', '.join(sorted(BUILTIN_PROVIDER_TYPES))}."
        )
    module = _importlib.import_module(module_path)
    client_cls: type[base.ProviderClient] = getattr(module, _CLIENT_CLASS_NAMES[kind])
    return client_cls


def create_client(
    provider_config: config.ProviderConfig,
    *,
    name: str | None = None,
    transport: _httpx.AsyncBaseTransport | None = None,
    raw_frames: bool = False,
) -> base.ProviderClient:
    """
    Create a client for one provider instance.

    Args:
        provider_config: The instance configuration.
        name: Instance name for logging. Defaults to the kind.
        transport: httpx transport override (for testing).
        raw_frames: Log every decoded frame at DEBUG level.

    Raises:
        ConfigurationError: If the kind is unknown or the instance is disabled.
    """
    name = name or provider_config.kind
    if not provider_config.enabled:
        raise errors.ConfigurationError(f"Provider '{name}' is disabled in config")

    _logger.debug("Creating provider instance '%s' (type: %s)", name, provider_config.kind)
    client_cls = get_client_class(provider_config.kind)
    return client_cls(provider_config, name=name, transport=transport, raw_frames=raw_frames)


def resolve_provider_config(
    name: str | None = None,
    settings: config.Settings | None = None,
) -> tuple[str, config.ProviderConfig]:
    """
    Find the instance config for a provider name.

    Provider selection (in order of precedence):
    1. Explicit `name` parameter
    2. `providers.default` from settings

    A name that is not a configured instance but is a builtin kind gets a
    bare config of that kind.

    Returns:
        Tuple of (instance name, ProviderConfig).

    Raises:
        ConfigurationError: If no provider can be determined.
    """
    settings = settings or config.Settings()
    name = name or settings.providers.default
    if not name:
        raise errors.ConfigurationError(
            "No provider specified. Set providers.default in config or pass a provider name."
        )

    provider_config = settings.providers.get(name)
    if provider_config is None:
        if name not in BUILTIN_PROVIDER_TYPES:
            available = sorted(set(settings.providers.instances) | set(BUILTIN_PROVIDER_TYPES))
            raise errors.ConfigurationError(
                f"Unknown provider: {name}. "
                f"Ensure it's declared in providers.instances with a kind field. "
                f"Available: {', '.join(available)}."
            )
        provider_config = config.ProviderConfig(kind=_typing.cast(types.ProviderKind, name))
    return name, provider_config


def create_client_from_settings(
    name: str | None = None,
    settings: config.Settings | None = None,
    *,
    transport: _httpx.AsyncBaseTransport | None = None,
) -> base.ProviderClient:
    """
    Create a client for a named instance from settings.

    Args:
        name: Provider instance name. Defaults to providers.default.
        settings: Settings to read. Loaded from the environment if None.
        transport: httpx transport override (for testing).
    """
    settings = settings or config.Settings()
    name, provider_config = resolve_provider_config(name, settings)
    return create_client(
        provider_config,
        name=name,
        transport=transport,
        raw_frames=settings.logging.raw_frames,
    )


def build_request(
    prompt: str,
    history: _typing.Sequence[types.Message] = (),
    settings: config.Settings | None = None,
    *,
    reasoning: bool | None = None,
    **overrides: _typing.Any,
) -> types.ConversationRequest:
    """
    Build a ConversationRequest using the conversation defaults from settings.

    Keyword overrides (model, temperature, max_tokens, stream, on_token,
    cancellation, ...) take precedence over settings. None values are
    ignored so CLI options can be passed through unconditionally.

    Args:
        reasoning: Split reasoning blocks from the answer. None follows
            reasoning.enabled; False sends the request without a reasoning
            tag so all output is answer text.
    """
    settings = settings or config.Settings()
    conversation = settings.conversation
    if reasoning is None:
        reasoning = settings.reasoning.enabled
    fields: dict[str, _typing.Any] = {
        "temperature": conversation.temperature,
        "max_tokens": conversation.max_tokens,
        "stream": conversation.stream,
        "context_window": conversation.context_window,
        "reasoning_tag": settings.reasoning_tag if reasoning else None,
    }
    fields.update({key: value for key, value in overrides.items() if value is not None})
    return types.ConversationRequest.from_prompt(prompt, history, **fields)


def _key_configured(kind: str, provider_config: config.ProviderConfig) -> bool:
    client_cls = get_client_class(kind)
    if not client_cls.REQUIRES_API_KEY:
        return True
    try:
        return credentials.resolve_api_key(provider_config, client_cls.API_KEY_ENV_VAR) is not None
    except errors.ConfigurationError as e:
        _logger.debug("Credentials for %s unavailable: %s", kind, e)
        return False


def get_available_providers(
    settings: config.Settings | None = None,
) -> list[dict[str, _typing.Any]]:
    """
    Get list of providers and their configuration status.

    Configured instances come first, followed by builtin kinds that have no
    instance of the same name.

    Returns:
        List of provider info dicts with name, type, description,
        key_env_var, key_configured, default_model, enabled and source.
    """
    settings = settings or config.Settings()
    entries: list[tuple[str, config.ProviderConfig, str]] = [
        (name, instance, "config") for name, instance in settings.providers.instances.items()
    ]
    entries += [
        (kind, config.ProviderConfig(kind=_typing.cast(types.ProviderKind, kind)), "builtin")
        for kind in BUILTIN_PROVIDER_TYPES
        if kind not in settings.providers.instances
    ]

    providers: list[dict[str, _typing.Any]] = []
    for name, instance, source in entries:
        client_cls = get_client_class(instance.kind)
        providers.append({
            "name": name,
            "type": instance.kind,
            "description": _DESCRIPTIONS[instance.kind],
            "key_env_var": client_cls.API_KEY_ENV_VAR,
            "key_configured": _key_configured(instance.kind, instance),
            "default_model": instance.default_model or client_cls.DEFAULT_MODEL,
            "enabled": instance.enabled,
            "default": name == settings.providers.default,
            "source": source,
        })
    return providers
