"""
Anthropic Messages API client.

The Messages API takes the system prompt as a top-level field, requires the
conversation to open with a user turn and to alternate strictly, and
requires max_tokens on every request.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import flarecore.api.conversation as conversation
import flarecore.api.extractors as extractors
import flarecore.api.providers.base as base
import flarecore.api.types as types
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types

_logger = _logging.getLogger(__name__)

ANTHROPIC_MODELS: tuple[str, ...] = (
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
    "claude-2.1",
    "claude-2.0",
    "claude-instant-1.2",
)
"""Returned by list_models() when the listing endpoint answers with an unexpected shape."""


class AnthropicClient(base.ProviderClient):
    """Anthropic API client."""

    KIND = "anthropic"
    DEFAULT_BASE_URL = _constants.ANTHROPIC_BASE_URL
    DEFAULT_MODEL = "claude-3-haiku-20240307"
    DEFAULT_MAX_TOKENS = _constants.DEFAULT_REQUIRED_MAX_TOKENS
    API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"
    TEMPERATURE_RANGE = (0.0, 1.0)
    ROLE_POLICY = conversation.ANTHROPIC

    def _auth_headers(self, api_key: str | None) -> dict[str, str]:
        headers = {"anthropic-version": _constants.ANTHROPIC_API_VERSION}
        if api_key:
            headers["x-api-key"] = api_key
        return headers

    def _extractor(self, stream: bool) -> extractors.TokenExtractor:
        return extractors.anthropic_stream_delta if stream else extractors.anthropic_body_text

    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        return f"{self._base_url(config)}/messages"

    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        system, rest = conversation.split_system(messages)
        payload: dict[str, _typing.Any] = {
            "model": model,
            "messages": [m.to_dict() for m in rest],
            "max_tokens": self._max_tokens(request),
            "temperature": request.temperature,
            "stream": stream,
        }
        if system:
            payload["system"] = system
        return payload

    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        data = await self._get_json(
            f"{self._base_url(config)}/models",
            headers=self._auth_headers(self._resolve_api_key(config)),
            timeout=config.timeout,
        )
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            _logger.warning("%s: unexpected model list shape, using built-in list", self._name)
            return list(ANTHROPIC_MODELS)
        models = [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]
        return models or list(ANTHROPIC_MODELS)
