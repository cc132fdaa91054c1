"""
Google Gemini generateContent client.

Gemini is used whole-body only: the response arrives as one JSON document
and tokens are classified once it has been parsed. Roles map to
user/model, the system prompt goes into systemInstruction, and the API key
travels as the `key` query parameter.
"""

from __future__ import annotations

import typing as _typing

import flarecore.api.conversation as conversation
import flarecore.api.extractors as extractors
import flarecore.api.providers.base as base
import flarecore.api.types as types
import flarecore.api.wire as wire
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types

GEMINI_MODELS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-1.0-pro",
    "gemini-1.0-pro-vision",
)

_ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiClient(base.ProviderClient):
    """Gemini API client."""

    KIND = "gemini"
    DEFAULT_BASE_URL = _constants.GEMINI_BASE_URL
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_MAX_TOKENS = _constants.DEFAULT_REQUIRED_MAX_TOKENS
    API_KEY_ENV_VAR = "GEMINI_API_KEY"
    ROLE_POLICY = conversation.GEMINI
    SUPPORTS_STREAMING = False

    def _auth_headers(self, api_key: str | None) -> dict[str, str]:  # noqa: ARG002
        return {}

    def _query_params(self, api_key: str | None) -> dict[str, str]:
        return {"key": api_key} if api_key else {}

    def _make_decoder(self, stream: bool) -> wire.WireDecoder:  # noqa: ARG002
        return wire.WholeBodyDecoder()

    def _extractor(self, stream: bool) -> extractors.TokenExtractor:  # noqa: ARG002
        return extractors.gemini_body_text

    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        return f"{self._base_url(config)}/models/{model}:generateContent"

    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        system, rest = conversation.split_system(messages)
        payload: dict[str, _typing.Any] = {
            "contents": [
                {"role": _ROLE_MAP[m.role], "parts": [{"text": m.content}]} for m in rest
            ],
            "generationConfig": {
                "maxOutputTokens": self._max_tokens(request),
                "temperature": request.temperature,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        """Gemini models are not listed over the network: configured models or the built-in list."""
        if config.visible_models:
            return sorted(config.visible_models)
        return list(GEMINI_MODELS)
