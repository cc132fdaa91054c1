"""
OpenRouter API client.

OpenRouter speaks the OpenAI chat completions dialect and asks clients to
identify themselves with HTTP-Referer and X-Title headers.
"""

from __future__ import annotations

import typing as _typing

import flarecore.api.errors as errors
import flarecore.api.providers.base as base
import flarecore.api.providers.openai.provider as openai
import flarecore.api.types as types
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types

APP_REFERER = "https://github.com/flarecore/flarecore"
APP_TITLE = "flarecore"


class OpenRouterClient(base.ProviderClient):
    """OpenRouter API client."""

    KIND = "openrouter"
    DEFAULT_BASE_URL = _constants.OPENROUTER_BASE_URL
    DEFAULT_MODEL = "openai/gpt-3.5-turbo"
    API_KEY_ENV_VAR = "OPENROUTER_API_KEY"

    def _auth_headers(self, api_key: str | None) -> dict[str, str]:
        return {
            **super()._auth_headers(api_key),
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
        }

    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        return f"{self._base_url(config)}/chat/completions"

    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        return openai.build_chat_payload(messages, model, request, stream, self._max_tokens(request))

    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        """
        List models sorted by the name after the vendor prefix.

        "openai/gpt-4" sorts under "gpt-4", so the same model family from
        different vendors ends up adjacent.
        """
        data = await self._get_json(
            f"{self._base_url(config)}/models",
            headers=self._auth_headers(self._resolve_api_key(config)),
            timeout=config.timeout,
        )
        models = openai.model_ids(data, self._name)
        if not models:
            raise errors.ProtocolError(f"{self._name}: no models available")
        return sorted(models, key=lambda model_id: model_id.rsplit("/", 1)[-1])
