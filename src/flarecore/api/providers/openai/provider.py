"""
OpenAI chat completions client.

POST {base_url}/chat/completions with an SSE response terminated by
`data: [DONE]`. The backend has no sensible default model, so a request
without one (and no configured default_model) fails with ConfigurationError.
"""

from __future__ import annotations

import typing as _typing

import flarecore.api.errors as errors
import flarecore.api.providers.base as base
import flarecore.api.types as types
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types


def build_chat_payload(
    messages: list[types.Message],
    model: str,
    request: types.ConversationRequest,
    stream: bool,
    max_tokens: int | None,
) -> dict[str, _typing.Any]:
    """Chat completions body shared by OpenAI-compatible backends."""
    payload: dict[str, _typing.Any] = {
        "model": model,
        "messages": [m.to_dict() for m in messages],
        "temperature": request.temperature,
        "stream": stream,
    }
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    return payload


def model_ids(data: _typing.Any, source: str) -> list[str]:
    """`data[].id` of a /models listing."""
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise errors.ProtocolError(f"{source}: model list has no 'data' array")
    return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]


class OpenAIClient(base.ProviderClient):
    """OpenAI API client (also works with OpenAI-compatible servers via base_url)."""

    KIND = "openai"
    DEFAULT_BASE_URL = _constants.OPENAI_BASE_URL
    API_KEY_ENV_VAR = "OPENAI_API_KEY"

    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        return f"{self._base_url(config)}/chat/completions"

    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        return build_chat_payload(messages, model, request, stream, self._max_tokens(request))

    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        data = await self._get_json(
            f"{self._base_url(config)}/models",
            headers=self._auth_headers(self._resolve_api_key(config)),
            timeout=config.timeout,
        )
        return model_ids(data, self._name)
