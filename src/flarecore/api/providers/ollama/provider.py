"""
Ollama API client.

Uses Ollama's native /api/chat endpoint, which streams newline-delimited
JSON. The terminal line may carry a `context` array; it is stored on the
client and sent back with the next request so the server can continue the
conversation without re-processing the whole history.

Supports FLARECORE_OLLAMA_HOST (preferred) or OLLAMA_HOST (fallback) for
remote servers when no base_url is configured.
"""

from __future__ import annotations

import os as _os
import typing as _typing

import flarecore.api.errors as errors
import flarecore.api.extractors as extractors
import flarecore.api.providers.base as base
import flarecore.api.types as types
import flarecore.api.wire as wire
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types

DEFAULT_PORT = 11434


def host_from_env() -> str | None:
    """
    Base URL from FLARECORE_OLLAMA_HOST or OLLAMA_HOST.

    The value can be "hostname", "hostname:port" or a full URL.
    """
    env_host = _os.environ.get("FLARECORE_OLLAMA_HOST") or _os.environ.get("OLLAMA_HOST", "")
    env_host = env_host.strip()
    if not env_host:
        return None
    if env_host.startswith(("http://", "https://")):
        return env_host.rstrip("/")
    if ":" in env_host:
        return f"http://{env_host}"
    return f"http://{env_host}:{DEFAULT_PORT}"


class OllamaClient(base.ProviderClient):
    """Ollama API client."""

    KIND = "ollama"
    DEFAULT_BASE_URL = _constants.OLLAMA_BASE_URL
    DEFAULT_MODEL = "llama2"
    REQUIRES_API_KEY = False
    TEMPERATURE_RANGE = (0.0, None)

    def _base_url(self, config: config_types.ProviderConfig) -> str:
        return config.base_url or host_from_env() or self.DEFAULT_BASE_URL

    def _make_decoder(self, stream: bool) -> wire.WireDecoder:
        if stream:
            return wire.NDJSONDecoder(done_field="done", context_field="context")
        return wire.WholeBodyDecoder(context_field="context")

    def _extractor(self, stream: bool) -> extractors.TokenExtractor:  # noqa: ARG002
        return extractors.ollama_delta

    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        return f"{self._base_url(config)}/api/chat"

    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        options: dict[str, _typing.Any] = {"temperature": request.temperature}
        max_tokens = self._max_tokens(request)
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        payload: dict[str, _typing.Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
            "options": options,
        }
        context = request.context if request.context is not None else self._context
        if context:
            payload["context"] = list(context)
        return payload

    def reset_context(self) -> None:
        """Forget the stored continuation context (start a fresh conversation)."""
        self._context = None

    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        data = await self._get_json(
            f"{self._base_url(config)}/api/tags",
            headers=self._auth_headers(self._resolve_api_key(config)),
            timeout=config.timeout,
        )
        items = data.get("models") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise errors.ProtocolError(f"{self._name}: /api/tags response has no 'models' array")
        return [str(item["name"]) for item in items if isinstance(item, dict) and item.get("name")]
