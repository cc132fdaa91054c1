"""
Abstract base class for provider clients.

All backends (OpenAI, Anthropic, Gemini, Ollama, OpenRouter) implement this
interface. The base class owns the request lifecycle:

    IDLE -> SENDING -> STREAMING -> {COMPLETED | ABORTED | FAILED}

and the streaming pipeline that every backend shares:

    response bytes -> WireDecoder -> frames -> TokenExtractor -> deltas
                   -> ReasoningSplitter -> TokenEvents -> on_token sink

Subclasses only describe their wire format: endpoint, headers, payload,
decoder and extractor.
"""

from __future__ import annotations

import abc as _abc
import asyncio as _asyncio
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import httpx as _httpx

import flarecore.api.cancellation as cancellation
import flarecore.api.conversation as conversation
import flarecore.api.credentials as credentials
import flarecore.api.errors as errors
import flarecore.api.extractors as extractors
import flarecore.api.reasoning as reasoning
import flarecore.api.types as types
import flarecore.api.wire as wire
import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class PreparedRequest:
    """Everything needed to issue one HTTP call, computed before any I/O."""

    url: str
    payload: dict[str, _typing.Any]
    decoder: wire.WireDecoder
    extractor: extractors.TokenExtractor
    headers: dict[str, str] = _dataclasses.field(default_factory=dict)
    params: dict[str, str] = _dataclasses.field(default_factory=dict)
    timeout: float | None = None

    @property
    def streaming(self) -> bool:
        return not isinstance(self.decoder, wire.WholeBodyDecoder)


class ProviderClient(_abc.ABC):
    """
    Abstract base for provider clients.

    A client holds one httpx.AsyncClient and serializes requests: starting
    a new request cancels the one in flight (last request wins). The
    ProviderConfig may be replaced between requests; each request works on
    the config it started with.
    """

    KIND: _typing.ClassVar[types.ProviderKind]
    DEFAULT_BASE_URL: _typing.ClassVar[str]
    DEFAULT_MODEL: _typing.ClassVar[str | None] = None
    DEFAULT_MAX_TOKENS: _typing.ClassVar[int | None] = None
    """Sent when the request sets none. None omits the field."""

    API_KEY_ENV_VAR: _typing.ClassVar[str | None] = None
    REQUIRES_API_KEY: _typing.ClassVar[bool] = True

    TEMPERATURE_RANGE: _typing.ClassVar[tuple[float, float | None]] = (0.0, 2.0)
    """Inclusive bounds accepted by the backend. None means unbounded."""

    ROLE_POLICY: _typing.ClassVar[conversation.RolePolicy] = conversation.PERMISSIVE
    SUPPORTS_STREAMING: _typing.ClassVar[bool] = True

    def __init__(
        self,
        config: config_types.ProviderConfig,
        *,
        name: str | None = None,
        transport: _httpx.AsyncBaseTransport | None = None,
        raw_frames: bool = False,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Provider instance configuration.
            name: Instance name used in logs. Defaults to the backend kind.
            transport: httpx transport override (tests use httpx.MockTransport).
            raw_frames: Log every decoded frame at DEBUG level.
        """
        if config.kind != self.KIND:
            raise errors.ConfigurationError(
                f"{type(self).__name__} cannot serve a '{config.kind}' provider config"
            )
        self._config = config
        self._name = name or self.KIND
        self._raw_frames = raw_frames
        self._client = _httpx.AsyncClient(
            transport=transport,
            headers={"User-Agent": _constants.USER_AGENT},
        )
        self._lock = _asyncio.Lock()
        self._active_token: cancellation.CancellationToken | None = None
        self._state = types.RequestState.IDLE
        self._context: list[int] | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self._name!r} state={self._state.value}>"

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> types.ProviderKind:
        return self.KIND

    @property
    def config(self) -> config_types.ProviderConfig:
        return self._config

    @config.setter
    def config(self, value: config_types.ProviderConfig) -> None:
        """Swap the config. A request already in flight keeps the old one."""
        if value.kind != self.KIND:
            raise errors.ConfigurationError(
                f"{type(self).__name__} cannot serve a '{value.kind}' provider config"
            )
        self._config = value

    @property
    def state(self) -> types.RequestState:
        """State of the most recent request."""
        return self._state

    @property
    def context(self) -> list[int] | None:
        """Continuation context captured from the last completed response."""
        return self._context

    @property
    def base_url(self) -> str:
        return self._base_url(self._config)

    @property
    def default_model(self) -> str | None:
        return self._config.default_model or self.DEFAULT_MODEL

    # =========================================================================
    # Public API
    # =========================================================================

    async def send_message(self, request: types.ConversationRequest) -> types.CompletionResult:
        """
        Send a conversation and assemble the assistant's reply.

        Tokens are delivered to `request.on_token` as they are classified.
        If another request is in flight on this client it is cancelled
        first.

        Returns:
            CompletionResult. State COMPLETED on success; ABORTED when the
            cancellation token fired (message truncated, or None if nothing
            was produced); FAILED with `error` set when the network failed
            after output had already been emitted.

        Raises:
            ConfigurationError: Missing model/credential or invalid value.
            NetworkError: Transport failure or non-2xx status before any output.
            ProtocolError: Unparseable whole-body response.
        """
        token = request.cancellation or cancellation.CancellationToken()
        previous = self._active_token
        if previous is not None and previous is not token:
            previous.cancel("superseded by a newer request")
        self._active_token = token

        async with self._lock:
            try:
                return await self._run(request, token)
            finally:
                if self._active_token is token:
                    self._active_token = None

    def cancel(self, reason: str | None = None) -> bool:
        """
        Cancel the request in flight.

        Returns:
            True if a request was cancelled, False if the client was idle.
        """
        token = self._active_token
        if token is None:
            return False
        return token.cancel(reason or "cancelled by caller")

    async def list_models(self) -> list[str]:
        """
        List the models the backend offers.

        Raises:
            ConfigurationError: Missing credential.
            NetworkError: The listing call failed.
        """
        return await self._fetch_models(self._config)

    async def visible_models(self) -> list[str]:
        """list_models() restricted to config.visible_models, when that set is non-empty."""
        models = await self.list_models()
        visible = self._config.visible_models
        if not visible:
            return models
        return [m for m in models if m in visible]

    async def close(self) -> None:
        """Cancel any request in flight and release the HTTP client."""
        self.cancel("client closed")
        await self._client.aclose()

    async def __aenter__(self) -> _typing.Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # =========================================================================
    # Backend-specific hooks
    # =========================================================================

    @_abc.abstractmethod
    def _endpoint(self, config: config_types.ProviderConfig, model: str, stream: bool) -> str:
        """Full URL of the chat/completion call."""
        ...

    @_abc.abstractmethod
    def _build_payload(
        self,
        messages: list[types.Message],
        model: str,
        request: types.ConversationRequest,
        stream: bool,
    ) -> dict[str, _typing.Any]:
        """JSON body for the chat/completion call."""
        ...

    @_abc.abstractmethod
    async def _fetch_models(self, config: config_types.ProviderConfig) -> list[str]:
        ...

    def _base_url(self, config: config_types.ProviderConfig) -> str:
        return config.base_url or self.DEFAULT_BASE_URL

    def _auth_headers(self, api_key: str | None) -> dict[str, str]:
        """Headers carrying the credential. Default: bearer token."""
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}

    def _query_params(self, api_key: str | None) -> dict[str, str]:  # noqa: ARG002
        return {}

    def _make_decoder(self, stream: bool) -> wire.WireDecoder:
        return wire.SSEDecoder() if stream else wire.WholeBodyDecoder()

    def _extractor(self, stream: bool) -> extractors.TokenExtractor:
        return extractors.openai_stream_delta if stream else extractors.openai_body_text

    # =========================================================================
    # Request preparation
    # =========================================================================

    def _resolve_api_key(self, config: config_types.ProviderConfig) -> str | None:
        key = credentials.resolve_api_key(config, self.API_KEY_ENV_VAR)
        if key is None and self.REQUIRES_API_KEY:
            hint = f" (or set {self.API_KEY_ENV_VAR})" if self.API_KEY_ENV_VAR else ""
            raise errors.ConfigurationError(
                f"No API key configured for provider '{self._name}'{hint}"
            )
        return key

    def _resolve_model(
        self,
        config: config_types.ProviderConfig,
        request: types.ConversationRequest,
    ) -> str:
        model = request.model or config.default_model or self.DEFAULT_MODEL
        if not model or not model.strip():
            raise errors.ConfigurationError(
                f"No model specified for provider '{self._name}' and it has no default"
            )
        return model.strip()

    def _check_temperature(self, temperature: float) -> None:
        low, high = self.TEMPERATURE_RANGE
        if temperature < low or (high is not None and temperature > high):
            bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
            raise errors.ConfigurationError(
                f"Temperature {temperature} outside the range accepted by {self.KIND}: {bounds}"
            )

    def _max_tokens(self, request: types.ConversationRequest) -> int | None:
        if request.max_tokens is not None and request.max_tokens < 1:
            raise errors.ConfigurationError(f"max_tokens must be positive, got {request.max_tokens}")
        return request.max_tokens or self.DEFAULT_MAX_TOKENS

    def _build_messages(self, request: types.ConversationRequest) -> list[types.Message]:
        history, new_message = request.split_new_message()
        builder = conversation.ConversationBuilder(self.ROLE_POLICY, request.reasoning_tag)
        messages = builder.build(history, new_message, context_window=request.context_window)
        if not any(m.role != "system" for m in messages):
            raise errors.ConfigurationError("Conversation has no user or assistant content to send")
        return messages

    def _prepare(
        self,
        config: config_types.ProviderConfig,
        request: types.ConversationRequest,
    ) -> PreparedRequest:
        model = self._resolve_model(config, request)
        api_key = self._resolve_api_key(config)
        self._check_temperature(request.temperature)
        stream = request.stream and self.SUPPORTS_STREAMING
        messages = self._build_messages(request)

        return PreparedRequest(
            url=self._endpoint(config, model, stream),
            payload=self._build_payload(messages, model, request, stream),
            decoder=self._make_decoder(stream),
            extractor=self._extractor(stream),
            headers={"Content-Type": "application/json", **self._auth_headers(api_key)},
            params=self._query_params(api_key),
            timeout=config.timeout,
        )

    # =========================================================================
    # Request lifecycle
    # =========================================================================

    def _set_state(self, state: types.RequestState) -> None:
        if state is not self._state:
            _logger.debug("%s: %s -> %s", self._name, self._state.value, state.value)
        self._state = state

    async def _run(
        self,
        request: types.ConversationRequest,
        token: cancellation.CancellationToken,
    ) -> types.CompletionResult:
        config = self._config
        self._set_state(types.RequestState.SENDING)

        try:
            prepared = self._prepare(config, request)
        except errors.ConfigurationError:
            self._set_state(types.RequestState.FAILED)
            raise

        splitter = reasoning.ReasoningSplitter(request.reasoning_tag)

        if token.cancelled:
            _logger.debug("%s: request cancelled before it was sent", self._name)
            self._set_state(types.RequestState.ABORTED)
            return types.CompletionResult(message=None, state=types.RequestState.ABORTED)

        exchange = _asyncio.create_task(self._exchange(prepared, splitter, request.on_token))
        waiter = _asyncio.create_task(token.wait())
        try:
            await _asyncio.wait({exchange, waiter}, return_when=_asyncio.FIRST_COMPLETED)
        except _asyncio.CancelledError:
            # The caller's task was cancelled; nobody receives a result.
            _logger.debug("%s: caller cancelled, abandoning request", self._name)
            prepared.decoder.discard()
            splitter.finish()
            self._set_state(types.RequestState.ABORTED)
            raise
        finally:
            waiter.cancel()
            if not exchange.done():
                exchange.cancel()
                await _asyncio.wait({exchange})

        if exchange.cancelled():
            # Token fired: the response is closed, drop any partial frame and
            # finalise whatever was classified so far.
            prepared.decoder.discard()
            self._emit(splitter.finish(), request.on_token)
            self._set_state(types.RequestState.ABORTED)
            message = self._assemble(splitter, truncated=True)
            if message is not None:
                _logger.warning(
                    "%s: request cancelled (%s), returning truncated reply",
                    self._name,
                    token.reason,
                )
            return types.CompletionResult(message=message, state=types.RequestState.ABORTED)

        error = exchange.exception()
        if error is None:
            self._emit(splitter.finish(), request.on_token)
            if prepared.decoder.context is not None:
                self._context = prepared.decoder.context
            self._set_state(types.RequestState.COMPLETED)
            return types.CompletionResult(
                message=self._assemble(splitter, truncated=False),
                state=types.RequestState.COMPLETED,
                context=prepared.decoder.context,
            )

        self._set_state(types.RequestState.FAILED)
        if isinstance(error, _httpx.HTTPError):
            wrapped = errors.NetworkError(f"{self._name}: {type(error).__name__}: {error}")
            wrapped.__cause__ = error
            error = wrapped

        if isinstance(error, errors.NetworkError) and splitter.has_output:
            prepared.decoder.discard()
            self._emit(splitter.finish(), request.on_token)
            _logger.warning(
                "%s: stream failed after output, returning truncated reply: %s",
                self._name,
                error,
            )
            return types.CompletionResult(
                message=self._assemble(splitter, truncated=True),
                state=types.RequestState.FAILED,
                error=error,
            )
        raise error

    async def _exchange(
        self,
        prepared: PreparedRequest,
        splitter: reasoning.ReasoningSplitter,
        sink: types.TokenSink | None,
    ) -> None:
        """Issue the HTTP call and push the response body through the pipeline."""
        decoder = prepared.decoder
        async with self._client.stream(
            "POST",
            prepared.url,
            json=prepared.payload,
            headers=prepared.headers,
            params=prepared.params,
            timeout=prepared.timeout,
        ) as response:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise errors.NetworkError(
                    f"{self._name}: HTTP {response.status_code}: {body[:500]}",
                    status_code=response.status_code,
                    body=body,
                )

            self._set_state(types.RequestState.STREAMING)
            async for chunk in response.aiter_bytes():
                self._consume(decoder.feed(chunk), prepared, splitter, sink)
                if decoder.done:
                    break

        self._consume(decoder.finish(), prepared, splitter, sink)

    def _consume(
        self,
        frames: list[wire.Frame],
        prepared: PreparedRequest,
        splitter: reasoning.ReasoningSplitter,
        sink: types.TokenSink | None,
    ) -> None:
        for frame in frames:
            if self._raw_frames:
                _logger.debug("%s frame: %r", self._name, frame)
            try:
                delta = prepared.extractor(frame)
            except errors.ProtocolError as e:
                if not prepared.streaming:
                    raise
                _logger.warning("%s: skipping frame: %s", self._name, e)
                continue
            if delta:
                self._emit(splitter.feed(delta), sink)

    @staticmethod
    def _emit(events: list[types.TokenEvent], sink: types.TokenSink | None) -> None:
        if sink is None:
            return
        for event in events:
            sink(event)

    @staticmethod
    def _assemble(
        splitter: reasoning.ReasoningSplitter,
        *,
        truncated: bool,
    ) -> types.Message | None:
        if truncated and not splitter.has_output:
            return None
        return types.Message.assistant(
            splitter.answer_text,
            splitter.reasoning_blocks,
            truncated=truncated,
        )

    # =========================================================================
    # Helpers for simple JSON calls (model listing)
    # =========================================================================

    async def _get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> _typing.Any:
        try:
            response = await self._client.get(url, headers=headers, params=params, timeout=timeout)
        except _httpx.HTTPError as e:
            raise errors.NetworkError(f"{self._name}: {type(e).__name__}: {e}") from e
        if not response.is_success:
            raise errors.NetworkError(
                f"{self._name}: HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise errors.ProtocolError(f"{self._name}: model list is not valid JSON") from e
