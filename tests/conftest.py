"""
Shared pytest fixtures for flarecore tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import asyncio as _asyncio
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import httpx as _httpx
import pytest as _pytest

import flarecore.api.types as api_types
import flarecore.config as config

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "OPENROUTER_API_KEY",
    "OLLAMA_HOST",
]


@_pytest.fixture(autouse=True)
def isolated_env(
    tmp_path: _pathlib.Path,
    monkeypatch: _pytest.MonkeyPatch,
) -> _pathlib.Path:
    """
    Isolate every test from the user's environment and config files.

    Clears provider API keys and FLARECORE_* variables, points the user
    config directory at an empty temp dir, and runs the test from a
    directory without a .flarecore/ project config.

    Returns:
        The temporary user config directory.
    """
    for key in ENV_KEYS_TO_CLEAR:
        monkeypatch.delenv(key, raising=False)
    for key in list(_os.environ):
        if key.startswith("FLARECORE_"):
            monkeypatch.delenv(key, raising=False)

    user_dir = tmp_path / "user-config"
    user_dir.mkdir()
    monkeypatch.setenv("FLARECORE_CONFIG_DIR", str(user_dir))

    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return user_dir


@_pytest.fixture
def clean_settings() -> config.Settings:
    """Settings built from the built-in defaults only."""
    return config.Settings.construct_without_dotenv()


# =============================================================================
# Fake backend
# =============================================================================


async def _aiter(
    chunks: _typing.Sequence[bytes],
    *,
    hang: bool = False,
    error: Exception | None = None,
) -> _typing.AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
        await _asyncio.sleep(0)
    if error is not None:
        raise error
    if hang:
        await _asyncio.Event().wait()


class FakeBackend:
    """
    Scripted HTTP backend for httpx.MockTransport.

    Each call to `reply()` queues one response; requests are answered in
    order and recorded in `requests`. Streamed replies are delivered chunk
    by chunk so tests can control exactly where frames are split.
    """

    def __init__(self) -> None:
        self.requests: list[_httpx.Request] = []
        self._replies: list[_typing.Callable[[], _httpx.Response]] = []

    @property
    def transport(self) -> _httpx.MockTransport:
        return _httpx.MockTransport(self._handle)

    @property
    def last_json(self) -> dict[str, _typing.Any]:
        """JSON body of the most recent request."""
        return _typing.cast(dict[str, _typing.Any], _json.loads(self.requests[-1].content))

    def reply(
        self,
        chunks: _typing.Sequence[bytes] | bytes = b"",
        *,
        status: int = 200,
        hang: bool = False,
        error: Exception | None = None,
    ) -> "FakeBackend":
        """Queue a streamed reply made of `chunks`."""
        parts = [chunks] if isinstance(chunks, bytes) else list(chunks)
        self._replies.append(
            lambda: _httpx.Response(status, content=_aiter(parts, hang=hang, error=error))
        )
        return self

    def reply_json(self, data: _typing.Any, *, status: int = 200) -> "FakeBackend":
        """Queue a plain JSON reply."""
        self._replies.append(lambda: _httpx.Response(status, json=data))
        return self

    def fail(self, error: Exception) -> "FakeBackend":
        """Queue a transport-level failure."""

        def _raise() -> _httpx.Response:
            raise error

        self._replies.append(_raise)
        return self

    def _handle(self, request: _httpx.Request) -> _httpx.Response:
        self.requests.append(request)
        if not self._replies:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._replies.pop(0)()


@_pytest.fixture
def backend() -> FakeBackend:
    """A scripted fake backend; pass `backend.transport` to a client."""
    return FakeBackend()


def sse(*payloads: _typing.Any, done: bool = True) -> bytes:
    """Encode payloads as an SSE body, optionally terminated by [DONE]."""
    lines = [f"data: {_json.dumps(p)}\n\n" for p in payloads]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def ndjson(*objects: _typing.Any) -> bytes:
    """Encode objects as newline-delimited JSON."""
    return "".join(_json.dumps(o) + "\n" for o in objects).encode()


def openai_chunk(text: str) -> dict[str, _typing.Any]:
    return {"choices": [{"delta": {"content": text}}]}


class RecordingSink:
    """Token sink that records every event."""

    def __init__(self) -> None:
        self.events: list[api_types.TokenEvent] = []

    def __call__(self, event: api_types.TokenEvent) -> None:
        self.events.append(event)

    def text(self, kind: api_types.TokenKind = "answer") -> str:
        return "".join(e.text for e in self.events if e.kind == kind)


@_pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
