"""
Token extractors: the text delta carried by one decoded frame.

Every extractor is a pure function of its frame. Frames that carry no text
(role-only deltas, pings, usage reports) return "". Frames that do not
match the backend's shape, or that report an error, raise ProtocolError;
the streaming pipeline logs those and moves on.
"""

from __future__ import annotations

import typing as _typing

import flarecore.api.errors as errors
import flarecore.api.wire as wire

TokenExtractor = _typing.Callable[[wire.Frame], str]


def _require_object(frame: _typing.Any) -> wire.Frame:
    if not isinstance(frame, dict):
        raise errors.ProtocolError(f"Expected a JSON object frame, got {type(frame).__name__}")
    if "error" in frame and frame["error"]:
        raise errors.ProtocolError(f"Backend reported an error: {_error_message(frame['error'])}")
    return frame


def _error_message(error: _typing.Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _as_text(value: _typing.Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise errors.ProtocolError(f"Expected text at {path}, got {type(value).__name__}")
    return value


def _first(items: _typing.Any, path: str) -> dict[str, _typing.Any] | None:
    if items is None:
        return None
    if not isinstance(items, list):
        raise errors.ProtocolError(f"Expected a list at {path}, got {type(items).__name__}")
    if not items:
        return None
    head = items[0]
    if not isinstance(head, dict):
        raise errors.ProtocolError(f"Expected an object at {path}[0]")
    return head


# =============================================================================
# OpenAI-style (OpenAI, OpenRouter)
# =============================================================================


def openai_stream_delta(frame: wire.Frame) -> str:
    """`choices[0].delta.content` of a chat.completion.chunk."""
    frame = _require_object(frame)
    choice = _first(frame.get("choices"), "choices")
    if choice is None:
        return ""
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        raise errors.ProtocolError("Expected an object at choices[0].delta")
    return _as_text(delta.get("content"), "choices[0].delta.content")


def openai_body_text(frame: wire.Frame) -> str:
    """`choices[0].message.content` of a complete chat.completion."""
    frame = _require_object(frame)
    choice = _first(frame.get("choices"), "choices")
    if choice is None:
        raise errors.ProtocolError("Response has no choices")
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise errors.ProtocolError("Expected an object at choices[0].message")
    return _as_text(message.get("content"), "choices[0].message.content")


# =============================================================================
# Anthropic
# =============================================================================


def anthropic_stream_delta(frame: wire.Frame) -> str:
    """`delta.text` of a content_block_delta event; other event types carry no text."""
    frame = _require_object(frame)
    event_type = frame.get("type")
    if event_type == "error":
        raise errors.ProtocolError(f"Backend reported an error: {frame}")
    if event_type != "content_block_delta":
        return ""
    delta = frame.get("delta") or {}
    if not isinstance(delta, dict):
        raise errors.ProtocolError("Expected an object at delta")
    return _as_text(delta.get("text"), "delta.text")


def anthropic_body_text(frame: wire.Frame) -> str:
    """Concatenated text blocks of a complete Messages API response."""
    frame = _require_object(frame)
    content = frame.get("content")
    if not isinstance(content, list):
        raise errors.ProtocolError("Response has no content list")
    parts: list[str] = []
    for i, block in enumerate(content):
        if isinstance(block, dict) and block.get("type", "text") == "text":
            parts.append(_as_text(block.get("text"), f"content[{i}].text"))
    return "".join(parts)


# =============================================================================
# Gemini
# =============================================================================


def gemini_body_text(frame: wire.Frame) -> str:
    """Concatenated `candidates[0].content.parts[*].text`."""
    frame = _require_object(frame)
    candidate = _first(frame.get("candidates"), "candidates")
    if candidate is None:
        raise errors.ProtocolError("Response has no candidates")
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise errors.ProtocolError("Expected an object at candidates[0].content")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise errors.ProtocolError("Expected a list at candidates[0].content.parts")
    return "".join(
        _as_text(part.get("text"), f"candidates[0].content.parts[{i}].text")
        for i, part in enumerate(parts)
        if isinstance(part, dict)
    )


# =============================================================================
# Ollama
# =============================================================================


def ollama_delta(frame: wire.Frame) -> str:
    """`message.content` of an /api/chat line or complete response."""
    frame = _require_object(frame)
    message = frame.get("message")
    if message is None:
        return ""
    if not isinstance(message, dict):
        raise errors.ProtocolError("Expected an object at message")
    return _as_text(message.get("content"), "message.content")
