"""
Wire decoders: raw response bytes to protocol frames.

Each backend family streams differently:

- SSEDecoder: Server-Sent Events with JSON `data:` payloads
  (OpenAI, OpenRouter, Anthropic).
- NDJSONDecoder: one JSON object per line with a terminal `done` flag
  (Ollama).
- WholeBodyDecoder: no partial output; the complete body is parsed once and
  yields a single frame (Gemini, and every backend when stream=False).

Chunks may split a frame (or a multi-byte character) anywhere. Decoders keep
the incomplete tail as internal state until the next chunk arrives.
"""

from __future__ import annotations

import abc as _abc
import codecs as _codecs
import json as _json
import logging as _logging
import typing as _typing

import flarecore.api.errors as errors

_logger = _logging.getLogger(__name__)

Frame = dict[str, _typing.Any]
"""One decoded protocol unit (an SSE event payload, an NDJSON line, a body)."""


class WireDecoder(_abc.ABC):
    """
    Incremental decoder from bytes to frames.

    Usage:
        decoder = SSEDecoder()
        async for chunk in response.aiter_bytes():
            for frame in decoder.feed(chunk):
                ...
            if decoder.done:
                break
        for frame in decoder.finish():
            ...
    """

    def __init__(self) -> None:
        self._text = _codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        """Set once the terminal frame or sentinel has been seen."""
        self.context: list[int] | None = None
        """Continuation context captured from the terminal frame, if any."""

    def feed(self, chunk: bytes) -> list[Frame]:
        """Decode a chunk and return every frame it completed."""
        if self.done:
            return []
        self._buffer += self._text.decode(chunk)
        return self._drain_lines()

    def finish(self) -> list[Frame]:
        """
        Flush after the connection closed.

        A trailing fragment without its newline is treated as a tolerated
        truncation: it is parsed if it happens to be complete, dropped
        otherwise.
        """
        self._buffer += self._text.decode(b"", final=True)
        if self.done:
            self._buffer = ""
            return []
        frames = self._drain_lines()
        tail, self._buffer = self._buffer, ""
        if tail.strip():
            frame = self._parse_line(tail.rstrip("\r"), final=True)
            if frame is not None:
                frames.append(frame)
        return frames

    def discard(self) -> None:
        """Drop any buffered fragment (used when the request is aborted)."""
        if self._buffer:
            _logger.debug("Discarding %d buffered characters on abort", len(self._buffer))
        self._buffer = ""
        self._text.reset()

    def _drain_lines(self) -> list[Frame]:
        frames: list[Frame] = []
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            if self.done:
                break
            frame = self._parse_line(line.rstrip("\r"), final=False)
            if frame is not None:
                frames.append(frame)
        if self.done:
            self._buffer = ""
        return frames

    @_abc.abstractmethod
    def _parse_line(self, line: str, *, final: bool) -> Frame | None:
        """Parse one complete line; return None when it carries no frame."""
        ...


def _loads_object(payload: str, *, what: str) -> Frame | None:
    """Parse a JSON object, logging and returning None on failure."""
    try:
        data = _json.loads(payload)
    except _json.JSONDecodeError as e:
        _logger.warning("Dropping malformed %s frame: %s (%.80r)", what, e, payload)
        return None
    if not isinstance(data, dict):
        _logger.warning("Dropping non-object %s frame: %.80r", what, payload)
        return None
    return data


class SSEDecoder(WireDecoder):
    """
    Server-Sent Events decoder for JSON `data:` payloads.

    Blank lines, comments (leading ':'), and non-data fields (event:, id:,
    retry:) are ignored. The sentinel payload (default "[DONE]") ends the
    stream without producing a frame.
    """

    def __init__(self, sentinel: str | None = "[DONE]") -> None:
        super().__init__()
        self._sentinel = sentinel

    def _parse_line(self, line: str, *, final: bool) -> Frame | None:  # noqa: ARG002
        if not line or line.startswith(":"):
            return None
        if not line.startswith("data:"):
            return None

        payload = line[5:]
        if payload.startswith(" "):
            payload = payload[1:]

        if self._sentinel is not None and payload.strip() == self._sentinel:
            self.done = True
            return None
        if not payload.strip():
            return None
        return _loads_object(payload, what="SSE")


class NDJSONDecoder(WireDecoder):
    """
    Newline-delimited JSON decoder.

    A line whose `done_field` is truthy is still returned (it may carry
    content) and marks the end of the stream; its `context_field`, when
    present, is captured on `self.context`.
    """

    def __init__(
        self,
        done_field: str = "done",
        context_field: str | None = "context",
    ) -> None:
        super().__init__()
        self._done_field = done_field
        self._context_field = context_field

    def _parse_line(self, line: str, *, final: bool) -> Frame | None:  # noqa: ARG002
        if not line.strip():
            return None
        frame = _loads_object(line, what="NDJSON")
        if frame is None:
            return None
        if frame.get(self._done_field):
            self.done = True
            if self._context_field and frame.get(self._context_field) is not None:
                self.context = list(frame[self._context_field])
        return frame


class WholeBodyDecoder(WireDecoder):
    """
    Decoder for backends without partial output.

    Buffers the whole body and yields exactly one frame from finish(). A body
    that is not a JSON object fails the request with ProtocolError.
    """

    def __init__(self, context_field: str | None = None) -> None:
        super().__init__()
        self._context_field = context_field

    def feed(self, chunk: bytes) -> list[Frame]:
        self._buffer += self._text.decode(chunk)
        return []

    def finish(self) -> list[Frame]:
        body = self._buffer + self._text.decode(b"", final=True)
        self._buffer = ""
        try:
            data = _json.loads(body)
        except _json.JSONDecodeError as e:
            raise errors.ProtocolError(f"Response body is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise errors.ProtocolError(
                f"Response body must be a JSON object, got {type(data).__name__}"
            )
        self.done = True
        if self._context_field and data.get(self._context_field) is not None:
            self.context = list(data[self._context_field])
        return [data]

    def _parse_line(self, line: str, *, final: bool) -> Frame | None:  # pragma: no cover
        raise NotImplementedError("WholeBodyDecoder parses the body in finish()")
