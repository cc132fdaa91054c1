"""Tests for wire decoders (SSE, NDJSON, whole-body)."""

import json as _json
import logging as _logging

import pytest as _pytest

import flarecore.api.errors as errors
import flarecore.api.wire as wire


def _feed_all(decoder: wire.WireDecoder, chunks: list[bytes]) -> list[wire.Frame]:
    frames: list[wire.Frame] = []
    for chunk in chunks:
        frames.extend(decoder.feed(chunk))
    frames.extend(decoder.finish())
    return frames


class TestSSEDecoder:
    """Tests for SSEDecoder."""

    def test_terminal_sentinel(self) -> None:
        """One data frame then [DONE] yields exactly that frame and a clean end."""
        body = b'data: {"choices":[{"delta":{"content":"hi"}}]}\n\ndata: [DONE]\n\n'
        decoder = wire.SSEDecoder()

        frames = decoder.feed(body)

        assert frames == [{"choices": [{"delta": {"content": "hi"}}]}]
        assert decoder.done is True
        assert decoder.finish() == []

    def test_frame_split_across_chunks(self) -> None:
        """A data line split anywhere is reassembled."""
        body = b'data: {"a": 1}\n\ndata: {"b": 2}\n\n'
        for cut in range(1, len(body)):
            decoder = wire.SSEDecoder()
            frames = _feed_all(decoder, [body[:cut], body[cut:]])
            assert frames == [{"a": 1}, {"b": 2}], f"cut at {cut}"

    def test_one_byte_chunks(self) -> None:
        """Byte-at-a-time delivery decodes identically."""
        body = 'data: {"text": "héllo ✓"}\n\ndata: [DONE]\n\n'.encode()
        decoder = wire.SSEDecoder()
        frames = _feed_all(decoder, [body[i : i + 1] for i in range(len(body))])
        assert frames == [{"text": "héllo ✓"}]

    def test_ignores_comments_and_other_fields(self) -> None:
        """Comments, event:, id: and retry: lines carry no frame."""
        body = b': keep-alive\nevent: message\nid: 7\nretry: 100\ndata: {"x": 1}\n\n'
        assert wire.SSEDecoder().feed(body) == [{"x": 1}]

    def test_crlf_line_endings(self) -> None:
        """\\r\\n terminated lines are accepted."""
        body = b'data: {"x": 1}\r\n\r\ndata: [DONE]\r\n\r\n'
        decoder = wire.SSEDecoder()
        assert decoder.feed(body) == [{"x": 1}]
        assert decoder.done

    def test_malformed_frame_is_dropped(self, caplog: _pytest.LogCaptureFixture) -> None:
        """Invalid JSON is logged and skipped; later frames still decode."""
        body = b'data: {not json}\n\ndata: {"ok": true}\n\n'
        with caplog.at_level(_logging.WARNING, logger="flarecore.api.wire"):
            frames = wire.SSEDecoder().feed(body)
        assert frames == [{"ok": True}]
        assert "malformed" in caplog.text

    def test_frames_after_done_are_ignored(self) -> None:
        """Nothing is yielded once the sentinel has been seen."""
        decoder = wire.SSEDecoder()
        frames = decoder.feed(b'data: [DONE]\n\ndata: {"late": 1}\n\n')
        assert frames == []
        assert decoder.feed(b'data: {"later": 2}\n\n') == []

    def test_finish_parses_complete_trailing_fragment(self) -> None:
        """A final line without newline is parsed if it is complete."""
        decoder = wire.SSEDecoder()
        assert decoder.feed(b'data: {"x": 1}') == []
        assert decoder.finish() == [{"x": 1}]

    def test_finish_drops_truncated_fragment(self) -> None:
        """A truncated trailing fragment is tolerated, not raised."""
        decoder = wire.SSEDecoder()
        decoder.feed(b'data: {"x": 1}\n\ndata: {"y"')
        assert decoder.finish() == []

    def test_discard_drops_buffer(self) -> None:
        """discard() forgets a partially received frame."""
        decoder = wire.SSEDecoder()
        decoder.feed(b'data: {"x": ')
        decoder.discard()
        assert decoder.finish() == []


class TestNDJSONDecoder:
    """Tests for NDJSONDecoder."""

    def test_terminal_line_captures_context(self) -> None:
        """The done line is yielded and its context captured."""
        lines = [
            {"message": {"content": "a"}, "done": False},
            {"message": {"content": "b"}, "done": True, "context": [1, 2, 3]},
        ]
        body = "".join(_json.dumps(line) + "\n" for line in lines).encode()
        decoder = wire.NDJSONDecoder()

        frames = decoder.feed(body)

        assert frames == lines
        assert decoder.done is True
        assert decoder.context == [1, 2, 3]

    def test_split_lines(self) -> None:
        """Lines split across chunks are reassembled."""
        body = b'{"n": 1}\n{"n": 2}\n'
        decoder = wire.NDJSONDecoder()
        frames = _feed_all(decoder, [body[:5], body[5:12], body[12:]])
        assert frames == [{"n": 1}, {"n": 2}]

    def test_no_context_without_done(self) -> None:
        """context on a non-terminal line is not captured."""
        decoder = wire.NDJSONDecoder()
        decoder.feed(b'{"done": false, "context": [9]}\n')
        assert decoder.context is None
        assert decoder.done is False


class TestWholeBodyDecoder:
    """Tests for WholeBodyDecoder."""

    def test_single_frame(self) -> None:
        """The body yields exactly one frame from finish()."""
        decoder = wire.WholeBodyDecoder()
        assert decoder.feed(b'{"candidates": ') == []
        assert decoder.feed(b"[]}") == []
        assert decoder.finish() == [{"candidates": []}]
        assert decoder.done

    def test_invalid_body_raises(self) -> None:
        """An unparseable body is a ProtocolError."""
        decoder = wire.WholeBodyDecoder()
        decoder.feed(b"<html>502 Bad Gateway</html>")
        with _pytest.raises(errors.ProtocolError):
            decoder.finish()

    def test_non_object_body_raises(self) -> None:
        """A JSON array is not a valid body."""
        decoder = wire.WholeBodyDecoder()
        decoder.feed(b"[1, 2]")
        with _pytest.raises(errors.ProtocolError, match="JSON object"):
            decoder.finish()

    def test_context_field(self) -> None:
        """The configured context field is captured."""
        decoder = wire.WholeBodyDecoder(context_field="context")
        decoder.feed(b'{"message": {"content": "x"}, "done": true, "context": [4, 5]}')
        decoder.finish()
        assert decoder.context == [4, 5]
