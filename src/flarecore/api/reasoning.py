"""
Reasoning splitter: separate reasoning blocks from the answer while streaming.

Reasoning models interleave their thinking with the answer, delimited by a
tag pair such as <think>...</think>. Tokens arrive in arbitrary pieces, so a
tag may be split across two or more deltas. The splitter holds back any
suffix that could be the start of the tag it is waiting for and releases it
once the next delta settles the question.

Classification is chunk-invariant: feeding a text one character at a time
gives the same answer and blocks as feeding it whole.

Rules:
- Only the tag expected next is searched for: the header outside a block,
  the footer inside one. A footer with no open block is plain answer text.
- When header and footer are the same string, each occurrence toggles.
- If the stream ends inside a block, the partial block is still recorded.
- Empty blocks (a header immediately followed by its footer) are not recorded.
- Text is never trimmed.
- Without a tag pair (non-reasoning models) every delta is answer text.
"""

from __future__ import annotations

import dataclasses as _dataclasses

import flarecore.api.types as types


@_dataclasses.dataclass
class StreamState:
    """
    Mutable state of one in-flight stream.

    At any point, answer + all reasoning blocks + the current reasoning
    buffer + the pending partial tag equal the text fed so far, minus the
    tags themselves.
    """

    answer_parts: list[str] = _dataclasses.field(default_factory=list)
    reasoning_blocks: list[str] = _dataclasses.field(default_factory=list)
    reasoning_parts: list[str] = _dataclasses.field(default_factory=list)
    in_reasoning_block: bool = False
    pending_partial_tag: str = ""

    @property
    def answer(self) -> str:
        return "".join(self.answer_parts)

    @property
    def current_reasoning(self) -> str:
        return "".join(self.reasoning_parts)


def _partial_tag_length(text: str, tag: str) -> int:
    """Length of the longest suffix of `text` that is a proper prefix of `tag`."""
    for length in range(min(len(text), len(tag) - 1), 0, -1):
        if tag.startswith(text[-length:]):
            return length
    return 0


class ReasoningSplitter:
    """
    Stateful scanner classifying streamed text as reasoning or answer.

    Usage:
        splitter = ReasoningSplitter(types.ReasoningTag.from_header("<think>"))
        for delta in deltas:
            for event in splitter.feed(delta):
                sink(event)
        for event in splitter.finish():
            sink(event)
        splitter.answer_text, splitter.reasoning_blocks
    """

    def __init__(self, tag: types.ReasoningTag | None = types.DEFAULT_REASONING_TAG) -> None:
        self._tag = tag
        self._state = StreamState()
        self._finished = False

    @property
    def tag(self) -> types.ReasoningTag | None:
        """The tag pair searched for, or None when splitting is off."""
        return self._tag

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def answer_text(self) -> str:
        return self._state.answer

    @property
    def reasoning_blocks(self) -> list[str]:
        """Completed reasoning blocks (all blocks once finish() has run)."""
        return list(self._state.reasoning_blocks)

    @property
    def has_output(self) -> bool:
        """True once any answer or reasoning text has been classified."""
        state = self._state
        return bool(state.answer_parts or state.reasoning_blocks or state.reasoning_parts)

    def feed(self, delta: str) -> list[types.TokenEvent]:
        """
        Classify one delta.

        Returns:
            Events for the text that could be classified immediately, in
            order. Text that might begin a tag is held until the next call.
        """
        if self._finished:
            raise RuntimeError("Cannot feed a finished ReasoningSplitter")
        if not delta:
            return []

        state = self._state
        events: list[types.TokenEvent] = []
        pair = self._tag
        if pair is None:
            self._append(delta, events)
            return events

        buffer = state.pending_partial_tag + delta
        state.pending_partial_tag = ""

        while buffer:
            tag = pair.footer if state.in_reasoning_block else pair.header
            index = buffer.find(tag)
            if index >= 0:
                self._append(buffer[:index], events)
                self._toggle()
                buffer = buffer[index + len(tag):]
                continue

            held = _partial_tag_length(buffer, tag)
            self._append(buffer[: len(buffer) - held], events)
            state.pending_partial_tag = buffer[len(buffer) - held:]
            break

        return events

    def finish(self) -> list[types.TokenEvent]:
        """
        End the stream.

        A held-back partial tag was never completed, so it is released as
        text. An unterminated reasoning block is closed and kept.
        """
        if self._finished:
            return []
        state = self._state
        events: list[types.TokenEvent] = []
        pending, state.pending_partial_tag = state.pending_partial_tag, ""
        self._append(pending, events)
        if state.in_reasoning_block:
            self._toggle()
        self._finished = True
        return events

    def _append(self, text: str, events: list[types.TokenEvent]) -> None:
        if not text:
            return
        state = self._state
        if state.in_reasoning_block:
            state.reasoning_parts.append(text)
            events.append(types.TokenEvent(kind="reasoning", text=text))
        else:
            state.answer_parts.append(text)
            events.append(types.TokenEvent(kind="answer", text=text))

    def _toggle(self) -> None:
        state = self._state
        if state.in_reasoning_block:
            block = state.current_reasoning
            if block:
                state.reasoning_blocks.append(block)
            state.reasoning_parts.clear()
            state.in_reasoning_block = False
        else:
            state.in_reasoning_block = True

    @classmethod
    def split(
        cls,
        text: str,
        tag: types.ReasoningTag | None = types.DEFAULT_REASONING_TAG,
    ) -> tuple[str, list[str]]:
        """
        Classify a complete text in one pass.

        Returns:
            Tuple of (answer_text, reasoning_blocks).
        """
        splitter = cls(tag)
        splitter.feed(text)
        splitter.finish()
        return splitter.answer_text, splitter.reasoning_blocks
