"""
Type definitions for conversation requests and results.

These types provide a provider-agnostic contract shared by every backend:
callers build a ConversationRequest, providers return a CompletionResult.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import datetime as _datetime
import enum as _enum
import typing as _typing

import flarecore.constants as _constants

if _typing.TYPE_CHECKING:
    import flarecore.api.cancellation as cancellation

Role = _typing.Literal["user", "assistant", "system"]
"""Message roles understood by the conversation builder."""

ProviderKind = _typing.Literal["openai", "anthropic", "gemini", "ollama", "openrouter"]
"""Supported backend families."""

TokenKind = _typing.Literal["reasoning", "answer"]
"""Classification of an emitted token."""


def _utcnow() -> _datetime.datetime:
    return _datetime.datetime.now(_datetime.timezone.utc)


@_dataclasses.dataclass(frozen=True)
class Message:
    """
    A message in the conversation.

    Messages are immutable once created. Corrections are new messages.
    """

    role: Role
    content: str
    created_at: _datetime.datetime = _dataclasses.field(default_factory=_utcnow)

    reasoning_blocks: tuple[str, ...] = ()
    """Reasoning text extracted while streaming (assistant messages only)."""

    truncated: bool = False
    """True when the stream was cancelled or failed before it completed."""

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        reasoning_blocks: _typing.Sequence[str] = (),
        *,
        truncated: bool = False,
    ) -> Message:
        return cls(
            role="assistant",
            content=content,
            reasoning_blocks=tuple(reasoning_blocks),
            truncated=truncated,
        )

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    def with_content(self, content: str) -> Message:
        """Return a copy carrying different content."""
        return _dataclasses.replace(self, content=content)

    def to_dict(self) -> dict[str, str]:
        """Wire form used by OpenAI-style backends."""
        return {"role": self.role, "content": self.content}


@_dataclasses.dataclass(frozen=True)
class ReasoningTag:
    """Header/footer pair delimiting reasoning blocks in model output."""

    header: str = _constants.DEFAULT_REASONING_HEADER
    footer: str = _constants.DEFAULT_REASONING_FOOTER

    def __post_init__(self) -> None:
        if not self.header or not self.footer:
            raise ValueError("Reasoning header and footer must be non-empty")

    @classmethod
    def from_header(cls, header: str, footer: str | None = None) -> ReasoningTag:
        """
        Build a tag pair from its header.

        The footer defaults to the header with its first '<' replaced by '</'.
        """
        if footer is None:
            footer = header.replace("<", "</", 1)
        return cls(header=header, footer=footer)

    @property
    def symmetric(self) -> bool:
        """True when header and footer are the same string."""
        return self.header == self.footer


DEFAULT_REASONING_TAG = ReasoningTag.from_header(_constants.DEFAULT_REASONING_HEADER)


@_dataclasses.dataclass(frozen=True)
class TokenEvent:
    """A classified piece of model output delivered to the token sink."""

    kind: TokenKind
    text: str


TokenSink = _typing.Callable[[TokenEvent], None]
"""
Receives token events synchronously from the decode loop.

Sinks should return quickly; a slow sink applies backpressure to the
network read.
"""


class RequestState(_enum.Enum):
    """Lifecycle of a single request."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RequestState.COMPLETED, RequestState.ABORTED, RequestState.FAILED)


@_dataclasses.dataclass
class ConversationRequest:
    """
    A single call to a provider.

    Constructed fresh per call and owned by that call. The last user entry
    in `messages` is treated as the new message; everything before it is
    history.
    """

    messages: list[Message]
    model: str | None = None
    temperature: float = _constants.DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    stream: bool = True
    reasoning_tag: ReasoningTag | None = DEFAULT_REASONING_TAG
    """Tag pair delimiting reasoning blocks. None sends all output to the answer."""

    cancellation: cancellation.CancellationToken | None = None
    on_token: TokenSink | None = None

    context_window: int | None = None
    """Number of recent user/assistant pairs to keep. None or -1 keeps all."""

    context: list[int] | None = None
    """Continuation context for stateful backends (Ollama)."""

    @classmethod
    def from_prompt(
        cls,
        prompt: str,
        history: _typing.Sequence[Message] = (),
        **kwargs: _typing.Any,
    ) -> ConversationRequest:
        """Build a request from prior history plus a new user prompt."""
        return cls(messages=[*history, Message.user(prompt)], **kwargs)

    def split_new_message(self) -> tuple[list[Message], Message | None]:
        """Return (history, new_message); new_message is None unless the last entry is a user turn."""
        if self.messages and self.messages[-1].role == "user":
            return list(self.messages[:-1]), self.messages[-1]
        return list(self.messages), None


@_dataclasses.dataclass
class CompletionResult:
    """Outcome of ProviderClient.send_message()."""

    message: Message | None
    """The assembled assistant message, or None if nothing was produced."""

    state: RequestState

    context: list[int] | None = None
    """Continuation context to pass back on the next turn (Ollama)."""

    error: Exception | None = None
    """Error that ended the stream early, when a partial result was kept."""

    @property
    def truncated(self) -> bool:
        return self.message is not None and self.message.truncated

    @property
    def text(self) -> str:
        return self.message.content if self.message else ""

    @property
    def reasoning_blocks(self) -> tuple[str, ...]:
        return self.message.reasoning_blocks if self.message else ()
