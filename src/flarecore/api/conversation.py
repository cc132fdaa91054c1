"""
Conversation building: history + new message to a backend's message list.

Backends disagree on what a valid conversation looks like. Anthropic wants
the first turn to be the user's and roles to alternate strictly; Gemini
wants alternation; OpenAI-style backends accept anything. A RolePolicy
describes those constraints and ConversationBuilder applies them after
cleaning up the history:

1. Sanitise content: strip reasoning blocks from assistant turns when a
   reasoning tag is set, strip HTML markup, unescape entities, trim
   whitespace.
2. Drop empty messages.
3. Drop a trailing user turn that duplicates the new message.
4. Apply the context window (most recent N user-initiated turns, leading
   system messages always kept).
5. Append the new user message.
6. Repair roles with synthetic placeholder turns.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import html as _html
import logging as _logging
import re as _re
import typing as _typing

import flarecore.api.errors as errors
import flarecore.api.reasoning as reasoning
import flarecore.api.types as types
import flarecore.constants as _constants

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass(frozen=True)
class RolePolicy:
    """Role constraints of one backend."""

    require_user_first: bool = False
    """The first non-system message must come from the user."""

    strict_alternation: bool = False
    """Two consecutive non-system messages may not share a role."""

    user_placeholder: str = _constants.USER_PLACEHOLDER
    assistant_placeholder: str = _constants.ASSISTANT_PLACEHOLDER


PERMISSIVE = RolePolicy()
"""OpenAI, OpenRouter, Ollama."""

ANTHROPIC = RolePolicy(require_user_first=True, strict_alternation=True)

GEMINI = RolePolicy(strict_alternation=True)


_HTML_ELEMENTS = frozenset(
    """
    a abbr address area article aside audio b base bdi bdo blockquote body br
    button canvas caption center cite code col colgroup data datalist dd del
    details dfn dialog div dl dt em embed fieldset figcaption figure font footer
    form h1 h2 h3 h4 h5 h6 head header hr html i iframe img input ins kbd label
    legend li link main map mark meta meter nav noscript object ol optgroup
    option output p param picture pre progress q rp rt ruby s samp section
    select small source span strike strong sub summary sup table tbody td
    template textarea tfoot th thead time title tr track tt u ul var video wbr
    """.split()
)
"""Element names recognised as markup. Any other <word> is kept as text."""

_COMMENT = _re.compile(r"<!--.*?-->", _re.DOTALL)

_SKIPPED_BODY = _re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", _re.DOTALL | _re.IGNORECASE)

# Attributes must be name=value pairs so that "a<b and c>d" is not a tag.
_TAG = _re.compile(
    r"""</?([A-Za-z][A-Za-z0-9]*)"""
    r"""((?:\s+[A-Za-z_:][-\w:.]*\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))*)"""
    r"""\s*/?>"""
)


def _drop_html_tag(match: _re.Match[str]) -> str:
    if match.group(1).lower() in _HTML_ELEMENTS:
        return ""
    return match.group(0)


def strip_markup(text: str) -> str:
    """
    Reduce message content to plain text.

    Removes comments, <script>/<style> elements with their bodies and tags
    of known HTML elements, then unescapes entities. Anything else between
    angle brackets ("List<String>", "a<b and c>d") is kept verbatim.
    """
    if "<" not in text and "&" not in text:
        return text
    text = _COMMENT.sub("", text)
    text = _SKIPPED_BODY.sub("", text)
    text = _TAG.sub(_drop_html_tag, text)
    return _html.unescape(text)


def split_system(
    messages: _typing.Sequence[types.Message],
) -> tuple[str | None, list[types.Message]]:
    """
    Lift system messages out of a message list.

    For backends that take the system prompt as a separate field.

    Returns:
        Tuple of (joined system text or None, remaining messages).
    """
    system = [m.content for m in messages if m.role == "system"]
    rest = [m for m in messages if m.role != "system"]
    return ("\n\n".join(system) if system else None), rest


class ConversationBuilder:
    """Builds the ordered message list a backend expects."""

    def __init__(
        self,
        policy: RolePolicy = PERMISSIVE,
        reasoning_tag: types.ReasoningTag | None = types.DEFAULT_REASONING_TAG,
    ) -> None:
        self._policy = policy
        self._reasoning_tag = reasoning_tag

    @property
    def policy(self) -> RolePolicy:
        return self._policy

    def build(
        self,
        history: _typing.Sequence[types.Message],
        new_message: types.Message | None = None,
        *,
        context_window: int | None = None,
    ) -> list[types.Message]:
        """
        Build the message list for one request.

        Args:
            history: Prior messages, oldest first. Not modified.
            new_message: The message being sent, if any.
            context_window: Number of recent user-initiated turns to keep.
                None or -1 keeps everything; 0 keeps none.

        Returns:
            A new list of messages ready for the backend's role vocabulary.

        Raises:
            ConfigurationError: If context_window is below -1.
        """
        messages = [m for m in (self._sanitise(m) for m in history) if m.content.strip()]

        new = self._sanitise(new_message) if new_message is not None else None
        if new is not None and not new.content.strip():
            new = None

        if (
            new is not None
            and messages
            and messages[-1].role == "user"
            and messages[-1].content == new.content
        ):
            _logger.debug("Dropping trailing history message that duplicates the new message")
            messages.pop()

        messages = self._apply_context_window(messages, context_window)

        if new is not None:
            messages.append(new)

        return self._repair_roles(messages)

    def _sanitise(self, message: types.Message) -> types.Message:
        content = message.content
        if message.role == "assistant" and self._reasoning_tag is not None:
            content, _ = reasoning.ReasoningSplitter.split(content, self._reasoning_tag)
        content = strip_markup(content).strip()
        if content == message.content:
            return message
        return message.with_content(content)

    @staticmethod
    def _apply_context_window(
        messages: list[types.Message],
        window: int | None,
    ) -> list[types.Message]:
        if window is None or window == _constants.UNLIMITED_CONTEXT_WINDOW:
            return messages
        if window < 0:
            raise errors.ConfigurationError(
                f"context_window must be >= 0 or {_constants.UNLIMITED_CONTEXT_WINDOW}, got {window}"
            )

        leading = 0
        while leading < len(messages) and messages[leading].role == "system":
            leading += 1

        turns: list[list[types.Message]] = []
        for message in messages[leading:]:
            if message.role == "user" or not turns:
                turns.append([message])
            else:
                turns[-1].append(message)

        kept = turns[-window:] if window else []
        return messages[:leading] + [m for turn in kept for m in turn]

    def _repair_roles(self, messages: list[types.Message]) -> list[types.Message]:
        policy = self._policy
        if not (policy.require_user_first or policy.strict_alternation):
            return messages

        repaired: list[types.Message] = []
        previous: types.Message | None = None
        for message in messages:
            if message.role == "system":
                repaired.append(message)
                continue
            if previous is None:
                if policy.require_user_first and message.role != "user":
                    repaired.append(types.Message.user(policy.user_placeholder))
            elif policy.strict_alternation and previous.role == message.role:
                if message.role == "user":
                    repaired.append(types.Message.assistant(policy.assistant_placeholder))
                else:
                    repaired.append(types.Message.user(policy.user_placeholder))
            repaired.append(message)
            previous = message
        return repaired
