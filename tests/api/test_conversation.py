"""Tests for ConversationBuilder and role policies."""

import pytest as _pytest

import flarecore.api.conversation as conversation
import flarecore.api.errors as errors
import flarecore.api.types as types

M = types.Message


def _roles(messages: list[types.Message]) -> list[str]:
    return [m.role for m in messages]


def _contents(messages: list[types.Message]) -> list[str]:
    return [m.content for m in messages]


class TestSanitise:
    """Content cleanup before sending."""

    def test_drops_empty_messages(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.user("hi"), M.assistant("   "), M.user(""), M.assistant("there")]
        assert _contents(builder.build(history)) == ["hi", "there"]

    def test_strips_reasoning_from_assistant_history(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.user("q"), M.assistant("<think>private</think>public")]
        assert _contents(builder.build(history)) == ["q", "public"]

    def test_user_content_keeps_think_text(self) -> None:
        """Only assistant turns carry model reasoning."""
        builder = conversation.ConversationBuilder()
        result = builder.build([], M.user("what does <think>x</think> mean?"))
        assert result[-1].content == "what does <think>x</think> mean?"

    def test_assistant_reduced_to_reasoning_only_is_dropped(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.user("q"), M.assistant("<think>only thoughts</think>")]
        assert _roles(builder.build(history)) == ["user"]

    def test_strips_markup(self) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build(
            [],
            M.user("<p>Hello <b>world</b></p><script>alert(1)</script> &amp; bye"),
        )
        assert result[-1].content == "Hello world & bye"

    def test_keeps_bare_less_than(self) -> None:
        assert conversation.strip_markup("a < b") == "a < b"

    def test_keeps_code_and_comparisons(self) -> None:
        text = "Why does List<String> x = new ArrayList<>(); fail if a<b and c>d?"
        builder = conversation.ConversationBuilder()
        assert builder.build([], M.user(text))[-1].content == text

    @_pytest.mark.parametrize(
        "text",
        [
            "Map<K, V> m;",
            "fn f<T>(x: Vec<u8>) -> Result<T>",
            "if (x<y && y>z)",
            "<input disabled> is a bare attribute",
            "1 <2> 3",
        ],
    )
    def test_non_html_angle_brackets_kept(self, text: str) -> None:
        assert conversation.strip_markup(text) == text

    @_pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("a<!-- note -->b", "ab"),
            ('<a href="https://x.org">link</a>', "link"),
            ("<STYLE>p {}</style>text<br/>", "text"),
            ("<div class='c' id=main>x</div>", "x"),
            ("&lt;p&gt; stays", "<p> stays"),
        ],
    )
    def test_html_constructs_removed(self, text: str, expected: str) -> None:
        assert conversation.strip_markup(text) == expected

    def test_history_kept_whole_without_reasoning_tag(self) -> None:
        builder = conversation.ConversationBuilder(reasoning_tag=None)
        history = [M.user("q"), M.assistant("Use <think>x</think> tags")]
        assert _contents(builder.build(history)) == ["q", "Use <think>x</think> tags"]

    def test_custom_reasoning_tag(self) -> None:
        builder = conversation.ConversationBuilder(
            reasoning_tag=types.ReasoningTag.from_header("<reasoning>")
        )
        history = [M.user("q"), M.assistant("<reasoning>r</reasoning>a")]
        assert _contents(builder.build(history)) == ["q", "a"]

    def test_input_not_mutated(self) -> None:
        history = [M.assistant("<think>r</think>a")]
        conversation.ConversationBuilder().build(history)
        assert history[0].content == "<think>r</think>a"


class TestDuplicateNewMessage:
    """A trailing history entry equal to the new message is dropped."""

    def test_drops_trailing_duplicate(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.user("a"), M.assistant("b"), M.user("again")]
        result = builder.build(history, M.user("again"))
        assert _contents(result) == ["a", "b", "again"]

    def test_keeps_non_trailing_duplicate(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.user("same"), M.assistant("b")]
        result = builder.build(history, M.user("same"))
        assert _contents(result) == ["same", "b", "same"]

    def test_duplicate_compared_after_trimming(self) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build([M.user("hi  ")], M.user("  hi"))
        assert _contents(result) == ["hi"]


class TestContextWindow:
    """Most recent N turns, leading system messages kept."""

    HISTORY = [
        M.system("be brief"),
        M.user("u1"),
        M.assistant("a1"),
        M.user("u2"),
        M.assistant("a2"),
        M.user("u3"),
        M.assistant("a3"),
    ]

    @_pytest.mark.parametrize("window", [None, -1])
    def test_unlimited(self, window: int | None) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build(self.HISTORY, M.user("new"), context_window=window)
        assert len(result) == len(self.HISTORY) + 1

    def test_keeps_recent_pairs(self) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build(self.HISTORY, M.user("new"), context_window=2)
        assert _contents(result) == ["be brief", "u2", "a2", "u3", "a3", "new"]

    def test_zero_keeps_only_system_and_new(self) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build(self.HISTORY, M.user("new"), context_window=0)
        assert _contents(result) == ["be brief", "new"]

    def test_window_larger_than_history(self) -> None:
        builder = conversation.ConversationBuilder()
        result = builder.build(self.HISTORY, context_window=10)
        assert _contents(result) == _contents(self.HISTORY)

    def test_leading_assistant_counts_as_a_turn(self) -> None:
        builder = conversation.ConversationBuilder()
        history = [M.assistant("greeting"), M.user("u1"), M.assistant("a1")]
        result = builder.build(history, context_window=1)
        assert _contents(result) == ["u1", "a1"]

    def test_invalid_window_raises(self) -> None:
        builder = conversation.ConversationBuilder()
        with _pytest.raises(errors.ConfigurationError):
            builder.build(self.HISTORY, context_window=-2)


class TestRoleRepair:
    """Placeholder insertion for strict backends."""

    def test_alternation_inserts_one_placeholder(self) -> None:
        """[assistant, assistant, user] gets exactly one placeholder."""
        builder = conversation.ConversationBuilder(conversation.GEMINI)
        history = [M.assistant("a1"), M.assistant("a2"), M.user("u1")]

        result = builder.build(history)

        assert len(result) == 4
        assert _contents(result) == ["a1", "Hello", "a2", "u1"]
        assert all(x.role != y.role for x, y in zip(result, result[1:]))

    def test_user_first_inserts_placeholder(self) -> None:
        builder = conversation.ConversationBuilder(conversation.ANTHROPIC)
        result = builder.build([M.assistant("welcome")], M.user("hi"))
        assert _roles(result) == ["user", "assistant", "user"]
        assert result[0].content == "Hello"

    def test_consecutive_users_get_assistant_placeholder(self) -> None:
        builder = conversation.ConversationBuilder(conversation.ANTHROPIC)
        result = builder.build([M.user("first")], M.user("second"))
        assert _contents(result) == ["first", "I understand.", "second"]

    def test_system_excluded_from_checks(self) -> None:
        builder = conversation.ConversationBuilder(conversation.ANTHROPIC)
        result = builder.build([M.system("sys"), M.assistant("a")], M.user("u"))
        assert _roles(result) == ["system", "user", "assistant", "user"]

    def test_permissive_policy_leaves_roles(self) -> None:
        builder = conversation.ConversationBuilder(conversation.PERMISSIVE)
        history = [M.assistant("a"), M.assistant("b")]
        assert _roles(builder.build(history, M.user("u"))) == ["assistant", "assistant", "user"]

    def test_custom_placeholders(self) -> None:
        policy = conversation.RolePolicy(
            require_user_first=True,
            strict_alternation=True,
            user_placeholder="(start)",
            assistant_placeholder="(ack)",
        )
        result = conversation.ConversationBuilder(policy).build([M.assistant("a")], M.user("u"))
        assert _contents(result) == ["(start)", "a", "u"]


class TestSplitSystem:
    """Tests for split_system()."""

    def test_lifts_system_messages(self) -> None:
        system, rest = conversation.split_system([M.system("one"), M.user("u"), M.system("two")])
        assert system == "one\n\ntwo"
        assert _roles(rest) == ["user"]

    def test_no_system(self) -> None:
        system, rest = conversation.split_system([M.user("u")])
        assert system is None
        assert len(rest) == 1
