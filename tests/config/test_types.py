"""Tests for config section types."""

import pydantic as _pydantic
import pytest as _pytest

import flarecore.config.types as types


class TestProviderConfig:
    """Tests for ProviderConfig."""

    def test_defaults(self) -> None:
        config = types.ProviderConfig(kind="ollama")
        assert config.api_key is None
        assert config.base_url is None
        assert config.visible_models == frozenset()
        assert config.enabled is True
        assert config.timeout is None

    @_pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("http://host:11434/", "http://host:11434"),
            ("  https://api.example.com/v1//  ", "https://api.example.com/v1"),
            ("   ", None),
        ],
    )
    def test_base_url_normalised(self, raw: str, expected: str | None) -> None:
        assert types.ProviderConfig(kind="openai", base_url=raw).base_url == expected

    def test_secret(self) -> None:
        config = types.ProviderConfig(kind="openai", api_key="sk-123")
        assert config.secret() == "sk-123"
        assert "sk-123" not in str(config)
        assert types.ProviderConfig(kind="openai").secret() is None

    def test_frozen(self) -> None:
        config = types.ProviderConfig(kind="openai")
        with _pytest.raises(_pydantic.ValidationError):
            config.default_model = "gpt-4o"  # type: ignore[misc]

    def test_unknown_kind(self) -> None:
        with _pytest.raises(_pydantic.ValidationError):
            types.ProviderConfig(kind="mistral")  # type: ignore[arg-type]


class TestSections:
    """Tests for the section models."""

    def test_providers_get(self) -> None:
        providers = types.ProvidersConfig(
            default="box",
            instances={"box": {"kind": "ollama"}},  # type: ignore[dict-item]
        )
        assert providers.get("box") == types.ProviderConfig(kind="ollama")
        assert providers.get("missing") is None

    def test_extra_fields_reported(self) -> None:
        section = types.ConversationConfig(temperature=0.3, temprature=0.1)  # type: ignore[call-arg]
        assert section.get_extra_fields() == {"temprature": 0.1}

    def test_no_extra_fields(self) -> None:
        assert types.LoggingConfig().get_extra_fields() == {}

    @_pytest.mark.parametrize(
        "values",
        [
            {"temperature": -0.5},
            {"max_tokens": 0},
            {"context_window": -2},
        ],
    )
    def test_conversation_bounds(self, values: dict[str, float]) -> None:
        with _pytest.raises(_pydantic.ValidationError):
            types.ConversationConfig(**values)  # type: ignore[arg-type]

    def test_empty_reasoning_header(self) -> None:
        with _pytest.raises(_pydantic.ValidationError):
            types.ReasoningConfig(header="")

    def test_log_level_choices(self) -> None:
        assert types.LoggingConfig(level="debug").level == "debug"
        with _pytest.raises(_pydantic.ValidationError):
            types.LoggingConfig(level="verbose")  # type: ignore[arg-type]
