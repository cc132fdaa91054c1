"""Tests for API key resolution and credentials files."""

import json as _json
import pathlib as _pathlib

import pytest as _pytest

import flarecore.api.credentials as credentials
import flarecore.api.errors as errors
import flarecore.config.types as config_types


def _config(**fields: object) -> config_types.ProviderConfig:
    return config_types.ProviderConfig(kind="openai", **fields)  # type: ignore[arg-type]


class TestLoadCredentialsFromPath:
    """Tests for load_credentials_from_path()."""

    def test_loads_json_object(self, tmp_path: _pathlib.Path) -> None:
        creds_file = tmp_path / "openai.json"
        creds_file.write_text(_json.dumps({"api_key": "sk-file"}))
        assert credentials.load_credentials_from_path(str(creds_file)) == {"api_key": "sk-file"}

    def test_expands_env_vars(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        """$VAR in the path is expanded."""
        (tmp_path / "creds.json").write_text(_json.dumps({"api_key": "sk-env-path"}))
        monkeypatch.setenv("CREDS_DIR", str(tmp_path))
        loaded = credentials.load_credentials_from_path("$CREDS_DIR/creds.json")
        assert loaded["api_key"] == "sk-env-path"

    def test_expands_tilde(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "creds.json").write_text(_json.dumps({"api_key": "sk-home"}))
        assert credentials.load_credentials_from_path("~/creds.json")["api_key"] == "sk-home"

    def test_missing_file_raises(self) -> None:
        with _pytest.raises(errors.ConfigurationError, match="Credentials file not found"):
            credentials.load_credentials_from_path("/nonexistent/path/creds.json")

    def test_invalid_json_raises(self, tmp_path: _pathlib.Path) -> None:
        creds_file = tmp_path / "bad.json"
        creds_file.write_text("{not json")
        with _pytest.raises(errors.ConfigurationError, match="Invalid JSON"):
            credentials.load_credentials_from_path(str(creds_file))

    def test_non_object_raises(self, tmp_path: _pathlib.Path) -> None:
        creds_file = tmp_path / "list.json"
        creds_file.write_text('["sk-1"]')
        with _pytest.raises(errors.ConfigurationError, match="JSON object"):
            credentials.load_credentials_from_path(str(creds_file))


class TestResolveApiKey:
    """Precedence: config api_key, then credentials file, then env var."""

    def test_config_key_wins(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        creds_file = tmp_path / "creds.json"
        creds_file.write_text(_json.dumps({"api_key": "sk-file"}))
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = _config(api_key="sk-config", credentials_path=str(creds_file))
        assert credentials.resolve_api_key(config, "OPENAI_API_KEY") == "sk-config"

    def test_file_before_env(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        creds_file = tmp_path / "creds.json"
        creds_file.write_text(_json.dumps({"api_key": "sk-file"}))
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = _config(credentials_path=str(creds_file))
        assert credentials.resolve_api_key(config, "OPENAI_API_KEY") == "sk-file"

    def test_file_without_key_falls_through(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        creds_file = tmp_path / "creds.json"
        creds_file.write_text(_json.dumps({"user": "me"}))
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = _config(credentials_path=str(creds_file))
        assert credentials.resolve_api_key(config, "OPENAI_API_KEY") == "sk-env"

    def test_env_var(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert credentials.resolve_api_key(_config(), "OPENAI_API_KEY") == "sk-env"

    def test_empty_env_var_is_missing(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "")
        assert credentials.resolve_api_key(_config(), "OPENAI_API_KEY") is None

    def test_nothing_configured(self) -> None:
        assert credentials.resolve_api_key(_config(), "OPENAI_API_KEY") is None
        assert credentials.resolve_api_key(_config()) is None

    def test_key_not_shown_in_repr(self) -> None:
        config = _config(api_key="sk-secret")
        assert "sk-secret" not in repr(config)
