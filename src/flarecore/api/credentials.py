"""
Credentials loading utilities for provider clients.

API keys resolve in this order:
1. `api_key` set directly on the ProviderConfig
2. `credentials_path`: JSON file containing {"api_key": "..."}
3. The backend's environment variable (e.g. OPENAI_API_KEY)
"""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import flarecore.api.errors as errors

if _typing.TYPE_CHECKING:
    import flarecore.config.types as config_types


def load_credentials_from_path(path: str) -> dict[str, _typing.Any]:
    """
    Load credentials from a JSON file.

    Args:
        path: Path to credentials JSON file. Supports ~ and $VAR expansion.

    Returns:
        Dict containing credentials (e.g., {"api_key": "..."}).

    Raises:
        ConfigurationError: If file cannot be read or parsed.

    Example:
        >>> creds = load_credentials_from_path("~/.config/flarecore/anthropic.json")
        >>> api_key = creds.get("api_key")
    """
    expanded_path = _os.path.expandvars(_os.path.expanduser(path))
    creds_path = _pathlib.Path(expanded_path)

    if not creds_path.exists():
        raise errors.ConfigurationError(f"Credentials file not found: {expanded_path}")

    try:
        credentials = _json.loads(creds_path.read_text(encoding="utf-8"))
    except PermissionError as e:
        raise errors.ConfigurationError(
            f"Permission denied reading credentials file: {expanded_path}"
        ) from e
    except _json.JSONDecodeError as e:
        raise errors.ConfigurationError(
            f"Invalid JSON in credentials file {expanded_path}: {e}"
        ) from e

    if not isinstance(credentials, dict):
        raise errors.ConfigurationError(
            f"Credentials file must contain a JSON object: {expanded_path}"
        )
    return credentials


def resolve_api_key(
    config: "config_types.ProviderConfig",
    env_var: str | None = None,
) -> str | None:
    """
    Resolve the API key for a provider instance.

    Args:
        config: The provider instance configuration.
        env_var: Environment variable consulted last, if any.

    Returns:
        The key, or None if no source provides one.

    Raises:
        ConfigurationError: If credentials_path is set but unreadable.
    """
    if key := config.secret():
        return key
    if config.credentials_path:
        key = load_credentials_from_path(config.credentials_path).get("api_key")
        if key:
            return str(key)
    if env_var:
        return _os.environ.get(env_var) or None
    return None
