"""
flarecore - streaming chat client core

Talks to OpenAI, Anthropic, Gemini, Ollama and OpenRouter through one
request/response contract, separating reasoning blocks from the answer as
tokens stream in.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("flarecore")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from flarecore.config import Settings  # noqa: E402

__all__ = ["__version__", "__version_info__", "Settings"]
