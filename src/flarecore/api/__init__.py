"""
Provider clients for flarecore.

Provides a unified interface for streaming chat completions from:
- OpenAI (and OpenAI-compatible servers)
- Anthropic
- Google Gemini (whole-body responses)
- Ollama (local or remote, with continuation context)
- OpenRouter
"""

from flarecore.api.cancellation import CancellationToken
from flarecore.api.errors import (
    CancelledError,
    ConfigurationError,
    FlareError,
    NetworkError,
    ProtocolError,
)
from flarecore.api.factory import (
    build_request,
    create_client,
    create_client_from_settings,
    get_available_providers,
)
from flarecore.api.providers.base import ProviderClient
from flarecore.api.types import (
    CompletionResult,
    ConversationRequest,
    Message,
    ReasoningTag,
    RequestState,
    TokenEvent,
)

__all__ = [
    # Base class
    "ProviderClient",
    # Factory
    "build_request",
    "create_client",
    "create_client_from_settings",
    "get_available_providers",
    # Exceptions
    "CancelledError",
    "ConfigurationError",
    "FlareError",
    "NetworkError",
    "ProtocolError",
    # Types
    "CancellationToken",
    "CompletionResult",
    "ConversationRequest",
    "Message",
    "ReasoningTag",
    "RequestState",
    "TokenEvent",
]
