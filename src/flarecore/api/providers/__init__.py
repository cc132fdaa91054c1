"""
Provider client implementations.

Each backend is in its own submodule for clean separation.
Built-in providers: openai, anthropic, gemini, ollama, openrouter
"""

import flarecore.api.providers.anthropic.provider as _anthropic
import flarecore.api.providers.base as _base
import flarecore.api.providers.gemini.provider as _gemini
import flarecore.api.providers.ollama.provider as _ollama
import flarecore.api.providers.openai.provider as _openai
import flarecore.api.providers.openrouter.provider as _openrouter

# Re-export clients for convenient access
ProviderClient = _base.ProviderClient
AnthropicClient = _anthropic.AnthropicClient
GeminiClient = _gemini.GeminiClient
OllamaClient = _ollama.OllamaClient
OpenAIClient = _openai.OpenAIClient
OpenRouterClient = _openrouter.OpenRouterClient

__all__ = [
    "AnthropicClient",
    "GeminiClient",
    "OllamaClient",
    "OpenAIClient",
    "OpenRouterClient",
    "ProviderClient",
]
