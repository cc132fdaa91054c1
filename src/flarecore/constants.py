"""
Shared constants for flarecore.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Sampling defaults
DEFAULT_TEMPERATURE = 0.7
"""Temperature used when neither the request nor the config sets one."""

DEFAULT_REQUIRED_MAX_TOKENS = 4000
"""Max tokens sent to backends whose wire format requires the field."""

# Reasoning tags
DEFAULT_REASONING_HEADER = "<think>"
"""Default opening tag for reasoning blocks."""

DEFAULT_REASONING_FOOTER = DEFAULT_REASONING_HEADER.replace("<", "</", 1)
"""Default closing tag, derived from the header."""

# Context window
UNLIMITED_CONTEXT_WINDOW = -1
"""Context window value meaning "send the whole history"."""

# Placeholders inserted by role repair
USER_PLACEHOLDER = "Hello"
"""Synthetic user turn for backends that must start with a user message."""

ASSISTANT_PLACEHOLDER = "I understand."
"""Synthetic assistant turn separating two consecutive user messages."""

# Default endpoints
OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OLLAMA_BASE_URL = "http://localhost:11434"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

ANTHROPIC_API_VERSION = "2023-06-01"
"""Value of the anthropic-version header."""

USER_AGENT = "flarecore/1.0"
"""User-Agent sent with every request."""
