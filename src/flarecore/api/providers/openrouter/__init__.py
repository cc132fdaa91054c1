"""OpenRouter client."""
