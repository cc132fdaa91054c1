"""Ollama client."""
