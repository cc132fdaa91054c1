"""Anthropic Messages API client."""
