"""OpenAI chat completions client."""
