"""Google Gemini client."""
