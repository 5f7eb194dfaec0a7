"""Google Gemini API client wrapper for Nano Director."""

from nanodirector_gemini_client.client import GeminiClient, ResponseCache, guess_mime_type, request_key

__all__ = ["GeminiClient", "ResponseCache", "guess_mime_type", "request_key"]
