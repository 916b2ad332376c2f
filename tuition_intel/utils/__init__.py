"""Shared helpers: backoff, sanitization, URL handling, logging and pacing."""
