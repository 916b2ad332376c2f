"""Exception types raised by the extraction engine."""

from typing import Optional


class TuitionIntelError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(TuitionIntelError):
    """Missing credentials or invalid configuration. Always propagates to the caller."""


class ParseError(TuitionIntelError):
    """The model's payload could not be turned into a JSON object.

    Parsing is deterministic, so the backoff executor never retries this.
    """

    def __init__(self, message: str, raw_excerpt: Optional[str] = None):
        super().__init__(message)
        self.raw_excerpt = raw_excerpt
