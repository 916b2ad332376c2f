"""
AI usage logging collaborators.

The extraction service emits exactly one AIUsageEvent per request. Where
the event goes is up to the caller: a log line, a JSONL file, or nowhere.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from ..config import ensure_data_dir
from ..exceptions import ConfigurationError, ParseError
from ..models.usage import AIUsageEvent

logger = logging.getLogger(__name__)

ERROR_CATEGORIES = (
    "rate_limit",
    "timeout",
    "parsing_error",
    "tool_failure",
    "api_unavailable",
    "resource_exhausted",
    "auth_error",
    "unknown",
)


def categorize_error(error: Optional[BaseException]) -> Optional[str]:
    """
    Bucket an error for usage analytics.

    Returns:
        One of ERROR_CATEGORIES, or None when there was no error
    """
    if error is None:
        return None
    if isinstance(error, ParseError):
        return "parsing_error"
    if isinstance(error, ConfigurationError):
        return "auth_error"
    if isinstance(error, TimeoutError):
        return "timeout"

    message = str(error)
    lowered = message.lower()
    code = str(getattr(error, "code", "") or getattr(error, "status", "") or "").upper()

    if any(marker in lowered for marker in ("401", "403", "api key", "permission_denied", "unauthenticated")):
        return "auth_error"
    if code in ("401", "403", "PERMISSION_DENIED", "UNAUTHENTICATED"):
        return "auth_error"
    if "RESOURCE_EXHAUSTED" in message or code == "RESOURCE_EXHAUSTED":
        return "resource_exhausted"
    if "429" in lowered or "quota" in lowered or "rate limit" in lowered or code == "429":
        return "rate_limit"
    if "timeout" in lowered or "timed out" in lowered or "DEADLINE_EXCEEDED" in message or code == "DEADLINE_EXCEEDED":
        return "timeout"
    if "parse" in lowered or "json" in lowered:
        return "parsing_error"
    if "tool" in lowered or "grounding" in lowered or "search" in lowered:
        return "tool_failure"
    if (
        "unavailable" in lowered
        or "503" in lowered
        or "500" in lowered
        or "internal" in lowered
        or code in ("UNAVAILABLE", "INTERNAL", "500", "503")
    ):
        return "api_unavailable"
    return "unknown"


@runtime_checkable
class UsageLogger(Protocol):
    """Sink for AI usage events."""

    def log(self, event: AIUsageEvent) -> None: ...


class LoggingUsageLogger:
    """Writes one structured log line per event."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._log = log or logger
        self.level = level

    def log(self, event: AIUsageEvent) -> None:
        self._log.log(
            self.level,
            f"AI usage [endpoint={event.endpoint} model={event.model} success={event.success} "
            f"tokens={event.input_tokens}→{event.output_tokens} tools={','.join(event.tools_used) or 'none'} "
            f"cost_usd={event.cost.total:.6f} retries={event.retry_count} elapsed_ms={event.elapsed_ms} "
            f"error_category={event.error_category}]",
        )


class JsonlUsageLogger:
    """
    Appends events as JSON lines.

    Defaults to ai_usage.jsonl under the data directory. Thread-safe, so one
    instance can be shared by a worker pool.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else ensure_data_dir() / "ai_usage.jsonl"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def log(self, event: AIUsageEvent) -> None:
        line = event.model_dump_json()
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class NullUsageLogger:
    """Discards events."""

    def log(self, event: AIUsageEvent) -> None:
        return None
