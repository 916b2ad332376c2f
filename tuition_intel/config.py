"""
Central configuration for the extraction engine.

Values come from environment variables (loaded from .env by the CLI):
  - GOOGLE_API_KEY / GEMINI_API_KEY: Gemini credentials
  - TUITION_DATA_DIR: local directory for JSONL output (default ~/.tuition-intel-data)
  - TUITION_MODEL, TUITION_VERIFICATION_MODEL: Gemini model names
  - TUITION_MAX_RETRIES, TUITION_BASE_DELAY_MS, TUITION_MAX_DELAY_MS: backoff policy
  - TUITION_REQUEST_TIMEOUT_S: per-call HTTP timeout
  - TUITION_VERIFY, TUITION_AI_REVIEW: verification switches
  - TUITION_BATCH_DELAY_S: pacing between batch items
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

AI_REVIEW_MODES = ("never", "borderline", "always")


def get_api_key(explicit: Optional[str] = None) -> str:
    """
    Resolve the Gemini API key.

    Checks GOOGLE_API_KEY first, then GEMINI_API_KEY. Placeholder values
    that start with "your_" are skipped.

    Raises:
        ConfigurationError: if no usable key is found
    """
    if explicit:
        return explicit
    for env_var in ["GOOGLE_API_KEY", "GEMINI_API_KEY"]:
        key = os.environ.get(env_var)
        if key and not key.startswith("your_"):
            return key
    raise ConfigurationError(
        "API key not found. Set GEMINI_API_KEY or GOOGLE_API_KEY in environment, "
        "or pass api_key parameter."
    )


def get_data_dir() -> Path:
    """
    Get the local data directory for record and usage logs.

    Uses TUITION_DATA_DIR if set, otherwise ~/.tuition-intel-data/
    """
    env_path = os.environ.get("TUITION_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".tuition-intel-data"


def ensure_data_dir() -> Path:
    """Ensure the data directory exists."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass
class EngineConfig:
    """Configuration for the extraction engine.

    Attributes:
        model: Gemini model used for grounded extraction
        verification_model: Model used for the optional AI review
        temperature: Sampling temperature (1.0 recommended for grounding tools)
        max_output_tokens: Cap on extraction response size
        request_timeout_s: HTTP timeout per upstream call
        max_retries: Backoff executor retry budget after the first attempt
        base_delay_ms: Backoff base delay
        max_delay_ms: Backoff delay ceiling
        max_variation_retries: How many alternate program names to try
        verification_enabled: Run the verification agent
        ai_review_mode: "never", "borderline" or "always"
        batch_delay_s: Pacing between batch items
    """

    model: str = "gemini-2.5-flash"
    verification_model: str = "gemini-2.5-flash"
    temperature: float = 1.0
    max_output_tokens: int = 4096
    request_timeout_s: float = 120.0

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000

    max_variation_retries: int = 3

    verification_enabled: bool = True
    ai_review_mode: str = "borderline"

    batch_delay_s: float = 2.0

    def __post_init__(self):
        if self.ai_review_mode not in AI_REVIEW_MODES:
            raise ConfigurationError(
                f"ai_review_mode must be one of {AI_REVIEW_MODES}, got {self.ai_review_mode!r}"
            )
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")
        if self.batch_delay_s < 0:
            raise ConfigurationError("batch_delay_s cannot be negative")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from TUITION_* environment variables."""
        defaults = cls()
        return cls(
            model=os.environ.get("TUITION_MODEL", defaults.model),
            verification_model=os.environ.get("TUITION_VERIFICATION_MODEL", defaults.verification_model),
            temperature=_env_float("TUITION_TEMPERATURE", defaults.temperature),
            max_output_tokens=_env_int("TUITION_MAX_OUTPUT_TOKENS", defaults.max_output_tokens),
            request_timeout_s=_env_float("TUITION_REQUEST_TIMEOUT_S", defaults.request_timeout_s),
            max_retries=_env_int("TUITION_MAX_RETRIES", defaults.max_retries),
            base_delay_ms=_env_int("TUITION_BASE_DELAY_MS", defaults.base_delay_ms),
            max_delay_ms=_env_int("TUITION_MAX_DELAY_MS", defaults.max_delay_ms),
            max_variation_retries=_env_int("TUITION_MAX_VARIATIONS", defaults.max_variation_retries),
            verification_enabled=_env_bool("TUITION_VERIFY", defaults.verification_enabled),
            ai_review_mode=os.environ.get("TUITION_AI_REVIEW", defaults.ai_review_mode),
            batch_delay_s=_env_float("TUITION_BATCH_DELAY_S", defaults.batch_delay_s),
        )
