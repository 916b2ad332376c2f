"""
LLM client for the verification review, built on LiteLLM.

The grounded extraction talks to Gemini directly (google-genai) because it
needs the Google Search tool. The verification review is a plain
completion, so it goes through LiteLLM and gets model fallback and cost
tracking for free.

Usage:
    from tuition_intel.llm.llm_client import LLMClient, LLMTask

    client = LLMClient(task=LLMTask.VERIFICATION_REVIEW)
    response = client.generate("Verify this tuition record...", json_mode=True)
"""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import litellm
from litellm import completion, completion_cost

from ..exceptions import ConfigurationError

litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)


# =============================================================================
# MODEL CONSTANTS
# =============================================================================

MODEL_GEMINI_3_FLASH = "gemini-3-flash-preview"
MODEL_GEMINI_25_PRO = "gemini-2.5-pro"
MODEL_GEMINI_25_FLASH = "gemini-2.5-flash"
MODEL_GEMINI_25_FLASH_LITE = "gemini-2.5-flash-lite"
MODEL_GEMINI_20_FLASH = "gemini-2.0-flash"

MODEL_REGISTRY: Dict[str, Dict[str, Any]] = {
    MODEL_GEMINI_3_FLASH: {
        "litellm_name": "gemini/gemini-3-flash-preview",
        "provider": "google",
        "cost_per_1m_input": 0.50,
        "cost_per_1m_output": 3.00,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_25_PRO: {
        "litellm_name": "gemini/gemini-2.5-pro",
        "provider": "google",
        "cost_per_1m_input": 1.25,
        "cost_per_1m_output": 10.00,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_25_FLASH: {
        "litellm_name": "gemini/gemini-2.5-flash",
        "provider": "google",
        "cost_per_1m_input": 0.30,
        "cost_per_1m_output": 2.50,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_25_FLASH_LITE: {
        "litellm_name": "gemini/gemini-2.5-flash-lite",
        "provider": "google",
        "cost_per_1m_input": 0.10,
        "cost_per_1m_output": 0.40,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_20_FLASH: {
        "litellm_name": "gemini/gemini-2.0-flash",
        "provider": "google",
        "cost_per_1m_input": 0.10,
        "cost_per_1m_output": 0.40,
        "supports_json_mode": True,
    },
}


class LLMTask(Enum):
    """LLM task types with specific model configurations."""

    VERIFICATION_REVIEW = "verification_review"


# Task -> (primary_model, fallback_models)
TASK_MODELS: Dict[LLMTask, Tuple[str, List[str]]] = {
    LLMTask.VERIFICATION_REVIEW: (MODEL_GEMINI_25_FLASH, [MODEL_GEMINI_25_FLASH_LITE]),
}

# Prompt versions - increment when prompt templates change
PROMPT_VERSIONS: Dict[str, str] = {
    "verification_review": "v1.1.0",
}


def get_prompt_version(task_name: str) -> str:
    """Get the current prompt version for a task."""
    return PROMPT_VERSIONS.get(task_name, "v0.0.0")


@dataclass
class LLMResponse:
    """Response from the LLM with tracking metadata."""

    text: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    finish_reason: Optional[str] = None

    model_version: str = ""
    prompt_version: str = ""
    prompt_hash: str = ""
    timestamp: str = ""
    task: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMClient:
    """
    LiteLLM client with task-based model selection and fallback.

    Transient errors move on to the next fallback model; permanent errors
    (bad key, invalid request) are raised immediately.
    """

    def __init__(
        self,
        task: Optional[LLMTask] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: float = 120.0,
    ):
        """
        Initialize LLM client.

        Args:
            task: LLM task type (determines model and fallbacks)
            model: Specific model name (overrides task, disables fallback)
            api_key: Gemini API key, exported for LiteLLM if the env var is unset
            timeout_s: Per-call timeout

        Raises:
            ConfigurationError: unknown model name
        """
        self.task = task
        self.timeout_s = timeout_s

        if api_key and not os.environ.get("GEMINI_API_KEY"):
            os.environ["GEMINI_API_KEY"] = api_key

        if model:
            if model not in MODEL_REGISTRY:
                raise ConfigurationError(f"Unknown model: {model}. Available: {list(MODEL_REGISTRY.keys())}")
            self.model_name = model
            self.fallback_models: List[str] = []
        elif task:
            self.model_name, self.fallback_models = TASK_MODELS[task]
        else:
            self.model_name, self.fallback_models = TASK_MODELS[LLMTask.VERIFICATION_REVIEW]
        self.model_config = MODEL_REGISTRY[self.model_name]

        fallback_str = f" (fallbacks: {self.fallback_models})" if self.fallback_models else ""
        logger.debug(f"LLM client initialized: {self.model_name}{fallback_str}")

    def _is_transient_error(self, error: Exception) -> bool:
        """Check if an error is transient and worth retrying with fallback."""
        error_str = str(error).lower()
        transient_indicators = [
            "rate limit",
            "quota exceeded",
            "too many requests",
            "429",
            "503",
            "502",
            "timeout",
            "connection",
            "temporary",
            "overloaded",
        ]
        return any(indicator in error_str for indicator in transient_indicators)

    def _is_permanent_error(self, error: Exception) -> bool:
        """Authentication, permission and malformed-request errors never fall back."""
        error_str = str(error).lower()
        error_type = type(error).__name__.lower()

        permanent_indicators = [
            "authentication",
            "invalid api key",
            "api key",
            "unauthorized",
            "401",
            "403",
            "permission denied",
            "invalid request",
            "authenticationerror",
            "invalidrequesterror",
        ]
        return any(indicator in error_str or indicator in error_type for indicator in permanent_indicators)

    def _compute_prompt_hash(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        full_prompt = f"{system_prompt or ''}|||{prompt}"
        return hashlib.sha256(full_prompt.encode()).hexdigest()[:16]

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        prompt_version: Optional[str] = None,
        retry_on_error: bool = True,
    ) -> LLMResponse:
        """
        Generate text using the configured model with automatic fallback.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum tokens to generate
            json_mode: Request JSON output
            prompt_version: Version string for this prompt template
            retry_on_error: Let LiteLLM retry internally

        Returns:
            LLMResponse with text, tracking metadata, and cost
        """
        models_to_try = [self.model_name] + self.fallback_models
        prompt_hash = self._compute_prompt_hash(prompt, system_prompt)

        for position, model_name in enumerate(models_to_try):
            try:
                return self._generate_with_model(
                    model_name=model_name,
                    prompt=prompt,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                    prompt_version=prompt_version,
                    prompt_hash=prompt_hash,
                    retry_on_error=retry_on_error,
                )
            except Exception as e:
                if self._is_permanent_error(e):
                    logger.error(f"Permanent error with {model_name}: {e}. Not trying fallback.")
                    raise
                if position == len(models_to_try) - 1:
                    raise

                next_model = models_to_try[position + 1]
                kind = "TRANSIENT" if self._is_transient_error(e) else "UNEXPECTED"
                logger.warning(f"{kind} error with {model_name}: {type(e).__name__}: {e}. Trying fallback to {next_model}...")

        raise RuntimeError("No models configured")

    def _generate_with_model(
        self,
        model_name: str,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
        prompt_version: Optional[str],
        prompt_hash: str,
        retry_on_error: bool,
    ) -> LLMResponse:
        model_config = MODEL_REGISTRY[model_name]

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": model_config["litellm_name"],
            "messages": messages,
            "temperature": temperature,
            "timeout": self.timeout_s,
            "top_k": 40,
            "drop_params": True,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode and model_config.get("supports_json_mode"):
            kwargs["response_format"] = {"type": "json_object"}
        if retry_on_error:
            kwargs["num_retries"] = 2

        response = completion(**kwargs)

        if not response.choices:
            raise RuntimeError(
                f"LLM API returned empty choices array. "
                f"Model: {model_name}, Response: {getattr(response, 'id', 'unknown')}"
            )

        text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = (getattr(usage, "prompt_tokens", 0) or 0) if usage else 0
        output_tokens = (getattr(usage, "completion_tokens", 0) or 0) if usage else 0

        try:
            cost = completion_cost(completion_response=response)
        except Exception:
            cost = (input_tokens / 1_000_000) * model_config["cost_per_1m_input"] + (
                output_tokens / 1_000_000
            ) * model_config["cost_per_1m_output"]

        task_name = self.task.value if self.task else LLMTask.VERIFICATION_REVIEW.value
        llm_response = LLMResponse(
            text=text,
            model=model_name,
            provider=model_config["provider"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost or 0.0,
            finish_reason=getattr(response.choices[0], "finish_reason", None),
            model_version=model_config["litellm_name"],
            prompt_version=prompt_version or get_prompt_version(task_name),
            prompt_hash=prompt_hash,
            timestamp=datetime.now(timezone.utc).isoformat(),
            task=task_name,
            metadata={"raw_response_id": getattr(response, "id", None)},
        )

        logger.debug(
            f"LLM call: {model_name} | "
            f"Tokens: {llm_response.input_tokens}->{llm_response.output_tokens} | "
            f"Cost: ${llm_response.cost_usd:.6f}"
        )
        return llm_response
