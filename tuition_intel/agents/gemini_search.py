"""
Gemini Search Grounding client.

Wraps the Google GenAI SDK to provide search-grounded responses
with full metadata about sources used.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from google import genai
from google.genai import types

from ..config import get_api_key
from ..models.grounding import GroundingChunk, GroundingMetadata, GroundingSupport

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 4096

# Flat price per grounded call that used the Google Search tool
SEARCH_COST_USD = 0.005


def extract_json_from_response(text: str) -> Optional[str]:
    """
    Extract a JSON object string from LLM response text.

    Handles, in order:
    - Plain JSON
    - JSON wrapped in markdown code blocks
    - JSON embedded in prose (balanced braces, then first { to last })

    Args:
        text: Raw response text from LLM

    Returns:
        Extracted JSON string, or None if nothing parseable was found
    """
    if not text:
        return None
    text = text.strip()

    if _is_valid_json(text):
        return text

    # Handle markdown code blocks
    if "```json" in text:
        fenced = text.split("```json")[1].split("```")[0].strip()
        if _is_valid_json(fenced):
            return fenced
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 2:
            fenced = parts[1].strip()
            if fenced.lower().startswith("json"):
                fenced = fenced[4:].strip()
            if _is_valid_json(fenced):
                return fenced

    start = text.find("{")
    if start == -1:
        return None

    balanced = _balanced_object(text, start)
    if balanced and _is_valid_json(balanced):
        return balanced

    end = text.rfind("}")
    if end > start:
        candidate = text[start : end + 1]
        if _is_valid_json(candidate):
            return candidate
    return None


def _is_valid_json(candidate: str) -> bool:
    try:
        json.loads(candidate)
        return True
    except (json.JSONDecodeError, ValueError):
        return False


def _balanced_object(text: str, start: int) -> Optional[str]:
    """Return text[start:] up to the brace that closes the object at `start`."""
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


@dataclass
class SearchGroundingResult:
    """Result from a search-grounded Gemini call."""

    text: str
    grounding_metadata: GroundingMetadata
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost_usd: float = 0.0
    output_cost_usd: float = 0.0
    search_cost_usd: float = 0.0
    cost_usd: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def has_grounding(self) -> bool:
        """Whether any grounding sources were found."""
        return len(self.grounding_metadata.grounding_chunks) > 0

    @property
    def source_count(self) -> int:
        """Number of sources used for grounding."""
        return len(self.grounding_metadata.grounding_chunks)

    @property
    def used_search(self) -> bool:
        """Whether the Google Search tool actually ran for this call."""
        return bool(self.grounding_metadata.web_search_queries) or self.has_grounding


class GeminiSearchClient:
    """
    Client for Gemini with Search Grounding enabled.

    Uses the Google GenAI SDK directly (not LiteLLM) to access
    search grounding features.

    Usage:
        client = GeminiSearchClient()
        result = client.search('"Acme University" "MBA" tuition fees site:.edu')
        print(result.text)
        print(result.grounding_metadata.source_urls)
    """

    DEFAULT_MODEL = "gemini-2.5-flash"

    # Cost per million tokens
    COSTS = {
        "gemini-3-flash-preview": {"input": 0.10, "output": 0.40},
        "gemini-2.5-flash": {"input": 0.30, "output": 2.50},
        "gemini-2.5-flash-lite": {"input": 0.10, "output": 0.40},
        "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
        "gemini-2.5-pro": {"input": 1.25, "output": 10.00},
    }

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        request_timeout_s: Optional[float] = 120.0,
        client: Any = None,
    ):
        """
        Initialize Gemini Search client.

        Args:
            model: Gemini model to use
            api_key: Google API key (defaults to GOOGLE_API_KEY or GEMINI_API_KEY env var)
            request_timeout_s: HTTP timeout applied to every call
            client: Pre-built genai.Client (tests pass a fake here)

        Raises:
            ConfigurationError: if no API key is available
        """
        self.model = model
        if client is not None:
            self.client = client
        else:
            http_options = None
            if request_timeout_s:
                # HttpOptions.timeout is in milliseconds
                http_options = types.HttpOptions(timeout=int(request_timeout_s * 1000))
            self.client = genai.Client(api_key=get_api_key(api_key), http_options=http_options)
        logger.info(f"GeminiSearchClient initialized with model: {model}")

    def search(
        self,
        query: str,
        system_prompt: Optional[str] = None,
        temperature: float = 1.0,
        max_output_tokens: Optional[int] = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> SearchGroundingResult:
        """
        Perform a search-grounded query.

        Args:
            query: The prompt sent to the model
            system_prompt: Optional system instructions
            temperature: Sampling temperature
            max_output_tokens: Maximum tokens in response

        Returns:
            SearchGroundingResult with text and grounding metadata
        """
        config = types.GenerateContentConfig(
            temperature=temperature,
            top_k=40,
            max_output_tokens=max_output_tokens,
            system_instruction=system_prompt,
            tools=[types.Tool(google_search=types.GoogleSearch())],
        )

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=query,
                config=config,
            )
        except Exception as e:
            logger.error(f"Search grounding failed: {e}")
            raise

        text = response.text if getattr(response, "text", None) else ""
        grounding_metadata = self._parse_grounding_metadata(response)

        input_tokens = 0
        output_tokens = 0
        usage = getattr(response, "usage_metadata", None)
        if usage:
            input_tokens = getattr(usage, "prompt_token_count", 0) or 0
            output_tokens = getattr(usage, "candidates_token_count", 0) or 0

        input_cost, output_cost = self._calculate_token_cost(input_tokens, output_tokens)
        result = SearchGroundingResult(
            text=text,
            grounding_metadata=grounding_metadata,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            input_cost_usd=input_cost,
            output_cost_usd=output_cost,
        )
        result.search_cost_usd = SEARCH_COST_USD if result.used_search else 0.0
        result.cost_usd = input_cost + output_cost + result.search_cost_usd

        logger.info(
            f"Search completed: {result.source_count} sources, "
            f"{input_tokens}→{output_tokens} tokens, ${result.cost_usd:.6f}"
        )
        return result

    def _parse_grounding_metadata(self, response: Any) -> GroundingMetadata:
        """Parse grounding metadata from Gemini response."""
        candidates = getattr(response, "candidates", None)
        if not candidates:
            return GroundingMetadata()

        raw_metadata = getattr(candidates[0], "grounding_metadata", None)
        if not raw_metadata:
            return GroundingMetadata()

        web_search_queries = list(getattr(raw_metadata, "web_search_queries", []) or [])

        # Chunk positions must match the indices used by supports, so
        # non-web chunks keep their slot with an empty URI.
        grounding_chunks = []
        for chunk in getattr(raw_metadata, "grounding_chunks", []) or []:
            web = getattr(chunk, "web", None)
            retrieved = getattr(chunk, "retrieved_context", None)
            chunk_text = getattr(chunk, "text", None) or getattr(web, "text", None) or getattr(retrieved, "text", None)
            grounding_chunks.append(
                GroundingChunk(
                    uri=getattr(web, "uri", None) if web else None,
                    title=getattr(web, "title", None) if web else None,
                    domain=getattr(web, "domain", None) if web else None,
                    text=chunk_text if isinstance(chunk_text, str) else None,
                    segment_text=_optional_str(getattr(chunk, "segment_text", None)),
                )
            )

        grounding_supports = []
        for support in getattr(raw_metadata, "grounding_supports", []) or []:
            segment = getattr(support, "segment", None)
            grounding_supports.append(
                GroundingSupport(
                    segment_text=getattr(segment, "text", None) if segment else None,
                    start_index=getattr(segment, "start_index", None) if segment else None,
                    end_index=getattr(segment, "end_index", None) if segment else None,
                    confidence_scores=list(getattr(support, "confidence_scores", []) or []),
                    grounding_chunk_indices=list(getattr(support, "grounding_chunk_indices", []) or []),
                )
            )

        retrieval_queries = list(getattr(raw_metadata, "retrieval_queries", []) or [])

        logger.debug(
            f"Grounding metadata: {len(grounding_chunks)} chunks, {len(grounding_supports)} supports, "
            f"queries={web_search_queries}"
        )
        return GroundingMetadata(
            web_search_queries=web_search_queries,
            grounding_chunks=grounding_chunks,
            grounding_supports=grounding_supports,
            retrieval_queries=retrieval_queries,
        )

    def _calculate_token_cost(self, input_tokens: int, output_tokens: int) -> tuple[float, float]:
        costs = self.COSTS.get(self.model, self.COSTS[self.DEFAULT_MODEL])
        input_cost = (input_tokens / 1_000_000) * costs["input"]
        output_cost = (output_tokens / 1_000_000) * costs["output"]
        return input_cost, output_cost


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None
