"""
Grounded tuition search: one extraction attempt for one program label.

The orchestrator calls extract() once for the requested program and again
for each name variation. Only the network call is retried; payload parsing
happens afterwards and raises ParseError on garbage.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError

from ..exceptions import ParseError
from ..models.extraction import ExtractedFields
from ..utils.retry import BackoffExecutor, RetryStats
from .gemini_search import DEFAULT_MAX_OUTPUT_TOKENS, GeminiSearchClient, SearchGroundingResult, extract_json_from_response
from .prompts import build_extraction_prompt, build_search_query

logger = logging.getLogger(__name__)

RAW_EXCERPT_CHARS = 500

ResponseHook = Callable[[SearchGroundingResult], None]


@dataclass
class TuitionSearchAttempt:
    """Parsed fields plus the raw grounded response they came from."""

    fields: ExtractedFields
    response: SearchGroundingResult
    search_query: str
    program_label: str


def parse_extraction_payload(text: str) -> ExtractedFields:
    """
    Recover the JSON object from the model's text and validate it.

    Raises:
        ParseError: no JSON found, JSON is not an object, or validation failed
    """
    excerpt = (text or "")[:RAW_EXCERPT_CHARS]
    json_str = extract_json_from_response(text or "")
    if json_str is None:
        raise ParseError("Failed to parse extraction response as JSON", raw_excerpt=excerpt)

    data = json.loads(json_str)
    if not isinstance(data, dict):
        raise ParseError(f"Extraction response is a JSON {type(data).__name__}, expected an object", raw_excerpt=excerpt)

    try:
        return ExtractedFields.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Extraction payload failed validation: {e}", raw_excerpt=excerpt) from e


class GroundedTuitionSearch:
    """
    Runs the tuition extraction prompt through Gemini Search Grounding.

    Usage:
        search = GroundedTuitionSearch(GeminiSearchClient(), BackoffExecutor())
        attempt = search.extract("Acme University", "Part-Time MBA")
        print(attempt.fields.tuition_amount, attempt.response.source_count)
    """

    def __init__(
        self,
        client: GeminiSearchClient,
        executor: Optional[BackoffExecutor] = None,
        temperature: float = 1.0,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ):
        self.client = client
        self.executor = executor or BackoffExecutor()
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def extract(
        self,
        school: str,
        program: str,
        stats: Optional[RetryStats] = None,
        on_response: Optional[ResponseHook] = None,
    ) -> TuitionSearchAttempt:
        """
        One grounded extraction for (school, program).

        Args:
            school: Institution name
            program: Program label to search for (requested name or a variation)
            stats: Retry counter owned by the caller
            on_response: Called with every raw response before parsing, so
                token usage is counted even when parsing fails

        Returns:
            TuitionSearchAttempt

        Raises:
            ParseError: the payload was not a usable JSON object
            Exception: the provider error once the backoff budget is spent
        """
        prompt = build_extraction_prompt(school, program)
        response = self.executor.run(
            lambda: self._call(prompt),
            f"extract:{school}",
            stats,
        )
        if on_response is not None:
            on_response(response)

        logger.debug(
            f"Extraction response for {school} / {program}: {len(response.text)} chars, "
            f"{response.source_count} chunks"
        )
        fields = parse_extraction_payload(response.text)
        return TuitionSearchAttempt(
            fields=fields,
            response=response,
            search_query=build_search_query(school, program),
            program_label=program,
        )

    def search_once(self, school: str, program: str) -> SearchGroundingResult:
        """Single grounded call with no backoff, used to refill empty grounding."""
        return self._call(build_extraction_prompt(school, program))

    def _call(self, prompt: str) -> SearchGroundingResult:
        return self.client.search(
            prompt,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
