"""
Grounded tuition extraction using Gemini Search Grounding.

GeminiSearchClient handles the transport; GroundedTuitionSearch builds the
extraction prompt and turns one response into ExtractedFields.
"""

from .gemini_search import GeminiSearchClient, SearchGroundingResult, extract_json_from_response
from .tuition_search import GroundedTuitionSearch, TuitionSearchAttempt, parse_extraction_payload

__all__ = [
    "GeminiSearchClient",
    "GroundedTuitionSearch",
    "SearchGroundingResult",
    "TuitionSearchAttempt",
    "extract_json_from_response",
    "parse_extraction_payload",
]
