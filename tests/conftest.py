"""Shared fixtures for tuition_intel tests.

No test touches the network: the Gemini transport is replaced by
FakeSearchClient and the LiteLLM review by mocks.
"""

import json
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from tuition_intel.agents.gemini_search import SEARCH_COST_USD, SearchGroundingResult
from tuition_intel.agents.tuition_search import GroundedTuitionSearch
from tuition_intel.judges.verifier import VerificationAgent
from tuition_intel.models.extraction import (
    AttributedSource,
    ConfidenceLevel,
    ExtractionRecord,
    ExtractionStatus,
)
from tuition_intel.models.grounding import GroundingChunk, GroundingMetadata, GroundingSupport
from tuition_intel.services.extraction_service import TuitionExtractionService
from tuition_intel.services.source_reconciler import SourceReconciler
from tuition_intel.utils.retry import BackoffExecutor, RetryPolicy

ACME_EVIDENCE = (
    "The Part-Time MBA at Acme University costs $48,000 for the full program in 2025-2026. "
    "Students complete 48 credits at $1,000 per credit over two years."
)

# ─── Builders ─────────────────────────────────────────────────────────────────


def success_payload(**overrides) -> dict:
    """A complete, plausible extraction payload."""
    payload = {
        "tuition_amount": "$48,000",
        "tuition_period": "full program",
        "academic_year": "2025-2026",
        "cost_per_credit": "$1,000",
        "total_credits": "48",
        "program_length": "2 years",
        "actual_program_name": "Part-Time MBA",
        "is_stem": False,
        "additional_fees": None,
        "remarks": "In-state rate",
        "status": "Success",
    }
    payload.update(overrides)
    return payload


def not_found_payload() -> dict:
    return {"tuition_amount": None, "status": "Not Found", "remarks": "Program not offered"}


def grounded_result(
    payload=None,
    chunks: Optional[list[tuple]] = None,
    supports: Optional[list[tuple]] = None,
    input_tokens: int = 100,
    output_tokens: int = 50,
) -> SearchGroundingResult:
    """
    Build a SearchGroundingResult.

    Args:
        payload: dict (serialized to JSON) or raw text
        chunks: (uri, title, text) tuples
        supports: (segment_text, [chunk indices]) tuples
    """
    if payload is None:
        payload = success_payload()
    text = payload if isinstance(payload, str) else json.dumps(payload)

    grounding_chunks = [GroundingChunk(uri=uri, title=title, text=chunk_text) for uri, title, chunk_text in chunks or []]
    grounding_supports = [
        GroundingSupport(segment_text=segment, grounding_chunk_indices=indices, start_index=0, end_index=len(segment))
        for segment, indices in supports or []
    ]
    metadata = GroundingMetadata(
        web_search_queries=["acme tuition"] if grounding_chunks else [],
        grounding_chunks=grounding_chunks,
        grounding_supports=grounding_supports,
    )
    result = SearchGroundingResult(
        text=text,
        grounding_metadata=metadata,
        model="gemini-2.5-flash",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_cost_usd=input_tokens * 0.3 / 1_000_000,
        output_cost_usd=output_tokens * 2.5 / 1_000_000,
    )
    result.search_cost_usd = SEARCH_COST_USD if result.used_search else 0.0
    result.cost_usd = result.input_cost_usd + result.output_cost_usd + result.search_cost_usd
    return result


def acme_chunks() -> list[tuple]:
    return [("https://www.acme.edu/mba/tuition", "Tuition | Acme University", ACME_EVIDENCE)]


def make_record(**overrides) -> ExtractionRecord:
    """A plausible Success record from an official .edu source."""
    fields = dict(
        school="Acme University",
        program="Part-Time MBA",
        tuition_amount="$48,000",
        tuition_period="full program",
        academic_year="2025-2026",
        cost_per_credit="$1,000",
        total_credits="48",
        program_length="2 years",
        program_length_months=24,
        actual_program_name="Part-Time MBA",
        remarks="In-state rate",
        confidence_score=ConfidenceLevel.HIGH,
        status=ExtractionStatus.SUCCESS,
        source_url="https://www.acme.edu/mba/tuition",
        validated_sources=[
            AttributedSource(
                title="Tuition | Acme University",
                url="https://www.acme.edu/mba/tuition",
                raw_content=ACME_EVIDENCE,
            )
        ],
        raw_content=ACME_EVIDENCE,
    )
    fields.update(overrides)
    return ExtractionRecord(**fields)


def genai_response(text: str, chunks=None, supports=None, queries=None, prompt_tokens=120, output_tokens=80):
    """Mimic a google-genai GenerateContentResponse."""
    raw_chunks = []
    for chunk in chunks or []:
        if chunk is None:
            raw_chunks.append(SimpleNamespace(web=None, retrieved_context=SimpleNamespace(text="internal doc")))
        else:
            uri, title = chunk
            raw_chunks.append(SimpleNamespace(web=SimpleNamespace(uri=uri, title=title, domain=None)))
    raw_supports = [
        SimpleNamespace(
            segment=SimpleNamespace(text=segment, start_index=0, end_index=len(segment)),
            grounding_chunk_indices=indices,
            confidence_scores=[0.9],
        )
        for segment, indices in supports or []
    ]
    metadata = SimpleNamespace(
        web_search_queries=queries or [],
        grounding_chunks=raw_chunks,
        grounding_supports=raw_supports,
        retrieval_queries=[],
    )
    return SimpleNamespace(
        text=text,
        candidates=[SimpleNamespace(grounding_metadata=metadata)],
        usage_metadata=SimpleNamespace(prompt_token_count=prompt_tokens, candidates_token_count=output_tokens),
    )


# ─── Fakes ────────────────────────────────────────────────────────────────────


class FakeSearchClient:
    """Stands in for GeminiSearchClient. Returns (or raises) queued items in order."""

    def __init__(self, responses=None, model: str = "gemini-2.5-flash"):
        self.model = model
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    def search(self, query, system_prompt=None, temperature=1.0, max_output_tokens=None):
        self.prompts.append(query)
        if not self.responses:
            raise RuntimeError("FakeSearchClient has no more responses")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingUsageLogger:
    def __init__(self):
        self.events = []

    def log(self, event):
        self.events.append(event)


class ExplodingUsageLogger:
    def log(self, event):
        raise OSError("disk full")


def no_sleep(seconds: float) -> None:
    return None


def make_executor(max_retries: int = 3) -> BackoffExecutor:
    return BackoffExecutor(RetryPolicy(max_retries=max_retries), sleep=no_sleep, rng=lambda: 0.0)


def make_service(
    responses,
    usage_logger=None,
    verifier=None,
    ai_review_mode: str = "never",
    verification_enabled: bool = True,
    max_retries: int = 3,
):
    """Wire a TuitionExtractionService around a FakeSearchClient."""
    client = FakeSearchClient(responses)
    search = GroundedTuitionSearch(client, make_executor(max_retries))
    if verifier is None:
        verifier = VerificationAgent(
            executor=make_executor(0),
            ai_review_mode=ai_review_mode,
            enabled=verification_enabled,
            current_year=2025,
        )
    service = TuitionExtractionService(
        search=search,
        reconciler=SourceReconciler(search),
        verifier=verifier,
        usage_logger=usage_logger or RecordingUsageLogger(),
    )
    return service, client


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def usage_log():
    return RecordingUsageLogger()


@pytest.fixture
def record():
    return make_record()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests independent of the developer's environment."""
    for name in ("GOOGLE_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TUITION_DATA_DIR", str(tmp_path / "data"))
