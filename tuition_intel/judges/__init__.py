"""Verification of extraction records.

**Deterministic checks** (checks.py) - pure Python, fully reproducible:
- math: cost per credit × credits vs stated tuition
- source: official .edu primary source matching the school
- completeness: weighted 0-100 field coverage score
- plausibility: graduate-program ranges and academic-year staleness

**AI review** (verifier.py) - optional LLM second opinion on borderline
records, routed through LiteLLM.

Usage:
    from tuition_intel.judges import VerificationAgent

    agent = VerificationAgent(ai_review_mode="never")
    result = agent.verify(record, "Acme University", "Part-Time MBA")
"""

from .checks import CheckResult, check_completeness, check_math, check_plausibility, check_source_reliability
from .verifier import AIReview, VerificationAgent, build_reasoning

__all__ = [
    "AIReview",
    "CheckResult",
    "VerificationAgent",
    "build_reasoning",
    "check_completeness",
    "check_math",
    "check_plausibility",
    "check_source_reliability",
]
