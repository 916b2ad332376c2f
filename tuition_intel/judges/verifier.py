"""
Verification agent for extraction records.

Runs the deterministic checks, optionally asks an LLM to review borderline
records, and produces a VerificationResult. Verification can lower the
record's confidence but never raise it.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..agents.gemini_search import extract_json_from_response
from ..agents.prompts import build_verification_prompt
from ..config import AI_REVIEW_MODES
from ..constants import AI_REVIEW_BORDERLINE_MAX, AI_REVIEW_BORDERLINE_MIN
from ..llm.llm_client import LLMClient
from ..models.extraction import (
    ConfidenceLevel,
    ExtractionRecord,
    ExtractionStatus,
    VerificationResult,
    VerificationStatus,
)
from ..utils.retry import BackoffExecutor
from .checks import CheckResult, check_completeness, check_math, check_plausibility, check_source_reliability

logger = logging.getLogger(__name__)


@dataclass
class AIReview:
    """Parsed AI review payload."""

    verification_status: Optional[str] = None
    confidence_adjustment: str = "maintain"
    key_finding: Optional[str] = None
    source_supports_data: bool = True
    suggested_correction: dict[str, Any] = field(default_factory=dict)
    alternative_search_query: Optional[str] = None
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def from_payload(cls, payload: dict) -> "AIReview":
        correction = payload.get("suggested_correction")
        query = payload.get("alternative_search_query")
        finding = payload.get("key_finding")
        supports = payload.get("source_supports_data", True)
        return cls(
            verification_status=str(payload.get("verification_status") or "").strip().lower() or None,
            confidence_adjustment=str(payload.get("confidence_adjustment") or "maintain").strip().lower(),
            key_finding=finding.strip() if isinstance(finding, str) and finding.strip() else None,
            source_supports_data=supports is True or str(supports).lower() == "true",
            suggested_correction=correction if isinstance(correction, dict) else {},
            alternative_search_query=query.strip() if isinstance(query, str) and query.strip() else None,
        )


def build_reasoning(
    status: VerificationStatus,
    confidence: ConfidenceLevel,
    issues: list[str],
    validations: list[str],
    completeness_score: int,
) -> str:
    """Human-readable summary of a verification outcome."""
    parts = []
    if status == VerificationStatus.VERIFIED:
        parts.append("Data verification passed.")
    elif status == VerificationStatus.NEEDS_REVIEW:
        parts.append("Data requires manual review due to minor issues.")
    elif status == VerificationStatus.RETRY_RECOMMENDED:
        parts.append("Data quality insufficient - retry recommended.")

    parts.append(f"Confidence: {confidence.value}.")

    if completeness_score >= 80:
        parts.append(f"Data completeness: {completeness_score}% (excellent).")
    elif completeness_score >= 60:
        parts.append(f"Data completeness: {completeness_score}% (good).")
    else:
        parts.append(f"Data completeness: {completeness_score}% (needs improvement).")

    if issues:
        parts.append(f"Issues: {len(issues)} found.")
    if validations:
        parts.append(f"Validations: {len(validations)} passed.")
    return " ".join(parts)


class VerificationAgent:
    """
    Verifies an extraction record before it is finalized.

    Usage:
        agent = VerificationAgent(llm_client=LLMClient(), ai_review_mode="borderline")
        result = agent.verify(record, "Acme University", "Part-Time MBA")
        print(result.status, result.confidence)
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        executor: Optional[BackoffExecutor] = None,
        ai_review_mode: str = "borderline",
        enabled: bool = True,
        current_year: Optional[int] = None,
    ):
        """
        Args:
            llm_client: Client for the AI review; None disables AI review
            executor: Backoff executor wrapping the AI review call
            ai_review_mode: "never", "borderline" or "always"
            enabled: When False, verify() returns a skipped result
            current_year: Override for the academic-year staleness check
        """
        if ai_review_mode not in AI_REVIEW_MODES:
            raise ValueError(f"ai_review_mode must be one of {AI_REVIEW_MODES}, got {ai_review_mode!r}")
        self.llm_client = llm_client
        self.executor = executor or BackoffExecutor()
        self.ai_review_mode = ai_review_mode
        self.enabled = enabled
        self.current_year = current_year

    def verify(self, record: ExtractionRecord, school: str, program: str) -> VerificationResult:
        """
        Verify one record.

        Args:
            record: Pre-verification record (confidence already scored)
            school: Institution name
            program: Requested program label

        Returns:
            VerificationResult

        Raises:
            Exception: AI review transport errors after retries; the
                orchestrator treats these as "verification unavailable"
        """
        pre_confidence = record.confidence_score

        if not self.enabled:
            return VerificationResult(
                status=VerificationStatus.SKIPPED,
                confidence=pre_confidence,
                reasoning="Verification disabled.",
            )

        if record.status == ExtractionStatus.NOT_FOUND:
            return VerificationResult(
                status=VerificationStatus.VERIFIED,
                confidence=ConfidenceLevel.LOW,
                issues=["Program not found at this school"],
                reasoning="Program confirmed not available at this institution",
            )
        if record.status == ExtractionStatus.FAILED:
            return VerificationResult(
                status=VerificationStatus.FAILED,
                confidence=ConfidenceLevel.LOW,
                issues=["Extraction failed"],
                reasoning="Extraction failed - recommend retry with different search strategy",
                retry_recommended=True,
                suggested_search_query=f'"{school}" "{program}" graduate tuition fees official',
            )

        logger.info(f"Starting verification for: {school} - {program}")

        completeness = check_completeness(record)
        checks: list[CheckResult] = [
            check_math(record),
            check_source_reliability(record, school),
            completeness,
            check_plausibility(record, self.current_year),
        ]
        issues = [issue for check in checks for issue in check.issues]
        validations = [validation for check in checks for validation in check.validations]
        all_passed = all(check.passed for check in checks)
        completeness_score = completeness.score or 0

        status = VerificationStatus.VERIFIED
        retry_recommended = False
        suggested_query = None
        if not all_passed:
            if len(issues) >= 3 or not completeness.passed:
                status = VerificationStatus.RETRY_RECOMMENDED
                retry_recommended = True
                suggested_query = f'"{school}" "{program}" tuition {_year_span(self.current_year)} site:.edu'
            else:
                status = VerificationStatus.NEEDS_REVIEW

        confidence = pre_confidence.downgrade(1) if not all_passed else pre_confidence

        review = None
        if self._should_review(all_passed, completeness_score):
            review = self._ai_review(record, school, program, issues)

        corrections: dict[str, Any] = {}
        if review is not None:
            if review.verification_status in ("retry_recommended", "incorrect"):
                status = VerificationStatus.RETRY_RECOMMENDED
                retry_recommended = True
                suggested_query = review.alternative_search_query or suggested_query
            elif review.verification_status == "needs_review" and status == VerificationStatus.VERIFIED:
                status = VerificationStatus.NEEDS_REVIEW

            # Reviews can only lower confidence
            if review.confidence_adjustment == "decrease":
                confidence = confidence.downgrade(1)

            if review.key_finding:
                if review.source_supports_data:
                    validations.append(f"AI verification: {review.key_finding}")
                else:
                    issues.append(f"AI verification: {review.key_finding}")
            corrections = review.suggested_correction

        confidence = ConfidenceLevel.lowest(confidence, pre_confidence)

        result = VerificationResult(
            status=status,
            issues=issues,
            validations=validations,
            reasoning=build_reasoning(status, confidence, issues, validations, completeness_score),
            completeness_score=completeness_score,
            confidence=confidence,
            retry_recommended=retry_recommended,
            suggested_search_query=suggested_query,
            corrections=corrections,
            ai_verification_used=review is not None,
            review_input_tokens=review.input_tokens if review else 0,
            review_output_tokens=review.output_tokens if review else 0,
            review_cost_usd=review.cost_usd if review else 0.0,
        )
        logger.info(
            f"Verification complete for: {school} - {program} "
            f"[status={status.value} confidence={pre_confidence.value}->{confidence.value} "
            f"issues={len(issues)} retry_recommended={retry_recommended}]"
        )
        return result

    def _should_review(self, all_passed: bool, completeness_score: int) -> bool:
        if self.llm_client is None or self.ai_review_mode == "never":
            return False
        if self.ai_review_mode == "always":
            return True
        borderline = AI_REVIEW_BORDERLINE_MIN <= completeness_score < AI_REVIEW_BORDERLINE_MAX
        return borderline or not all_passed

    def _ai_review(self, record: ExtractionRecord, school: str, program: str, issues: list[str]) -> Optional[AIReview]:
        prompt = build_verification_prompt(
            school=school,
            program=program,
            fields=record.model_dump(),
            source_url=record.source_url,
            source_excerpts=[source.raw_content for source in record.validated_sources] or [record.raw_content],
            issues=issues,
        )
        response = self.executor.run(
            lambda: self.llm_client.generate(prompt, temperature=0.1, json_mode=True, retry_on_error=False),
            f"verify:{school}",
        )

        json_str = extract_json_from_response(response.text)
        if json_str is None:
            logger.warning(f"AI review returned no JSON for {school} - {program}, using rule-based results only")
            return None
        payload = json.loads(json_str)
        if not isinstance(payload, dict):
            logger.warning(f"AI review returned a JSON {type(payload).__name__} for {school} - {program}, ignoring")
            return None

        review = AIReview.from_payload(payload)
        review.cost_usd = response.cost_usd
        review.input_tokens = response.input_tokens
        review.output_tokens = response.output_tokens
        logger.debug(f"AI review for {school} - {program}: {payload}")
        return review


def _year_span(current_year: Optional[int]) -> str:
    year = current_year or datetime.now().year
    return f"{year - 1} {year}"
