"""Tests for deterministic checks and the verification agent."""

import json
from unittest.mock import MagicMock

import pytest
from conftest import make_executor, make_record

from tuition_intel.judges.checks import (
    check_completeness,
    check_math,
    check_plausibility,
    check_source_reliability,
    domain_matches_school,
)
from tuition_intel.judges.verifier import VerificationAgent
from tuition_intel.llm.llm_client import LLMResponse
from tuition_intel.models.extraction import ConfidenceLevel, ExtractionRecord, ExtractionStatus, VerificationStatus


def _llm_returning(payload) -> MagicMock:
    llm = MagicMock()
    text = payload if isinstance(payload, str) else json.dumps(payload)
    llm.generate.return_value = LLMResponse(
        text=text, model="gemini-2.5-flash", provider="google", input_tokens=300, output_tokens=40, cost_usd=0.0002
    )
    return llm


def _agent(llm=None, mode="never", **kwargs) -> VerificationAgent:
    return VerificationAgent(llm_client=llm, executor=make_executor(0), ai_review_mode=mode, current_year=2025, **kwargs)


# ─── Math ─────────────────────────────────────────────────────────────────────


class TestCheckMath:
    def test_exact_match(self, record):
        result = check_math(record)
        assert result.passed
        assert "Math verified" in result.validations[0]

    def test_minor_discrepancy_is_issue_only(self):
        result = check_math(make_record(tuition_amount="$52,000"))
        assert result.passed
        assert "Minor discrepancy" in result.issues[0]

    def test_significant_discrepancy_fails(self):
        result = check_math(make_record(tuition_amount="$70,000"))
        assert not result.passed
        assert "Significant discrepancy" in result.issues[0]

    def test_missing_breakdown(self):
        result = check_math(make_record(cost_per_credit=None, total_credits=None))
        assert result.passed
        assert "Cannot verify calculation" in result.issues[0]


# ─── Source reliability ───────────────────────────────────────────────────────


class TestCheckSourceReliability:
    def test_official_matching_domain(self, record):
        result = check_source_reliability(record, "Acme University")
        assert result.passed
        assert result.issues == []

    def test_edu_domain_for_other_school(self, record):
        result = check_source_reliability(record, "Globex Institute of Technology")
        assert result.passed
        assert "may not match" in result.issues[0]

    def test_non_edu_fails(self):
        result = check_source_reliability(
            make_record(source_url="https://www.mbarankings.com/acme", validated_sources=[]), "Acme University"
        )
        assert not result.passed

    def test_fallback_google_url_is_not_a_failure(self):
        result = check_source_reliability(
            make_record(source_url="https://www.google.com/search?q=acme", validated_sources=[]), "Acme University"
        )
        assert result.passed
        assert "No validated sources available for verification" in result.issues

    @pytest.mark.parametrize(
        "domain,school,expected",
        [
            ("business.acme.edu", "Acme University", True),
            ("www.usc.edu", "University of Southern California", True),
            ("www.other.edu", "Acme University", False),
            (None, "Acme University", False),
        ],
    )
    def test_domain_matches_school(self, domain, school, expected):
        assert domain_matches_school(domain, school) is expected


# ─── Completeness ─────────────────────────────────────────────────────────────


class TestCheckCompleteness:
    def test_full_record_scores_high(self, record):
        result = check_completeness(record)
        assert result.passed
        # additional_fees missing: 50 + 35 + 3/4 * 15
        assert result.score == 96

    def test_minimal_record(self):
        minimal = make_record(
            cost_per_credit=None,
            total_credits=None,
            program_length=None,
            actual_program_name=None,
            remarks=None,
        )
        result = check_completeness(minimal)
        assert result.passed
        assert result.score == 54
        assert "No calculation fields present - cannot verify total" in result.issues

    def test_missing_required_field_fails(self):
        result = check_completeness(make_record(academic_year=None))
        assert not result.passed
        assert "Missing required field: academic_year" in result.issues


# ─── Plausibility ─────────────────────────────────────────────────────────────


class TestCheckPlausibility:
    def test_plausible(self, record):
        result = check_plausibility(record, current_year=2025)
        assert result.passed
        assert result.issues == []

    def test_low_tuition_fails(self):
        result = check_plausibility(make_record(tuition_amount="$2,500"), current_year=2025)
        assert not result.passed

    def test_high_tuition_fails(self):
        result = check_plausibility(make_record(tuition_amount="$350,000"), current_year=2025)
        assert not result.passed
        assert "unusually high" in result.issues[0]

    def test_outdated_year(self):
        result = check_plausibility(make_record(academic_year="2021-2022"), current_year=2025)
        assert "Academic year 2021-2022 may be outdated" in result.issues


# ─── VerificationAgent ────────────────────────────────────────────────────────


class TestVerificationAgent:
    """Status, confidence adjustment and AI escalation."""

    def test_clean_record_verified(self, record):
        result = _agent().verify(record, "Acme University", "Part-Time MBA")

        assert result.status == VerificationStatus.VERIFIED
        assert result.confidence == ConfidenceLevel.HIGH
        assert result.completeness_score == 96
        assert result.ai_verification_used is False

    def test_failed_check_downgrades_once(self):
        record = make_record(tuition_amount="$2,500", cost_per_credit="$50", total_credits="50")

        result = _agent().verify(record, "Acme University", "Part-Time MBA")

        assert result.confidence == ConfidenceLevel.MEDIUM
        assert result.status == VerificationStatus.NEEDS_REVIEW
        assert len(result.issues) >= 1

    def test_many_issues_recommend_retry(self):
        record = make_record(
            tuition_amount="$2,500",
            cost_per_credit="$50",
            total_credits="10",
            source_url="https://www.mbarankings.com",
            validated_sources=[],
        )

        result = _agent().verify(record, "Acme University", "Part-Time MBA")

        assert result.status == VerificationStatus.RETRY_RECOMMENDED
        assert result.retry_recommended is True
        assert result.suggested_search_query == '"Acme University" "Part-Time MBA" tuition 2024 2025 site:.edu'

    def test_disabled(self, record):
        result = _agent(enabled=False).verify(record, "Acme University", "Part-Time MBA")
        assert result.status == VerificationStatus.SKIPPED
        assert result.confidence == ConfidenceLevel.HIGH

    def test_not_found_record(self):
        record = ExtractionRecord(
            school="Acme University",
            program="Part-Time MBA",
            confidence_score=ConfidenceLevel.LOW,
            status=ExtractionStatus.NOT_FOUND,
            source_url="https://www.google.com/search?q=x",
            raw_content="Program not found at this school.",
        )
        result = _agent().verify(record, "Acme University", "Part-Time MBA")
        assert result.status == VerificationStatus.VERIFIED
        assert result.confidence == ConfidenceLevel.LOW

    def test_invalid_mode_rejected(self):
        with pytest.raises(ValueError):
            VerificationAgent(ai_review_mode="sometimes")


class TestAIReview:
    def test_never_mode_skips_llm(self, record):
        llm = _llm_returning({"verification_status": "verified"})
        _agent(llm, mode="never").verify(record, "Acme University", "Part-Time MBA")
        llm.generate.assert_not_called()

    def test_borderline_skips_clean_record(self, record):
        llm = _llm_returning({"verification_status": "verified"})
        _agent(llm, mode="borderline").verify(record, "Acme University", "Part-Time MBA")
        llm.generate.assert_not_called()

    def test_borderline_reviews_failed_checks(self):
        llm = _llm_returning({"verification_status": "needs_review", "confidence_adjustment": "maintain"})
        agent = _agent(llm, mode="borderline")

        result = agent.verify(make_record(tuition_amount="$2,500"), "Acme University", "Part-Time MBA")

        llm.generate.assert_called_once()
        assert result.ai_verification_used is True
        assert result.review_cost_usd == pytest.approx(0.0002)
        assert result.review_input_tokens == 300
        assert result.review_output_tokens == 40

    def test_review_usage_belongs_to_its_own_result(self):
        llm = _llm_returning({"verification_status": "needs_review"})
        agent = _agent(llm, mode="always")
        not_found = ExtractionRecord(
            school="Globex University",
            program="MBA",
            confidence_score=ConfidenceLevel.LOW,
            status=ExtractionStatus.NOT_FOUND,
            source_url="https://www.google.com/search?q=x",
            raw_content="Program not found at this school.",
        )

        reviewed = agent.verify(make_record(), "Acme University", "Part-Time MBA")
        other = agent.verify(not_found, "Globex University", "MBA")

        assert reviewed.review_input_tokens == 300
        assert other.review_input_tokens == 0
        assert other.ai_verification_used is False

    def test_incorrect_verdict_recommends_retry_and_decreases(self, record):
        llm = _llm_returning(
            {
                "verification_status": "incorrect",
                "confidence_adjustment": "decrease",
                "key_finding": "Source lists $52,000 for 2025-2026",
                "source_supports_data": False,
                "suggested_correction": {"tuition_amount": "$52,000"},
                "alternative_search_query": "acme part-time mba tuition 2025",
            }
        )

        result = _agent(llm, mode="always").verify(record, "Acme University", "Part-Time MBA")

        assert result.status == VerificationStatus.RETRY_RECOMMENDED
        assert result.confidence == ConfidenceLevel.MEDIUM
        assert "AI verification: Source lists $52,000 for 2025-2026" in result.issues
        assert result.corrections == {"tuition_amount": "$52,000"}
        assert result.suggested_search_query == "acme part-time mba tuition 2025"

    def test_review_never_increases_confidence(self):
        llm = _llm_returning({"verification_status": "verified", "confidence_adjustment": "increase"})
        record = make_record(cost_per_credit=None, total_credits=None, confidence_score=ConfidenceLevel.MEDIUM)

        result = _agent(llm, mode="always").verify(record, "Acme University", "Part-Time MBA")

        assert result.confidence.rank <= ConfidenceLevel.MEDIUM.rank

    def test_unparseable_review_ignored(self, record):
        llm = _llm_returning("I think it looks fine")

        result = _agent(llm, mode="always").verify(record, "Acme University", "Part-Time MBA")

        assert result.ai_verification_used is False
        assert result.status == VerificationStatus.VERIFIED

    def test_review_transport_error_propagates(self, record):
        llm = MagicMock()
        llm.generate.side_effect = RuntimeError("connection reset")

        with pytest.raises(RuntimeError):
            _agent(llm, mode="always").verify(record, "Acme University", "Part-Time MBA")
