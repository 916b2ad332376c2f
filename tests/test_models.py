"""Tests for extraction models: payload normalization and record invariants."""

import pytest
from conftest import make_record
from pydantic import ValidationError

from tuition_intel.models.extraction import (
    AttributedSource,
    ConfidenceLevel,
    ExtractedFields,
    ExtractionRecord,
    ExtractionRequest,
    ExtractionStatus,
)
from tuition_intel.services.confidence import score_confidence

# ─── ConfidenceLevel ──────────────────────────────────────────────────────────


class TestConfidenceLevel:
    def test_ordering(self):
        assert ConfidenceLevel.LOW.rank < ConfidenceLevel.MEDIUM.rank < ConfidenceLevel.HIGH.rank

    def test_downgrade_stops_at_low(self):
        assert ConfidenceLevel.HIGH.downgrade() == ConfidenceLevel.MEDIUM
        assert ConfidenceLevel.HIGH.downgrade(2) == ConfidenceLevel.LOW
        assert ConfidenceLevel.LOW.downgrade(5) == ConfidenceLevel.LOW

    def test_lowest(self):
        assert ConfidenceLevel.lowest(ConfidenceLevel.HIGH, ConfidenceLevel.MEDIUM) == ConfidenceLevel.MEDIUM


# ─── ExtractionRequest ────────────────────────────────────────────────────────


class TestExtractionRequest:
    def test_strips(self):
        request = ExtractionRequest(school=" Acme ", program=" MBA ")
        assert (request.school, request.program) == ("Acme", "MBA")

    @pytest.mark.parametrize("school,program", [("", "MBA"), ("Acme", "   "), ("x" * 501, "MBA"), (None, "MBA")])
    def test_rejects_invalid(self, school, program):
        with pytest.raises(ValidationError):
            ExtractionRequest(school=school, program=program)


# ─── ExtractedFields ──────────────────────────────────────────────────────────


class TestExtractedFields:
    """Defensive normalization of the model's JSON payload."""

    def test_null_like_strings_become_none(self):
        fields = ExtractedFields.model_validate({"tuition_amount": "null", "cost_per_credit": "N/A", "remarks": ""})
        assert fields.tuition_amount is None
        assert fields.cost_per_credit is None
        assert fields.remarks is None

    def test_numbers_become_strings(self):
        fields = ExtractedFields.model_validate({"tuition_amount": 48000.0, "total_credits": 36, "status": "Success"})
        assert fields.tuition_amount == "$48,000"
        assert fields.total_credits == "36"

    def test_numeric_money_keeps_thousands_separators(self):
        fields = ExtractedFields.model_validate(
            {"tuition_amount": 48000, "cost_per_credit": 1000, "additional_fees": 1250.5, "status": "Success"}
        )
        assert fields.cost_per_credit == "$1,000"
        assert fields.additional_fees == "$1,250.50"

    @pytest.mark.parametrize(
        "payload,status",
        [
            ({"status": "Not Found", "tuition_amount": "$1"}, ExtractionStatus.NOT_FOUND),
            ({"status": "not_found"}, ExtractionStatus.NOT_FOUND),
            ({"status": "SUCCESS", "tuition_amount": "$1"}, ExtractionStatus.SUCCESS),
            ({"tuition_amount": "$48,000"}, ExtractionStatus.SUCCESS),
            ({"status": "maybe"}, ExtractionStatus.NOT_FOUND),
        ],
    )
    def test_status(self, payload, status):
        assert ExtractedFields.model_validate(payload).status == status

    @pytest.mark.parametrize("value,expected", [(True, True), ("yes", True), ("true", True), ("no", False), (None, False)])
    def test_is_stem(self, value, expected):
        assert ExtractedFields.model_validate({"is_stem": value}).is_stem is expected

    def test_program_length_months(self):
        assert ExtractedFields.model_validate({"program_length": "2 years"}).program_length_months == 24
        assert ExtractedFields.model_validate({"program_length_months": "18 months"}).program_length_months == 18
        assert ExtractedFields.model_validate({"program_length_months": 21.6}).program_length_months == 22

    def test_unknown_keys_ignored(self):
        fields = ExtractedFields.model_validate({"tuition_amount": "$1", "confidence": "High"})
        assert fields.tuition_amount == "$1"

    def test_is_usable(self):
        assert ExtractedFields.model_validate({"tuition_amount": "$1", "status": "Success"}).is_usable
        assert not ExtractedFields.model_validate({"status": "Success"}).is_usable
        assert not ExtractedFields.model_validate({"tuition_amount": "$1", "status": "Not Found"}).is_usable


# ─── ExtractionRecord ─────────────────────────────────────────────────────────


class TestExtractionRecordInvariants:
    def test_valid_record(self, record):
        assert record.is_success
        assert record.to_storage_dict()["confidence_score"] == "High"

    def test_frozen(self, record):
        with pytest.raises(ValidationError):
            record.tuition_amount = "$1"

    @pytest.mark.parametrize("amount", ["48,000", "$48,000 total", "USD 48000"])
    def test_tuition_format(self, amount):
        with pytest.raises(ValidationError):
            make_record(tuition_amount=amount)

    def test_not_found_cannot_carry_tuition(self):
        with pytest.raises(ValidationError):
            make_record(status=ExtractionStatus.NOT_FOUND, confidence_score=ConfidenceLevel.LOW)

    def test_failed_must_be_low(self):
        with pytest.raises(ValidationError):
            ExtractionRecord(
                school="Acme",
                program="MBA",
                confidence_score=ConfidenceLevel.MEDIUM,
                status=ExtractionStatus.FAILED,
                source_url="https://www.google.com/search?q=x",
                raw_content="failed",
            )

    def test_duplicate_source_urls_rejected(self):
        source = AttributedSource(title="A", url="https://www.acme.edu", raw_content="text")
        with pytest.raises(ValidationError):
            make_record(validated_sources=[source, source])

    def test_more_than_three_sources_rejected(self):
        sources = [AttributedSource(title=str(i), url=f"https://www.acme.edu/{i}", raw_content="t") for i in range(4)]
        with pytest.raises(ValidationError):
            make_record(validated_sources=sources)

    def test_empty_source_url_rejected(self):
        with pytest.raises(ValidationError):
            make_record(source_url="")


# ─── Confidence scoring ───────────────────────────────────────────────────────


class TestScoreConfidence:
    @pytest.mark.parametrize(
        "payload,level",
        [
            ({"tuition_amount": "$48,000", "cost_per_credit": "$1,000", "total_credits": "48"}, ConfidenceLevel.HIGH),
            ({"tuition_amount": "$48,000", "cost_per_credit": "$1,000"}, ConfidenceLevel.MEDIUM),
            ({"tuition_amount": "$48,000"}, ConfidenceLevel.MEDIUM),
            ({"status": "Success"}, ConfidenceLevel.LOW),
            ({"status": "Not Found", "tuition_amount": "$48,000"}, ConfidenceLevel.LOW),
        ],
    )
    def test_levels(self, payload, level):
        assert score_confidence(ExtractedFields.model_validate(payload)) == level
