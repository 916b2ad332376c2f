"""
Pydantic models for tuition extraction.

ExtractedFields is the defensive view of the model's JSON payload: every
field is optional and loosely typed on input. ExtractionRecord is the final,
immutable output handed to the persistence collaborator.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import CURRENCY_SYMBOLS, PROGRAM_NAME_MAX_LENGTH, SCHOOL_NAME_MAX_LENGTH
from ..utils.text_sanitizer import format_currency, is_null_like, parse_program_length_months


class ExtractionStatus(str, Enum):
    """Terminal status of an extraction."""

    SUCCESS = "Success"
    NOT_FOUND = "Not Found"
    FAILED = "Failed"


class ConfidenceLevel(str, Enum):
    """Coarse reliability estimate. Ordered Low < Medium < High."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def downgrade(self, steps: int = 1) -> "ConfidenceLevel":
        """Lower the confidence by `steps` levels, stopping at Low."""
        return _CONFIDENCE_BY_RANK[max(0, self.rank - steps)]

    @classmethod
    def lowest(cls, *levels: "ConfidenceLevel") -> "ConfidenceLevel":
        """Return the least confident of the given levels."""
        return min(levels, key=lambda level: level.rank)


_CONFIDENCE_RANK = {ConfidenceLevel.LOW: 0, ConfidenceLevel.MEDIUM: 1, ConfidenceLevel.HIGH: 2}
_CONFIDENCE_BY_RANK = {rank: level for level, rank in _CONFIDENCE_RANK.items()}


class VerificationStatus(str, Enum):
    """Outcome of the verification pass."""

    VERIFIED = "verified"
    NEEDS_REVIEW = "needs_review"
    RETRY_RECOMMENDED = "retry_recommended"
    FAILED = "failed"
    SKIPPED = "skipped"


_NOT_FOUND_STATUS = re.compile(r"^\s*not[\s_-]*found\s*$", re.IGNORECASE)
MONEY_FIELDS = ("tuition_amount", "cost_per_credit", "additional_fees")


class ExtractionRequest(BaseModel):
    """Immutable (school, program) input."""

    school: str = Field(..., description="Institution name, e.g. 'Acme University'")
    program: str = Field(..., description="Program label as the analyst entered it")

    model_config = ConfigDict(frozen=True)

    @field_validator("school", "program", mode="before")
    @classmethod
    def _strip_and_require(cls, value: Any, info) -> str:
        if not isinstance(value, str):
            raise ValueError(f"{info.field_name} must be a string")
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name} cannot be empty")
        limit = SCHOOL_NAME_MAX_LENGTH if info.field_name == "school" else PROGRAM_NAME_MAX_LENGTH
        if len(value) > limit:
            raise ValueError(f"{info.field_name} exceeds {limit} characters")
        return value


class ExtractedFields(BaseModel):
    """Fields parsed from the grounded search JSON payload.

    The model's output shape is not guaranteed, so unknown keys are ignored,
    numbers are accepted for string fields, and null-like strings
    ("null", "N/A", "") collapse to None.
    """

    tuition_amount: Optional[str] = None
    tuition_period: Optional[str] = None
    academic_year: Optional[str] = None
    cost_per_credit: Optional[str] = None
    total_credits: Optional[str] = None
    program_length: Optional[str] = None
    program_length_months: Optional[int] = None
    actual_program_name: Optional[str] = None
    is_stem: bool = False
    additional_fees: Optional[str] = None
    remarks: Optional[str] = None
    status: ExtractionStatus = ExtractionStatus.NOT_FOUND

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "tuition_amount": "$48,000",
                "tuition_period": "full program",
                "academic_year": "2025-2026",
                "cost_per_credit": "$1,000",
                "total_credits": "48",
                "program_length_months": 24,
                "actual_program_name": "Weekend MBA",
                "is_stem": False,
                "additional_fees": "$1,200",
                "remarks": "In-state rate; non-resident rate is $62,000",
                "status": "Success",
            }
        },
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        for key in (
            "tuition_amount",
            "tuition_period",
            "academic_year",
            "cost_per_credit",
            "total_credits",
            "program_length",
            "actual_program_name",
            "additional_fees",
            "remarks",
        ):
            value = data.get(key)
            if is_null_like(value):
                data[key] = None
            elif isinstance(value, bool):
                data[key] = str(value).lower()
            elif isinstance(value, (int, float)) and key in MONEY_FIELDS:
                data[key] = format_currency(value)
            elif isinstance(value, (int, float)):
                data[key] = _format_number(value)
            elif not isinstance(value, str):
                data[key] = str(value)
            else:
                data[key] = value.strip()

        months = data.get("program_length_months")
        data["program_length_months"] = _coerce_months(months, data.get("program_length"))

        stem = data.get("is_stem")
        data["is_stem"] = stem is True or (isinstance(stem, str) and stem.strip().lower() in ("true", "yes"))

        raw_status = data.get("status")
        if isinstance(raw_status, str) and _NOT_FOUND_STATUS.match(raw_status):
            data["status"] = ExtractionStatus.NOT_FOUND
        elif isinstance(raw_status, str) and raw_status.strip().lower() == "success":
            data["status"] = ExtractionStatus.SUCCESS
        else:
            # Missing or unrecognized status: infer from whether a figure came back
            data["status"] = ExtractionStatus.SUCCESS if data.get("tuition_amount") else ExtractionStatus.NOT_FOUND
        return data

    @property
    def has_tuition(self) -> bool:
        return bool(self.tuition_amount)

    @property
    def is_usable(self) -> bool:
        """A Success payload that actually carries a tuition figure."""
        return self.status == ExtractionStatus.SUCCESS and self.has_tuition


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _coerce_months(months: Any, program_length: Any) -> Optional[int]:
    if isinstance(months, bool):
        months = None
    if isinstance(months, (int, float)):
        return int(round(months))
    if isinstance(months, str):
        match = re.search(r"\d+(?:\.\d+)?", months)
        if match:
            return int(round(float(match.group(0))))
    if isinstance(program_length, str):
        return parse_program_length_months(program_length)
    return None


class AttributedSource(BaseModel):
    """One deduplicated, content-populated grounding source."""

    title: str
    url: str
    raw_content: str


class InlineCitation(BaseModel):
    """Maps a span of generated text to the validated sources supporting it."""

    text_snippet: str
    source_indices: list[int]
    start_index: Optional[int] = None
    end_index: Optional[int] = None


class VerificationResult(BaseModel):
    """Outcome of the verification agent."""

    status: VerificationStatus
    issues: list[str] = Field(default_factory=list)
    validations: list[str] = Field(default_factory=list)
    reasoning: str = ""
    completeness_score: int = Field(0, ge=0, le=100)
    confidence: ConfidenceLevel
    retry_recommended: bool = False
    suggested_search_query: Optional[str] = None
    corrections: dict[str, Any] = Field(default_factory=dict)
    ai_verification_used: bool = False
    review_input_tokens: int = Field(0, ge=0)
    review_output_tokens: int = Field(0, ge=0)
    review_cost_usd: float = Field(0.0, ge=0)


class ExtractionRecord(BaseModel):
    """
    Final output of one extraction request.

    Frozen: the engine never mutates a record after building it. A
    re-extraction produces a new record.
    """

    school: str
    program: str

    tuition_amount: Optional[str] = None
    tuition_period: Optional[str] = None
    academic_year: Optional[str] = None
    cost_per_credit: Optional[str] = None
    total_credits: Optional[str] = None
    program_length: Optional[str] = None
    program_length_months: Optional[int] = None
    actual_program_name: Optional[str] = None
    is_stem: bool = False
    additional_fees: Optional[str] = None
    remarks: Optional[str] = None

    confidence_score: ConfidenceLevel
    status: ExtractionStatus
    source_url: str
    validated_sources: list[AttributedSource] = Field(default_factory=list, max_length=3)
    raw_content: str
    search_query: Optional[str] = None
    inline_citations: Optional[list[InlineCitation]] = None
    verification: Optional[VerificationResult] = None

    program_variation_used: Optional[str] = None
    error: Optional[str] = None
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @field_validator("tuition_amount")
    @classmethod
    def _tuition_is_formatted(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.startswith(CURRENCY_SYMBOLS):
            raise ValueError(f"tuition_amount must start with a currency symbol: {value!r}")
        if value.lower().endswith("total"):
            raise ValueError(f"tuition_amount must not end with 'total': {value!r}")
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> "ExtractionRecord":
        if self.status != ExtractionStatus.SUCCESS:
            populated = [name for name in TUITION_FIELDS if getattr(self, name) is not None]
            if populated:
                raise ValueError(f"{self.status.value} record cannot carry tuition fields: {populated}")
            if self.confidence_score != ConfidenceLevel.LOW:
                raise ValueError(f"{self.status.value} record must have Low confidence")
        urls = [source.url for source in self.validated_sources]
        if len(urls) != len(set(urls)):
            raise ValueError("validated_sources contains duplicate URLs")
        if not self.source_url:
            raise ValueError("source_url cannot be empty")
        return self

    @property
    def is_success(self) -> bool:
        return self.status == ExtractionStatus.SUCCESS

    def to_storage_dict(self) -> dict[str, Any]:
        """Serialize for the persistence collaborator (JSON-safe values)."""
        return self.model_dump(mode="json")


# Fields that must be null on Not Found / Failed records
TUITION_FIELDS = (
    "tuition_amount",
    "tuition_period",
    "cost_per_credit",
    "total_credits",
    "program_length",
    "program_length_months",
    "additional_fees",
)
