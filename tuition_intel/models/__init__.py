"""Pydantic models for grounding metadata, extraction records and usage events."""

from .extraction import (
    AttributedSource,
    ConfidenceLevel,
    ExtractedFields,
    ExtractionRecord,
    ExtractionRequest,
    ExtractionStatus,
    InlineCitation,
    VerificationResult,
    VerificationStatus,
)
from .grounding import GroundingChunk, GroundingMetadata, GroundingSupport
from .usage import AIUsageEvent, UsageCost

__all__ = [
    "AIUsageEvent",
    "AttributedSource",
    "ConfidenceLevel",
    "ExtractedFields",
    "ExtractionRecord",
    "ExtractionRequest",
    "ExtractionStatus",
    "GroundingChunk",
    "GroundingMetadata",
    "GroundingSupport",
    "InlineCitation",
    "UsageCost",
    "VerificationResult",
    "VerificationStatus",
]
