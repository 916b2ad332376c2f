"""
Tuition pricing intelligence for competitor academic programs.

Resolves a (school, program) pair into a verified, source-attributed
tuition record using Gemini Search Grounding.

Usage:
    from tuition_intel import TuitionExtractionService

    service = TuitionExtractionService.from_config()
    record = service.extract("Acme University", "Part-Time MBA")
    print(record.tuition_amount, record.confidence_score)
"""

from .models.extraction import (
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
from .services.extraction_service import TuitionExtractionService

__version__ = "1.4.0"

__all__ = [
    "AttributedSource",
    "ConfidenceLevel",
    "ExtractedFields",
    "ExtractionRecord",
    "ExtractionRequest",
    "ExtractionStatus",
    "InlineCitation",
    "TuitionExtractionService",
    "VerificationResult",
    "VerificationStatus",
]
