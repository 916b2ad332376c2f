"""Pre-verification confidence scoring from extracted field completeness."""

from ..models.extraction import ConfidenceLevel, ExtractedFields, ExtractionStatus


def score_confidence(fields: ExtractedFields) -> ConfidenceLevel:
    """
    Score an extraction before verification.

    Not Found is always Low. A tuition figure backed by both cost per credit
    and total credits is High; a tuition figure alone is Medium; no tuition
    is Low.
    """
    if fields.status == ExtractionStatus.NOT_FOUND:
        return ConfidenceLevel.LOW
    if not fields.tuition_amount:
        return ConfidenceLevel.LOW
    if fields.cost_per_credit and fields.total_credits:
        return ConfidenceLevel.HIGH
    return ConfidenceLevel.MEDIUM
