"""
Global constants for the extraction engine.

Centralizes magic numbers used by the reconciler, sanitizer and
verification checks for easier tuning.
"""

# Request validation
SCHOOL_NAME_MAX_LENGTH = 500
PROGRAM_NAME_MAX_LENGTH = 500

# Source reconciliation
MAX_VALIDATED_SOURCES = 3
MAX_SOURCE_CONTENT_CHARS = 9950  # Leaves room for the truncation marker under 10k
MAX_RAW_CONTENT_CHARS = 9900
MIN_EVIDENCE_CHARS = 10  # Shorter evidence text is treated as missing
MIN_SUMMARY_PIECE_CHARS = 50
DEDUP_CONTENT_PREFIX_CHARS = 200
DEDUP_MIN_CONTENT_CHARS = 20  # Normalized content this short is never used for dedup
CITATION_SNIPPET_MAX_CHARS = 200
DEFAULT_SOURCE_TITLE = "Official Source"
NO_CONTENT_PLACEHOLDER = (
    "No extractable text content found from {url}. "
    "Please visit the URL directly to verify the data."
)

# Variation retries
MAX_VARIATION_RETRIES = 3

# Defaults when the model omits a field
DEFAULT_ACADEMIC_YEAR = "2025-2026"
DEFAULT_TUITION_PERIOD = "N/A"

# Verification plausibility bounds (graduate programs, USD)
MIN_PLAUSIBLE_TUITION = 5_000
MAX_PLAUSIBLE_TUITION = 300_000
MIN_PLAUSIBLE_COST_PER_CREDIT = 100
MAX_PLAUSIBLE_COST_PER_CREDIT = 5_000
MIN_PLAUSIBLE_CREDITS = 20
MAX_PLAUSIBLE_CREDITS = 100
MATH_MATCH_TOLERANCE_PERCENT = 5
MATH_MINOR_DISCREPANCY_PERCENT = 15
SUBSTANTIAL_CONTENT_CHARS = 100

# Completeness scoring weights (sum to 100)
REQUIRED_FIELDS_WEIGHT = 50
CALCULATION_FIELDS_WEIGHT = 35
OPTIONAL_FIELDS_WEIGHT = 15

# AI review escalation window on the completeness score
AI_REVIEW_BORDERLINE_MIN = 40
AI_REVIEW_BORDERLINE_MAX = 85

# Ranking/aggregator sites the extraction prompt tells the model to ignore
AGGREGATOR_SITES = [
    "clearadmit",
    "poets&quants",
    "shiksha",
    "collegechoice",
    "usnews",
    "bloomberg",
    "fortune",
    "niche",
    "mba.com",
]

# Currency symbols accepted as an existing prefix
CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹", "C$", "A$")
