"""
Text sanitization for stored records, prompts and currency strings.

Grounding text comes back from arbitrary web pages and may contain NUL bytes,
control characters or raw PDF streams. Everything persisted goes through
sanitize_for_database() first.
"""

import re
from typing import Any, Optional

from ..constants import CURRENCY_SYMBOLS

_NULL_BYTES = re.compile("\u0000")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_BINARY_STREAM = re.compile(r"\bstream\b.*?\bendstream\b", re.DOTALL)
_PDF_BODY = re.compile(r"%PDF.*?%%EOF", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_TOTAL_SUFFIX = re.compile(r"(?:\s*total\s*)+$", re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

_NULL_LIKE = {"", "null", "none", "n/a", "na"}

# Prompt injection phrases, replaced with [FILTERED]
_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|rules?|guidelines?)", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|above|prior)", re.IGNORECASE),
    re.compile(r"new\s+instructions?:", re.IGNORECASE),
    re.compile(r"system\s*:?\s*prompt", re.IGNORECASE),
    re.compile(r"you\s+are\s+(now|a)\s+", re.IGNORECASE),
    re.compile(r"act\s+as\s+(if|a)\s+", re.IGNORECASE),
    re.compile(r"pretend\s+(you|to\s+be)", re.IGNORECASE),
    re.compile(r"roleplay\s+as", re.IGNORECASE),
    re.compile(r"from\s+now\s+on", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all|your)", re.IGNORECASE),
]

# Markdown structure that could break out of the prompt template
_MARKDOWN_PATTERNS = [
    (re.compile(r"```.*?```", re.DOTALL), " "),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\*{1,2}([^*]+)\*{1,2}"), r"\1"),
    (re.compile(r"#{1,6}\s"), " "),
    (re.compile(r"^\s*[-=]{3,}\s*$", re.MULTILINE), " "),
    (re.compile(r"^>\s", re.MULTILINE), " "),
    (re.compile(r"<\|.*?\|>"), " "),
    (re.compile(r"\[INST\]|\[/INST\]|<<SYS>>|<</SYS>>"), " "),
]


def sanitize_for_database(text: Any) -> str:
    """
    Strip characters and binary payloads that storage layers reject.

    Removes NUL bytes and control characters, replaces PDF object streams and
    whole embedded PDF bodies with short markers, collapses whitespace runs
    and trims. Applying it twice gives the same result as applying it once.

    Args:
        text: Text to clean (None becomes "")

    Returns:
        Cleaned single-line text
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    cleaned = _NULL_BYTES.sub("", text)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = _BINARY_STREAM.sub("[binary content removed]", cleaned)
    cleaned = _PDF_BODY.sub("[PDF content removed]", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    return cleaned.strip()


def sanitize_for_prompt(text: Any, max_length: int = 500) -> str:
    """Sanitize user-supplied text before embedding it in a prompt.

    Injection phrases become "[FILTERED]", markdown control syntax is removed
    (link and emphasis text is kept), newlines and pipes are flattened and the
    result is capped at max_length characters.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    result = text
    for pattern in _INJECTION_PATTERNS:
        result = pattern.sub("[FILTERED]", result)
    for pattern, replacement in _MARKDOWN_PATTERNS:
        result = pattern.sub(replacement, result)

    result = re.sub(r"[\r\n]+", " ", result)
    result = result.replace("|", "-")
    result = re.sub(r"\s{2,}", " ", result).strip()

    if len(result) > max_length:
        result = result[: max_length - 3] + "..."
    return result


def truncate_with_notice(text: str, limit: int, notice: str) -> str:
    """Cut text to `limit` characters and append `notice` when it was cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + notice


def is_null_like(value: Any) -> bool:
    """True for None and for the placeholder strings models emit for 'no value'."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _NULL_LIKE
    return False


def strip_total_suffix(value: str) -> str:
    """Remove trailing 'total' words ("$48,000 total" -> "$48,000")."""
    return _TOTAL_SUFFIX.sub("", value).strip()


def format_currency(value: Any) -> Optional[str]:
    """
    Normalize a money value for display.

    Args:
        value: String or number from the model payload

    Returns:
        Value prefixed with "$" unless it already starts with a currency
        symbol, with any trailing "total" removed. None for empty input.

    Examples:
        >>> format_currency("48,000 total")
        '$48,000'
        >>> format_currency("€12,500")
        '€12,500'
        >>> format_currency(48000)
        '$48,000'
    """
    if is_null_like(value) or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not value.is_integer():
            return f"${value:,.2f}"
        return f"${int(value):,}"

    text = strip_total_suffix(str(value).strip())
    if not text:
        return None
    if text.startswith(CURRENCY_SYMBOLS):
        return text
    return f"${text}"


def parse_currency(value: Any) -> Optional[float]:
    """Parse the leading number out of a money string ("$48,000" -> 48000.0)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    match = _NUMBER.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def parse_program_length_months(text: Optional[str]) -> Optional[int]:
    """
    Convert a free-text program length to months.

    Examples:
        >>> parse_program_length_months("2 years")
        24
        >>> parse_program_length_months("18 months")
        18
        >>> parse_program_length_months("1.5 yrs")
        18
    """
    if not text:
        return None
    lowered = text.lower()
    match = _NUMBER.search(lowered)
    if not match:
        return None
    amount = float(match.group(0))
    if amount <= 0:
        return None
    if re.search(r"\b(years?|yrs?)\b", lowered):
        return int(round(amount * 12))
    if re.search(r"\bweeks?\b", lowered):
        return max(1, int(round(amount / 4.345)))
    # "months", "mo" or a bare number
    return int(round(amount))
