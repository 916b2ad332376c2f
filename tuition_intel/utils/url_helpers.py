"""
URL helper utilities for grounding sources.

This module provides redirect resolution, domain extraction and the
fallback search URL used when no official source was found.
"""

from typing import Optional
from urllib.parse import parse_qs, quote_plus, urlparse

GOOGLE_SEARCH_URL = "https://www.google.com/search?q="


def resolve_google_redirect(url: str) -> str:
    """
    Unwrap a Google redirect link to its destination.

    Args:
        url: Grounding chunk URI

    Returns:
        The `q` parameter of a google.com/url link, otherwise the input unchanged

    Examples:
        >>> resolve_google_redirect("https://www.google.com/url?q=https://acme.edu/tuition&sa=U")
        'https://acme.edu/tuition'
        >>> resolve_google_redirect("https://acme.edu/tuition")
        'https://acme.edu/tuition'
    """
    if not url:
        return url
    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    host = (parsed.hostname or "").lower()
    if not (host == "google.com" or host.endswith(".google.com")) or parsed.path != "/url":
        return url

    target = parse_qs(parsed.query).get("q")
    if target and target[0]:
        return target[0]
    return url


def extract_domain(url: Optional[str]) -> Optional[str]:
    """
    Get the lowercase hostname of a URL.

    Examples:
        >>> extract_domain("https://WWW.Acme.edu/mba")
        'www.acme.edu'
        >>> extract_domain("not a url") is None
        True
    """
    if not url:
        return None
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def build_fallback_search_url(school: str, program: str) -> str:
    """Google search URL for "<school> <program> tuition"."""
    return GOOGLE_SEARCH_URL + quote_plus(f"{school} {program} tuition")
