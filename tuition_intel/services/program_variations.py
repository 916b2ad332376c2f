"""
Alternate program names to try when a school does not use the analyst's label.

Schools market the same product under different names ("Part-Time MBA" is
"Weekend MBA" at one school and "Professional MBA" at another). The mapping
is static and ordered: the first entries are the most common aliases.
"""

import logging
import re

from ..constants import MAX_VARIATION_RETRIES

logger = logging.getLogger(__name__)

PROGRAM_VARIATIONS: dict[str, list[str]] = {
    "part-time mba": ["Professional MBA", "Weekend MBA", "Evening MBA", "Flex MBA", "Working Professional MBA", "Part-Time MBA"],
    "professional mba": ["Part-Time MBA", "Weekend MBA", "Evening MBA", "Flex MBA", "Working Professional MBA"],
    "weekend mba": ["Part-Time MBA", "Professional MBA", "Evening MBA", "Flex MBA"],
    "evening mba": ["Part-Time MBA", "Professional MBA", "Weekend MBA", "Flex MBA"],
    "flex mba": ["Part-Time MBA", "Professional MBA", "Flexible MBA", "Evening MBA"],
    "executive mba": ["EMBA", "Exec MBA", "Executive MBA Program"],
    "emba": ["Executive MBA", "Exec MBA", "Executive MBA Program"],
    "full-time mba": ["Two-Year MBA", "Residential MBA", "Traditional MBA", "Full-Time MBA Program", "MBA"],
    "two-year mba": ["Full-Time MBA", "Residential MBA", "Traditional MBA", "MBA"],
    "mba": ["Full-Time MBA", "Two-Year MBA", "MBA Program"],
    "online mba": ["Distance MBA", "Remote MBA", "Virtual MBA", "Online MBA Program"],
    "ms finance": ["Master of Science in Finance", "MSF", "MS in Finance", "Master in Finance"],
    "msf": ["MS Finance", "Master of Science in Finance", "MS in Finance"],
    "ms accounting": ["Master of Science in Accounting", "MSA", "MAcc", "Master of Accountancy"],
    "ms marketing": ["Master of Science in Marketing", "MSM", "MS in Marketing"],
    "ms business analytics": ["MSBA", "Master of Business Analytics", "MS Analytics", "Master of Science in Business Analytics"],
    "msba": ["MS Business Analytics", "Master of Business Analytics", "MS Analytics"],
    "ms information systems": ["MSIS", "MS in Information Systems", "Master of Information Systems", "MS IT"],
    "msis": ["MS Information Systems", "Master of Information Systems", "MS in IS"],
}


def _normalize(label: str) -> str:
    """Lowercase, treat hyphens as spaces, collapse whitespace."""
    return re.sub(r"\s+", " ", label.lower().replace("-", " ")).strip()


class ProgramVariationResolver:
    """
    Looks up alternate names for a program label.

    Matching is case-insensitive: an exact key wins, otherwise the first key
    (in mapping order) that contains the label or is contained by it.

    Example:
        resolver = ProgramVariationResolver()
        resolver.variations_for("Part-Time MBA")
        # ['Professional MBA', 'Weekend MBA', 'Evening MBA']
    """

    def __init__(self, variations: dict[str, list[str]] = None):
        source = variations if variations is not None else PROGRAM_VARIATIONS
        self._variations = {_normalize(key): list(names) for key, names in source.items()}

    def all_variations_for(self, program: str) -> list[str]:
        """Every known alias for `program`, excluding the label itself."""
        normalized = _normalize(program or "")
        if not normalized:
            return []

        names = self._variations.get(normalized)
        if names is None:
            for key, candidates in self._variations.items():
                if key in normalized or normalized in key:
                    names = candidates
                    break
        if names is None:
            return []

        return [name for name in names if _normalize(name) != normalized]

    def variations_for(self, program: str, limit: int = MAX_VARIATION_RETRIES) -> list[str]:
        """The first `limit` aliases to try, in order."""
        variations = self.all_variations_for(program)[: max(0, limit)]
        logger.debug(f"Variations for {program!r}: {variations}")
        return variations
