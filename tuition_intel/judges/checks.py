"""Deterministic verification checks for extraction records.

Pure Python, rule-based, fully reproducible. Each check returns a
CheckResult; the verification agent aggregates them.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..constants import (
    CALCULATION_FIELDS_WEIGHT,
    MATH_MATCH_TOLERANCE_PERCENT,
    MATH_MINOR_DISCREPANCY_PERCENT,
    MAX_PLAUSIBLE_COST_PER_CREDIT,
    MAX_PLAUSIBLE_CREDITS,
    MAX_PLAUSIBLE_TUITION,
    MIN_PLAUSIBLE_COST_PER_CREDIT,
    MIN_PLAUSIBLE_CREDITS,
    MIN_PLAUSIBLE_TUITION,
    OPTIONAL_FIELDS_WEIGHT,
    REQUIRED_FIELDS_WEIGHT,
    SUBSTANTIAL_CONTENT_CHARS,
)
from ..models.extraction import ExtractionRecord
from ..utils.text_sanitizer import parse_currency
from ..utils.url_helpers import extract_domain

REQUIRED_FIELDS = ("tuition_amount", "tuition_period", "academic_year")
CALCULATION_FIELDS = ("cost_per_credit", "total_credits", "program_length")
OPTIONAL_FIELDS = ("actual_program_name", "is_stem", "additional_fees", "remarks")

# Words dropped from a school name before matching it against a domain
_SCHOOL_STOPWORDS = {"university", "college", "school", "the", "of", "and", "business", "at"}


@dataclass
class CheckResult:
    """Outcome of one deterministic check.

    Attributes:
        name: Check identifier ("math", "source", "completeness", "plausibility")
        passed: False when the check found a blocking problem
        issues: Human-readable problems (blocking or not)
        validations: Human-readable confirmations
        score: Completeness score (0-100), only set by the completeness check
    """

    name: str
    passed: bool = True
    issues: list[str] = field(default_factory=list)
    validations: list[str] = field(default_factory=list)
    score: Optional[int] = None

    def fail(self, issue: str) -> None:
        self.passed = False
        self.issues.append(issue)


def _money(value: float) -> str:
    if float(value).is_integer():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def _number(value: float) -> str:
    return f"{value:g}"


def domain_matches_school(domain: Optional[str], school: str) -> bool:
    """
    Heuristic check that a domain belongs to the named school.

    Examples:
        >>> domain_matches_school("business.acme.edu", "Acme University")
        True
        >>> domain_matches_school("www.other.edu", "Acme University")
        False
    """
    if not domain or not school:
        return False

    normalized_domain = re.sub(r"\.(edu|com|org|ac\.[a-z]{2}|edu\.[a-z]{2})$", "", domain.lower())
    normalized_domain = re.sub(r"^(www|business|graduate|grad|mba)\.", "", normalized_domain)
    normalized_domain = re.sub(r"[^a-z0-9]", "", normalized_domain)

    words = re.findall(r"[a-z0-9]+", school.lower())
    significant = [w for w in words if len(w) > 3 and w not in _SCHOOL_STOPWORDS]
    if any(word in normalized_domain for word in significant):
        return True

    condensed = "".join(w for w in words if w not in _SCHOOL_STOPWORDS)
    if len(condensed) >= 5 and condensed[:5] in normalized_domain:
        return True

    # Acronym domains: "University of Southern California" -> usc
    initials = "".join(w[0] for w in words if w not in {"the", "of", "and", "at"})
    return len(initials) >= 3 and initials in normalized_domain


def check_math(record: ExtractionRecord) -> CheckResult:
    """Cost per credit × credits should reproduce the stated tuition."""
    result = CheckResult(name="math")

    tuition = parse_currency(record.tuition_amount)
    cost_per_credit = parse_currency(record.cost_per_credit)
    credits = parse_currency(record.total_credits)

    if cost_per_credit and credits:
        expected = cost_per_credit * credits
        if tuition and expected > 0:
            percent_diff = abs(tuition - expected) / expected * 100
            if percent_diff <= MATH_MATCH_TOLERANCE_PERCENT:
                result.validations.append(
                    f"Math verified: {_money(cost_per_credit)} × {_number(credits)} credits = {_money(expected)} "
                    f"(matches stated tuition within {MATH_MATCH_TOLERANCE_PERCENT}%)"
                )
            elif percent_diff <= MATH_MINOR_DISCREPANCY_PERCENT:
                result.issues.append(
                    f"Minor discrepancy: calculated {_money(expected)} vs stated {_money(tuition)} "
                    f"({percent_diff:.1f}% difference - may include fees)"
                )
            else:
                result.fail(
                    f"Significant discrepancy: calculated {_money(expected)} vs stated {_money(tuition)} "
                    f"({percent_diff:.1f}% difference)"
                )
    elif tuition and not cost_per_credit and not credits:
        result.issues.append("Cannot verify calculation: missing cost_per_credit and total_credits")

    return result


def check_source_reliability(record: ExtractionRecord, school: str) -> CheckResult:
    """Primary source should be an official .edu page of the target school."""
    result = CheckResult(name="source")

    if record.source_url:
        domain = extract_domain(record.source_url)
        if domain:
            if domain.endswith(".edu"):
                result.validations.append(f"Primary source is .edu domain: {domain}")
                if domain_matches_school(domain, school):
                    result.validations.append(f"Domain appears to match school: {school}")
                else:
                    result.issues.append(f'Domain {domain} may not match target school "{school}" - verify manually')
            elif "vertexaisearch" in domain or "google" in domain:
                result.validations.append("Source is Google grounding redirect (normal behavior)")
            else:
                result.fail(f"Primary source is not .edu: {domain}")
    else:
        result.fail("No primary source URL provided")

    sources = record.validated_sources
    if not sources:
        result.issues.append("No validated sources available for verification")
        return result

    official = [s for s in sources if (d := extract_domain(s.url)) and (d.endswith(".edu") or "vertexaisearch" in d)]
    if official:
        result.validations.append(f"{len(official)} of {len(sources)} sources are .edu or grounded")

    with_content = [
        s
        for s in sources
        if len(s.raw_content) > SUBSTANTIAL_CONTENT_CHARS and "No extractable text" not in s.raw_content
    ]
    if with_content:
        result.validations.append(f"{len(with_content)} sources have extractable content")
    else:
        result.issues.append("No sources have substantial extractable content")

    return result


def _present(value) -> bool:
    return value not in (None, "", "N/A")


def check_completeness(record: ExtractionRecord) -> CheckResult:
    """Weighted completeness: required 50, calculation 35, optional 15."""
    result = CheckResult(name="completeness")

    required_present = 0
    for name in REQUIRED_FIELDS:
        if _present(getattr(record, name)):
            required_present += 1
            result.validations.append(f"Required field present: {name}")
        else:
            result.fail(f"Missing required field: {name}")

    calculation_present = [name for name in CALCULATION_FIELDS if _present(getattr(record, name))]
    if len(calculation_present) == len(CALCULATION_FIELDS):
        result.validations.append("All calculation fields present (cost_per_credit, total_credits, program_length)")
    elif calculation_present:
        missing = [name for name in CALCULATION_FIELDS if name not in calculation_present]
        result.issues.append(f"Missing calculation fields: {', '.join(missing)}")
    else:
        result.issues.append("No calculation fields present - cannot verify total")

    optional_present = sum(1 for name in OPTIONAL_FIELDS if getattr(record, name) is not None)

    result.score = round(
        required_present / len(REQUIRED_FIELDS) * REQUIRED_FIELDS_WEIGHT
        + len(calculation_present) / len(CALCULATION_FIELDS) * CALCULATION_FIELDS_WEIGHT
        + optional_present / len(OPTIONAL_FIELDS) * OPTIONAL_FIELDS_WEIGHT
    )
    result.validations.append(f"Data completeness score: {result.score}/100")
    return result


def check_plausibility(record: ExtractionRecord, current_year: Optional[int] = None) -> CheckResult:
    """Figures should fall in typical ranges for graduate programs."""
    result = CheckResult(name="plausibility")
    current_year = current_year or datetime.now().year

    tuition = parse_currency(record.tuition_amount)
    cost_per_credit = parse_currency(record.cost_per_credit)
    credits = parse_currency(record.total_credits)

    if tuition:
        if tuition < MIN_PLAUSIBLE_TUITION:
            result.fail(f"Tuition {_money(tuition)} seems too low for a graduate program")
        elif tuition > MAX_PLAUSIBLE_TUITION:
            result.fail(f"Tuition {_money(tuition)} seems unusually high - verify this is total program cost, not annual")
        else:
            result.validations.append(f"Tuition {_money(tuition)} is within plausible range for graduate programs")

    if cost_per_credit:
        if cost_per_credit < MIN_PLAUSIBLE_COST_PER_CREDIT:
            result.issues.append(f"Cost per credit {_money(cost_per_credit)} seems too low")
        elif cost_per_credit > MAX_PLAUSIBLE_COST_PER_CREDIT:
            result.issues.append(f"Cost per credit {_money(cost_per_credit)} is very high - verify accuracy")
        else:
            result.validations.append(f"Cost per credit {_money(cost_per_credit)} is within typical range")

    if credits:
        if credits < MIN_PLAUSIBLE_CREDITS:
            result.issues.append(f"Total credits {_number(credits)} seems low for a graduate program")
        elif credits > MAX_PLAUSIBLE_CREDITS:
            result.issues.append(f"Total credits {_number(credits)} seems high - verify this is correct")
        else:
            result.validations.append(f"Total credits {_number(credits)} is within typical range")

    if record.academic_year:
        match = re.search(r"\d{4}", record.academic_year)
        if match:
            if int(match.group(0)) < current_year - 1:
                result.issues.append(f"Academic year {record.academic_year} may be outdated")
            else:
                result.validations.append(f"Academic year {record.academic_year} is current")

    return result
