"""Prompt templates for grounded tuition extraction and verification review."""

from ..constants import AGGREGATOR_SITES, DEFAULT_ACADEMIC_YEAR
from ..utils.text_sanitizer import sanitize_for_prompt

TUITION_EXTRACTION_PROMPT = """Search for "{school}" "{program}" tuition and fees on the official .edu website.

SEARCH STRATEGY:
1. First, find the official school website (e.g., business.acme.edu, grad.acme.edu)
2. Look for the "Tuition & Fees", "Cost", or "Financial Aid" page for the specific program
3. ONLY use data from official .edu university/business school websites, or the school's own official domain outside the US

IGNORE these sources completely: {aggregators}, any non-official site

PROGRAM NAME VARIATIONS:
- "Part-Time MBA" may be called: Professional MBA, Weekend MBA, Evening MBA, Flex MBA, Working Professional MBA
- "Executive MBA" may be called: EMBA, Exec MBA
- "Full-Time MBA" may be called: Two-Year MBA, Residential MBA, Traditional MBA

EXTRACTION RULES:
- tuition_amount = TOTAL PROGRAM TUITION (cost_per_credit × total_credits when both are published, or the stated total)
- Do NOT include the word "total" in tuition_amount - just "$XX,XXX"
- TUITION ONLY - exclude fees (technology, student services, health) from tuition_amount
- Put fees in the additional_fees field separately
- Public schools: use the in-state/resident rate and put the out-of-state rate in remarks
- For private schools, there is no in-state/out-of-state distinction
- academic_year = Use {academic_year} rates if available, otherwise the most current year
- program_length_months = MUST be a NUMBER of months (e.g., "2 years" → 24, "18 months" → 18, "1.5 years" → 18)
- If the program is not found on an official site, set status="Not Found"

OUTPUT - Return ONLY valid JSON, no markdown, no explanation:
{{"tuition_amount":"$XX,XXX","tuition_period":"full program","academic_year":"{academic_year}","cost_per_credit":"$X,XXX","total_credits":"XX","program_length_months":24,"actual_program_name":"exact name from website","is_stem":false,"additional_fees":"$X,XXX or null","remarks":"any notable info","status":"Success"}}"""


VERIFICATION_REVIEW_PROMPT = """You are verifying tuition data extracted for "{school}" "{program}".

EXTRACTED DATA:
- Tuition: {tuition_amount}
- Period: {tuition_period}
- Academic year: {academic_year}
- Cost per credit: {cost_per_credit}
- Total credits: {total_credits}
- Program length: {program_length}
- Program name found: {actual_program_name}
- Primary source: {source_url}

SOURCE EXCERPTS:
{source_excerpts}

AUTOMATED CHECK FINDINGS:
{issues}

Decide whether the source excerpts support the extracted figures.

Return ONLY valid JSON:
{{"verification_status":"verified|needs_review|incorrect","confidence_adjustment":"increase|maintain|decrease","key_finding":"one sentence","source_supports_data":true,"suggested_correction":null,"alternative_search_query":null}}"""


def build_search_query(school: str, program: str) -> str:
    """The query string recorded on the record for transparency."""
    return f'"{school}" "{program}" tuition fees site:.edu'


def build_extraction_prompt(school: str, program: str, academic_year: str = DEFAULT_ACADEMIC_YEAR) -> str:
    """
    Build the grounded extraction prompt.

    School and program come from analysts, so both are sanitized before
    being embedded.
    """
    return TUITION_EXTRACTION_PROMPT.format(
        school=sanitize_for_prompt(school),
        program=sanitize_for_prompt(program),
        aggregators=", ".join(AGGREGATOR_SITES),
        academic_year=academic_year,
    )


def build_verification_prompt(
    school: str,
    program: str,
    fields: dict,
    source_url: str,
    source_excerpts: list[str],
    issues: list[str],
) -> str:
    """Build the AI review prompt from the record fields and check findings."""

    def show(key: str) -> str:
        value = fields.get(key)
        return "not provided" if value in (None, "") else sanitize_for_prompt(value, max_length=300)

    excerpts = "\n\n".join(
        f"[{i + 1}] {sanitize_for_prompt(text, max_length=1500)}" for i, text in enumerate(source_excerpts)
    )
    return VERIFICATION_REVIEW_PROMPT.format(
        school=sanitize_for_prompt(school),
        program=sanitize_for_prompt(program),
        tuition_amount=show("tuition_amount"),
        tuition_period=show("tuition_period"),
        academic_year=show("academic_year"),
        cost_per_credit=show("cost_per_credit"),
        total_credits=show("total_credits"),
        program_length=show("program_length"),
        actual_program_name=show("actual_program_name"),
        source_url=source_url,
        source_excerpts=excerpts or "(no source text available)",
        issues="\n".join(f"- {issue}" for issue in issues) or "- none",
    )
