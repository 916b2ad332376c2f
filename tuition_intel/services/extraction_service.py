"""
Tuition extraction orchestrator.

Drives one (school, program) request through the pipeline:

    primary search → name variations → source reconciliation → confidence
    scoring → verification → final record

and emits exactly one AI usage event per request, whatever the outcome.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from ..agents.gemini_search import GeminiSearchClient, SearchGroundingResult
from ..agents.prompts import build_search_query
from ..agents.tuition_search import GroundedTuitionSearch, TuitionSearchAttempt
from ..config import EngineConfig, get_api_key
from ..constants import DEFAULT_ACADEMIC_YEAR, DEFAULT_TUITION_PERIOD
from ..exceptions import ConfigurationError, ParseError
from ..judges.verifier import VerificationAgent
from ..llm.llm_client import LLMClient
from ..models.extraction import (
    ConfidenceLevel,
    ExtractionRecord,
    ExtractionRequest,
    ExtractionStatus,
    VerificationResult,
    VerificationStatus,
)
from ..models.usage import AIUsageEvent, UsageCost
from ..utils.retry import BackoffExecutor, RetryPolicy, RetryStats
from ..utils.text_sanitizer import format_currency, sanitize_for_database
from ..utils.url_helpers import build_fallback_search_url
from .confidence import score_confidence
from .program_variations import ProgramVariationResolver
from .source_reconciler import SourceReconciler, build_raw_content
from .usage_logger import LoggingUsageLogger, UsageLogger, categorize_error

logger = logging.getLogger(__name__)

SYSTEM_ERROR_MESSAGE = "Agent failed to retrieve data due to system error."
NOT_FOUND_MESSAGE = "Program not found at this school."
USAGE_ENDPOINT = "tuition_extraction"


@dataclass
class RequestContext:
    """Per-request accounting. Lives only for the duration of one extract() call."""

    school: str
    program: str
    started: float = field(default_factory=time.monotonic)
    stats: RetryStats = field(default_factory=RetryStats)
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    tool_cost: float = 0.0
    search_calls: int = 0
    error: Optional[BaseException] = None
    grounding_retry_used: bool = False

    def record_response(self, response: SearchGroundingResult) -> None:
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens
        self.input_cost += response.input_cost_usd
        self.output_cost += response.output_cost_usd
        self.tool_cost += response.search_cost_usd
        if response.used_search:
            self.search_calls += 1

    def record_review(self, verification: VerificationResult) -> None:
        self.input_tokens += verification.review_input_tokens
        self.output_tokens += verification.review_output_tokens
        tokens = verification.review_input_tokens + verification.review_output_tokens
        input_share = verification.review_input_tokens / tokens if tokens else 0.5
        self.input_cost += verification.review_cost_usd * input_share
        self.output_cost += verification.review_cost_usd * (1 - input_share)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class TuitionExtractionService:
    """
    Resolves a (school, program) pair into a verified ExtractionRecord.

    Stateless between calls: all per-request state lives in a RequestContext,
    so one instance can serve a worker pool.

    Example:
        service = TuitionExtractionService.from_config()
        record = service.extract("Acme University", "Part-Time MBA")
        print(record.tuition_amount)  # "$48,000"
        print(record.confidence_score)  # ConfidenceLevel.HIGH
    """

    def __init__(
        self,
        search: GroundedTuitionSearch,
        reconciler: Optional[SourceReconciler] = None,
        verifier: Optional[VerificationAgent] = None,
        variation_resolver: Optional[ProgramVariationResolver] = None,
        usage_logger: Optional[UsageLogger] = None,
        max_variation_retries: int = 3,
    ):
        self.search = search
        self.reconciler = reconciler or SourceReconciler(search)
        self.verifier = verifier
        self.variation_resolver = variation_resolver or ProgramVariationResolver()
        self.usage_logger = usage_logger or LoggingUsageLogger()
        self.max_variation_retries = max_variation_retries

    @classmethod
    def from_config(
        cls,
        config: Optional[EngineConfig] = None,
        api_key: Optional[str] = None,
        usage_logger: Optional[UsageLogger] = None,
    ) -> "TuitionExtractionService":
        """
        Wire the full pipeline from configuration.

        Raises:
            ConfigurationError: missing API key or invalid settings
        """
        config = config or EngineConfig.from_env()
        key = get_api_key(api_key)

        executor = BackoffExecutor(
            RetryPolicy(
                max_retries=config.max_retries,
                base_delay_ms=config.base_delay_ms,
                max_delay_ms=config.max_delay_ms,
            )
        )
        client = GeminiSearchClient(model=config.model, api_key=key, request_timeout_s=config.request_timeout_s)
        search = GroundedTuitionSearch(
            client,
            executor,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )

        llm_client = None
        if config.verification_enabled and config.ai_review_mode != "never":
            llm_client = LLMClient(model=config.verification_model, api_key=key, timeout_s=config.request_timeout_s)
        verifier = VerificationAgent(
            llm_client=llm_client,
            executor=executor,
            ai_review_mode=config.ai_review_mode,
            enabled=config.verification_enabled,
        )

        return cls(
            search=search,
            reconciler=SourceReconciler(search),
            verifier=verifier,
            variation_resolver=ProgramVariationResolver(),
            usage_logger=usage_logger,
            max_variation_retries=config.max_variation_retries,
        )

    @property
    def model_name(self) -> str:
        return getattr(self.search.client, "model", "unknown")

    # ─── Public API ───────────────────────────────────────────────────────

    def extract(self, school: str, program: str) -> ExtractionRecord:
        """
        Extract tuition for one target.

        Never raises for Not Found, low confidence or upstream failures:
        those come back as records. Invalid input raises a pydantic
        ValidationError before any upstream call; ConfigurationError and
        cancellation (KeyboardInterrupt, SystemExit) propagate. Every path,
        raising or not, emits exactly one usage event.

        Args:
            school: Institution name
            program: Program label

        Returns:
            ExtractionRecord
        """
        ctx = RequestContext(school=school, program=program)
        record: Optional[ExtractionRecord] = None

        try:
            request = ExtractionRequest(school=school, program=program)
        except ValidationError as e:
            ctx.error = e
            self._emit_usage(ctx, None)
            raise
        ctx.school, ctx.program = request.school, request.program

        logger.info(f"Starting extraction for: {request.school} - {request.program}")
        try:
            record = self._run(request, ctx)
            return record
        except ConfigurationError as e:
            ctx.error = e
            raise
        except Exception as e:
            logger.error(f"Extraction error for {request.school} - {request.program}: {e}", exc_info=True)
            ctx.error = e
            record = self._failed_record(request, SYSTEM_ERROR_MESSAGE, SYSTEM_ERROR_MESSAGE)
            return record
        except BaseException as e:
            logger.warning(f"Extraction cancelled for {request.school} - {request.program}: {type(e).__name__}")
            ctx.error = e
            raise
        finally:
            self._emit_usage(ctx, record)

    # ─── Pipeline ─────────────────────────────────────────────────────────

    def _run(self, request: ExtractionRequest, ctx: RequestContext) -> ExtractionRecord:
        school, program = request.school, request.program

        try:
            attempt = self.search.extract(school, program, stats=ctx.stats, on_response=ctx.record_response)
        except ConfigurationError:
            raise
        except ParseError as e:
            logger.error(f"Extraction failed for {school} - {program}: {e}")
            ctx.error = e
            raw = f"Failed to extract data: {e}"
            if e.raw_excerpt:
                raw = f"{raw}. Raw response: {e.raw_excerpt}"
            return self._failed_record(request, str(e), raw)
        except Exception as e:
            logger.error(f"Extraction failed for {school} - {program} after {ctx.stats.retries} retries: {e}")
            ctx.error = e
            return self._failed_record(request, str(e), f"Failed to extract data: {e}")

        attempt, variation_used, tried = self._try_variations(attempt, school, program, ctx)
        if not attempt.fields.is_usable:
            return self._not_found_record(request, attempt, tried)

        return self._finalize(request, attempt, variation_used, ctx)

    def _try_variations(
        self,
        attempt: TuitionSearchAttempt,
        school: str,
        program: str,
        ctx: RequestContext,
    ) -> tuple[TuitionSearchAttempt, Optional[str], list[str]]:
        """Retry with alternate program names until one yields a usable figure."""
        if attempt.fields.is_usable:
            return attempt, None, []

        variations = self.variation_resolver.variations_for(program, self.max_variation_retries)
        if not variations:
            return attempt, None, []

        logger.info(f'Program "{program}" not found, trying up to {len(variations)} variations for: {school}')
        for variation in variations:
            logger.info(f"Trying variation: {school} - {variation}")
            try:
                candidate = self.search.extract(school, variation, stats=ctx.stats, on_response=ctx.record_response)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.warning(f'Variation "{variation}" failed for {school}: {e}')
                continue

            if candidate.fields.is_usable:
                logger.info(f'Found data using variation "{variation}" for: {school}')
                return candidate, variation, variations

        return attempt, None, variations

    def _finalize(
        self,
        request: ExtractionRequest,
        attempt: TuitionSearchAttempt,
        variation_used: Optional[str],
        ctx: RequestContext,
    ) -> ExtractionRecord:
        school, program = request.school, request.program
        fields = attempt.fields

        remarks = fields.remarks
        if variation_used:
            remarks = (
                f'{remarks}. Found as "{variation_used}"'
                if remarks
                else f'Found as "{variation_used}" (requested "{program}")'
            )

        reconciled = self.reconciler.reconcile(attempt, school, program, on_response=ctx.record_response)
        ctx.grounding_retry_used = reconciled.grounding_retry_used
        confidence = score_confidence(fields)

        draft = ExtractionRecord(
            school=school,
            program=program,
            tuition_amount=format_currency(fields.tuition_amount),
            tuition_period=sanitize_for_database(fields.tuition_period) or DEFAULT_TUITION_PERIOD,
            academic_year=sanitize_for_database(fields.academic_year) or DEFAULT_ACADEMIC_YEAR,
            cost_per_credit=format_currency(fields.cost_per_credit),
            total_credits=sanitize_for_database(fields.total_credits) or None,
            program_length=sanitize_for_database(fields.program_length) or None,
            program_length_months=fields.program_length_months,
            actual_program_name=sanitize_for_database(fields.actual_program_name) or None,
            is_stem=fields.is_stem,
            additional_fees=format_currency(fields.additional_fees),
            remarks=sanitize_for_database(remarks) or None,
            confidence_score=confidence,
            status=ExtractionStatus.SUCCESS,
            source_url=reconciled.primary_source_url,
            validated_sources=reconciled.validated_sources,
            raw_content=build_raw_content(reconciled.validated_sources, fields, school, program),
            search_query=attempt.search_query,
            inline_citations=reconciled.inline_citations,
            program_variation_used=variation_used,
        )

        verification = self._verify(draft, school, program, ctx)
        if verification is None:
            return self._log_success(draft)

        final_confidence = draft.confidence_score
        if verification.status != VerificationStatus.SKIPPED:
            final_confidence = ConfidenceLevel.lowest(verification.confidence, draft.confidence_score)

        final_remarks = draft.remarks
        if verification.issues and verification.status not in (VerificationStatus.VERIFIED, VerificationStatus.SKIPPED):
            note = f"[Verification: {len(verification.issues)} issue(s) found]"
            final_remarks = f"{final_remarks} {note}" if final_remarks else note

        record = draft.model_copy(
            update={
                "confidence_score": final_confidence,
                "verification": verification,
                "remarks": final_remarks,
            }
        )
        return self._log_success(record)

    def _verify(
        self, draft: ExtractionRecord, school: str, program: str, ctx: RequestContext
    ) -> Optional[VerificationResult]:
        if self.verifier is None:
            return None
        try:
            verification = self.verifier.verify(draft, school, program)
        except Exception as e:
            logger.warning(f"Verification agent failed for: {school} - {program}: {e}")
            return None

        ctx.record_review(verification)
        return verification

    def _log_success(self, record: ExtractionRecord) -> ExtractionRecord:
        logger.info(
            f"Extraction success for: {record.school} - {record.program} "
            f"[tuition={record.tuition_amount} confidence={record.confidence_score.value} "
            f"sources={len(record.validated_sources)} "
            f"verified={record.verification.status.value if record.verification else 'none'}]"
        )
        return record

    # ─── Terminal records ─────────────────────────────────────────────────

    def _not_found_record(
        self, request: ExtractionRequest, attempt: TuitionSearchAttempt, tried: list[str]
    ) -> ExtractionRecord:
        remarks = NOT_FOUND_MESSAGE
        if tried:
            more = len(self.variation_resolver.all_variations_for(request.program)) > len(tried)
            remarks = f"{NOT_FOUND_MESSAGE} Tried variations: {', '.join(tried)}{'...' if more else ''}"

        logger.info(f"Program not found: {request.school} - {request.program}")
        return ExtractionRecord(
            school=request.school,
            program=request.program,
            actual_program_name=sanitize_for_database(attempt.fields.actual_program_name) or None,
            remarks=remarks,
            confidence_score=ConfidenceLevel.LOW,
            status=ExtractionStatus.NOT_FOUND,
            source_url=build_fallback_search_url(request.school, request.program),
            validated_sources=[],
            raw_content=NOT_FOUND_MESSAGE,
            search_query=build_search_query(request.school, request.program),
        )

    def _failed_record(self, request: ExtractionRequest, error: str, raw_content: str) -> ExtractionRecord:
        return ExtractionRecord(
            school=request.school,
            program=request.program,
            confidence_score=ConfidenceLevel.LOW,
            status=ExtractionStatus.FAILED,
            source_url=build_fallback_search_url(request.school, request.program),
            validated_sources=[],
            raw_content=sanitize_for_database(raw_content) or SYSTEM_ERROR_MESSAGE,
            search_query=build_search_query(request.school, request.program),
            error=sanitize_for_database(error) or SYSTEM_ERROR_MESSAGE,
        )

    # ─── Usage ────────────────────────────────────────────────────────────

    def _emit_usage(self, ctx: RequestContext, record: Optional[ExtractionRecord]) -> None:
        success = record is not None and record.status != ExtractionStatus.FAILED
        error_message = None
        if ctx.error is not None:
            error_message = str(ctx.error) or type(ctx.error).__name__
        elif record is not None and record.error:
            error_message = record.error

        response_metadata = {}
        if record is not None:
            response_metadata = {
                "status": record.status.value,
                "confidence_score": record.confidence_score.value,
                "has_tuition": record.tuition_amount is not None,
                "sources_count": len(record.validated_sources),
                "verification_status": record.verification.status.value if record.verification else None,
                "verification_issues": len(record.verification.issues) if record.verification else 0,
                "program_variation_used": record.program_variation_used,
                "grounding_retry_used": ctx.grounding_retry_used,
            }

        cost = UsageCost(
            input=round(ctx.input_cost, 6),
            output=round(ctx.output_cost, 6),
            tool=round(ctx.tool_cost, 6),
            total=round(ctx.input_cost + ctx.output_cost + ctx.tool_cost, 6),
        )
        event = AIUsageEvent(
            endpoint=USAGE_ENDPOINT,
            model=self.model_name,
            operation_type="extraction",
            input_tokens=ctx.input_tokens,
            output_tokens=ctx.output_tokens,
            total_tokens=ctx.input_tokens + ctx.output_tokens,
            tools_used=["google_search"] if ctx.search_calls else [],
            cost=cost,
            elapsed_ms=ctx.elapsed_ms,
            retry_count=ctx.stats.retries,
            success=success,
            error_message=error_message,
            error_category=categorize_error(ctx.error) if not success else None,
            request_metadata={"school": ctx.school, "program": ctx.program},
            response_metadata=response_metadata,
        )

        try:
            self.usage_logger.log(event)
        except Exception as e:
            logger.warning(f"Usage logging failed for {ctx.school} - {ctx.program}: {e}")
