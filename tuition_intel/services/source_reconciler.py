"""
Source reconciliation for grounded extraction responses.

Turns raw grounding chunks into at most three deduplicated, sanitized
AttributedSources and maps grounding supports onto them as inline citations.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..agents.gemini_search import SearchGroundingResult
from ..agents.tuition_search import GroundedTuitionSearch, TuitionSearchAttempt
from ..constants import (
    CITATION_SNIPPET_MAX_CHARS,
    DEDUP_CONTENT_PREFIX_CHARS,
    DEDUP_MIN_CONTENT_CHARS,
    DEFAULT_SOURCE_TITLE,
    MAX_RAW_CONTENT_CHARS,
    MAX_SOURCE_CONTENT_CHARS,
    MAX_VALIDATED_SOURCES,
    MIN_EVIDENCE_CHARS,
    MIN_SUMMARY_PIECE_CHARS,
    NO_CONTENT_PLACEHOLDER,
)
from ..models.extraction import AttributedSource, ExtractedFields, ExtractionStatus, InlineCitation
from ..models.grounding import GroundingChunk, GroundingMetadata
from ..utils.text_sanitizer import sanitize_for_database, truncate_with_notice
from ..utils.url_helpers import build_fallback_search_url, resolve_google_redirect

logger = logging.getLogger(__name__)

SOURCE_TRUNCATION_NOTICE = "\n\n... [content truncated - showing first 9,950 characters]"
NO_CONTENT_MARKER = "No extractable text content found"


@dataclass
class ReconciledSources:
    """Deduplicated sources, primary URL and citations for one extraction."""

    validated_sources: list[AttributedSource] = field(default_factory=list)
    primary_source_url: str = ""
    inline_citations: Optional[list[InlineCitation]] = None
    grounding_retry_used: bool = False


def _chunk_evidence(chunk: GroundingChunk, chunk_index: int, metadata: GroundingMetadata) -> str:
    """Best available text for a chunk: support segments, then segment text, then web text."""
    segments = [
        support.segment_text.strip()
        for support in metadata.grounding_supports
        if chunk_index in support.grounding_chunk_indices and support.segment_text and support.segment_text.strip()
    ]
    joined = "\n\n".join(segments).strip()
    if len(joined) > MIN_EVIDENCE_CHARS:
        return joined

    for candidate in (chunk.segment_text, chunk.text):
        if candidate and len(candidate.strip()) > MIN_EVIDENCE_CHARS:
            return candidate.strip()
    return ""


def _dedup_key(content: str) -> str:
    return content.strip().lower()[:DEDUP_CONTENT_PREFIX_CHARS]


def build_raw_content(sources: list[AttributedSource], fields: ExtractedFields, school: str, program: str) -> str:
    """
    Summary text stored on the record.

    Joins the substantive source texts; when there are none, falls back to a
    plain-text rendering of the extracted fields.
    """
    pieces = [
        source.raw_content
        for source in sources
        if len(source.raw_content) > MIN_SUMMARY_PIECE_CHARS and NO_CONTENT_MARKER not in source.raw_content
    ]

    summary = ""
    if pieces:
        summary = truncate_with_notice(
            "\n\n---\n\n".join(pieces),
            MAX_RAW_CONTENT_CHARS,
            f"\n\n... [content truncated - showing first 9,900 characters from {len(pieces)} source(s)]",
        )

    if len(summary) < MIN_SUMMARY_PIECE_CHARS:
        summary = (
            f"Extracted from {school}:\n"
            f"Program: {fields.actual_program_name or program}\n"
            f"Tuition: {fields.tuition_amount or 'Not found'}\n"
            f"Credits: {fields.total_credits or 'Not specified'}\n"
            f"Cost per credit: {fields.cost_per_credit or 'Not specified'}\n"
            f"Program length: {fields.program_length or 'Not specified'}\n"
            f"STEM: {'Yes' if fields.is_stem else 'No'}\n"
        )
        if fields.remarks:
            summary += f"\nNotes: {fields.remarks}"

    return sanitize_for_database(summary) or "No content summary provided."


class SourceReconciler:
    """
    Builds validated sources and inline citations from grounding metadata.

    When a Success payload arrives with no web chunks, the reconciler makes
    one extra grounded call (outside the backoff budget) to try to recover
    sources before falling back to a Google search URL.
    """

    def __init__(self, search: Optional[GroundedTuitionSearch] = None, max_sources: int = MAX_VALIDATED_SOURCES):
        self.search = search
        self.max_sources = max_sources

    def reconcile(
        self,
        attempt: TuitionSearchAttempt,
        school: str,
        program: str,
        on_response: Optional[Callable[[SearchGroundingResult], None]] = None,
    ) -> ReconciledSources:
        """
        Reconcile the sources of a usable extraction attempt.

        Args:
            attempt: The winning extraction attempt
            school: Institution name (for the fallback URL)
            program: Requested program label (for the fallback URL)
            on_response: Called with the grounding retry response, if one is made

        Returns:
            ReconciledSources
        """
        metadata = attempt.response.grounding_metadata
        grounding_retry_used = False

        if metadata.web_chunk_count == 0 and attempt.fields.status == ExtractionStatus.SUCCESS:
            retried = self._retry_grounding(attempt, school, on_response)
            if retried is not None:
                metadata = retried
                grounding_retry_used = True

        sources, chunk_to_source = self._build_sources(metadata)

        if sources:
            primary_source_url = sources[0].url
        else:
            primary_source_url = build_fallback_search_url(school, program)
            logger.warning(f"Using fallback search URL for: {school} - {program} ({primary_source_url})")

        citations = self._build_citations(metadata, chunk_to_source)

        logger.info(
            f"Validated {len(sources)} sources for {school} - {program}: {[source.url for source in sources]}"
        )
        return ReconciledSources(
            validated_sources=sources,
            primary_source_url=primary_source_url,
            inline_citations=citations,
            grounding_retry_used=grounding_retry_used,
        )

    def _retry_grounding(
        self,
        attempt: TuitionSearchAttempt,
        school: str,
        on_response: Optional[Callable[[SearchGroundingResult], None]],
    ) -> Optional[GroundingMetadata]:
        if self.search is None:
            return None

        logger.info(f"No grounding chunks, retrying once for sources: {school} - {attempt.program_label}")
        try:
            retry = self.search.search_once(school, attempt.program_label)
        except Exception as e:
            logger.warning(f"Retry for sources failed: {school} - {attempt.program_label}: {e}")
            return None

        if on_response is not None:
            on_response(retry)
        if retry.grounding_metadata.web_chunk_count == 0:
            logger.warning(f"No grounding chunks returned from Google Search for: {school} - {attempt.program_label}")
            return None

        logger.info(f"Retry succeeded - got {retry.grounding_metadata.web_chunk_count} sources for: {school}")
        return retry.grounding_metadata

    def _build_sources(self, metadata: GroundingMetadata) -> tuple[list[AttributedSource], dict[int, int]]:
        """Deduplicate web chunks in first-seen order; returns sources and chunk->source index map."""
        sources: list[AttributedSource] = []
        chunk_to_source: dict[int, int] = {}
        index_by_url: dict[str, int] = {}
        index_by_content: dict[str, int] = {}

        for chunk_index, chunk in enumerate(metadata.grounding_chunks):
            if not chunk.uri:
                continue

            url = resolve_google_redirect(chunk.uri)
            if url in index_by_url:
                chunk_to_source[chunk_index] = index_by_url[url]
                continue

            evidence = _chunk_evidence(chunk, chunk_index, metadata)
            evidence = sanitize_for_database(
                truncate_with_notice(evidence, MAX_SOURCE_CONTENT_CHARS, SOURCE_TRUNCATION_NOTICE)
            )
            raw_content = evidence or NO_CONTENT_PLACEHOLDER.format(url=url)

            key = _dedup_key(raw_content)
            if len(key) > DEDUP_MIN_CONTENT_CHARS and key in index_by_content:
                chunk_to_source[chunk_index] = index_by_content[key]
                continue

            if len(sources) >= self.max_sources:
                continue

            source_index = len(sources)
            sources.append(
                AttributedSource(
                    title=sanitize_for_database(chunk.title) or DEFAULT_SOURCE_TITLE,
                    url=url,
                    raw_content=raw_content,
                )
            )
            chunk_to_source[chunk_index] = source_index
            index_by_url[url] = source_index
            if len(key) > DEDUP_MIN_CONTENT_CHARS:
                index_by_content[key] = source_index

        return sources, chunk_to_source

    def _build_citations(
        self, metadata: GroundingMetadata, chunk_to_source: dict[int, int]
    ) -> Optional[list[InlineCitation]]:
        citations = []
        for support in metadata.grounding_supports:
            text = (support.segment_text or "").strip()
            if not text or not support.grounding_chunk_indices:
                continue

            mapped: list[int] = []
            for chunk_index in support.grounding_chunk_indices:
                source_index = chunk_to_source.get(chunk_index)
                if source_index is not None and source_index not in mapped:
                    mapped.append(source_index)
            if not mapped:
                continue

            citations.append(
                InlineCitation(
                    text_snippet=text[:CITATION_SNIPPET_MAX_CHARS],
                    source_indices=mapped,
                    start_index=support.start_index,
                    end_index=support.end_index,
                )
            )
        return citations or None
