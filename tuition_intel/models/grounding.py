"""
Pydantic models for Gemini Search Grounding metadata.

These capture the web chunks Gemini grounded its answer in and the
supports linking answer segments back to those chunks.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GroundingChunk(BaseModel):
    """A web source used for grounding from Gemini Search."""

    uri: Optional[str] = Field(None, description="Full URL of the web page (may be a redirect)")
    title: Optional[str] = Field(None, description="Title of the web page")
    domain: Optional[str] = Field(None, description="Domain of the web source")
    text: Optional[str] = Field(None, description="Raw web snippet text, when the API returns one")
    segment_text: Optional[str] = Field(None, description="Inline segment text attached to the chunk")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "uri": "https://www.business.acme.edu/programs/part-time-mba/tuition",
                "title": "Tuition & Fees | Acme Business School",
                "domain": "acme.edu",
            }
        }
    )


class GroundingSupport(BaseModel):
    """Support information linking claims to grounding chunks."""

    segment_text: Optional[str] = Field(None, description="Text segment being supported")
    start_index: Optional[int] = Field(None, description="Start index in response")
    end_index: Optional[int] = Field(None, description="End index in response")
    confidence_scores: list[float] = Field(default_factory=list, description="Confidence scores")
    grounding_chunk_indices: list[int] = Field(
        default_factory=list, description="Indices of supporting grounding chunks"
    )


class GroundingMetadata(BaseModel):
    """
    Parsed grounding metadata from a Gemini Search response.

    Empty lists are normal: the API occasionally returns no grounding
    even when the text payload is usable.
    """

    web_search_queries: list[str] = Field(
        default_factory=list, description="Search queries Gemini performed"
    )
    grounding_chunks: list[GroundingChunk] = Field(
        default_factory=list, description="Web sources used for grounding"
    )
    grounding_supports: list[GroundingSupport] = Field(
        default_factory=list, description="Links between claims and sources"
    )
    retrieval_queries: list[str] = Field(
        default_factory=list, description="Queries used in retrieval"
    )

    @property
    def source_urls(self) -> list[str]:
        """Get all source URLs from grounding chunks, in order."""
        return [chunk.uri for chunk in self.grounding_chunks if chunk.uri]

    @property
    def web_chunk_count(self) -> int:
        """Number of chunks that carry a web URI."""
        return len(self.source_urls)
