"""Models for AI usage events emitted once per extraction request."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class UsageCost(BaseModel):
    """Dollar cost breakdown for one request."""

    input: float = 0.0
    output: float = 0.0
    tool: float = 0.0
    total: float = 0.0


class AIUsageEvent(BaseModel):
    """One AI usage event. Retention and schema of the sink are external."""

    endpoint: str = Field(..., description="Logical operation that spent the tokens")
    model: str
    operation_type: str = "tuition_extraction"
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    tools_used: list[str] = Field(default_factory=list)
    cost: UsageCost = Field(default_factory=UsageCost)
    elapsed_ms: int = 0
    retry_count: int = 0
    success: bool = True
    error_message: Optional[str] = None
    error_category: Optional[str] = None
    request_metadata: dict[str, Any] = Field(default_factory=dict)
    response_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
