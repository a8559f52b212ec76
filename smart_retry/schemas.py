"""Pydantic schemas for request/response validation."""
from typing import Any, Optional

from pydantic import BaseModel, Field


class DecideRequest(BaseModel):
    """Request body for POST /v1/decide."""
    loans: list[Any] = Field(
        default_factory=list,
        description="Loan records; loan_id is required, other fields are coerced",
    )
    config: Optional[dict[str, Any]] = Field(
        default=None,
        description="Decision configuration overrides (camelCase keys)",
    )


class DecisionItem(BaseModel):
    """Decision for a single loan."""
    loan_id: str
    decision: str = Field(..., description="STOP, RETRY or SCHEDULE")
    decision_reason: str = Field(..., description="Stable reason code")
    reason_label: str = Field(..., description="Human-readable reason")
    confidence: float = Field(..., ge=0, le=1)
    next_attempt_date: Optional[str] = Field(
        default=None, description="ISO-8601 UTC timestamp; null when STOP"
    )


class DecideResponse(BaseModel):
    """Response body for POST /v1/decide."""
    decisions: list[DecisionItem]


class ErrorResponse(BaseModel):
    """Error body returned for rejected or failed requests."""
    error: str
    message: Optional[str] = None
