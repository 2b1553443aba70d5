"""Pydantic schemas for the chat endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ChatRequest(BaseModel):
    """Inbound flashcard query."""

    model_config = ConfigDict(extra="ignore")

    message: StrictStr = Field(
        ...,
        min_length=1,
        description="Word or phrase to translate (Spanish or English).",
        examples=["gato"],
    )


class ChatResponse(BaseModel):
    """Successful completion."""

    response: str = Field(
        ..., description="Model answer, returned exactly as produced upstream."
    )


class ErrorResponse(BaseModel):
    """Error body shared by 400, 401, 405 and 500 responses."""

    error: str = Field(..., description="Human-readable error message.")


class RateLimitErrorResponse(ErrorResponse):
    """Error body for 429 responses."""

    message: str = Field(
        ..., description="When the rate limit resets, as an ISO-8601 UTC timestamp."
    )
    resetTime: int = Field(
        ..., description="UNIX epoch milliseconds when the rate limit resets."
    )
