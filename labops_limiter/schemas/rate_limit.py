"""Pydantic schemas for the rate limit check API."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

from labops_limiter.core.config import RoutePolicy


class RateLimitCheckRequest(BaseModel):
    """Ask whether client_id may call endpoint now."""

    endpoint: str = Field(
        ...,
        min_length=1,
        description="Dashboard endpoint being called, e.g. '/api/inventory/items'.",
    )
    client_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("client_id", "clientId"),
        description="Identifier the quota is tracked against (user id, IP, session id).",
    )


class RateLimitCheckResponse(BaseModel):
    """Admission decision and the state of the client's window."""

    allowed: bool = Field(..., description="Whether the request may proceed.")
    remaining: int = Field(..., ge=0, description="Requests left in the current window.")
    endpoint: str = Field(..., description="Endpoint as sent by the caller.")
    limit: int | None = Field(
        default=None,
        description="Max requests per window; null when the endpoint has no policy.",
    )
    reset_time: int | None = Field(
        default=None,
        description="Epoch milliseconds when the window resets; null without an active window.",
    )
    retry_after_seconds: int | None = Field(
        default=None,
        description="Seconds to wait before retrying; set only when denied.",
    )
    policy: RoutePolicy | None = Field(
        default=None,
        description="Route policy that matched the endpoint.",
    )
