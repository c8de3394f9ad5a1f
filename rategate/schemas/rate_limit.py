"""Pydantic schemas for rate limit configuration and decisions."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RateConfig(BaseModel):
    """Effective rate for one evaluation of a protected route."""

    model_config = ConfigDict(frozen=True, strict=True)

    limit: int = Field(
        ..., ge=1, description="Requests allowed per window."
    )
    window: int = Field(
        ..., ge=1, description="Window length in seconds."
    )


class RateResult(BaseModel):
    """Outcome of a rate limit evaluation, attached to the request.

    Exists only when the route's policy applied. Denial is represented by
    ``allowed=False``; rendering it is up to the HTTP boundary.
    """

    model_config = ConfigDict(frozen=True)

    limit: int = Field(..., description="Requests allowed per window.")
    remaining: int = Field(
        ..., ge=0, description="Requests left in the current window (0 when denied)."
    )
    reset: int = Field(
        ..., description="UNIX epoch seconds when the current window ends."
    )
    window: int = Field(..., description="Window length in seconds.")
    allowed: bool = Field(..., description="Whether the request may proceed.")

    def headers(self) -> dict[str, str]:
        """Render the three rate metadata headers."""

        return {
            "X-Rate-Limit-Limit": str(self.limit),
            "X-Rate-Limit-Remaining": str(self.remaining),
            "X-Rate-Limit-Reset": str(self.reset),
        }
