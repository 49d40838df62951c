"""Pydantic schemas for mc_credit API."""

from typing import Any

from pydantic import BaseModel

from src.mc_common.cents import cents_to_display


class LimitResponse(BaseModel):
    limit_cents: int
    limit_display: str
    outstanding_cents: int
    available_cents: int
    available_display: str
    breakdown: dict[str, Any]

    @classmethod
    def from_cents(
        cls, limit: int, outstanding: int, breakdown: dict[str, Any]
    ) -> "LimitResponse":
        available = max(0, limit - outstanding)
        return cls(
            limit_cents=limit,
            limit_display=cents_to_display(limit),
            outstanding_cents=outstanding,
            available_cents=available,
            available_display=cents_to_display(available),
            breakdown=breakdown,
        )


class EligibilityResponse(BaseModel):
    eligible: bool
    reason: str | None
    details: dict[str, Any]
