"""Pydantic schemas for mc_fees API."""

from typing import Literal

from pydantic import BaseModel, Field


class PayFeeRequest(BaseModel):
    category: Literal["PLATFORM_FEE", "PDV_FEE"]
    amount_cents: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    reference_id: str | None = Field(None, max_length=64)


class PayFeeResponse(BaseModel):
    category: str
    amount_cents: int
    balance_cents: int
    ledger_entry_id: int
    pool_deltas: dict[str, int]
