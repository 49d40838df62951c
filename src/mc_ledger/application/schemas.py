"""Pydantic schemas and cursor utilities for mc_ledger API."""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from src.mc_common.cents import cents_to_display

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to credit in cents")
    note: str = Field("Manual deposit", max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    member_id: str
    balance_cents: int
    balance_display: str
    ad_points: int
    score: int

    @classmethod
    def from_cents(
        cls, member_id: str, balance: int, ad_points: int, score: int
    ) -> "BalanceResponse":
        return cls(
            member_id=member_id,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
            ad_points=ad_points,
            score=score,
        )


class DepositResponse(BaseModel):
    member_id: str
    balance_cents: int
    balance_display: str
    deposited_cents: int
    ledger_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    balance_after_display: str
    status: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    metadata: dict[str, Any] | None
    created_at: str


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
