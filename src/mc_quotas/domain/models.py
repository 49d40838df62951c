"""Domain models for mc_quotas: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Quota:
    id: str
    member_id: str
    purchase_price: int              # cents, what the member paid
    current_value: int               # cents, redeemable share value
    yield_rate_bps: int = 0
    status: str = "ACTIVE"
    created_at: datetime | None = None
