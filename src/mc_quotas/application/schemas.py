"""Pydantic schemas for mc_quotas API."""

from pydantic import BaseModel, Field

from src.mc_common.cents import cents_to_display
from src.mc_quotas.domain.models import Quota


class BuyQuotasRequest(BaseModel):
    count: int = Field(..., ge=1, le=100)


class BuyQuotasResponse(BaseModel):
    quota_ids: list[str]
    paid_cents: int
    paid_display: str
    balance_cents: int


class QuotaItem(BaseModel):
    id: str
    purchase_price_cents: int
    current_value_cents: int
    current_value_display: str
    status: str
    created_at: str

    @classmethod
    def from_domain(cls, q: Quota) -> "QuotaItem":
        return cls(
            id=q.id,
            purchase_price_cents=q.purchase_price,
            current_value_cents=q.current_value,
            current_value_display=cents_to_display(q.current_value),
            status=q.status,
            created_at=q.created_at.isoformat() if q.created_at else "",
        )


class QuotaListResponse(BaseModel):
    items: list[QuotaItem]
    total_value_cents: int
