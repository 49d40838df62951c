"""Pydantic schemas for mc_marketplace API.

Purchase requests are validated once here and turned into DeliveryOptions;
the service never re-parses raw input.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.mc_common.cents import cents_to_display
from src.mc_common.enums import DeliveryType, ItemType, VehicleType
from src.mc_marketplace.domain.models import (
    DeliveryOptions,
    Listing,
    MarketplaceOrder,
)

# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class CreateListingRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    price_cents: int = Field(..., gt=0)
    category: str = Field("OTHER", max_length=50)
    item_type: ItemType = ItemType.PHYSICAL
    required_vehicle: VehicleType = VehicleType.BIKE
    quota_id: str | None = None
    pickup_lat: float | None = Field(None, ge=-90, le=90)
    pickup_lng: float | None = Field(None, ge=-180, le=180)


class ListingResponse(BaseModel):
    id: str
    seller_id: str
    title: str
    description: str
    price_cents: int
    price_display: str
    category: str
    item_type: str
    required_vehicle: str
    quota_id: str | None
    status: str

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            seller_id=listing.seller_id,
            title=listing.title,
            description=listing.description,
            price_cents=listing.price,
            price_display=cents_to_display(listing.price),
            category=listing.category,
            item_type=listing.item_type,
            required_vehicle=listing.required_vehicle,
            quota_id=listing.quota_id,
            status=listing.status,
        )


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


class PurchaseRequest(BaseModel):
    listing_ids: list[str] = Field(..., min_length=1, max_length=50)
    payment_method: Literal["BALANCE", "OFFLINE_QR"] = "BALANCE"
    delivery_type: DeliveryType = DeliveryType.SELF_PICKUP
    offered_delivery_fee_cents: int = Field(0, ge=0)
    delivery_address: str | None = Field(None, max_length=500)
    contact_phone: str | None = Field(None, max_length=20)
    pickup_lat: float | None = Field(None, ge=-90, le=90)
    pickup_lng: float | None = Field(None, ge=-180, le=180)
    delivery_lat: float | None = Field(None, ge=-90, le=90)
    delivery_lng: float | None = Field(None, ge=-180, le=180)
    offline_token: str | None = Field(None, min_length=8, max_length=50)

    @field_validator("listing_ids")
    @classmethod
    def _unique_ids(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("listing_ids must be unique")
        return v

    @model_validator(mode="after")
    def _address_for_delivery(self) -> "PurchaseRequest":
        if self.delivery_type != DeliveryType.SELF_PICKUP and not self.delivery_address:
            raise ValueError("delivery_address is required unless delivery_type is SELF_PICKUP")
        return self

    def delivery_options(self) -> DeliveryOptions:
        return DeliveryOptions(
            delivery_type=self.delivery_type.value,
            offered_fee=self.offered_delivery_fee_cents,
            delivery_address=self.delivery_address,
            contact_phone=self.contact_phone,
            pickup_lat=self.pickup_lat,
            pickup_lng=self.pickup_lng,
            delivery_lat=self.delivery_lat,
            delivery_lng=self.delivery_lng,
        )


class CreditPurchaseRequest(PurchaseRequest):
    payment_method: Literal["CRED30_CREDIT"] = "CRED30_CREDIT"  # type: ignore[assignment]
    installments: int = Field(..., ge=1, le=24)


class PurchaseResponse(BaseModel):
    order_id: str
    status: str
    amount_cents: int
    fee_cents: int
    delivery_fee_cents: int
    total_charged_cents: int
    total_charged_display: str
    welcome_benefit_applied: bool
    delivery_confirmation_code: str | None = None
    offline_token: str | None = None
    loan_id: str | None = None
    installments: int | None = None
    installment_amount_cents: int | None = None
    total_repayment_cents: int | None = None


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------


class ConfirmReceiptRequest(BaseModel):
    verification_code: str | None = Field(None, max_length=50)


class DisputeRequest(BaseModel):
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason must not be empty")
        return v.strip()


class RateOrderRequest(BaseModel):
    rating: int = Field(..., ge=-5, le=5)
    comment: str | None = Field(None, max_length=1000)


class OrderItemResponse(BaseModel):
    listing_id: str
    title: str
    price_cents: int
    quota_id: str | None


class OrderResponse(BaseModel):
    id: str
    buyer_id: str
    seller_id: str
    amount_cents: int
    fee_cents: int
    seller_amount_cents: int
    delivery_fee_cents: int
    total_charged_cents: int
    payment_method: str
    status: str
    delivery_status: str
    delivery_type: str
    courier_id: str | None
    origin_type: str
    welcome_benefit_applied: bool
    seller_released: bool
    courier_released: bool
    dispute_reason: str | None
    created_at: str
    items: list[OrderItemResponse]
    pickup_code: str | None = None
    delivery_confirmation_code: str | None = None

    @classmethod
    def from_domain(cls, order: MarketplaceOrder, viewer_id: str | None = None) -> "OrderResponse":
        """Each one-time code is shown only to the member who hands it over."""
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            amount_cents=order.amount,
            fee_cents=order.fee_amount,
            seller_amount_cents=order.seller_amount,
            delivery_fee_cents=order.delivery_fee,
            total_charged_cents=order.total_charged,
            payment_method=order.payment_method,
            status=order.status,
            delivery_status=order.delivery_status,
            delivery_type=order.delivery_type,
            courier_id=order.courier_id,
            origin_type=order.origin.kind,
            welcome_benefit_applied=order.welcome_benefit_applied,
            seller_released=order.seller_released,
            courier_released=order.courier_released,
            dispute_reason=order.dispute_reason,
            created_at=order.created_at.isoformat() if order.created_at else "",
            items=[
                OrderItemResponse(
                    listing_id=i.listing_id, title=i.title, price_cents=i.price, quota_id=i.quota_id
                )
                for i in order.items
            ],
            pickup_code=order.pickup_code if viewer_id == order.seller_id else None,
            delivery_confirmation_code=(
                order.delivery_confirmation_code if viewer_id == order.buyer_id else None
            ),
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]


class OrderActionResponse(BaseModel):
    order_id: str
    status: str


class AnticipationResponse(BaseModel):
    order_id: str
    leg: str
    gross_cents: int
    fee_cents: int
    net_cents: int
    net_display: str


class RatingResponse(BaseModel):
    order_id: str
    rated_member_id: str
    rating: int
    score_delta: int


# ---------------------------------------------------------------------------
# Courier missions
# ---------------------------------------------------------------------------


class PickupRequest(BaseModel):
    pickup_code: str = Field(..., min_length=6, max_length=6)


class LocationPing(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class MissionResponse(BaseModel):
    order_id: str
    delivery_status: str
    delivery_fee_cents: int
    courier_payout_cents: int
    pickup_lat: float | None
    pickup_lng: float | None
    delivery_lat: float | None
    delivery_lng: float | None
    delivery_address: str | None


class MissionListResponse(BaseModel):
    items: list[MissionResponse]


class AcceptMissionResponse(BaseModel):
    order_id: str
    delivery_status: str
