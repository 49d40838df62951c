"""Domain models for mc_marketplace: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.mc_common.enums import (
    DeliveryStatus,
    DeliveryType,
    ItemType,
    ListingStatus,
    OrderOriginType,
    OrderStatus,
    PaymentMethod,
    VehicleType,
)


@dataclass
class Listing:
    id: str
    seller_id: str
    title: str
    price: int                       # cents
    category: str = "OTHER"
    description: str = ""
    item_type: str = ItemType.PHYSICAL
    required_vehicle: str = VehicleType.BIKE
    quota_id: str | None = None
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    status: str = ListingStatus.ACTIVE
    created_at: datetime | None = None


@dataclass(frozen=True)
class OrderOrigin:
    """Where an order came from. PDV and offline origins carry their reference."""

    kind: str
    ref: str | None = None

    @classmethod
    def marketplace(cls) -> "OrderOrigin":
        return cls(OrderOriginType.MARKETPLACE)

    @classmethod
    def pdv_sale(cls, sale_id: str) -> "OrderOrigin":
        return cls(OrderOriginType.PDV_SALE, sale_id)

    @classmethod
    def offline_sync(cls, token: str) -> "OrderOrigin":
        return cls(OrderOriginType.OFFLINE_SYNC, token)


@dataclass(frozen=True)
class DeliveryOptions:
    delivery_type: str = DeliveryType.SELF_PICKUP
    offered_fee: int = 0             # cents
    delivery_address: str | None = None
    contact_phone: str | None = None
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    delivery_lat: float | None = None
    delivery_lng: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return None not in (
            self.pickup_lat, self.pickup_lng, self.delivery_lat, self.delivery_lng
        )


@dataclass
class OrderItem:
    listing_id: str
    title: str
    price: int
    quota_id: str | None = None


@dataclass
class PricedLot:
    """Result of pricing a lot before any lock is taken."""

    amount: int                      # Σ listing prices
    delivery_fee: int
    total_charged: int
    is_digital: bool
    vehicle: str


@dataclass
class MarketplaceOrder:
    id: str
    buyer_id: str
    seller_id: str
    amount: int                      # goods total, cents
    fee_amount: int
    seller_amount: int               # amount - fee_amount
    delivery_fee: int
    total_charged: int
    payment_method: str = PaymentMethod.BALANCE
    status: str = OrderStatus.WAITING_SHIPPING
    delivery_status: str = DeliveryStatus.NONE
    delivery_type: str = DeliveryType.SELF_PICKUP
    delivery_address: str | None = None
    contact_phone: str | None = None
    courier_id: str | None = None
    courier_lat: float | None = None
    courier_lng: float | None = None
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    delivery_lat: float | None = None
    delivery_lng: float | None = None
    pickup_code: str | None = None
    delivery_confirmation_code: str | None = None
    offline_token: str | None = None
    origin: OrderOrigin = field(default_factory=OrderOrigin.marketplace)
    seller_released: bool = False
    courier_released: bool = False
    welcome_benefit_applied: bool = False
    dispute_reason: str | None = None
    disputed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItem] = field(default_factory=list)

    @property
    def is_credit(self) -> bool:
        return self.payment_method == PaymentMethod.CRED30_CREDIT

    def is_party(self, member_id: str) -> bool:
        return member_id in (self.buyer_id, self.seller_id)

    def counterparty(self, member_id: str) -> str:
        return self.seller_id if member_id == self.buyer_id else self.buyer_id

    def member_ids_to_lock(self) -> list[str]:
        """Every member row settlement may write, in the global lock order."""
        ids = {self.buyer_id, self.seller_id}
        if self.courier_id:
            ids.add(self.courier_id)
        return sorted(ids)
