"""Repository Protocol: dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import PayoutLeg
from src.mc_marketplace.domain.models import Listing, MarketplaceOrder, OrderItem


class MarketplaceRepositoryProtocol(Protocol):
    # listings
    async def create_listing(self, db: AsyncSession, listing: Listing) -> Listing: ...

    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None: ...

    async def get_listings(self, db: AsyncSession, listing_ids: list[str]) -> list[Listing]: ...

    async def mark_listings_sold(self, db: AsyncSession, listing_ids: list[str]) -> int: ...

    async def reactivate_listings(self, db: AsyncSession, order_id: str) -> int: ...

    async def quota_in_escrow(self, db: AsyncSession, quota_id: str) -> bool: ...

    # orders
    async def insert_order(self, db: AsyncSession, order: MarketplaceOrder) -> str: ...

    async def insert_order_items(
        self, db: AsyncSession, order_id: str, items: list[OrderItem]
    ) -> None: ...

    async def get_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder | None: ...

    async def lock_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder: ...

    async def get_order_by_offline_token(
        self, db: AsyncSession, token: str
    ) -> MarketplaceOrder | None: ...

    async def list_orders(
        self, db: AsyncSession, member_id: str, role: str, limit: int
    ) -> list[MarketplaceOrder]: ...

    async def update_order_status(
        self, db: AsyncSession, order_id: str, status: str
    ) -> None: ...

    async def complete_order(self, db: AsyncSession, order_id: str) -> None: ...

    async def mark_leg_released(
        self, db: AsyncSession, order_id: str, leg: PayoutLeg
    ) -> bool: ...

    async def mark_disputed(self, db: AsyncSession, order_id: str, reason: str) -> bool: ...

    async def list_disputes(self, db: AsyncSession) -> list[MarketplaceOrder]: ...

    async def mark_shipped(self, db: AsyncSession, order_id: str, seller_id: str) -> bool: ...

    async def insert_rating(
        self,
        db: AsyncSession,
        order_id: str,
        rater_id: str,
        rated_id: str,
        rating: int,
        comment: str | None,
    ) -> bool: ...

    async def committed_credit_exposure(self, db: AsyncSession) -> int: ...

    # courier missions
    async def list_available_missions(
        self, db: AsyncSession, limit: int
    ) -> list[MarketplaceOrder]: ...

    async def claim_mission(self, db: AsyncSession, order_id: str, courier_id: str) -> bool: ...

    async def start_transit(
        self, db: AsyncSession, order_id: str, courier_id: str, pickup_code: str
    ) -> bool: ...

    async def update_courier_location(
        self, db: AsyncSession, order_id: str, courier_id: str, lat: float, lng: float
    ) -> bool: ...

    async def finish_delivery(self, db: AsyncSession, order_id: str, courier_id: str) -> bool: ...

    async def release_mission(self, db: AsyncSession, order_id: str, courier_id: str) -> bool: ...
