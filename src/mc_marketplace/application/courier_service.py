"""CourierService: delivery missions on courier-requested orders.

Each step re-checks its precondition inside a conditional UPDATE, so two
couriers racing for the same mission cannot both win.
"""

import logging
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import DeliveryStatus, OrderStatus
from src.mc_common.errors import (
    CourierIsPartyError,
    InvalidDeliveryStateError,
    InvalidPickupCodeError,
    MissionUnavailableError,
    NotAssignedCourierError,
    OrderNotFoundError,
)
from src.mc_common.notify import notify
from src.mc_marketplace.application.schemas import (
    AcceptMissionResponse,
    MissionListResponse,
    MissionResponse,
    OrderActionResponse,
)
from src.mc_marketplace.domain.models import MarketplaceOrder
from src.mc_marketplace.domain.pricing import courier_payout
from src.mc_marketplace.domain.repository import MarketplaceRepositoryProtocol
from src.mc_marketplace.infrastructure.persistence import MarketplaceRepository

logger = logging.getLogger(__name__)

_PING_STATUSES = (OrderStatus.WAITING_SHIPPING, OrderStatus.IN_TRANSIT)


def _to_mission(order: MarketplaceOrder) -> MissionResponse:
    payout, _ = courier_payout(order.delivery_fee)
    return MissionResponse(
        order_id=order.id,
        delivery_status=order.delivery_status,
        delivery_fee_cents=order.delivery_fee,
        courier_payout_cents=payout,
        pickup_lat=order.pickup_lat,
        pickup_lng=order.pickup_lng,
        delivery_lat=order.delivery_lat,
        delivery_lng=order.delivery_lng,
        delivery_address=order.delivery_address,
    )


class CourierService:
    def __init__(self, repo: MarketplaceRepositoryProtocol | None = None) -> None:
        self._repo: MarketplaceRepositoryProtocol = repo or MarketplaceRepository()

    async def _get_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder:
        order = await self._repo.get_order(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _get_assigned(
        self, db: AsyncSession, order_id: str, courier_id: str
    ) -> MarketplaceOrder:
        order = await self._get_order(db, order_id)
        if order.courier_id != courier_id:
            raise NotAssignedCourierError()
        return order

    async def list_missions(self, db: AsyncSession, limit: int = 50) -> MissionListResponse:
        orders = await self._repo.list_available_missions(db, limit)
        return MissionListResponse(items=[_to_mission(o) for o in orders])

    async def accept_mission(
        self, db: AsyncSession, order_id: str, courier_id: str
    ) -> AcceptMissionResponse:
        order = await self._get_order(db, order_id)
        if order.is_party(courier_id):
            raise CourierIsPartyError()
        if order.delivery_status != DeliveryStatus.AVAILABLE or order.status != OrderStatus.WAITING_SHIPPING:
            raise MissionUnavailableError(order_id)
        try:
            if not await self._repo.claim_mission(db, order_id, courier_id):
                raise MissionUnavailableError(order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Courier %s accepted mission for order %s", courier_id, order_id)
        notify(order.seller_id, "Courier on the way", f"Hand order {order_id} over with its pickup code")
        notify(order.buyer_id, "Courier assigned", f"A courier accepted order {order_id}")
        return AcceptMissionResponse(
            order_id=order_id,
            delivery_status=DeliveryStatus.ACCEPTED.value,
        )

    async def confirm_pickup(
        self, db: AsyncSession, order_id: str, courier_id: str, pickup_code: str
    ) -> OrderActionResponse:
        order = await self._get_assigned(db, order_id, courier_id)
        if order.delivery_status != DeliveryStatus.ACCEPTED:
            raise InvalidDeliveryStateError(DeliveryStatus.ACCEPTED.value, order.delivery_status)
        if not secrets.compare_digest(pickup_code.upper(), order.pickup_code or ""):
            raise InvalidPickupCodeError()
        try:
            if not await self._repo.start_transit(db, order_id, courier_id, order.pickup_code or ""):
                raise InvalidDeliveryStateError(DeliveryStatus.ACCEPTED.value, "changed concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s picked up by courier %s", order_id, courier_id)
        notify(order.buyer_id, "Order picked up", f"Order {order_id} is in transit")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.IN_TRANSIT.value)

    async def ping_location(
        self, db: AsyncSession, order_id: str, courier_id: str, lat: float, lng: float
    ) -> OrderActionResponse:
        order = await self._get_assigned(db, order_id, courier_id)
        if order.status not in _PING_STATUSES:
            raise InvalidDeliveryStateError("WAITING_SHIPPING or IN_TRANSIT", order.status)
        try:
            if not await self._repo.update_courier_location(db, order_id, courier_id, lat, lng):
                raise InvalidDeliveryStateError("WAITING_SHIPPING or IN_TRANSIT", "changed concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OrderActionResponse(order_id=order_id, status=order.status)

    async def mark_delivered(
        self, db: AsyncSession, order_id: str, courier_id: str
    ) -> OrderActionResponse:
        order = await self._get_assigned(db, order_id, courier_id)
        if order.delivery_status != DeliveryStatus.IN_TRANSIT:
            raise InvalidDeliveryStateError(DeliveryStatus.IN_TRANSIT.value, order.delivery_status)
        try:
            if not await self._repo.finish_delivery(db, order_id, courier_id):
                raise InvalidDeliveryStateError(DeliveryStatus.IN_TRANSIT.value, "changed concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s delivered by courier %s", order_id, courier_id)
        notify(order.buyer_id, "Order delivered", f"Confirm receipt of order {order_id} to release payment")
        return OrderActionResponse(order_id=order_id, status=OrderStatus.DELIVERED.value)

    async def release_mission(
        self, db: AsyncSession, order_id: str, courier_id: str
    ) -> OrderActionResponse:
        order = await self._get_assigned(db, order_id, courier_id)
        if order.delivery_status != DeliveryStatus.ACCEPTED:
            raise InvalidDeliveryStateError(DeliveryStatus.ACCEPTED.value, order.delivery_status)
        try:
            if not await self._repo.release_mission(db, order_id, courier_id):
                raise InvalidDeliveryStateError(DeliveryStatus.ACCEPTED.value, "changed concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Courier %s released mission for order %s", courier_id, order_id)
        return OrderActionResponse(order_id=order_id, status=order.status)
