"""MarketplaceRepository: listings, orders, ratings and courier missions.

State transitions are conditional UPDATEs (``WHERE status = ...``) so that a
concurrent loser sees 0 rows instead of overwriting the winner. Nothing here
commits.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import PayoutLeg
from src.mc_common.errors import OrderNotFoundError
from src.mc_marketplace.domain.models import (
    Listing,
    MarketplaceOrder,
    OrderItem,
    OrderOrigin,
)

# ---------------------------------------------------------------------------
# SQL: listings
# ---------------------------------------------------------------------------

_LISTING_COLUMNS = """
    id, seller_id, title, description, price, category, item_type,
    required_vehicle, quota_id, pickup_lat, pickup_lng, status, created_at
"""

_INSERT_LISTING_SQL = text(f"""
    INSERT INTO marketplace_listings
        (seller_id, title, description, price, category, item_type,
         required_vehicle, quota_id, pickup_lat, pickup_lng, status)
    VALUES
        (:seller_id, :title, :description, :price, :category, :item_type,
         :required_vehicle, :quota_id, :pickup_lat, :pickup_lng, 'ACTIVE')
    RETURNING {_LISTING_COLUMNS}
""")

_GET_LISTING_SQL = text(
    f"SELECT {_LISTING_COLUMNS} FROM marketplace_listings WHERE id = :listing_id"
)

_GET_LISTINGS_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM marketplace_listings
    WHERE id = ANY(CAST(:listing_ids AS UUID[]))
""")

# The only serialization point for two buyers racing on one listing.
_MARK_SOLD_SQL = text("""
    UPDATE marketplace_listings
    SET status = 'SOLD', updated_at = NOW()
    WHERE id = ANY(CAST(:listing_ids AS UUID[])) AND status = 'ACTIVE'
    RETURNING id
""")

_REACTIVATE_SQL = text("""
    UPDATE marketplace_listings
    SET status = 'ACTIVE', updated_at = NOW()
    WHERE status = 'SOLD'
      AND id IN (SELECT listing_id FROM marketplace_order_items WHERE order_id = :order_id)
    RETURNING id
""")

# Quota still claimable by a buyer, or held by an order that has not settled
_QUOTA_IN_ESCROW_SQL = text("""
    SELECT
        EXISTS (
            SELECT 1 FROM marketplace_listings
            WHERE quota_id = :quota_id AND status IN ('ACTIVE', 'PAUSED')
        )
        OR EXISTS (
            SELECT 1
            FROM marketplace_order_items i
            JOIN marketplace_orders o ON o.id = i.order_id
            WHERE i.quota_id = :quota_id
              AND o.status IN ('WAITING_SHIPPING', 'IN_TRANSIT', 'DELIVERED', 'DISPUTE')
        )
""")

# ---------------------------------------------------------------------------
# SQL: orders
# ---------------------------------------------------------------------------

_ORDER_COLUMNS = """
    id, buyer_id, seller_id, amount, fee_amount, seller_amount, delivery_fee,
    total_charged, payment_method, status, delivery_status, delivery_type,
    delivery_address, contact_phone, courier_id, courier_lat, courier_lng,
    pickup_lat, pickup_lng, delivery_lat, delivery_lng, pickup_code,
    delivery_confirmation_code, offline_token, origin_type, origin_ref,
    seller_released, courier_released, welcome_benefit_applied, dispute_reason,
    disputed_at, created_at, updated_at
"""

_INSERT_ORDER_SQL = text("""
    INSERT INTO marketplace_orders
        (buyer_id, seller_id, amount, fee_amount, seller_amount, delivery_fee,
         total_charged, payment_method, status, delivery_status, delivery_type,
         delivery_address, contact_phone, pickup_lat, pickup_lng, delivery_lat,
         delivery_lng, pickup_code, delivery_confirmation_code, offline_token,
         origin_type, origin_ref, seller_released, welcome_benefit_applied)
    VALUES
        (:buyer_id, :seller_id, :amount, :fee_amount, :seller_amount, :delivery_fee,
         :total_charged, :payment_method, :status, :delivery_status, :delivery_type,
         :delivery_address, :contact_phone, :pickup_lat, :pickup_lng, :delivery_lat,
         :delivery_lng, :pickup_code, :delivery_confirmation_code, :offline_token,
         :origin_type, :origin_ref, :seller_released, :welcome_benefit_applied)
    RETURNING id
""")

_INSERT_ITEM_SQL = text("""
    INSERT INTO marketplace_order_items (order_id, listing_id, title, price, quota_id)
    VALUES (:order_id, :listing_id, :title, :price, :quota_id)
""")

_ORDER_ITEMS_SQL = text("""
    SELECT listing_id, title, price, quota_id
    FROM marketplace_order_items
    WHERE order_id = :order_id
    ORDER BY id
""")

_GET_ORDER_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM marketplace_orders WHERE id = :order_id")

_LOCK_ORDER_SQL = text(
    f"SELECT {_ORDER_COLUMNS} FROM marketplace_orders WHERE id = :order_id FOR UPDATE"
)

_GET_BY_OFFLINE_TOKEN_SQL = text(
    f"SELECT {_ORDER_COLUMNS} FROM marketplace_orders WHERE offline_token = :token"
)

_LIST_ORDERS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM marketplace_orders
    WHERE (:role = 'buyer' AND buyer_id = :member_id)
       OR (:role = 'seller' AND seller_id = :member_id)
       OR (:role = 'courier' AND courier_id = :member_id)
    ORDER BY created_at DESC
    LIMIT :limit
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE marketplace_orders
    SET status = :status, updated_at = NOW()
    WHERE id = :order_id
""")

_COMPLETE_SQL = text("""
    UPDATE marketplace_orders
    SET status = 'COMPLETED', delivery_status = 'DELIVERED',
        seller_released = TRUE, updated_at = NOW()
    WHERE id = :order_id
""")

_RELEASE_SELLER_LEG_SQL = text("""
    UPDATE marketplace_orders
    SET seller_released = TRUE, updated_at = NOW()
    WHERE id = :order_id AND seller_released = FALSE
      AND status IN ('WAITING_SHIPPING', 'IN_TRANSIT')
    RETURNING id
""")

_RELEASE_COURIER_LEG_SQL = text("""
    UPDATE marketplace_orders
    SET courier_released = TRUE, updated_at = NOW()
    WHERE id = :order_id AND courier_released = FALSE
      AND status = 'IN_TRANSIT' AND courier_id IS NOT NULL
    RETURNING id
""")

_DISPUTE_SQL = text("""
    UPDATE marketplace_orders
    SET status = 'DISPUTE', dispute_reason = :reason, disputed_at = NOW(), updated_at = NOW()
    WHERE id = :order_id AND status IN ('WAITING_SHIPPING', 'IN_TRANSIT', 'DELIVERED')
    RETURNING id
""")

_LIST_DISPUTES_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM marketplace_orders
    WHERE status = 'DISPUTE'
    ORDER BY disputed_at
""")

_MARK_SHIPPED_SQL = text("""
    UPDATE marketplace_orders
    SET status = 'IN_TRANSIT', updated_at = NOW()
    WHERE id = :order_id AND seller_id = :seller_id
      AND status = 'WAITING_SHIPPING' AND delivery_type <> 'COURIER_REQUEST'
    RETURNING id
""")

_INSERT_RATING_SQL = text("""
    INSERT INTO marketplace_ratings (order_id, rater_id, rated_member_id, rating, comment)
    VALUES (:order_id, :rater_id, :rated_id, :rating, :comment)
    ON CONFLICT (order_id, rater_id) DO NOTHING
    RETURNING id
""")

# Credit orders whose seller has not been paid out of system cash yet
_EXPOSURE_SQL = text("""
    SELECT COALESCE(SUM(total_charged), 0)
    FROM marketplace_orders
    WHERE payment_method = 'CRED30_CREDIT'
      AND status NOT IN ('COMPLETED', 'CANCELLED')
""")

# ---------------------------------------------------------------------------
# SQL: courier missions
# ---------------------------------------------------------------------------

_AVAILABLE_MISSIONS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM marketplace_orders
    WHERE delivery_status = 'AVAILABLE' AND status = 'WAITING_SHIPPING'
    ORDER BY created_at
    LIMIT :limit
""")

_CLAIM_MISSION_SQL = text("""
    UPDATE marketplace_orders
    SET delivery_status = 'ACCEPTED', courier_id = :courier_id, updated_at = NOW()
    WHERE id = :order_id AND delivery_status = 'AVAILABLE' AND status = 'WAITING_SHIPPING'
    RETURNING id
""")

_START_TRANSIT_SQL = text("""
    UPDATE marketplace_orders
    SET delivery_status = 'IN_TRANSIT', status = 'IN_TRANSIT', updated_at = NOW()
    WHERE id = :order_id AND courier_id = :courier_id
      AND pickup_code = :pickup_code AND delivery_status = 'ACCEPTED'
      AND status = 'WAITING_SHIPPING'
    RETURNING id
""")

_COURIER_LOCATION_SQL = text("""
    UPDATE marketplace_orders
    SET courier_lat = :lat, courier_lng = :lng, updated_at = NOW()
    WHERE id = :order_id AND courier_id = :courier_id
      AND status IN ('WAITING_SHIPPING', 'IN_TRANSIT')
    RETURNING id
""")

_FINISH_DELIVERY_SQL = text("""
    UPDATE marketplace_orders
    SET delivery_status = 'DELIVERED', status = 'DELIVERED', updated_at = NOW()
    WHERE id = :order_id AND courier_id = :courier_id
      AND delivery_status = 'IN_TRANSIT' AND status = 'IN_TRANSIT'
    RETURNING id
""")

_RELEASE_MISSION_SQL = text("""
    UPDATE marketplace_orders
    SET delivery_status = 'AVAILABLE', courier_id = NULL,
        courier_lat = NULL, courier_lng = NULL, updated_at = NOW()
    WHERE id = :order_id AND courier_id = :courier_id
      AND delivery_status = 'ACCEPTED' AND status = 'WAITING_SHIPPING'
    RETURNING id
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _opt_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _opt_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=str(row.id),
        seller_id=str(row.seller_id),
        title=row.title,
        description=row.description or "",
        price=row.price,
        category=row.category,
        item_type=row.item_type,
        required_vehicle=row.required_vehicle,
        quota_id=_opt_str(row.quota_id),
        pickup_lat=_opt_float(row.pickup_lat),
        pickup_lng=_opt_float(row.pickup_lng),
        status=row.status,
        created_at=row.created_at,
    )


def _row_to_item(row: Any) -> OrderItem:
    return OrderItem(
        listing_id=str(row.listing_id),
        title=row.title,
        price=row.price,
        quota_id=_opt_str(row.quota_id),
    )


def _row_to_order(row: Any) -> MarketplaceOrder:
    return MarketplaceOrder(
        id=str(row.id),
        buyer_id=str(row.buyer_id),
        seller_id=str(row.seller_id),
        amount=row.amount,
        fee_amount=row.fee_amount,
        seller_amount=row.seller_amount,
        delivery_fee=row.delivery_fee,
        total_charged=row.total_charged,
        payment_method=row.payment_method,
        status=row.status,
        delivery_status=row.delivery_status,
        delivery_type=row.delivery_type,
        delivery_address=row.delivery_address,
        contact_phone=row.contact_phone,
        courier_id=_opt_str(row.courier_id),
        courier_lat=_opt_float(row.courier_lat),
        courier_lng=_opt_float(row.courier_lng),
        pickup_lat=_opt_float(row.pickup_lat),
        pickup_lng=_opt_float(row.pickup_lng),
        delivery_lat=_opt_float(row.delivery_lat),
        delivery_lng=_opt_float(row.delivery_lng),
        pickup_code=row.pickup_code,
        delivery_confirmation_code=row.delivery_confirmation_code,
        offline_token=row.offline_token,
        origin=OrderOrigin(row.origin_type, row.origin_ref),
        seller_released=row.seller_released,
        courier_released=row.courier_released,
        welcome_benefit_applied=row.welcome_benefit_applied,
        dispute_reason=row.dispute_reason,
        disputed_at=row.disputed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketplaceRepository:
    """Concrete implementation of MarketplaceRepositoryProtocol using raw SQL."""

    async def create_listing(self, db: AsyncSession, listing: Listing) -> Listing:
        row = (
            await db.execute(
                _INSERT_LISTING_SQL,
                {
                    "seller_id": listing.seller_id,
                    "title": listing.title,
                    "description": listing.description,
                    "price": listing.price,
                    "category": listing.category,
                    "item_type": listing.item_type,
                    "required_vehicle": listing.required_vehicle,
                    "quota_id": listing.quota_id,
                    "pickup_lat": listing.pickup_lat,
                    "pickup_lng": listing.pickup_lng,
                },
            )
        ).fetchone()
        return _row_to_listing(row)

    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None:
        row = (await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id})).fetchone()
        return _row_to_listing(row) if row else None

    async def get_listings(self, db: AsyncSession, listing_ids: list[str]) -> list[Listing]:
        rows = (
            await db.execute(_GET_LISTINGS_SQL, {"listing_ids": listing_ids})
        ).fetchall()
        by_id = {str(r.id): _row_to_listing(r) for r in rows}
        return [by_id[i] for i in listing_ids if i in by_id]

    async def mark_listings_sold(self, db: AsyncSession, listing_ids: list[str]) -> int:
        rows = (await db.execute(_MARK_SOLD_SQL, {"listing_ids": listing_ids})).fetchall()
        return len(rows)

    async def reactivate_listings(self, db: AsyncSession, order_id: str) -> int:
        rows = (await db.execute(_REACTIVATE_SQL, {"order_id": order_id})).fetchall()
        return len(rows)

    async def quota_in_escrow(self, db: AsyncSession, quota_id: str) -> bool:
        return bool((await db.execute(_QUOTA_IN_ESCROW_SQL, {"quota_id": quota_id})).scalar_one())

    async def insert_order(self, db: AsyncSession, order: MarketplaceOrder) -> str:
        row = (
            await db.execute(
                _INSERT_ORDER_SQL,
                {
                    "buyer_id": order.buyer_id,
                    "seller_id": order.seller_id,
                    "amount": order.amount,
                    "fee_amount": order.fee_amount,
                    "seller_amount": order.seller_amount,
                    "delivery_fee": order.delivery_fee,
                    "total_charged": order.total_charged,
                    "payment_method": order.payment_method,
                    "status": order.status,
                    "delivery_status": order.delivery_status,
                    "delivery_type": order.delivery_type,
                    "delivery_address": order.delivery_address,
                    "contact_phone": order.contact_phone,
                    "pickup_lat": order.pickup_lat,
                    "pickup_lng": order.pickup_lng,
                    "delivery_lat": order.delivery_lat,
                    "delivery_lng": order.delivery_lng,
                    "pickup_code": order.pickup_code,
                    "delivery_confirmation_code": order.delivery_confirmation_code,
                    "offline_token": order.offline_token,
                    "origin_type": order.origin.kind,
                    "origin_ref": order.origin.ref,
                    "seller_released": order.seller_released,
                    "welcome_benefit_applied": order.welcome_benefit_applied,
                },
            )
        ).fetchone()
        return str(row.id)

    async def insert_order_items(
        self, db: AsyncSession, order_id: str, items: list[OrderItem]
    ) -> None:
        await db.execute(
            _INSERT_ITEM_SQL,
            [
                {
                    "order_id": order_id,
                    "listing_id": item.listing_id,
                    "title": item.title,
                    "price": item.price,
                    "quota_id": item.quota_id,
                }
                for item in items
            ],
        )

    async def _with_items(self, db: AsyncSession, row: Any) -> MarketplaceOrder:
        order = _row_to_order(row)
        items = (await db.execute(_ORDER_ITEMS_SQL, {"order_id": order.id})).fetchall()
        order.items = [_row_to_item(r) for r in items]
        return order

    async def get_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder | None:
        row = (await db.execute(_GET_ORDER_SQL, {"order_id": order_id})).fetchone()
        return await self._with_items(db, row) if row else None

    async def lock_order(self, db: AsyncSession, order_id: str) -> MarketplaceOrder:
        """SELECT ... FOR UPDATE on the order row; held until commit/rollback."""
        row = (await db.execute(_LOCK_ORDER_SQL, {"order_id": order_id})).fetchone()
        if row is None:
            raise OrderNotFoundError(order_id)
        return await self._with_items(db, row)

    async def get_order_by_offline_token(
        self, db: AsyncSession, token: str
    ) -> MarketplaceOrder | None:
        row = (await db.execute(_GET_BY_OFFLINE_TOKEN_SQL, {"token": token})).fetchone()
        return _row_to_order(row) if row else None

    async def list_orders(
        self, db: AsyncSession, member_id: str, role: str, limit: int
    ) -> list[MarketplaceOrder]:
        rows = (
            await db.execute(
                _LIST_ORDERS_SQL, {"member_id": member_id, "role": role, "limit": limit}
            )
        ).fetchall()
        return [_row_to_order(r) for r in rows]

    async def update_order_status(
        self, db: AsyncSession, order_id: str, status: str
    ) -> None:
        await db.execute(_UPDATE_STATUS_SQL, {"order_id": order_id, "status": status})

    async def complete_order(self, db: AsyncSession, order_id: str) -> None:
        await db.execute(_COMPLETE_SQL, {"order_id": order_id})

    async def mark_leg_released(self, db: AsyncSession, order_id: str, leg: PayoutLeg) -> bool:
        sql = _RELEASE_SELLER_LEG_SQL if leg == PayoutLeg.SELLER else _RELEASE_COURIER_LEG_SQL
        row = (await db.execute(sql, {"order_id": order_id})).fetchone()
        return row is not None

    async def mark_disputed(self, db: AsyncSession, order_id: str, reason: str) -> bool:
        row = (
            await db.execute(_DISPUTE_SQL, {"order_id": order_id, "reason": reason})
        ).fetchone()
        return row is not None

    async def list_disputes(self, db: AsyncSession) -> list[MarketplaceOrder]:
        rows = (await db.execute(_LIST_DISPUTES_SQL)).fetchall()
        return [_row_to_order(r) for r in rows]

    async def mark_shipped(self, db: AsyncSession, order_id: str, seller_id: str) -> bool:
        row = (
            await db.execute(
                _MARK_SHIPPED_SQL, {"order_id": order_id, "seller_id": seller_id}
            )
        ).fetchone()
        return row is not None

    async def insert_rating(
        self,
        db: AsyncSession,
        order_id: str,
        rater_id: str,
        rated_id: str,
        rating: int,
        comment: str | None,
    ) -> bool:
        row = (
            await db.execute(
                _INSERT_RATING_SQL,
                {
                    "order_id": order_id,
                    "rater_id": rater_id,
                    "rated_id": rated_id,
                    "rating": rating,
                    "comment": comment,
                },
            )
        ).fetchone()
        return row is not None

    async def committed_credit_exposure(self, db: AsyncSession) -> int:
        return int((await db.execute(_EXPOSURE_SQL)).scalar_one())

    async def list_available_missions(
        self, db: AsyncSession, limit: int
    ) -> list[MarketplaceOrder]:
        rows = (await db.execute(_AVAILABLE_MISSIONS_SQL, {"limit": limit})).fetchall()
        return [_row_to_order(r) for r in rows]

    async def claim_mission(self, db: AsyncSession, order_id: str, courier_id: str) -> bool:
        row = (
            await db.execute(
                _CLAIM_MISSION_SQL, {"order_id": order_id, "courier_id": courier_id}
            )
        ).fetchone()
        return row is not None

    async def start_transit(
        self, db: AsyncSession, order_id: str, courier_id: str, pickup_code: str
    ) -> bool:
        row = (
            await db.execute(
                _START_TRANSIT_SQL,
                {"order_id": order_id, "courier_id": courier_id, "pickup_code": pickup_code},
            )
        ).fetchone()
        return row is not None

    async def update_courier_location(
        self, db: AsyncSession, order_id: str, courier_id: str, lat: float, lng: float
    ) -> bool:
        row = (
            await db.execute(
                _COURIER_LOCATION_SQL,
                {"order_id": order_id, "courier_id": courier_id, "lat": lat, "lng": lng},
            )
        ).fetchone()
        return row is not None

    async def finish_delivery(self, db: AsyncSession, order_id: str, courier_id: str) -> bool:
        row = (
            await db.execute(
                _FINISH_DELIVERY_SQL, {"order_id": order_id, "courier_id": courier_id}
            )
        ).fetchone()
        return row is not None

    async def release_mission(self, db: AsyncSession, order_id: str, courier_id: str) -> bool:
        row = (
            await db.execute(
                _RELEASE_MISSION_SQL, {"order_id": order_id, "courier_id": courier_id}
            )
        ).fetchone()
        return row is not None
