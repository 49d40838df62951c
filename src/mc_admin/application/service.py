"""Admin application service."""
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mc_admin.domain.invariants import verify_ledger_invariants
from src.mc_common.enums import DisputeResolution, OrderStatus
from src.mc_common.errors import (
    InternalError,
    MemberNotFoundError,
    NotOrderPartyError,
    OrderNotInDisputeError,
)
from src.mc_common.notify import notify
from src.mc_ledger.application.schemas import DepositResponse
from src.mc_ledger.application.service import LedgerApplicationService
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository
from src.mc_loans.application.service import LoanService
from src.mc_marketplace.application.schemas import OrderResponse
from src.mc_marketplace.application.service import EscrowService
from src.mc_marketplace.domain.repository import MarketplaceRepositoryProtocol
from src.mc_marketplace.infrastructure.persistence import MarketplaceRepository

logger = logging.getLogger(__name__)

DISPUTE_PENALTY_SCORE = -100

_RESERVE_SQL = text("""
    SELECT system_balance, profit_pool, total_tax_reserve, total_operational_reserve,
           total_owner_profit, investment_reserve, total_corporate_investment_reserve,
           mutual_reserve, updated_at
    FROM system_reserve WHERE id = 1
""")
_EXPOSURE_SQL = text("""
    SELECT
        (SELECT COUNT(*) FROM quotas WHERE status = 'ACTIVE') AS active_quotas,
        (SELECT COALESCE(SUM(amount), 0) FROM loans
          WHERE status IN ('APPROVED', 'PAYMENT_PENDING')) AS open_loans,
        (SELECT COALESCE(SUM(total_charged), 0) FROM marketplace_orders
          WHERE payment_method = 'CRED30_CREDIT'
            AND status NOT IN ('COMPLETED', 'CANCELLED')) AS credit_exposure
""")
_VERIFY_MEMBER_SQL = text("""
    UPDATE users
    SET identity_verified  = COALESCE(:identity_verified, identity_verified),
        phone_verified     = COALESCE(:phone_verified, phone_verified),
        is_verified_seller = COALESCE(:is_verified_seller, is_verified_seller),
        updated_at = NOW()
    WHERE id = :member_id
    RETURNING id, identity_verified, phone_verified, is_verified_seller
""")


class AdminService:
    def __init__(
        self,
        escrow: EscrowService | None = None,
        repo: MarketplaceRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        loans: LoanService | None = None,
    ) -> None:
        self._repo: MarketplaceRepositoryProtocol = repo or MarketplaceRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._escrow = escrow or EscrowService(repo=self._repo, ledger=self._ledger)
        self._loans = loans or LoanService(ledger=self._ledger)
        self._ledger_service = LedgerApplicationService(repo=self._ledger)

    async def list_disputes(self, db: AsyncSession) -> list[dict[str, Any]]:
        orders = await self._repo.list_disputes(db)
        return [OrderResponse.from_domain(o).model_dump() for o in orders]

    async def resolve_dispute(
        self,
        order_id: str,
        resolution: DisputeResolution,
        admin_id: str,
        db: AsyncSession,
        penalty_member_id: str | None = None,
    ) -> dict[str, Any]:
        """Close a dispute by refunding the buyer or releasing to the seller."""
        try:
            order = await self._repo.lock_order(db, order_id)
            if order.status != OrderStatus.DISPUTE:
                raise OrderNotInDisputeError(order_id)
            if penalty_member_id is not None and not order.is_party(penalty_member_id):
                raise NotOrderPartyError()

            if resolution == DisputeResolution.REFUND_BUYER:
                await self._escrow.unwind_order(db, order)
                final_status = OrderStatus.CANCELLED
            else:
                await self._repo.complete_order(db, order.id)
                await self._escrow.settle_order(db, order, release_seller=not order.seller_released)
                final_status = OrderStatus.COMPLETED

            if penalty_member_id is not None:
                await self._ledger.adjust_score(
                    db, penalty_member_id, DISPUTE_PENALTY_SCORE, f"dispute penalty on order {order_id}"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Dispute on order %s resolved by %s: %s (penalty=%s)",
            order_id, admin_id, resolution.value, penalty_member_id,
        )
        for member_id in (order.buyer_id, order.seller_id):
            notify(member_id, "Dispute resolved", f"Order {order_id}: {resolution.value}")
        return {
            "order_id": order_id,
            "resolution": resolution.value,
            "status": final_status.value,
            "penalized_member_id": penalty_member_id,
        }

    async def mark_late_installments(self, db: AsyncSession) -> dict[str, Any]:
        flagged = await self._loans.mark_late_installments(db)
        return {"marked_late": flagged}

    async def reserve_snapshot(self, db: AsyncSession) -> dict[str, Any]:
        row = (await db.execute(_RESERVE_SQL)).fetchone()
        if row is None:
            raise InternalError("system_reserve row missing; run migrations")
        exposure = (await db.execute(_EXPOSURE_SQL)).fetchone()
        operational_cash = exposure.active_quotas * settings.QUOTA_PRICE_CENTS - exposure.open_loans
        return {
            "system_balance": row.system_balance,
            "profit_pool": row.profit_pool,
            "total_tax_reserve": row.total_tax_reserve,
            "total_operational_reserve": row.total_operational_reserve,
            "total_owner_profit": row.total_owner_profit,
            "investment_reserve": row.investment_reserve,
            "total_corporate_investment_reserve": row.total_corporate_investment_reserve,
            "mutual_reserve": row.mutual_reserve,
            "active_quotas": exposure.active_quotas,
            "open_loans": exposure.open_loans,
            "credit_exposure": exposure.credit_exposure,
            "operational_cash": operational_cash,
            "available_credit_cash": row.system_balance - exposure.credit_exposure,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        }

    async def verify_invariants(self, db: AsyncSession) -> dict[str, Any]:
        violations = await verify_ledger_invariants(db)
        return {"ok": not violations, "violations": violations}

    async def deposit(
        self, db: AsyncSession, member_id: str, amount_cents: int, note: str, admin_id: str
    ) -> DepositResponse:
        return await self._ledger_service.deposit(db, member_id, amount_cents, note, admin_id)

    async def verify_member(
        self,
        db: AsyncSession,
        member_id: str,
        identity_verified: bool | None,
        phone_verified: bool | None,
        is_verified_seller: bool | None,
    ) -> dict[str, Any]:
        try:
            row = (
                await db.execute(
                    _VERIFY_MEMBER_SQL,
                    {
                        "member_id": member_id,
                        "identity_verified": identity_verified,
                        "phone_verified": phone_verified,
                        "is_verified_seller": is_verified_seller,
                    },
                )
            ).fetchone()
            if row is None:
                raise MemberNotFoundError(member_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Member %s verification flags updated", member_id)
        return {
            "member_id": member_id,
            "identity_verified": row.identity_verified,
            "phone_verified": row.phone_verified,
            "is_verified_seller": row.is_verified_seller,
        }
