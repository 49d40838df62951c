"""FeeService: members paying platform fees (subscription, boost, PDV) from balance."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import BalanceDirection, LedgerEntryType
from src.mc_fees.application.schemas import PayFeeResponse
from src.mc_fees.domain.shares import SHARE_SETS
from src.mc_fees.infrastructure.distributor import distribute_fee
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class FeeService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def pay_fee(
        self,
        db: AsyncSession,
        member_id: str,
        category: str,
        amount_cents: int,
        description: str,
        reference_id: str | None = None,
    ) -> PayFeeResponse:
        share_set = SHARE_SETS[category]
        try:
            await self._repo.lock_member(db, member_id)
            balance = await self._repo.adjust_balance(
                db, member_id, amount_cents, BalanceDirection.DEBIT
            )
            deltas = await distribute_fee(amount_cents, share_set, self._repo, db)
            entry_id = await self._repo.record_entry(
                db,
                member_id,
                LedgerEntryType.FEE_PAYMENT,
                -amount_cents,
                description,
                reference_type=category,
                reference_id=reference_id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Member %s paid %s of %d cents", member_id, category, amount_cents)
        return PayFeeResponse(
            category=category,
            amount_cents=amount_cents,
            balance_cents=balance,
            ledger_entry_id=entry_id,
            pool_deltas={k: v for k, v in deltas.as_params().items() if v},
        )
