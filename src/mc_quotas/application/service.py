"""QuotaService: buying participation quotas from balance.

Each quota costs QUOTA_PRICE: QUOTA_SHARE_VALUE becomes lendable system cash
and redeemable quota value, QUOTA_ADM_FEE is a fee split via QUOTA_FEE.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mc_common.cents import cents_to_display
from src.mc_common.enums import BalanceDirection, LedgerEntryType, QuotaStatus
from src.mc_fees.domain.shares import QUOTA_FEE
from src.mc_fees.infrastructure.distributor import distribute_fee
from src.mc_ledger.domain.models import ReserveDeltas
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository
from src.mc_quotas.application.schemas import (
    BuyQuotasResponse,
    QuotaItem,
    QuotaListResponse,
)
from src.mc_quotas.infrastructure.persistence import QuotaRepository

logger = logging.getLogger(__name__)

SCORE_PER_QUOTA = 10


class QuotaService:
    def __init__(
        self,
        repo: QuotaRepository | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._repo = repo or QuotaRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()

    async def purchase_quotas(
        self, db: AsyncSession, member_id: str, count: int
    ) -> BuyQuotasResponse:
        total = count * settings.QUOTA_PRICE_CENTS
        share_value = count * settings.QUOTA_SHARE_VALUE_CENTS
        adm_fee = count * settings.QUOTA_ADM_FEE_CENTS
        try:
            await self._ledger.lock_member(db, member_id)
            balance = await self._ledger.adjust_balance(
                db, member_id, total, BalanceDirection.DEBIT
            )
            quota_ids = await self._repo.insert_quotas(
                db, member_id, count, settings.QUOTA_PRICE_CENTS, settings.QUOTA_SHARE_VALUE_CENTS
            )
            await distribute_fee(adm_fee, QUOTA_FEE, self._ledger, db)
            await self._ledger.increment_system_reserves(
                db, ReserveDeltas(system_balance=share_value)
            )
            await self._ledger.record_entry(
                db,
                member_id,
                LedgerEntryType.QUOTA_PURCHASE,
                -total,
                f"Purchase of {count} quota(s)",
                reference_type="QUOTA",
                metadata={"count": count, "share_value": share_value, "adm_fee": adm_fee},
            )
            await self._ledger.adjust_score(
                db, member_id, SCORE_PER_QUOTA * count, "quota purchase"
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Member %s bought %d quota(s) for %d cents", member_id, count, total)
        return BuyQuotasResponse(
            quota_ids=quota_ids,
            paid_cents=total,
            paid_display=cents_to_display(total),
            balance_cents=balance,
        )

    async def list_quotas(self, db: AsyncSession, member_id: str) -> QuotaListResponse:
        quotas = await self._repo.list_quotas(db, member_id)
        return QuotaListResponse(
            items=[QuotaItem.from_domain(q) for q in quotas],
            total_value_cents=sum(
                q.current_value for q in quotas if q.status == QuotaStatus.ACTIVE
            ),
        )
