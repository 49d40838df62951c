"""LedgerApplicationService: balance view, ledger history, manual deposits."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.cents import cents_to_display
from src.mc_common.enums import BalanceDirection, LedgerEntryType
from src.mc_common.errors import MemberNotFoundError
from src.mc_ledger.application.schemas import (
    BalanceResponse,
    DepositResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_balance(self, db: AsyncSession, member_id: str) -> BalanceResponse:
        member = await self._repo.get_member(db, member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return BalanceResponse.from_cents(
            member.id, member.balance, member.ad_points, member.score
        )

    async def deposit(
        self, db: AsyncSession, member_id: str, amount_cents: int, note: str, admin_id: str
    ) -> DepositResponse:
        """Credit funds received outside the platform (admin-confirmed)."""
        try:
            new_balance = await self._repo.adjust_balance(
                db, member_id, amount_cents, BalanceDirection.CREDIT
            )
            entry_id = await self._repo.record_entry(
                db,
                member_id,
                LedgerEntryType.DEPOSIT,
                amount_cents,
                note,
                reference_type="DEPOSIT",
                metadata={"confirmed_by": admin_id},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Deposit %d cents to member %s by admin %s", amount_cents, member_id, admin_id)
        return DepositResponse(
            member_id=member_id,
            balance_cents=new_balance,
            balance_display=cents_to_display(new_balance),
            deposited_cents=amount_cents,
            ledger_entry_id=entry_id,
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        member_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, member_id, cursor_id, limit + 1, entry_type)
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            LedgerEntryItem(
                id=e.id,
                entry_type=e.entry_type,
                amount_cents=e.amount,
                amount_display=cents_to_display(e.amount),
                balance_after_cents=e.balance_after,
                balance_after_display=cents_to_display(e.balance_after),
                status=e.status,
                reference_type=e.reference_type,
                reference_id=e.reference_id,
                description=e.description,
                metadata=e.metadata,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
