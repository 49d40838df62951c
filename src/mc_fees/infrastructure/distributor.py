"""Fee distribution: split a collected fee and post it to system_reserve.

Called from inside the fee-generating unit of work; never commits.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_fees.domain.shares import FeeShareSet, split_fee
from src.mc_ledger.domain.models import ReserveDeltas
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol

logger = logging.getLogger(__name__)


async def distribute_fee(
    amount: int,
    share_set: FeeShareSet,
    repo: LedgerRepositoryProtocol,
    db: AsyncSession,
) -> ReserveDeltas:
    """Lock the reserve row, split ``amount`` and apply it in one UPDATE."""
    deltas = split_fee(amount, share_set)
    if deltas.is_empty():
        return deltas
    await repo.lock_system_reserve(db)
    await repo.increment_system_reserves(db, deltas)
    logger.info("Fee %d cents distributed via %s: %s", amount, share_set.name, deltas)
    return deltas
