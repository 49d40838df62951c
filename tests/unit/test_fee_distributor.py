"""Unit tests for distribute_fee and FeeService.pay_fee."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.mc_common.enums import BalanceDirection, LedgerEntryType
from src.mc_common.errors import InsufficientBalanceError
from src.mc_fees.application.service import FeeService
from src.mc_fees.domain.shares import QUOTA_FEE
from src.mc_fees.infrastructure.distributor import distribute_fee


class TestDistributeFee:
    async def test_zero_fee_touches_nothing(self) -> None:
        repo = AsyncMock()
        deltas = await distribute_fee(0, QUOTA_FEE, repo, MagicMock())
        assert deltas.is_empty()
        repo.lock_system_reserve.assert_not_awaited()
        repo.increment_system_reserves.assert_not_awaited()

    async def test_locks_then_increments_once(self) -> None:
        repo = AsyncMock()
        db = MagicMock()
        deltas = await distribute_fee(1000, QUOTA_FEE, repo, db)
        repo.lock_system_reserve.assert_awaited_once_with(db)
        repo.increment_system_reserves.assert_awaited_once_with(db, deltas)
        assert deltas.total() == 1000


class TestPayFee:
    async def test_debits_and_records(self) -> None:
        repo = AsyncMock()
        repo.adjust_balance.return_value = 9_000
        repo.record_entry.return_value = 42
        db = AsyncMock()

        result = await FeeService(repo=repo).pay_fee(db, "member-1", "PLATFORM_FEE", 1_000, "PRO plan")

        repo.adjust_balance.assert_awaited_once_with(db, "member-1", 1_000, BalanceDirection.DEBIT)
        args = repo.record_entry.await_args.args
        assert args[2] == LedgerEntryType.FEE_PAYMENT
        assert args[3] == -1_000
        assert result.balance_cents == 9_000
        assert result.ledger_entry_id == 42
        assert sum(result.pool_deltas.values()) == 1_000
        db.commit.assert_awaited_once()

    async def test_insufficient_balance_rolls_back(self) -> None:
        repo = AsyncMock()
        repo.adjust_balance.side_effect = InsufficientBalanceError(1_000, 10)
        db = AsyncMock()

        with pytest.raises(InsufficientBalanceError):
            await FeeService(repo=repo).pay_fee(db, "member-1", "PLATFORM_FEE", 1_000, "PRO plan")

        repo.increment_system_reserves.assert_not_awaited()
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
