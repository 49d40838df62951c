"""Unit tests for fee share sets and split_fee."""

import pytest

from src.mc_common.enums import ReservePool
from src.mc_fees.domain.shares import (
    LOGISTICS_SUSTAINABILITY,
    MARKETPLACE_ESCROW,
    PDV_FEE,
    QUOTA_FEE,
    SHARE_SETS,
    FeeShareSet,
    split_fee,
)


class TestShareSets:
    def test_all_sets_total_one_hundred_percent(self) -> None:
        for share_set in SHARE_SETS.values():
            assert sum(share_set.shares.values()) == 10_000

    def test_rejects_bad_total(self) -> None:
        with pytest.raises(ValueError, match="sums to"):
            FeeShareSet("BROKEN", {ReservePool.TAX: 5000})

    def test_rejects_negative_share(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            FeeShareSet("BROKEN", {ReservePool.TAX: 11000, ReservePool.MUTUAL: -1000})

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            FeeShareSet("EMPTY", {})


class TestSplitFee:
    def test_remainder_goes_to_last_pool(self) -> None:
        deltas = split_fee(1001, QUOTA_FEE)
        assert deltas.get(ReservePool.TAX) == 250
        assert deltas.get(ReservePool.OPERATIONAL) == 250
        assert deltas.get(ReservePool.OWNER_PROFIT) == 250
        assert deltas.get(ReservePool.INVESTMENT) == 251

    def test_escrow_split(self) -> None:
        deltas = split_fee(2750, MARKETPLACE_ESCROW)
        assert deltas.get(ReservePool.PROFIT_POOL) == 1375
        assert deltas.get(ReservePool.TAX) == 343
        assert deltas.get(ReservePool.INVESTMENT) == 346
        assert deltas.total() == 2750

    def test_seven_way_split_conserves(self) -> None:
        for amount in (1, 7, 999, 123_457):
            assert split_fee(amount, PDV_FEE).total() == amount

    def test_system_balance_never_touched(self) -> None:
        assert split_fee(5000, MARKETPLACE_ESCROW).system_balance == 0

    def test_logistics_all_to_profit_pool(self) -> None:
        deltas = split_fee(150, LOGISTICS_SUSTAINABILITY)
        assert deltas.get(ReservePool.PROFIT_POOL) == 150
        assert deltas.total() == 150

    def test_zero_is_empty(self) -> None:
        assert split_fee(0, QUOTA_FEE).is_empty()

    def test_negative_raises(self) -> None:
        with pytest.raises(ValueError):
            split_fee(-1, QUOTA_FEE)
