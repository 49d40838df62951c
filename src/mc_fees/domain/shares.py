"""Fee share sets: how a collected fee is split across reserve pools.

Each set maps ReservePool -> basis points and must total exactly 10000 bp.
Splitting floors every share and hands the rounding remainder to the LAST
pool of the set, so the pool deltas always sum to the fee to the cent.
"""

from dataclasses import dataclass, field

from src.mc_common.cents import BPS_DENOMINATOR, apply_bps
from src.mc_common.enums import ReservePool
from src.mc_common.errors import FeeSplitError
from src.mc_ledger.domain.models import ReserveDeltas


@dataclass(frozen=True)
class FeeShareSet:
    name: str
    shares: dict[ReservePool, int] = field(hash=False)

    def __post_init__(self) -> None:
        if not self.shares:
            raise ValueError(f"Fee share set {self.name} is empty")
        if any(bps < 0 for bps in self.shares.values()):
            raise ValueError(f"Fee share set {self.name} has a negative share")
        total = sum(self.shares.values())
        if total != BPS_DENOMINATOR:
            raise ValueError(
                f"Fee share set {self.name} sums to {total} bp, expected {BPS_DENOMINATOR}"
            )


MARKETPLACE_ESCROW = FeeShareSet(
    "MARKETPLACE_ESCROW",
    {
        ReservePool.PROFIT_POOL: 5000,
        ReservePool.TAX: 1250,
        ReservePool.OPERATIONAL: 1250,
        ReservePool.OWNER_PROFIT: 1250,
        ReservePool.INVESTMENT: 1250,
    },
)

QUOTA_FEE = FeeShareSet(
    "QUOTA_FEE",
    {
        ReservePool.TAX: 2500,
        ReservePool.OPERATIONAL: 2500,
        ReservePool.OWNER_PROFIT: 2500,
        ReservePool.INVESTMENT: 2500,
    },
)

# Subscriptions, listing boosts, verification badges
PLATFORM_FEE = FeeShareSet(
    "PLATFORM_FEE",
    {
        ReservePool.TAX: 2500,
        ReservePool.OPERATIONAL: 2500,
        ReservePool.OWNER_PROFIT: 2500,
        ReservePool.INVESTMENT: 2500,
    },
)

PDV_FEE = FeeShareSet(
    "PDV_FEE",
    {
        ReservePool.TAX: 2000,
        ReservePool.OPERATIONAL: 1500,
        ReservePool.OWNER_PROFIT: 1500,
        ReservePool.INVESTMENT: 1000,
        ReservePool.CORPORATE_INVESTMENT: 1000,
        ReservePool.MUTUAL: 1500,
        ReservePool.PROFIT_POOL: 1500,
    },
)

# Platform cut retained from courier fees
LOGISTICS_SUSTAINABILITY = FeeShareSet(
    "LOGISTICS_SUSTAINABILITY",
    {ReservePool.PROFIT_POOL: 10000},
)

# Charged on early payout of a seller or courier leg
ANTICIPATION = FeeShareSet(
    "ANTICIPATION",
    {ReservePool.PROFIT_POOL: 10000},
)

SHARE_SETS: dict[str, FeeShareSet] = {
    s.name: s
    for s in (
        MARKETPLACE_ESCROW,
        QUOTA_FEE,
        PLATFORM_FEE,
        PDV_FEE,
        LOGISTICS_SUSTAINABILITY,
        ANTICIPATION,
    )
}


def split_fee(amount: int, share_set: FeeShareSet) -> ReserveDeltas:
    """Split ``amount`` cents into per-pool deltas.

    split_fee(1001, QUOTA_FEE) -> tax 250, operational 250, owner 250,
    investment 251.
    """
    if amount < 0:
        raise ValueError(f"Fee amount must be non-negative, got {amount}")
    deltas = ReserveDeltas()
    if amount == 0:
        return deltas

    pools = list(share_set.shares.items())
    allocated = 0
    for pool, bps in pools:
        portion = apply_bps(amount, bps)
        deltas.add(pool, portion)
        allocated += portion
    deltas.add(pools[-1][0], amount - allocated)

    if deltas.total() != amount:
        raise FeeSplitError(amount, deltas.total())
    return deltas
