"""Domain models for mc_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

from src.mc_common.enums import ReservePool


@dataclass
class Member:
    """Snapshot of a users row as seen by money-moving code."""

    id: str
    score: int
    balance: int                     # cents
    is_verified_seller: bool = False
    identity_verified: bool = False
    payment_key: str | None = None
    phone_verified: bool = False
    membership_type: str = "FREE"
    referred_by: str | None = None
    welcome_benefit_uses: int = 0
    is_admin: bool = False
    ad_points: int = 0
    created_at: datetime | None = None

    @property
    def missing_verifications(self) -> list[str]:
        missing = []
        if not self.identity_verified:
            missing.append("identity")
        if not self.payment_key:
            missing.append("payment_key")
        if not self.phone_verified:
            missing.append("phone")
        return missing


@dataclass
class BalanceCheck:
    sufficient: bool
    current_balance: int


@dataclass
class ReserveDeltas:
    """Signed cents to add to each system_reserve column in one UPDATE.

    Field names are the ReservePool values, so a delta maps 1:1 onto a column.
    """

    system_balance: int = 0
    profit_pool: int = 0
    total_tax_reserve: int = 0
    total_operational_reserve: int = 0
    total_owner_profit: int = 0
    investment_reserve: int = 0
    total_corporate_investment_reserve: int = 0
    mutual_reserve: int = 0

    @classmethod
    def single(cls, pool: ReservePool, amount: int) -> "ReserveDeltas":
        return cls(**{pool.value: amount})

    def add(self, pool: ReservePool, amount: int) -> None:
        setattr(self, pool.value, getattr(self, pool.value) + amount)

    def get(self, pool: ReservePool) -> int:
        return int(getattr(self, pool.value))

    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) == 0 for f in fields(self))

    def as_params(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def __add__(self, other: "ReserveDeltas") -> "ReserveDeltas":
        return ReserveDeltas(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )


@dataclass
class SystemReserve:
    system_balance: int
    profit_pool: int
    total_tax_reserve: int
    total_operational_reserve: int
    total_owner_profit: int
    investment_reserve: int
    total_corporate_investment_reserve: int
    mutual_reserve: int
    updated_at: datetime | None = None


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    member_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # cents, positive=income negative=expense
    balance_after: int               # cents, balance snapshot after the op
    status: str = "COMPLETED"
    description: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
