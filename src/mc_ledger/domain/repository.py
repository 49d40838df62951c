"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import BalanceDirection
from src.mc_ledger.domain.models import (
    BalanceCheck,
    LedgerEntry,
    Member,
    ReserveDeltas,
    SystemReserve,
)


class LedgerRepositoryProtocol(Protocol):
    async def get_member(self, db: AsyncSession, member_id: str) -> Member | None: ...

    async def lock_member(self, db: AsyncSession, member_id: str) -> Member: ...

    async def with_locked_balance(
        self, db: AsyncSession, member_id: str, required: int
    ) -> BalanceCheck: ...

    async def adjust_balance(
        self,
        db: AsyncSession,
        member_id: str,
        amount: int,
        direction: BalanceDirection,
    ) -> int: ...

    async def lock_system_reserve(self, db: AsyncSession) -> SystemReserve: ...

    async def increment_system_reserves(
        self, db: AsyncSession, deltas: ReserveDeltas
    ) -> None: ...

    async def record_entry(
        self,
        db: AsyncSession,
        member_id: str,
        entry_type: str,
        amount: int,
        description: str,
        status: str = "COMPLETED",
        reference_type: str | None = None,
        reference_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int: ...

    async def adjust_score(
        self, db: AsyncSession, member_id: str, delta: int, reason: str
    ) -> int: ...

    async def consume_welcome_benefit(
        self, db: AsyncSession, member_id: str, max_uses: int
    ) -> bool: ...

    async def list_entries(
        self,
        db: AsyncSession,
        member_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
