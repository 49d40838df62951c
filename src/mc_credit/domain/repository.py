"""Repository Protocol for mc_credit."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_credit.domain.models import CreditProfile, ExtendedProfile, SystemCash


class CreditRepositoryProtocol(Protocol):
    async def get_profile(
        self, db: AsyncSession, member_id: str
    ) -> CreditProfile | None: ...

    async def get_extended_profile(
        self, db: AsyncSession, member_id: str
    ) -> ExtendedProfile | None: ...

    async def get_system_cash(self, db: AsyncSession) -> SystemCash: ...

    async def get_outstanding_loans(self, db: AsyncSession, member_id: str) -> int: ...
