"""QuotaRepository: quota issuance, listing and ownership transfer."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_quotas.domain.models import Quota

_INSERT_QUOTAS_SQL = text("""
    INSERT INTO quotas (member_id, purchase_price, current_value, status)
    SELECT :member_id, :purchase_price, :current_value, 'ACTIVE'
    FROM generate_series(1, :count)
    RETURNING id
""")

_LIST_QUOTAS_SQL = text("""
    SELECT id, member_id, purchase_price, current_value, yield_rate_bps, status, created_at
    FROM quotas
    WHERE member_id = :member_id
    ORDER BY created_at DESC
""")

# Serializes listing creation per quota
_LOCK_OWNED_QUOTA_SQL = text("""
    SELECT id, member_id, purchase_price, current_value, yield_rate_bps, status, created_at
    FROM quotas
    WHERE id = :quota_id AND member_id = :member_id AND status = 'ACTIVE'
    FOR UPDATE
""")

# Ownership moves only if the seller still holds it; 0 rows = stale listing.
_TRANSFER_QUOTA_SQL = text("""
    UPDATE quotas
    SET member_id = :to_member_id, updated_at = NOW()
    WHERE id = :quota_id AND member_id = :from_member_id AND status = 'ACTIVE'
    RETURNING id
""")


def _row_to_quota(row: object) -> Quota:
    return Quota(
        id=str(row.id),  # type: ignore[attr-defined]
        member_id=str(row.member_id),  # type: ignore[attr-defined]
        purchase_price=row.purchase_price,  # type: ignore[attr-defined]
        current_value=row.current_value,  # type: ignore[attr-defined]
        yield_rate_bps=row.yield_rate_bps,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class QuotaRepository:
    async def insert_quotas(
        self,
        db: AsyncSession,
        member_id: str,
        count: int,
        purchase_price: int,
        current_value: int,
    ) -> list[str]:
        rows = (
            await db.execute(
                _INSERT_QUOTAS_SQL,
                {
                    "member_id": member_id,
                    "count": count,
                    "purchase_price": purchase_price,
                    "current_value": current_value,
                },
            )
        ).fetchall()
        return [str(r.id) for r in rows]

    async def list_quotas(self, db: AsyncSession, member_id: str) -> list[Quota]:
        rows = (await db.execute(_LIST_QUOTAS_SQL, {"member_id": member_id})).fetchall()
        return [_row_to_quota(r) for r in rows]

    async def lock_owned_quota(
        self, db: AsyncSession, quota_id: str, member_id: str
    ) -> Quota | None:
        row = (
            await db.execute(
                _LOCK_OWNED_QUOTA_SQL, {"quota_id": quota_id, "member_id": member_id}
            )
        ).fetchone()
        return _row_to_quota(row) if row else None

    async def transfer_quota(
        self, db: AsyncSession, quota_id: str, from_member_id: str, to_member_id: str
    ) -> bool:
        row = (
            await db.execute(
                _TRANSFER_QUOTA_SQL,
                {
                    "quota_id": quota_id,
                    "from_member_id": from_member_id,
                    "to_member_id": to_member_id,
                },
            )
        ).fetchone()
        return row is not None
