"""CreditAnalysisService: limit and eligibility engine.

Fail-closed: any exception while gathering inputs is logged and turned into
a zero limit / ineligible result. Callers never see an exception from here.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mc_common.datetime_utils import utc_now
from src.mc_credit.domain.limit import (
    GATE_MEMBER_NOT_FOUND,
    GATE_NO_QUOTAS,
    GATE_OVERDUE,
    account_age_days,
    compute_limit,
    extended_limit,
    is_elite,
    total_spent,
)
from src.mc_credit.domain.models import (
    CreditProfile,
    EligibilityResult,
    ExtendedScoringParams,
    LimitBreakdown,
    LimitResult,
)
from src.mc_credit.domain.repository import CreditRepositoryProtocol
from src.mc_credit.infrastructure.persistence import CreditRepository

logger = logging.getLogger(__name__)

REASON_UNAVAILABLE = "credit analysis unavailable"
REASON_CASH_EXHAUSTED = "system cash exhausted"
REASON_GUARANTOR = "active guarantor"
REASON_PENDING_QUOTAS = "quota purchase pending confirmation"


class CreditAnalysisService:
    def __init__(
        self,
        repo: CreditRepositoryProtocol | None = None,
        params: ExtendedScoringParams | None = None,
    ) -> None:
        self._repo: CreditRepositoryProtocol = repo or CreditRepository()
        self._params = params or ExtendedScoringParams()

    async def load_profile(self, db: AsyncSession, member_id: str) -> CreditProfile | None:
        return await self._repo.get_profile(db, member_id)

    async def evaluate_limit(self, db: AsyncSession, member_id: str) -> LimitResult:
        try:
            profile = await self._repo.get_profile(db, member_id)
            if profile is None:
                return LimitResult(limit=0, breakdown=LimitBreakdown(gate=GATE_MEMBER_NOT_FOUND))
            cash = await self._repo.get_system_cash(db)
            breakdown = compute_limit(profile, cash.operational_cash(settings.QUOTA_PRICE_CENTS))
        except Exception:
            logger.exception("Credit analysis failed for member %s", member_id)
            return LimitResult.closed()
        logger.debug("Limit for member %s: %s", member_id, breakdown)
        return LimitResult(limit=breakdown.final_limit, breakdown=breakdown)

    async def calculate_loan_limit(self, db: AsyncSession, member_id: str) -> int:
        return (await self.evaluate_limit(db, member_id)).limit

    async def available_credit(self, db: AsyncSession, member_id: str) -> tuple[LimitResult, int]:
        """(limit result, member's own outstanding loan principal).

        Outstanding is read fresh so a caller holding the member row lock sees
        loans created by earlier purchases in the same serialized order.
        """
        result = await self.evaluate_limit(db, member_id)
        if result.failed:
            return result, 0
        try:
            outstanding = await self._repo.get_outstanding_loans(db, member_id)
        except Exception:
            logger.exception("Outstanding-loan lookup failed for member %s", member_id)
            return LimitResult.closed(), 0
        return result, outstanding

    async def check_loan_eligibility(
        self, db: AsyncSession, member_id: str
    ) -> EligibilityResult:
        result = await self.evaluate_limit(db, member_id)
        if result.failed:
            return EligibilityResult(eligible=False, reason=REASON_UNAVAILABLE)
        details = result.breakdown.as_dict()
        if result.breakdown.gate:
            return EligibilityResult(eligible=False, reason=result.breakdown.gate, details=details)
        if result.limit <= 0:
            return EligibilityResult(eligible=False, reason=REASON_CASH_EXHAUSTED, details=details)
        return EligibilityResult(eligible=True, details=details)

    async def check_extended_eligibility(
        self, db: AsyncSession, member_id: str
    ) -> EligibilityResult:
        """Spend- and quota-weighted variant with score/PRO/elite bonuses."""
        now = utc_now()
        try:
            profile = await self._repo.get_extended_profile(db, member_id)
            if profile is None:
                return EligibilityResult(eligible=False, reason=GATE_MEMBER_NOT_FOUND)
            cash = await self._repo.get_system_cash(db)
            operational_cash = cash.operational_cash(settings.QUOTA_PRICE_CENTS)
            max_limit = extended_limit(profile, operational_cash, now, self._params)
        except Exception:
            logger.exception("Extended credit analysis failed for member %s", member_id)
            return EligibilityResult(eligible=False, reason=REASON_UNAVAILABLE)

        details = {
            "score": profile.score,
            "quotas_count": profile.active_quota_count,
            "quotas_value": profile.total_quotas_value,
            "marketplace_transactions": profile.purchases_count + profile.sales_count,
            "account_age_days": account_age_days(profile.created_at, now),
            "has_overdue": profile.overdue_loan_count > 0,
            "total_spent": total_spent(profile, self._params),
            "is_elite": is_elite(profile, now, self._params),
            "is_guarantor": profile.active_guarantees > 0,
            "operational_cash": operational_cash,
            "max_loan_amount": max_limit,
        }
        logger.debug("Extended limit for member %s: %s", member_id, details)

        if profile.overdue_loan_count > 0:
            return EligibilityResult(eligible=False, reason=GATE_OVERDUE, details=details)
        if profile.active_guarantees > 0:
            return EligibilityResult(eligible=False, reason=REASON_GUARANTOR, details=details)
        if profile.active_quota_count < 1:
            reason = REASON_PENDING_QUOTAS if profile.pending_quota_count > 0 else GATE_NO_QUOTAS
            return EligibilityResult(eligible=False, reason=reason, details=details)
        if max_limit <= 0:
            return EligibilityResult(eligible=False, reason=REASON_CASH_EXHAUSTED, details=details)
        return EligibilityResult(eligible=True, details=details)
