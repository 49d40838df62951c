"""mc_credit REST API: limit and eligibility for the caller."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_credit.application.schemas import EligibilityResponse, LimitResponse
from src.mc_credit.application.service import CreditAnalysisService
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel

router = APIRouter(prefix="/credit", tags=["credit"])
_service = CreditAnalysisService()


@router.get("/limit")
async def get_limit(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result, outstanding = await _service.available_credit(db, str(current_user.id))
    data = LimitResponse.from_cents(result.limit, outstanding, result.breakdown.as_dict())
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/eligibility")
async def get_eligibility(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    r = await _service.check_loan_eligibility(db, str(current_user.id))
    data = EligibilityResponse(eligible=r.eligible, reason=r.reason, details=r.details)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/eligibility/extended")
async def get_extended_eligibility(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    r = await _service.check_extended_eligibility(db, str(current_user.id))
    data = EligibilityResponse(eligible=r.eligible, reason=r.reason, details=r.details)
    return with_request_id(success_response(data.model_dump()), request)
