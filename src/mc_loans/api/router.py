"""mc_loans REST API: the caller's loans and installment repayment."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel
from src.mc_loans.application.service import LoanService

router = APIRouter(prefix="/loans", tags=["loans"])
_service = LoanService()


@router.get("")
async def list_loans(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_loans(db, str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/{loan_id}")
async def get_loan(
    loan_id: uuid.UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_loan(db, str(current_user.id), str(loan_id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{loan_id}/installments/{number}/pay")
async def pay_installment(
    loan_id: uuid.UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    number: int = Path(..., ge=1, le=24),
) -> ApiResponse:
    data = await _service.pay_installment(
        db, str(current_user.id), str(loan_id), number
    )
    return with_request_id(success_response(data.model_dump()), request)
