"""mc_fees REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_fees.application.schemas import PayFeeRequest
from src.mc_fees.application.service import FeeService
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel

router = APIRouter(prefix="/fees", tags=["fees"])
_service = FeeService()


@router.post("/pay")
async def pay_fee(
    body: PayFeeRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.pay_fee(
        db,
        str(current_user.id),
        body.category,
        body.amount_cents,
        body.description,
        body.reference_id,
    )
    return with_request_id(success_response(data.model_dump()), request)
