"""mc_quotas REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel
from src.mc_quotas.application.schemas import BuyQuotasRequest
from src.mc_quotas.application.service import QuotaService

router = APIRouter(prefix="/quotas", tags=["quotas"])
_service = QuotaService()


@router.get("")
async def list_quotas(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_quotas(db, str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("")
async def buy_quotas(
    body: BuyQuotasRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.purchase_quotas(db, str(current_user.id), body.count)
    return with_request_id(success_response(data.model_dump()), request)
