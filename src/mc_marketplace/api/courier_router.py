"""Courier mission REST API."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel
from src.mc_marketplace.application.courier_service import CourierService
from src.mc_marketplace.application.schemas import LocationPing, PickupRequest

router = APIRouter(prefix="/logistics/missions", tags=["logistics"])
_service = CourierService()

CurrentUser = Annotated[UserModel, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("")
async def list_missions(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    limit: int = Query(50, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_missions(db, limit)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{order_id}/accept")
async def accept_mission(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.accept_mission(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{order_id}/pickup")
async def confirm_pickup(
    order_id: uuid.UUID,
    body: PickupRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.confirm_pickup(db, str(order_id), str(current_user.id), body.pickup_code)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{order_id}/location")
async def ping_location(
    order_id: uuid.UUID,
    body: LocationPing,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.ping_location(
        db, str(order_id), str(current_user.id), body.lat, body.lng
    )
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{order_id}/delivered")
async def mark_delivered(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.mark_delivered(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/{order_id}/release")
async def release_mission(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.release_mission(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)
