"""mc_marketplace REST API: listings and the order lifecycle."""

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel
from src.mc_marketplace.application.schemas import (
    ConfirmReceiptRequest,
    CreateListingRequest,
    CreditPurchaseRequest,
    DisputeRequest,
    PurchaseRequest,
    RateOrderRequest,
)
from src.mc_marketplace.application.service import EscrowService

router = APIRouter(prefix="/marketplace", tags=["marketplace"])
_service = EscrowService()

CurrentUser = Annotated[UserModel, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("/listings", status_code=201)
async def create_listing(
    body: CreateListingRequest, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.create_listing(db, str(current_user.id), body)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/listings/{listing_id}")
async def get_listing(
    listing_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.get_listing(db, str(listing_id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders", status_code=201)
async def purchase(
    body: PurchaseRequest, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.purchase_listing(db, str(current_user.id), body)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/credit", status_code=201)
async def purchase_on_credit(
    body: CreditPurchaseRequest, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.purchase_on_credit(db, str(current_user.id), body)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/orders")
async def list_orders(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    role: Literal["buyer", "seller", "courier"] = Query("buyer"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_orders(db, str(current_user.id), role, limit)
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/orders/{order_id}")
async def get_order(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.get_order(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/confirm")
async def confirm_receipt(
    order_id: uuid.UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    body: ConfirmReceiptRequest | None = None,
) -> ApiResponse:
    data = await _service.confirm_receipt(
        db, str(order_id), str(current_user.id), body.verification_code if body else None
    )
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.cancel_order(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/dispute")
async def open_dispute(
    order_id: uuid.UUID,
    body: DisputeRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.open_dispute(db, str(order_id), str(current_user.id), body.reason)
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/rate")
async def rate_order(
    order_id: uuid.UUID,
    body: RateOrderRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.rate_order(
        db, str(order_id), str(current_user.id), body.rating, body.comment
    )
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/ship")
async def mark_shipped(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.mark_shipped(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.post("/orders/{order_id}/anticipate")
async def anticipate(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.anticipate(db, str(order_id), str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)
