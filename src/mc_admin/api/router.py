"""Admin REST API. Every route requires an administrator."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_admin.application.service import AdminService
from src.mc_common.database import get_db_session
from src.mc_common.enums import DisputeResolution
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import require_admin
from src.mc_gateway.user.db_models import UserModel
from src.mc_ledger.application.schemas import DepositRequest

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()

AdminUser = Annotated[UserModel, Depends(require_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


class ResolveDisputeRequest(BaseModel):
    resolution: DisputeResolution
    penalty_member_id: uuid.UUID | None = None


class VerifyMemberRequest(BaseModel):
    identity_verified: bool | None = None
    phone_verified: bool | None = None
    is_verified_seller: bool | None = None


@router.get("/disputes")
async def list_disputes(admin: AdminUser, db: DbSession, request: Request) -> ApiResponse:
    result = await _service.list_disputes(db)
    return with_request_id(success_response({"items": result}), request)


@router.post("/disputes/{order_id}/resolve")
async def resolve_dispute(
    order_id: uuid.UUID,
    body: ResolveDisputeRequest,
    admin: AdminUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    penalty = str(body.penalty_member_id) if body.penalty_member_id else None
    result = await _service.resolve_dispute(
        str(order_id), body.resolution, str(admin.id), db, penalty_member_id=penalty
    )
    return with_request_id(success_response(result), request)


@router.post("/loans/mark-late")
async def mark_late_installments(admin: AdminUser, db: DbSession, request: Request) -> ApiResponse:
    result = await _service.mark_late_installments(db)
    return with_request_id(success_response(result), request)


@router.get("/reserve")
async def reserve_snapshot(admin: AdminUser, db: DbSession, request: Request) -> ApiResponse:
    result = await _service.reserve_snapshot(db)
    return with_request_id(success_response(result), request)


@router.get("/invariants")
async def verify_invariants(admin: AdminUser, db: DbSession, request: Request) -> ApiResponse:
    result = await _service.verify_invariants(db)
    return with_request_id(success_response(result), request)


@router.post("/members/{member_id}/deposit")
async def deposit(
    member_id: uuid.UUID,
    body: DepositRequest,
    admin: AdminUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    result = await _service.deposit(db, str(member_id), body.amount_cents, body.note, str(admin.id))
    return with_request_id(success_response(result.model_dump()), request)


@router.post("/members/{member_id}/verify")
async def verify_member(
    member_id: uuid.UUID,
    body: VerifyMemberRequest,
    admin: AdminUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    result = await _service.verify_member(
        db, str(member_id), body.identity_verified, body.phone_verified, body.is_verified_seller
    )
    return with_request_id(success_response(result), request)
