"""Auth API router: register, login, refresh, profile.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mc_common.database import get_db_session
from src.mc_common.response import ApiResponse, success_response, with_request_id
from src.mc_gateway.auth.dependencies import get_current_user
from src.mc_gateway.user.db_models import UserModel
from src.mc_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from src.mc_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()


def _profile(user: UserModel) -> ProfileResponse:
    return ProfileResponse(
        user_id=str(user.id),
        username=user.username,
        email=user.email,
        score=user.score,
        membership_type=user.membership_type,
        identity_verified=user.identity_verified,
        payment_key_set=bool(user.payment_key),
        phone_verified=user.phone_verified,
        is_verified_seller=user.is_verified_seller,
        welcome_benefit_uses=user.welcome_benefit_uses,
    )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="Member registration",
)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db, body.referral_code
        )

    data = RegisterResponse(
        user_id=str(user.id),
        username=user.username,
        email=user.email,
        created_at=user.created_at.isoformat(),
    )
    resp = success_response(data.model_dump())
    resp.message = "User registered successfully"
    return with_request_id(resp, request)


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Member login",
)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)

    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="Bearer",
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        user=UserInfo(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
        ),
    )
    resp = success_response(data.model_dump())
    resp.message = "Login successful"
    return with_request_id(resp, request)


@router.post(
    "/refresh",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Refresh access token",
)
async def refresh_token(
    request: Request,
    body: RefreshRequest,
) -> ApiResponse:
    new_access_token = await _service.refresh(body.refresh_token)

    data = RefreshResponse(
        access_token=new_access_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )
    resp = success_response(data.model_dump())
    resp.message = "Token refreshed"
    return with_request_id(resp, request)


@router.get("/me", response_model=ApiResponse, summary="Current member profile")
async def me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return with_request_id(success_response(_profile(current_user).model_dump()), request)


@router.put("/me", response_model=ApiResponse, summary="Update payout key / phone")
async def update_me(
    request: Request,
    body: ProfileUpdateRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    try:
        user = await _service.update_profile(current_user, body.payment_key, body.phone, db)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return with_request_id(success_response(_profile(user).model_dump()), request)
