"""Member identity service: register, login, refresh, profile.

All DB operations use the injected AsyncSession. Transactions are managed
by the caller (router layer).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.mc_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.mc_gateway.auth.password import hash_password, verify_password
from src.mc_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    """Stateless service; instantiate once, reuse across requests."""

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        referral_code: str | None = None,
    ) -> UserModel:
        """Create a member with zero balance, zero score and no quotas.

        An unknown referral code is ignored rather than rejected.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        result = await db.execute(
            select(UserModel).where(UserModel.email == email)
        )
        if result.scalar_one_or_none() is not None:
            raise EmailExistsError()

        referred_by = None
        if referral_code:
            result = await db.execute(
                select(UserModel.id).where(UserModel.username == referral_code)
            )
            referred_by = result.scalar_one_or_none()

        user = UserModel(
            username=username,
            email=email,
            password_hash=hash_password(password),
            is_active=True,
            referred_by=referred_by,
        )
        db.add(user)
        await db.flush()
        logger.info("Member registered: %s (referred=%s)", user.id, referred_by is not None)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        Unknown user and wrong password raise the same error.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id)),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str) -> str:
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))

    async def update_profile(
        self,
        user: UserModel,
        payment_key: str | None,
        phone: str | None,
        db: AsyncSession,
    ) -> UserModel:
        """Set the payout key and/or phone.

        Changing the phone number clears phone_verified; verification itself
        is an admin action.
        """
        if payment_key is not None:
            user.payment_key = payment_key
        if phone is not None and phone != user.phone:
            user.phone = phone
            user.phone_verified = False
        await db.flush()
        return user
