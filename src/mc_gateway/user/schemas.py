"""Pydantic request/response schemas for mc_gateway.

All responses are wrapped in ApiResponse at the router layer.
"""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    referral_code: str | None = Field(
        None, max_length=64, description="Username of the member who referred you"
    )

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        """Enforce: at least one uppercase, one lowercase, one digit."""
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one digit")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdateRequest(BaseModel):
    payment_key: str | None = Field(None, min_length=1, max_length=140)
    phone: str | None = Field(None, pattern=r"^\+?[0-9]{8,15}$")


class UserInfo(BaseModel):
    user_id: str
    username: str
    email: str


class ProfileResponse(BaseModel):
    user_id: str
    username: str
    email: str
    score: int
    membership_type: str
    identity_verified: bool
    payment_key_set: bool
    phone_verified: bool
    is_verified_seller: bool
    welcome_benefit_uses: int


class RegisterResponse(BaseModel):
    user_id: str
    username: str
    email: str
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int = 1800
