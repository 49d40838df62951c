"""Unit tests for mc_gateway Pydantic schemas."""

import pytest
from pydantic import ValidationError

from src.mc_gateway.user.schemas import ProfileUpdateRequest, RegisterRequest


class TestRegisterRequest:
    def test_valid_input(self) -> None:
        req = RegisterRequest(
            username="alice", email="alice@example.com", password="SecureP4ss"
        )
        assert req.referral_code is None

    def test_referral_code_optional(self) -> None:
        req = RegisterRequest(
            username="bob",
            email="bob@example.com",
            password="SecureP4ss",
            referral_code="alice",
        )
        assert req.referral_code == "alice"

    def test_username_invalid_chars(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice!", email="a@example.com", password="SecureP4ss")

    def test_invalid_email(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", email="not-an-email", password="SecureP4ss")

    def test_password_needs_digit(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", email="a@example.com", password="NoDigitsHere")

    def test_password_needs_uppercase(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", email="a@example.com", password="alllower1")


class TestProfileUpdateRequest:
    def test_phone_format(self) -> None:
        assert ProfileUpdateRequest(phone="+5511999990000").phone == "+5511999990000"
        with pytest.raises(ValidationError):
            ProfileUpdateRequest(phone="call me")

    def test_empty_payment_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProfileUpdateRequest(payment_key="")
