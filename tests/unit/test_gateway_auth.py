"""Unit tests for JWT handling and bcrypt password hashing."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from jose import jwt

from src.mc_common.errors import InvalidCredentialsError, InvalidRefreshTokenError
from src.mc_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.mc_gateway.auth.password import hash_password, verify_password


class TestTokens:
    def test_access_token_claims(self) -> None:
        payload = jwt.get_unverified_claims(create_access_token("member-123"))
        assert payload["sub"] == "member-123"
        assert payload["type"] == "access"

    def test_refresh_round_trip(self) -> None:
        payload = decode_token(create_refresh_token("member-123"), expected_type="refresh")
        assert payload["sub"] == "member-123"

    def test_refresh_token_is_not_an_access_token(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token(create_refresh_token("member-123"), expected_type="access")

    def test_access_token_is_not_a_refresh_token(self) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            decode_token(create_access_token("member-123"), expected_type="refresh")

    def test_expired_access_token(self) -> None:
        with patch("src.mc_gateway.auth.jwt_handler._ACCESS_EXPIRE", timedelta(seconds=-1)):
            token = create_access_token("member-123")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token, expected_type="access")

    def test_tampered_token(self) -> None:
        token = create_access_token("member-123")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token[:-2] + "xx", expected_type="access")


class TestPasswords:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("MySecret1")
        assert hashed != "MySecret1"
        assert verify_password("MySecret1", hashed)
        assert not verify_password("WrongPass9", hashed)

    def test_salted(self) -> None:
        assert hash_password("MySecret1") != hash_password("MySecret1")
