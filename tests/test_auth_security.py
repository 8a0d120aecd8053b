"""
Security tests for authentication module.

Tests cover:
- Password strength validation (minimum length)
- JWT security (missing secret key)
- Token expiration handling
- Error code to message mapping
"""
import pytest
from unittest.mock import patch

from auth_utils import create_jwt, create_expired_jwt, decode_jwt
from backend.utils.errors import AuthError, get_auth_error_message, DEFAULT_AUTH_ERROR_MESSAGE
from utils.security_utils import validate_password_strength, validate_email


def test_password_at_minimum_length_accepted():
    validate_password_strength("123456")


def test_weak_password_rejected():
    with pytest.raises(AuthError) as exc_info:
        validate_password_strength("12345")

    assert exc_info.value.code == "auth/weak-password"
    assert exc_info.value.message == "Password should be at least 6 characters long."


@pytest.mark.parametrize("email", ["", "plainaddress", "user@", "user@host", "@example.com"])
def test_invalid_email_rejected(email):
    with pytest.raises(AuthError) as exc_info:
        validate_email(email)
    assert exc_info.value.code == "auth/invalid-email"


def test_unknown_error_code_gets_default_message():
    assert get_auth_error_message("auth/something-new") == DEFAULT_AUTH_ERROR_MESSAGE
    assert get_auth_error_message("auth/user-disabled") == "This account has been disabled. Please contact support."


def test_jwt_security_missing_key():
    """
    create_jwt() raises a ValueError if settings.jwt_secret_key is None or empty.
    """
    with patch('auth_utils.settings.jwt_secret_key', None):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id")

    with patch('auth_utils.settings.jwt_secret_key', ""):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY is not set"):
            create_jwt("test_user_id")


def test_expired_token_does_not_decode():
    token = create_expired_jwt("42", expired_seconds_ago=1)
    assert decode_jwt(token) is None
    assert decode_jwt(create_jwt("42"))["sub"] == "42"


@pytest.mark.asyncio
async def test_authentication_failure_expired_token(async_client, make_user):
    """
    An endpoint protected by get_current_user returns HTTP 401 when given an
    expired JWT, via cookie or Authorization header.
    """
    user = await make_user(email="expired@example.com")
    expired_token = create_expired_jwt(str(user.id), expired_seconds_ago=1)

    response = await async_client.get("/api/auth/me", cookies={"auth_token": expired_token})
    assert response.status_code == 401
    assert "invalid" in response.json()["detail"].lower()

    response = await async_client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {expired_token}"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_valid_bearer_token_reaches_me(async_client, make_user):
    user = await make_user(email="bearer@example.com", username="bearer")

    response = await async_client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {create_jwt(str(user.id))}"}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user_id"] == user.id
    assert data["email"] == "bearer@example.com"
    assert "hashed_password" not in data
