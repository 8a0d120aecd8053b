"""
Credential validation for sign-up and sign-in
"""
import re

from backend.utils.errors import AuthError

MIN_PASSWORD_LENGTH = 6

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def validate_email(email: str) -> None:
    """
    Validate email format.

    Raises:
        AuthError: auth/invalid-email
    """
    if not email or not EMAIL_PATTERN.match(email.strip()):
        raise AuthError("auth/invalid-email")


def validate_password_strength(password: str) -> None:
    """
    Validate password strength.

    Raises:
        AuthError: auth/weak-password when shorter than MIN_PASSWORD_LENGTH
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError("auth/weak-password")
