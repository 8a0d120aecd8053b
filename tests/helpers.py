"""
Helpers shared by test modules
"""
from auth_utils import create_jwt

TEST_PASSWORD = "secret-pass"


def auth_headers(user) -> dict:
    """Bearer header for a user (the API also accepts the auth cookie)."""
    return {"Authorization": f"Bearer {create_jwt(str(user.id))}"}
