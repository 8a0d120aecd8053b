"""
Domain exceptions shared by services and routers
"""
from typing import Optional


# Authentication error codes -> user-facing messages
AUTH_ERROR_MESSAGES = {
    "auth/email-already-in-use": "This email is already registered. Please sign in instead.",
    "auth/invalid-login": "Invalid email or password. Please try again.",
    "auth/invalid-email": "Please enter a valid email address.",
    "auth/weak-password": "Password should be at least 6 characters long.",
    "auth/user-not-found": "No account found with this email. Please sign up instead.",
    "auth/user-disabled": "This account has been disabled. Please contact support.",
}
DEFAULT_AUTH_ERROR_MESSAGE = "An error occurred. Please try again."

PAYMENT_SUPPORT_MESSAGE = "Failed to process premium upgrade. Please contact support."
GENERATION_RETRY_MESSAGE = "Failed to generate a response. Please try again."


def get_auth_error_message(code: Optional[str]) -> str:
    """Map an auth error code to the message shown to the user."""
    return AUTH_ERROR_MESSAGES.get(code or "", DEFAULT_AUTH_ERROR_MESSAGE)


class AuthError(Exception):
    """Authentication failure identified by an `auth/...` code."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code

    @property
    def message(self) -> str:
        return get_auth_error_message(self.code)


class NotSignedInError(Exception):
    """Raised when an operation needs a signed-in session and there is none."""


class UserNotFoundError(LookupError):
    """The user record does not exist in the store."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class PaymentFinalizationError(Exception):
    """
    A payment completion step failed.
    Carries the saga journal so the partially applied state can be audited.
    """

    def __init__(self, message: str, step: Optional[str] = None, journal: Optional[list] = None):
        super().__init__(message)
        self.step = step
        self.journal = journal or []


class GenerationError(Exception):
    """The completion API call failed or returned an unusable payload."""

    def __init__(self, message: str = GENERATION_RETRY_MESSAGE):
        super().__init__(message)
