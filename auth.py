"""
Authentication routes and dependencies
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Header, Depends, Cookie
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from database_models import User
from crud.user import UserRepository
from auth_utils import hash_password, verify_password, create_jwt, decode_jwt
from models.session import SessionContext
from models.user import UserOut
from services.entitlement_service import EntitlementService
from services.status_poller import PollerRegistry, poller_registry
from backend.utils.errors import AuthError, get_auth_error_message
from backend.utils.responses import error_response
from utils.shared_utils import get_cached, invalidate_cached, log_endpoint_event
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

AUTH_COOKIE = "auth_token"
# JWT expiration is 7 days = 604800 seconds
AUTH_COOKIE_MAX_AGE = 604800
SESSION_CACHE_TTL = 300


# Request models
class SignupRequest(BaseModel):
    email: str
    password: str
    username: str = Field(default="", max_length=80)


class LoginRequest(BaseModel):
    email: str
    password: str


def get_poller_registry() -> PollerRegistry:
    """Dependency returning the process-wide poller registry (overridable in tests)."""
    return poller_registry


def auth_error_response(error: AuthError, status: int = 400) -> JSONResponse:
    data = {}
    if error.code == "auth/email-already-in-use":
        # The client switches the form to sign-in mode
        data["switch_to_login"] = True
    return error_response(error.code, status=status, message=error.message, data=data)


def _session_response(user: User, entitlement: dict, status: int = 200) -> JSONResponse:
    token = create_jwt(str(user.id))
    response = JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "data": {
                "user": UserOut.model_validate(user).model_dump(),
                "entitlement": entitlement,
            },
            "error": None,
            "message": "OK",
        }
    )
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=AUTH_COOKIE_MAX_AGE
    )
    return response


@auth_router.post("/signup")
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
    registry: PollerRegistry = Depends(get_poller_registry),
):
    """Create a new user account and reconcile entitlement for its email"""
    try:
        validate_email(request.email)
        validate_password_strength(request.password)

        user_repo = UserRepository(db)

        existing_user = await user_repo.get_user_by_email(request.email.strip().lower())
        if existing_user:
            raise AuthError("auth/email-already-in-use")

        user = await user_repo.create_user({
            "email": request.email.strip().lower(),
            "username": request.username.strip(),
            "hashed_password": hash_password(request.password),
            "is_active": True,
        })
        await db.commit()

        # A grant may already exist for this email (e.g. re-created account)
        result = await EntitlementService(db, user_repo).verify_premium_status(user.id)
        await db.refresh(user)
        await registry.ensure_started(user.id, initial=result)

        log_endpoint_event("/api/auth/signup", str(user.id), "success", {"is_premium": result.is_premium})
        return _session_response(user, result.to_dict())
    except AuthError as e:
        log_endpoint_event("/api/auth/signup", None, "error", {"code": e.code})
        return auth_error_response(e)


@auth_router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    registry: PollerRegistry = Depends(get_poller_registry),
):
    """Login, re-verify entitlement and set the session cookie"""
    try:
        user_repo = UserRepository(db)

        user = await user_repo.get_user_by_email(request.email.strip().lower())
        if not user or not verify_password(request.password, user.hashed_password):
            raise AuthError("auth/invalid-login")

        if not user.is_active:
            raise AuthError("auth/user-disabled")

        result = await EntitlementService(db, user_repo).verify_premium_status(user.id)
        await db.refresh(user)
        await registry.ensure_started(user.id, initial=result)

        log_endpoint_event("/api/auth/login", str(user.id), "success", {"is_premium": result.is_premium})
        return _session_response(user, result.to_dict())
    except AuthError as e:
        log_endpoint_event("/api/auth/login", None, "error", {"code": e.code})
        return auth_error_response(e, status=401)


@auth_router.post("/logout")
async def logout(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
    registry: PollerRegistry = Depends(get_poller_registry),
):
    """Logout, stop premium polling and clear auth token cookie"""
    user_id = _user_id_from_token(_extract_token(auth_token, authorization))
    if user_id is not None:
        registry.stop(user_id)
        invalidate_cached(f"session:{user_id}")

    response = JSONResponse(
        content={
            "ok": True,
            "data": {},
            "error": None,
            "message": "Logged out successfully"
        }
    )
    # Clear the auth_token cookie by setting max_age=0
    response.set_cookie(
        key=AUTH_COOKIE,
        value="",
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=0
    )
    return response


def _extract_token(auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Cookie first (browser clients), then Bearer header (API consumers)."""
    if auth_token:
        return auth_token
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "").strip()
    return None


def _user_id_from_token(token: Optional[str]) -> Optional[int]:
    if not token:
        return None
    payload = decode_jwt(token)
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (ValueError, TypeError):
        return None


async def _load_session(user_id: int, db: AsyncSession) -> dict:
    """Identity fields for a user id, cached. Entitlement is never cached here."""
    async def fetch_identity():
        user = await UserRepository(db).get_user_by_id(user_id)
        if not user:
            raise HTTPException(status_code=401, detail=get_auth_error_message("auth/user-not-found"))
        return {
            "id": user.id,
            "email": user.email,
            "username": user.username,
            "is_active": user.is_active,
        }

    return await get_cached(
        key=f"session:{user_id}",
        fallback_func=fetch_identity,
        ttl_seconds=SESSION_CACHE_TTL
    )


async def get_optional_session(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db)
) -> Optional[SessionContext]:
    """Signed-in session if a valid token is present, else None."""
    user_id = _user_id_from_token(_extract_token(auth_token, authorization))
    if user_id is None:
        return None
    identity = await _load_session(user_id, db)
    if not identity["is_active"]:
        return None
    return SessionContext(user_id=identity["id"], email=identity["email"], username=identity["username"])


# Dependency for protected routes
async def get_current_user(
    session: Optional[SessionContext] = Depends(get_optional_session),
) -> SessionContext:
    """
    Dependency function to get current authenticated user.

    Authentication priority:
    1. Check auth_token cookie first (httpOnly cookie set by login/signup)
    2. Fallback to Authorization header (Bearer token) for API consumers
    3. Raise 401 if neither yields an active user
    """
    if session is None:
        raise HTTPException(status_code=401, detail="Missing or invalid authentication token")
    return session


async def require_premium(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    """
    Gate for premium features. The cached flag is only trusted while its
    last verification is inside the staleness window; otherwise it is
    re-verified against the grant table first.
    """
    user = await UserRepository(db).get_user_by_id(session.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail=get_auth_error_message("auth/user-not-found"))

    if not await EntitlementService(db).ensure_fresh(user):
        raise HTTPException(status_code=403, detail="Premium subscription required")
    return session


@auth_router.get("/me")
async def get_current_user_info(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get current user record (without password hash)"""
    user = await UserRepository(db).get_user_by_id(session.user_id)
    if not user:
        raise HTTPException(status_code=401, detail=get_auth_error_message("auth/user-not-found"))
    return {
        "ok": True,
        "data": UserOut.model_validate(user).model_dump(),
        "error": None,
        "message": "OK",
    }
