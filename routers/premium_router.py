"""
Premium Router - entitlement status for the signed-in user
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, get_poller_registry
from database import get_db
from models.session import SessionContext
from services.entitlement_service import EntitlementService
from services.status_poller import PollerRegistry
from backend.utils.errors import UserNotFoundError
from backend.utils.responses import success_response, error_response

premium_router = APIRouter(prefix="/api/premium", tags=["premium"])


@premium_router.get("/status")
async def premium_status(
    session: SessionContext = Depends(get_current_user),
    registry: PollerRegistry = Depends(get_poller_registry),
):
    """Current poller state; polling starts on first read if it is not running."""
    poller = await registry.ensure_started(session.user_id)
    return success_response(poller.snapshot())


@premium_router.post("/verify")
async def verify_premium(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Force a verification now."""
    try:
        result = await EntitlementService(db).verify_premium_status(session.user_id)
    except UserNotFoundError as e:
        return error_response("user_not_found", status=404, message=str(e))
    return success_response(result.to_dict())
