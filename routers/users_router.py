"""
Users Router - profile and preferences for the signed-in user
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from crud.user import UserRepository
from database import get_db
from models.session import SessionContext
from models.user import ProfileUpdate, UserOut
from backend.utils.responses import success_response, error_response
from utils.shared_utils import invalidate_cached

users_router = APIRouter(prefix="/api/users", tags=["users"])

# Fields a user may edit; entitlement fields are written only by reconciliation
EDITABLE_FIELDS = {"username", "dietary_restrictions", "serving_size", "theme"}


@users_router.get("/me")
async def get_profile(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get_user_by_id(session.user_id)
    if user is None:
        return error_response("user_not_found", status=404, message="User not found")
    return success_response(UserOut.model_validate(user).model_dump())


@users_router.patch("/me")
async def update_profile(
    update: ProfileUpdate,
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_id(session.user_id)
    if user is None:
        return error_response("user_not_found", status=404, message="User not found")

    changes = {
        key: value
        for key, value in update.model_dump(exclude_unset=True).items()
        if key in EDITABLE_FIELDS and value is not None
    }
    if changes:
        user = await user_repo.update_user(user, changes)
        invalidate_cached(f"session:{session.user_id}")
    return success_response(UserOut.model_validate(user).model_dump(), message="Profile updated")
