"""
Entitlement Service - reconciles the cached premium flag with the premium grant table
"""
import logging
from datetime import timedelta, datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.user import UserRepository
from crud.premium import PremiumGrantRepository
from database_models import User
from models.premium import VerificationResult
from backend.utils.errors import UserNotFoundError
from utils.shared_utils import utc_now_iso, parse_iso
from config.settings import settings

logger = logging.getLogger(__name__)


class EntitlementService:
    """
    Service for premium entitlement reconciliation.

    The premium_users table is authoritative. Verification always rewrites the
    user's cached flag and `last_verified`, even when nothing changed, so
    staleness can be measured from `last_verified` alone.
    """

    def __init__(
        self,
        db: AsyncSession,
        user_repo: Optional[UserRepository] = None,
        grant_repo: Optional[PremiumGrantRepository] = None,
    ):
        self.db = db
        self.user_repo = user_repo or UserRepository(db)
        self.grant_repo = grant_repo or PremiumGrantRepository(db)

    async def verify_premium_status(self, user_id: int) -> VerificationResult:
        """
        Recompute entitlement for a user and persist it on the user record.

        Args:
            user_id: ID of the user to verify

        Returns:
            VerificationResult. On any store failure the result is
            is_premium=False with `error` set (fail closed).

        Raises:
            UserNotFoundError: If the user record does not exist
        """
        try:
            # TODO: decide whether a missing user should also fail closed instead of raising
            user = await self.user_repo.get_user_by_id(user_id)
            if user is None:
                raise UserNotFoundError("User not found")

            grants = await self.grant_repo.find_active_by_email(user.email)
            is_premium = len(grants) > 0

            verified_at = utc_now_iso()
            await self.user_repo.update_user(user, {
                "is_premium": is_premium,
                "stripe_subscription_active": is_premium,
                "last_verified": verified_at,
            })
            await self.db.commit()

            logger.info(f"Verified premium status for user {user_id}: is_premium={is_premium}")
            return VerificationResult(is_premium=is_premium, last_verified=verified_at)
        except UserNotFoundError:
            logger.error(f"Premium verification requested for unknown user {user_id}")
            raise
        except Exception as e:
            logger.error(f"Error verifying premium status for user {user_id}: {e}", exc_info=True)
            try:
                await self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback after failed verification also failed: {rollback_error}")
            return VerificationResult(
                is_premium=False,
                last_verified=utc_now_iso(),
                error=str(e) or e.__class__.__name__,
            )

    async def ensure_fresh(self, user: User) -> bool:
        """
        Return the user's entitlement, re-verifying first if the cached flag
        is older than the staleness window.
        """
        if not is_verification_stale(user.last_verified):
            return bool(user.is_premium)

        result = await self.verify_premium_status(user.id)
        if result.error:
            logger.warning(f"Premium re-verification failed for user {user.id}: {result.error}")
        return result.is_premium


def is_verification_stale(last_verified: Optional[str], max_age_seconds: Optional[int] = None) -> bool:
    """True when `last_verified` is missing, unparseable or older than the window."""
    verified_at = parse_iso(last_verified)
    if verified_at is None:
        return True
    max_age = settings.premium_staleness_seconds if max_age_seconds is None else max_age_seconds
    return datetime.now(timezone.utc) - verified_at > timedelta(seconds=max_age)
