"""
PremiumGrantRepository for the authoritative premium_users table
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from database_models import PremiumGrant
from utils.shared_utils import utc_now_iso


class PremiumGrantRepository:
    """
    Repository for premium grant records.
    Emails are normalized to lower case on write and compared lower-cased on
    read, so rows written before normalization still match.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_active_by_email(self, email: str) -> List[PremiumGrant]:
        """Grants for this email with both `active` and `stripe_subscription_active` set."""
        result = await self.db.execute(
            select(PremiumGrant).where(
                func.lower(PremiumGrant.email) == email.lower(),
                PremiumGrant.active.is_(True),
                PremiumGrant.stripe_subscription_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def get_by_email(self, email: str) -> Optional[PremiumGrant]:
        """First grant for this email regardless of its flags."""
        result = await self.db.execute(
            select(PremiumGrant)
            .where(func.lower(PremiumGrant.email) == email.lower())
            .order_by(PremiumGrant.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_grant(self, email: str, user_id: Optional[int] = None) -> PremiumGrant:
        now = utc_now_iso()
        grant = PremiumGrant(
            email=email.lower(),
            user_id=user_id,
            active=True,
            stripe_subscription_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(grant)
        await self.db.flush()
        await self.db.refresh(grant)
        return grant

    async def update_grant(self, grant: PremiumGrant, updates: dict) -> PremiumGrant:
        for key, value in updates.items():
            if hasattr(grant, key):
                setattr(grant, key, value)
        grant.updated_at = utc_now_iso()

        await self.db.flush()
        await self.db.refresh(grant)
        return grant

    async def deactivate_by_email(self, email: str) -> int:
        """
        Mark every grant for this email inactive (subscription cancelled).

        Returns:
            Number of grant rows changed
        """
        result = await self.db.execute(
            select(PremiumGrant).where(func.lower(PremiumGrant.email) == email.lower())
        )
        grants = list(result.scalars().all())
        for grant in grants:
            await self.update_grant(grant, {"active": False, "stripe_subscription_active": False})
        return len(grants)
