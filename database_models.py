import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, Text, JSON, ForeignKey

from database import Base


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """
    User record: identity, cached premium flag and preferences.
    The premium flag is a cache of the premium_users table and is only
    rewritten by entitlement reconciliation or payment completion.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    username = Column(String, nullable=False, default="")
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Cached entitlement
    is_premium = Column(Boolean, nullable=False, default=False)
    premium_since = Column(String, nullable=True)
    stripe_session_id = Column(String, nullable=True)
    stripe_subscription_active = Column(Boolean, nullable=True)
    premium_grant_id = Column(Integer, nullable=True)
    last_verified = Column(String, nullable=True)

    # Preferences
    dietary_restrictions = Column(JSON, nullable=False, default=list)
    serving_size = Column(Integer, nullable=False, default=2)
    theme = Column(String, nullable=False, default="light")

    created_at = Column(String, nullable=False, default=_now_iso)
    updated_at = Column(String, nullable=False, default=_now_iso)


class PremiumGrant(Base):
    """
    Authoritative, email-keyed premium grant.
    Independent of the cached flag on User; no foreign key on purpose so a
    grant can exist before the matching account does.
    """
    __tablename__ = "premium_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    stripe_subscription_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String, nullable=False, default=_now_iso)
    updated_at = Column(String, nullable=False, default=_now_iso)


class SavedRecipe(Base):
    """Recipe book entry."""
    __tablename__ = "saved_recipes"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    meal_type = Column(String, nullable=False, default="")
    ingredients = Column(Text, nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")
    created_at = Column(String, nullable=False, default=_now_iso)


class MealPlanEntry(Base):
    """One meal slot (day + meal type) of a user's weekly plan."""
    __tablename__ = "meal_plan_entries"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day = Column(String, nullable=False)
    meal_type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
