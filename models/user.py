from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class Preferences(BaseModel):
    dietary_restrictions: List[str] = Field(default_factory=list)
    serving_size: int = Field(default=2, ge=1, le=12)
    theme: Literal["light", "dark"] = "light"


class UserOut(BaseModel):
    """User record as returned to the client (no password hash)."""
    model_config = {"from_attributes": True}

    user_id: int = Field(validation_alias="id")
    email: str
    username: str
    is_premium: bool = False
    premium_since: Optional[str] = None
    stripe_session_id: Optional[str] = None
    stripe_subscription_active: Optional[bool] = None
    last_verified: Optional[str] = None
    dietary_restrictions: List[str] = Field(default_factory=list)
    serving_size: int = 2
    theme: str = "light"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=80)
    dietary_restrictions: Optional[List[str]] = None
    serving_size: Optional[int] = Field(default=None, ge=1, le=12)
    theme: Optional[Literal["light", "dark"]] = None
