from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field


@dataclass
class VerificationResult:
    is_premium: bool
    last_verified: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "is_premium": self.is_premium,
            "last_verified": self.last_verified,
            "error": self.error,
        }


class PremiumStatusSnapshot(BaseModel):
    """Premium status the client caches locally after checkout completes."""
    model_config = {"populate_by_name": True}

    is_premium: bool = Field(alias="isPremium")
    timestamp: int
    user_id: int = Field(alias="userId")
    session_id: str = Field(alias="sessionId")
