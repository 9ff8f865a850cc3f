import hashlib
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """
    User-level profile. The counters are a cache over the user's progress
    records and are rebuilt from them, never incremented independently.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    created_at: datetime
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "user"
    total_points: int = Field(default=0, ge=0)
    challenges_joined: int = Field(default=0, ge=0)
    challenges_completed: int = Field(default=0, ge=0)

    @staticmethod
    def normalized_display_name(user_id: str, display_name: Optional[str] = None) -> str:
        if display_name and display_name.strip():
            return display_name.strip()
        # Deterministic fallback handle
        h = hashlib.sha1(user_id.encode("utf-8")).hexdigest()
        return f"@u_{h[-6:]}"
