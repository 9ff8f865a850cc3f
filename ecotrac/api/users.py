from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ecotrac.features.challenges.service import ChallengeService, get_challenge_service

router = APIRouter()


class RegisterRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Email or other unique identifier")
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@router.post("/v1/users")
def register_user(req: RegisterRequest, service: ChallengeService = Depends(get_challenge_service)):
    profile = service.users.get_or_create_profile(
        req.user_id, display_name=req.display_name, avatar_url=req.avatar_url
    )
    return profile.model_dump(mode="json")


@router.get("/v1/users/{user_id}")
def get_user(user_id: str, service: ChallengeService = Depends(get_challenge_service)):
    return service.users.get_profile(user_id).model_dump(mode="json")


@router.get("/v1/users/{user_id}/stats")
def get_user_stats(user_id: str, service: ChallengeService = Depends(get_challenge_service)):
    """Statistics derived from progress records, never from profile counters."""
    return service.user_summary(user_id).model_dump(mode="json")
