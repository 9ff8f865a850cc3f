from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ecotrac.features.challenges.service import ChallengeService, get_challenge_service
from ecotrac.models.challenge import Challenge

router = APIRouter()


class CreateChallengeRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    duration: int = Field(..., ge=1, description="Number of logical days")
    start_date: datetime
    end_date: Optional[datetime] = None
    impact_metric: Optional[str] = None
    created_by: Optional[str] = None


class JoinRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class CompleteDayRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    day: int = Field(..., ge=1)
    note: Optional[str] = None


class AddNoteRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    day: int = Field(..., ge=1)
    note: str = Field(..., min_length=1)


@router.post("/v1/challenges", status_code=201)
def create_challenge(req: CreateChallengeRequest, service: ChallengeService = Depends(get_challenge_service)):
    challenge = service.create_challenge(**req.model_dump())
    return _challenge_payload(challenge)


@router.get("/v1/challenges")
def list_challenges(service: ChallengeService = Depends(get_challenge_service)):
    return {"challenges": [_challenge_payload(c) for c in service.list_challenges()]}


@router.get("/v1/challenges/{challenge_id}")
def get_challenge(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    return _challenge_payload(service.get_challenge(challenge_id))


@router.post("/v1/challenges/{challenge_id}/join")
def join_challenge(challenge_id: str, req: JoinRequest, service: ChallengeService = Depends(get_challenge_service)):
    """Join a challenge. Joining twice is a no-op reported as already_joined."""
    result = service.join_challenge(challenge_id, req.user_id)
    view = service.describe_progress(challenge_id, req.user_id)
    return {
        "status": "already_joined" if result.already_joined else "joined",
        "progress": view.model_dump(mode="json"),
    }


@router.post("/v1/challenges/{challenge_id}/progress/complete")
def complete_day(challenge_id: str, req: CompleteDayRequest, service: ChallengeService = Depends(get_challenge_service)):
    """Mark a day completed. A repeated day answers 409 duplicate_day."""
    result = service.complete_day(challenge_id, req.user_id, req.day, note=req.note)
    view = service.describe_progress(challenge_id, req.user_id)
    return {
        "status": "completed",
        "day": result.day,
        "points_awarded": result.points_awarded,
        "newly_unlocked": result.newly_unlocked,
        "progress": view.model_dump(mode="json"),
    }


@router.post("/v1/challenges/{challenge_id}/progress/notes")
def add_note(challenge_id: str, req: AddNoteRequest, service: ChallengeService = Depends(get_challenge_service)):
    record = service.add_note(challenge_id, req.user_id, req.day, req.note)
    return {
        "status": "noted",
        "notes": [
            {"day": n.day, "note": n.note, "timestamp": n.timestamp.isoformat()}
            for n in record.notes
        ],
    }


@router.get("/v1/challenges/{challenge_id}/progress")
def get_progress(
    challenge_id: str,
    user_id: str = Query(..., min_length=1),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Progress for one user; users who have not joined get a zero view."""
    return service.describe_progress(challenge_id, user_id).model_dump(mode="json")


@router.get("/v1/challenges/{challenge_id}/leaderboard")
def get_leaderboard(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    return service.leaderboard(challenge_id).model_dump(mode="json")


def _challenge_payload(challenge: Challenge) -> dict:
    return {
        "challenge_id": challenge.challenge_id,
        "title": challenge.title,
        "description": challenge.description,
        "category": challenge.category,
        "duration": challenge.duration,
        "start_date": challenge.start_date.isoformat(),
        "end_date": challenge.end_date.isoformat(),
        "impact_metric": challenge.impact_metric,
        "created_by": challenge.created_by,
        "participant_count": challenge.participant_count,
        "participants": list(challenge.participants),
    }
