from __future__ import annotations
from pydantic import BaseModel
from typing import Literal
from uuid import UUID
from datetime import datetime

ParticipationStatus = Literal["Pending", "Completed"]

class ChallengeJoinRequest(BaseModel):
    # Omit to join yourself; moderators may enrol another user
    user_id: UUID | None = None

class ChallengeParticipationPublic(BaseModel):
    id: UUID
    user_id: UUID
    challenge_id: UUID
    status: ParticipationStatus
    earned_points: int | None = None
    joined_at: datetime

class ChallengeStatusPublic(BaseModel):
    user_id: UUID
    challenge_id: UUID
    status: ParticipationStatus | None = None  # None = not joined

class ParticipantWithUser(BaseModel):
    participation_id: UUID
    user_id: UUID
    name: str
    status: ParticipationStatus
    earned_points: int | None = None
    joined_at: datetime

class UserChallengeStatus(BaseModel):
    participation_id: UUID
    challenge_id: UUID
    status: ParticipationStatus
    earned_points: int | None = None
