from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

class LedgerEntryPublic(BaseModel):
    id: UUID
    user_id: UUID
    challenge_id: UUID
    submission_id: UUID | None = None
    points: int
    awarded_at: datetime

class PointsTotal(BaseModel):
    user_id: UUID
    total_points: int

class LeaderboardRow(BaseModel):
    rank: int
    user_id: UUID
    name: str
    total_points: int

class PointsHistory(BaseModel):
    user_id: UUID
    total_points: int
    entries: list[LedgerEntryPublic]
