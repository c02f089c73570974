from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

class CircleJoinRequest(BaseModel):
    # Omit to join yourself; moderators may enrol another user of their tenant
    user_id: UUID | None = None

class CircleParticipationPublic(BaseModel):
    id: UUID
    user_id: UUID
    circle_id: UUID
    joined_at: datetime

class CircleMember(BaseModel):
    participation_id: UUID
    user_id: UUID
    name: str
    joined_at: datetime

class UserCircle(BaseModel):
    participation_id: UUID
    circle_id: UUID
    circle_name: str
    joined_at: datetime

class MembershipCheck(BaseModel):
    user_id: UUID
    circle_id: UUID
    is_member: bool
