from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession

from engage.db import get_session
from engage.auth_deps import get_current_user, acting_for, user_in_tenant, challenge_in_tenant
from engage.models.user import User
from engage.schemas.challenge import (
    ChallengeJoinRequest,
    ChallengeParticipationPublic,
    ChallengeStatusPublic,
    ParticipantWithUser,
    UserChallengeStatus,
)
from engage.services import participation

router = APIRouter(prefix="/challenges", tags=["challenges"])

@router.post("/{challenge_id}/participants", response_model=ChallengeParticipationPublic, status_code=201)
async def join_challenge(
    challenge_id: UUID,
    payload: ChallengeJoinRequest | None = Body(default=None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    target = await acting_for(session, user, payload.user_id if payload else None)
    p = await participation.join_challenge(session, target, challenge_id)
    return ChallengeParticipationPublic(
        id=p.id,
        user_id=p.user_id,
        challenge_id=p.challenge_id,
        status=p.status,
        earned_points=p.earned_points,
        joined_at=p.joined_at,
    )

@router.get("/{challenge_id}/status", response_model=ChallengeStatusPublic)
async def get_status(
    challenge_id: UUID,
    user_id: UUID | None = Query(default=None, description="defaults to the caller"),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await challenge_in_tenant(session, user, challenge_id)
    uid = (await user_in_tenant(session, user, user_id)).id if user_id else user.id
    status = await participation.get_status(session, uid, challenge_id)
    return ChallengeStatusPublic(user_id=uid, challenge_id=challenge_id, status=status)

@router.get("/{challenge_id}/participants", response_model=list[ParticipantWithUser])
async def list_participants(challenge_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await challenge_in_tenant(session, user, challenge_id)
    rows = await participation.list_challenge_participants(session, challenge_id)
    return [
        ParticipantWithUser(
            participation_id=p.id, user_id=u.id, name=u.name,
            status=p.status, earned_points=p.earned_points, joined_at=p.joined_at,
        ) for (p, u) in rows
    ]

@router.get("/by-user/{user_id}/status", response_model=list[UserChallengeStatus])
async def list_user_statuses(user_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await user_in_tenant(session, user, user_id)
    parts = await participation.list_user_participations(session, user_id)
    return [
        UserChallengeStatus(participation_id=p.id, challenge_id=p.challenge_id, status=p.status, earned_points=p.earned_points)
        for p in parts
    ]
