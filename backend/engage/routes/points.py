from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from engage.db import get_session
from engage.auth_deps import get_current_user, user_in_tenant
from engage.config import settings
from engage.models.user import User
from engage.schemas.ledger import LeaderboardRow, PointsTotal, PointsHistory, LedgerEntryPublic
from engage.services import ledger

router = APIRouter(prefix="/points", tags=["points"])

@router.get("/leaderboard/top", response_model=list[LeaderboardRow])
async def leaderboard(
    n: int = Query(default=settings.leaderboard_default_size, ge=1, le=settings.leaderboard_max_size),
    tenant_id: UUID | None = Query(default=None, alias="tenantId"),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    # Employees only see their own tenant; moderators may ask for any
    scope = tenant_id if (tenant_id and user.role == "moderator") else user.tenant_id
    if scope is None:
        return []
    rows = await ledger.top(session, n, scope)
    return [
        LeaderboardRow(rank=i, user_id=uid, name=name, total_points=total)
        for i, (uid, name, total) in enumerate(rows, start=1)
    ]

@router.get("/{user_id}", response_model=PointsTotal)
async def total_points(user_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await user_in_tenant(session, user, user_id)
    return PointsTotal(user_id=user_id, total_points=await ledger.get_total(session, user_id))

@router.get("/{user_id}/entries", response_model=PointsHistory)
async def points_history(user_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await user_in_tenant(session, user, user_id)
    entries = await ledger.entries_for_user(session, user_id)
    return PointsHistory(
        user_id=user_id,
        total_points=await ledger.get_total(session, user_id),
        entries=[
            LedgerEntryPublic(
                id=e.id,
                user_id=e.user_id,
                challenge_id=e.challenge_id,
                submission_id=e.submission_id,
                points=int(e.points),
                awarded_at=e.awarded_at,
            ) for e in entries
        ],
    )
