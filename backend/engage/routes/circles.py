from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from engage.db import get_session
from engage.auth_deps import get_current_user, acting_for, user_in_tenant, circle_in_tenant
from engage.models.circle import Circle
from engage.models.user import User
from engage.schemas.circle import CircleJoinRequest, CircleParticipationPublic, CircleMember, UserCircle, MembershipCheck
from engage.services import membership
from engage.services.errors import NotFound

router = APIRouter(prefix="/circles", tags=["circles"])

@router.post("/{circle_id}/participants", response_model=CircleParticipationPublic, status_code=201)
async def join_circle(
    circle_id: UUID,
    payload: CircleJoinRequest | None = Body(default=None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    target = await acting_for(session, user, payload.user_id if payload else None)
    p = await membership.join_circle(session, target, circle_id)
    return CircleParticipationPublic(id=p.id, user_id=p.user_id, circle_id=p.circle_id, joined_at=p.joined_at)

@router.delete("/participants/{participation_id}")
async def leave_circle(
    participation_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    p = await membership.get_participation(session, participation_id)
    if p is not None and p.user_id != user.id:
        if user.role != "moderator":
            raise HTTPException(status_code=403, detail="Cannot remove another user's membership")
        circle_tenant = await session.scalar(select(Circle.tenant_id).where(Circle.id == p.circle_id))
        if circle_tenant != user.tenant_id:
            raise NotFound("Circle participation", participation_id)
    await membership.leave_circle(session, participation_id)
    return {"status": "left", "participation_id": str(participation_id)}

@router.get("/{circle_id}/participants", response_model=list[CircleMember])
async def list_members(circle_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await circle_in_tenant(session, user, circle_id)
    rows = await membership.list_circle_members(session, circle_id)
    return [
        CircleMember(participation_id=p.id, user_id=u.id, name=u.name, joined_at=p.joined_at)
        for (p, u) in rows
    ]

@router.get("/{circle_id}/membership", response_model=MembershipCheck)
async def check_membership(
    circle_id: UUID,
    user_id: UUID | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await circle_in_tenant(session, user, circle_id)
    uid = (await user_in_tenant(session, user, user_id)).id if user_id else user.id
    return MembershipCheck(user_id=uid, circle_id=circle_id, is_member=await membership.is_member(session, uid, circle_id))

@router.get("/by-user/{user_id}", response_model=list[UserCircle])
async def list_user_circles(user_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    await user_in_tenant(session, user, user_id)
    rows = await membership.list_user_circles(session, user_id)
    return [
        UserCircle(participation_id=p.id, circle_id=c.id, circle_name=c.name, joined_at=p.joined_at)
        for (p, c) in rows
    ]
