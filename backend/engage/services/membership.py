from __future__ import annotations
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from engage.models.circle import Circle, CircleParticipant
from engage.models.user import User
from engage.services.errors import AlreadyMember, NotFound, TenantMismatch

log = structlog.get_logger(__name__)


async def is_member(session: AsyncSession, user_id: UUID, circle_id: UUID) -> bool:
    found = await session.scalar(
        select(CircleParticipant.id).where(
            CircleParticipant.user_id == user_id,
            CircleParticipant.circle_id == circle_id,
        )
    )
    return found is not None


async def join_circle(session: AsyncSession, user_id: UUID, circle_id: UUID) -> CircleParticipant:
    """
    Add the user to the circle.
    Users can only join circles of their own tenant; a user without a tenant joins nothing.
    Duplicate joins are rejected by uq_circle_participant_once, not by a prior read,
    so two concurrent joins cannot both succeed.
    """
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User", user_id)
    circle = await session.get(Circle, circle_id)
    if not circle:
        raise NotFound("Circle", circle_id)
    if user.tenant_id is None or user.tenant_id != circle.tenant_id:
        raise TenantMismatch("User does not belong to the circle's tenant")

    p = CircleParticipant(user_id=user_id, circle_id=circle_id)
    session.add(p)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise AlreadyMember("User is already a member of this circle")
    await session.refresh(p)

    log.info("circle_joined", participation_id=str(p.id), user_id=str(user_id), circle_id=str(circle_id))
    return p


async def get_participation(session: AsyncSession, participation_id: UUID) -> CircleParticipant | None:
    return await session.get(CircleParticipant, participation_id)


async def leave_circle(session: AsyncSession, participation_id: UUID) -> None:
    """
    Hard-delete the membership row.
    Challenge participations, submissions and ledger entries in the circle are kept as history.
    """
    p = await session.scalar(
        select(CircleParticipant).where(CircleParticipant.id == participation_id).with_for_update()
    )
    if not p:
        raise NotFound("Circle participation", participation_id)
    user_id, circle_id = p.user_id, p.circle_id
    await session.delete(p)
    await session.commit()
    log.info("circle_left", participation_id=str(participation_id), user_id=str(user_id), circle_id=str(circle_id))


async def list_circle_members(session: AsyncSession, circle_id: UUID) -> list[tuple[CircleParticipant, User]]:
    circle = await session.get(Circle, circle_id)
    if not circle:
        raise NotFound("Circle", circle_id)
    rows = (await session.execute(
        select(CircleParticipant, User)
        .join(User, User.id == CircleParticipant.user_id)
        .where(CircleParticipant.circle_id == circle_id)
        .order_by(CircleParticipant.joined_at.asc(), CircleParticipant.id.asc())
    )).all()
    return [(p, u) for (p, u) in rows]


async def list_user_circles(session: AsyncSession, user_id: UUID) -> list[tuple[CircleParticipant, Circle]]:
    rows = (await session.execute(
        select(CircleParticipant, Circle)
        .join(Circle, Circle.id == CircleParticipant.circle_id)
        .where(CircleParticipant.user_id == user_id)
        .order_by(Circle.name.asc(), Circle.id.asc())
    )).all()
    return [(p, c) for (p, c) in rows]
