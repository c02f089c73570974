from __future__ import annotations
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from engage.models.challenge import Challenge, ChallengeParticipant, PARTICIPATION_PENDING
from engage.models.circle import CircleParticipant
from engage.models.user import User
from engage.services.errors import AlreadyJoined, NotCircleMember, NotFound

log = structlog.get_logger(__name__)


async def join_challenge(session: AsyncSession, user_id: UUID, challenge_id: UUID) -> ChallengeParticipant:
    ch = await session.get(Challenge, challenge_id)
    if not ch:
        raise NotFound("Challenge", challenge_id)

    # Lock the membership row so a concurrent leave can't slip in between the check and the insert
    membership = await session.scalar(
        select(CircleParticipant)
        .where(CircleParticipant.user_id == user_id, CircleParticipant.circle_id == ch.circle_id)
        .with_for_update()
    )
    if not membership:
        raise NotCircleMember("Join the challenge's circle first")

    p = ChallengeParticipant(user_id=user_id, challenge_id=ch.id, status=PARTICIPATION_PENDING)
    session.add(p)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise AlreadyJoined("User has already joined this challenge")
    await session.refresh(p)

    log.info("challenge_joined", participation_id=str(p.id), user_id=str(user_id), challenge_id=str(challenge_id))
    return p


async def get_status(session: AsyncSession, user_id: UUID, challenge_id: UUID) -> str | None:
    return await session.scalar(
        select(ChallengeParticipant.status).where(
            ChallengeParticipant.user_id == user_id,
            ChallengeParticipant.challenge_id == challenge_id,
        )
    )


async def list_challenge_participants(session: AsyncSession, challenge_id: UUID) -> list[tuple[ChallengeParticipant, User]]:
    ch = await session.get(Challenge, challenge_id)
    if not ch:
        raise NotFound("Challenge", challenge_id)
    rows = (await session.execute(
        select(ChallengeParticipant, User)
        .join(User, User.id == ChallengeParticipant.user_id)
        .where(ChallengeParticipant.challenge_id == challenge_id)
        .order_by(ChallengeParticipant.joined_at.asc(), ChallengeParticipant.id.asc())
        .execution_options(populate_existing=True)
    )).all()
    return [(p, u) for (p, u) in rows]


async def list_user_participations(session: AsyncSession, user_id: UUID) -> list[ChallengeParticipant]:
    return list((await session.execute(
        select(ChallengeParticipant)
        .where(ChallengeParticipant.user_id == user_id)
        .order_by(ChallengeParticipant.joined_at.asc(), ChallengeParticipant.id.asc())
        .execution_options(populate_existing=True)
    )).scalars().all())
