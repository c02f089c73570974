from __future__ import annotations
import uuid
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from engage.models.ledger import PointsLedgerEntry, UserPoints
from engage.models.user import User

log = structlog.get_logger(__name__)


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT construct (both support ON CONFLICT)."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"unsupported database dialect for ledger writes: {dialect}")
    return insert

# ---------- writes (approval path only) ----------

async def credit_challenge_once(
    session: AsyncSession,
    *,
    user_id: UUID,
    challenge_id: UUID,
    submission_id: UUID,
    points: int,
) -> bool:
    """
    Credit a challenge's points to the user unless that (user, challenge) was already paid.
    Does not commit: the caller's approval transaction covers the entry and the running total.
    Returns True if points were credited, False if an entry already existed.
    """
    if points <= 0:
        raise ValueError("points must be > 0")
    insert = _insert_for(session)

    # uq_points_ledger_once_per_challenge decides, so a concurrent approval can't double-credit
    entry_id = await session.scalar(
        insert(PointsLedgerEntry)
        .values(
            id=uuid.uuid4(),
            user_id=user_id,
            challenge_id=challenge_id,
            submission_id=submission_id,
            points=int(points),
        )
        .on_conflict_do_nothing(index_elements=["user_id", "challenge_id"])
        .returning(PointsLedgerEntry.id)
    )
    if entry_id is None:
        log.warning("points_credit_skipped", user_id=str(user_id), challenge_id=str(challenge_id), submission_id=str(submission_id))
        return False

    await session.execute(
        insert(UserPoints)
        .values(user_id=user_id, total_points=int(points))
        .on_conflict_do_update(
            index_elements=["user_id"],
            set_={"total_points": UserPoints.total_points + int(points), "updated_at": func.now()},
        )
    )
    log.info("points_credited", entry_id=str(entry_id), user_id=str(user_id), challenge_id=str(challenge_id), points=int(points))
    return True

# ---------- reads ----------

async def get_total(session: AsyncSession, user_id: UUID) -> int:
    total = await session.scalar(select(UserPoints.total_points).where(UserPoints.user_id == user_id))
    return int(total or 0)


async def ledger_sum(session: AsyncSession, user_id: UUID) -> int:
    """Sum straight from the entries; used to audit the running total."""
    total = await session.scalar(
        select(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).where(PointsLedgerEntry.user_id == user_id)
    )
    return int(total or 0)


async def entries_for_user(session: AsyncSession, user_id: UUID) -> list[PointsLedgerEntry]:
    return list((await session.execute(
        select(PointsLedgerEntry)
        .where(PointsLedgerEntry.user_id == user_id)
        .order_by(PointsLedgerEntry.awarded_at.asc(), PointsLedgerEntry.id.asc())
    )).scalars().all())


async def top(session: AsyncSession, n: int, tenant_id: UUID | None = None) -> list[tuple[UUID, str, int]]:
    """
    Users ranked by total points, highest first.
    Ties go to the lower user id so repeated calls return the same order.
    Users who never earned points have no total and are not listed.
    """
    if n <= 0:
        return []
    q = (
        select(UserPoints.user_id, User.name, UserPoints.total_points)
        .join(User, User.id == UserPoints.user_id)
    )
    if tenant_id is not None:
        q = q.where(User.tenant_id == tenant_id)
    q = q.order_by(UserPoints.total_points.desc(), UserPoints.user_id.asc()).limit(n)
    rows = (await session.execute(q)).all()
    return [(uid, name, int(total)) for (uid, name, total) in rows]
