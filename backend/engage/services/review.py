from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from typing import Literal
from uuid import UUID

import structlog
from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from engage.models.challenge import Challenge, ChallengeParticipant, PARTICIPATION_PENDING, PARTICIPATION_COMPLETED
from engage.models.circle import Circle
from engage.models.submission import Submission, SUBMISSION_PENDING, SUBMISSION_APPROVED, SUBMISSION_REJECTED
from engage.models.user import User
from engage.services import events
from engage.services.errors import AlreadyReviewed, NotFound, NotParticipant, ReviewInProgress
from engage.services.ledger import credit_challenge_once

log = structlog.get_logger(__name__)

PendingSort = Literal["newest", "oldest", "challenge_name", "circle_name", "employee_name"]

_PENDING_ORDER = {
    "newest": (Submission.created_at.desc(), Submission.id.asc()),
    "oldest": (Submission.created_at.asc(), Submission.id.asc()),
    "challenge_name": (Challenge.title.asc(), Submission.created_at.desc(), Submission.id.asc()),
    "circle_name": (Circle.name.asc(), Submission.created_at.desc(), Submission.id.asc()),
    "employee_name": (User.name.asc(), Submission.created_at.desc(), Submission.id.asc()),
}

# ---------- employee side ----------

async def submit(session: AsyncSession, user_id: UUID, challenge_id: UUID, file_ref: str) -> Submission:
    """
    Record proof for a joined, not yet completed challenge.
    Only one submission per (user, challenge) may await review; a rejected one does not count.
    """
    part = await session.scalar(
        select(ChallengeParticipant)
        .where(ChallengeParticipant.user_id == user_id, ChallengeParticipant.challenge_id == challenge_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not part:
        raise NotParticipant("You have not joined this challenge")
    if part.status != PARTICIPATION_PENDING:
        raise NotParticipant("Challenge already completed")

    in_review = await session.scalar(
        select(Submission.id).where(
            Submission.user_id == user_id,
            Submission.challenge_id == challenge_id,
            Submission.status == SUBMISSION_PENDING,
        )
    )
    if in_review:
        raise ReviewInProgress("A submission for this challenge is already awaiting review")

    ch = await session.get(Challenge, challenge_id)
    creator_id = ch.created_by if ch else None

    sub = Submission(user_id=user_id, challenge_id=challenge_id, file_ref=file_ref, status=SUBMISSION_PENDING)
    session.add(sub)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        # uq_submission_one_pending: a concurrent submit won the race
        await session.rollback()
        raise ReviewInProgress("A submission for this challenge is already awaiting review")
    await session.refresh(sub)

    log.info("submission_created", submission_id=str(sub.id), user_id=str(user_id), challenge_id=str(challenge_id))
    events.emit(events.SUBMISSION_CREATED, {
        "submission_id": sub.id,
        "user_id": user_id,
        "challenge_id": challenge_id,
        "notify_user_id": creator_id,
    })
    return sub

# ---------- moderator side ----------

async def _claim_for_review(
    session: AsyncSession,
    submission_id: UUID,
    decision: str,
    moderator_id: UUID | None,
    feedback: str | None,
) -> Submission:
    """
    Move a Pending submission to `decision` with one conditional UPDATE.
    Of two reviewers racing on the same submission exactly one matches the
    `status = 'Pending'` predicate; the other gets AlreadyReviewed.
    """
    now = datetime.now(dt_tz.utc)
    res = await session.execute(
        update(Submission)
        .where(Submission.id == submission_id, Submission.status == SUBMISSION_PENDING)
        .values(status=decision, feedback=feedback, reviewed_by=moderator_id, reviewed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        found = await session.scalar(select(Submission.status).where(Submission.id == submission_id))
        if found is None:
            raise NotFound("Submission", submission_id)
        raise AlreadyReviewed(f"Submission was already {found.lower()}")

    return await session.scalar(
        select(Submission).where(Submission.id == submission_id).execution_options(populate_existing=True)
    )


async def approve(session: AsyncSession, submission_id: UUID, moderator_id: UUID | None, feedback: str | None) -> tuple[Submission, bool]:
    """
    Approve a submission. In one transaction:
      1. submission -> Approved (with feedback)
      2. ledger credited once per (user, challenge)
      3. challenge participation -> Completed, with the points if they were credited
    Returns (submission, credited).
    """
    try:
        sub = await _claim_for_review(session, submission_id, SUBMISSION_APPROVED, moderator_id, feedback)
        ch = await session.get(Challenge, sub.challenge_id)
        if not ch:
            raise NotFound("Challenge", sub.challenge_id)

        credited = await credit_challenge_once(
            session,
            user_id=sub.user_id,
            challenge_id=sub.challenge_id,
            submission_id=sub.id,
            points=ch.points,
        )
        # earned_points only records points actually credited
        completed = {"status": PARTICIPATION_COMPLETED}
        if credited:
            completed["earned_points"] = ch.points
        await session.execute(
            update(ChallengeParticipant)
            .where(ChallengeParticipant.user_id == sub.user_id, ChallengeParticipant.challenge_id == sub.challenge_id)
            .values(**completed)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    log.info("submission_approved", submission_id=str(sub.id), user_id=str(sub.user_id),
             challenge_id=str(sub.challenge_id), moderator_id=str(moderator_id), credited=credited)
    events.emit(events.SUBMISSION_REVIEWED, {
        "submission_id": sub.id,
        "decision": SUBMISSION_APPROVED,
        "feedback": feedback or "",
        "notify_user_id": sub.user_id,
    })
    events.emit(events.CHALLENGE_COMPLETED, {
        "user_id": sub.user_id,
        "challenge_id": sub.challenge_id,
        "points_awarded": ch.points if credited else 0,
        "notify_user_id": sub.user_id,
    })
    return sub, credited


async def reject(session: AsyncSession, submission_id: UUID, moderator_id: UUID | None, feedback: str | None) -> Submission:
    """Reject a submission. The participation stays Pending so the user can submit again."""
    try:
        sub = await _claim_for_review(session, submission_id, SUBMISSION_REJECTED, moderator_id, feedback)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    log.info("submission_rejected", submission_id=str(sub.id), user_id=str(sub.user_id),
             challenge_id=str(sub.challenge_id), moderator_id=str(moderator_id))
    events.emit(events.SUBMISSION_REVIEWED, {
        "submission_id": sub.id,
        "decision": SUBMISSION_REJECTED,
        "feedback": feedback or "",
        "notify_user_id": sub.user_id,
    })
    return sub

# ---------- queries ----------

async def list_pending(
    session: AsyncSession,
    *,
    tenant_id: UUID | None = None,
    search: str | None = None,
    circle_id: UUID | None = None,
    challenge_id: UUID | None = None,
    sort: PendingSort = "newest",
    limit: int = 50,
) -> list[tuple[Submission, str, UUID, str, str]]:
    """
    Moderator queue: pending submissions with challenge title, circle id/name and submitter name.
    `search` matches any of the three names, case-insensitively.
    """
    q = (
        select(Submission, Challenge.title, Circle.id, Circle.name, User.name)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .join(Circle, Circle.id == Challenge.circle_id)
        .join(User, User.id == Submission.user_id)
        .where(Submission.status == SUBMISSION_PENDING)
    )
    if tenant_id is not None:
        q = q.where(Circle.tenant_id == tenant_id)
    if circle_id is not None:
        q = q.where(Circle.id == circle_id)
    if challenge_id is not None:
        q = q.where(Challenge.id == challenge_id)
    if search:
        term = search.strip()
        if term:
            q = q.where(or_(
                Challenge.title.icontains(term, autoescape=True),
                Circle.name.icontains(term, autoescape=True),
                User.name.icontains(term, autoescape=True),
            ))

    q = q.order_by(*_PENDING_ORDER.get(sort, _PENDING_ORDER["newest"])).limit(limit)
    rows = (await session.execute(q)).all()
    return [(s, title, cid, cname, uname) for (s, title, cid, cname, uname) in rows]


async def list_for_user(session: AsyncSession, user_id: UUID, challenge_id: UUID | None = None) -> list[Submission]:
    q = select(Submission).where(Submission.user_id == user_id)
    if challenge_id is not None:
        q = q.where(Submission.challenge_id == challenge_id)
    q = q.order_by(Submission.created_at.desc(), Submission.id.asc()).execution_options(populate_existing=True)
    return list((await session.execute(q)).scalars().all())


async def get_submission(session: AsyncSession, submission_id: UUID) -> Submission:
    sub = await session.get(Submission, submission_id, populate_existing=True)
    if not sub:
        raise NotFound("Submission", submission_id)
    return sub
