from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from engage.db import get_session
from engage.auth_deps import get_current_user, require_moderator
from engage.config import settings
from engage.models.challenge import Challenge
from engage.models.circle import Circle
from engage.models.submission import Submission
from engage.models.user import User
from engage.schemas.submission import SubmissionCreate, SubmissionPublic, ReviewDecision, ReviewResult, PendingSubmission
from engage.services import review, ledger, participation
from engage.services.review import PendingSort

router = APIRouter(prefix="/submissions", tags=["submissions"])

def _pub(s: Submission) -> SubmissionPublic:
    return SubmissionPublic(
        id=s.id,
        user_id=s.user_id,
        challenge_id=s.challenge_id,
        file_ref=s.file_ref,
        status=s.status,
        feedback=s.feedback,
        reviewed_by=s.reviewed_by,
        reviewed_at=s.reviewed_at,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )

async def _ensure_same_tenant(session: AsyncSession, moderator: User, submission_id: UUID) -> None:
    # Moderators only review their own tenant; other tenants' submissions look nonexistent
    tenant_id = await session.scalar(
        select(Circle.tenant_id)
        .join(Challenge, Challenge.circle_id == Circle.id)
        .join(Submission, Submission.challenge_id == Challenge.id)
        .where(Submission.id == submission_id)
    )
    if tenant_id is not None and tenant_id != moderator.tenant_id:
        raise HTTPException(status_code=404, detail="Submission not found")

@router.post("", response_model=SubmissionPublic, status_code=201)
async def create_submission(payload: SubmissionCreate, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    s = await review.submit(session, user.id, payload.challenge_id, payload.file_ref)
    return _pub(s)

@router.get("/pending", response_model=list[PendingSubmission])
async def list_pending(
    search: str | None = Query(default=None, max_length=120),
    circle_id: UUID | None = Query(default=None),
    challenge_id: UUID | None = Query(default=None),
    sort: PendingSort = Query(default="newest"),
    limit: int = Query(default=50, ge=1, le=settings.pending_queue_max),
    session: AsyncSession = Depends(get_session),
    moderator: User = Depends(require_moderator),
):
    rows = await review.list_pending(
        session,
        tenant_id=moderator.tenant_id,
        search=search,
        circle_id=circle_id,
        challenge_id=challenge_id,
        sort=sort,
        limit=limit,
    )
    return [
        PendingSubmission(
            id=s.id,
            user_id=s.user_id,
            user_name=uname,
            challenge_id=s.challenge_id,
            challenge_title=title,
            circle_id=cid,
            circle_name=cname,
            file_ref=s.file_ref,
            created_at=s.created_at,
        ) for (s, title, cid, cname, uname) in rows
    ]

@router.get("/mine", response_model=list[SubmissionPublic])
async def list_mine(
    challenge_id: UUID | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return [_pub(s) for s in await review.list_for_user(session, user.id, challenge_id)]

@router.get("/{submission_id}", response_model=SubmissionPublic)
async def get_submission(submission_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    s = await review.get_submission(session, submission_id)
    if s.user_id != user.id and user.role != "moderator":
        raise HTTPException(status_code=403, detail="Not your submission")
    return _pub(s)

@router.put("/{submission_id}/approve", response_model=ReviewResult)
async def approve_submission(
    submission_id: UUID,
    payload: ReviewDecision,
    session: AsyncSession = Depends(get_session),
    moderator: User = Depends(require_moderator),
):
    await _ensure_same_tenant(session, moderator, submission_id)
    s, credited = await review.approve(session, submission_id, moderator.id, payload.feedback)
    status = await participation.get_status(session, s.user_id, s.challenge_id)
    earned = await session.scalar(select(Challenge.points).where(Challenge.id == s.challenge_id)) if credited else 0
    return ReviewResult(
        submission=_pub(s),
        participation_status=status or "Completed",
        points_awarded=int(earned or 0),
        total_points=await ledger.get_total(session, s.user_id),
    )

@router.put("/{submission_id}/reject", response_model=ReviewResult)
async def reject_submission(
    submission_id: UUID,
    payload: ReviewDecision,
    session: AsyncSession = Depends(get_session),
    moderator: User = Depends(require_moderator),
):
    await _ensure_same_tenant(session, moderator, submission_id)
    s = await review.reject(session, submission_id, moderator.id, payload.feedback)
    status = await participation.get_status(session, s.user_id, s.challenge_id)
    return ReviewResult(
        submission=_pub(s),
        participation_status=status or "Pending",
        points_awarded=0,
        total_points=await ledger.get_total(session, s.user_id),
    )
