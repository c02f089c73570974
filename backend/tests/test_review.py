import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from engage.models.submission import Submission
from engage.services import events, ledger, membership, participation, review
from engage.services.errors import AlreadyReviewed, NotFound, NotParticipant, ReviewInProgress


async def _joined(session, user_id, circle_id, challenge_id):
    await membership.join_circle(session, user_id, circle_id)
    await participation.join_challenge(session, user_id, challenge_id)


@pytest.mark.asyncio
async def test_submit_requires_participation(session, world):
    with pytest.raises(NotParticipant):
        await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")


@pytest.mark.asyncio
async def test_submit_creates_pending(session, world, captured_events):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    assert sub.status == "Pending"
    assert sub.file_ref == "proofs/a.jpg"
    assert sub.feedback is None
    assert sub.created_at is not None

    created = [p for (t, p) in captured_events if t == events.SUBMISSION_CREATED]
    assert len(created) == 1
    # the challenge creator is told there is something to review
    assert created[0]["notify_user_id"] == world.mod


@pytest.mark.asyncio
async def test_second_pending_submission_rejected(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    with pytest.raises(ReviewInProgress):
        await review.submit(session, world.alice, world.run5k, "proofs/b.jpg")
    assert len(await review.list_for_user(session, world.alice, world.run5k)) == 1


@pytest.mark.asyncio
async def test_one_pending_enforced_by_database(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    session.add(Submission(user_id=world.alice, challenge_id=world.run5k, file_ref="proofs/sneaky.jpg"))
    with pytest.raises(IntegrityError):
        await session.flush()
    await session.rollback()


@pytest.mark.asyncio
async def test_approve_completes_and_credits(session, world, captured_events):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")

    approved, credited = await review.approve(session, sub.id, world.mod, "Great job")
    assert credited is True
    assert approved.status == "Approved"
    assert approved.feedback == "Great job"
    assert approved.reviewed_by == world.mod
    assert approved.reviewed_at is not None

    [part] = await participation.list_user_participations(session, world.alice)
    assert part.earned_points == 50
    assert await participation.get_status(session, world.alice, world.run5k) == "Completed"
    assert await ledger.get_total(session, world.alice) == 50
    assert await ledger.ledger_sum(session, world.alice) == 50
    entries = await ledger.entries_for_user(session, world.alice)
    assert [(e.challenge_id, e.points, e.submission_id) for e in entries] == [(world.run5k, 50, sub.id)]

    topics = [t for (t, _) in captured_events]
    assert events.SUBMISSION_REVIEWED in topics
    done = [p for (t, p) in captured_events if t == events.CHALLENGE_COMPLETED]
    assert done and done[0]["points_awarded"] == 50


@pytest.mark.asyncio
async def test_reject_keeps_participation_pending(session, world, captured_events):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")

    rejected = await review.reject(session, sub.id, world.mod, "Blurry photo")
    assert rejected.status == "Rejected"
    assert rejected.feedback == "Blurry photo"
    assert await participation.get_status(session, world.alice, world.run5k) == "Pending"
    assert await ledger.get_total(session, world.alice) == 0

    reviewed = [p for (t, p) in captured_events if t == events.SUBMISSION_REVIEWED]
    assert reviewed[-1]["decision"] == "Rejected"
    assert reviewed[-1]["feedback"] == "Blurry photo"
    assert not any(t == events.CHALLENGE_COMPLETED for (t, _) in captured_events)


@pytest.mark.asyncio
async def test_resubmit_after_reject_then_approve(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    first = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    await review.reject(session, first.id, world.mod, "Try again")

    second = await review.submit(session, world.alice, world.run5k, "proofs/b.jpg")
    _, credited = await review.approve(session, second.id, world.mod, None)
    assert credited
    assert await ledger.get_total(session, world.alice) == 50

    history = await review.list_for_user(session, world.alice, world.run5k)
    assert {s.status for s in history} == {"Rejected", "Approved"}


@pytest.mark.asyncio
async def test_cannot_review_twice(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    await review.approve(session, sub.id, world.mod, None)

    with pytest.raises(AlreadyReviewed):
        await review.approve(session, sub.id, world.mod, None)
    with pytest.raises(AlreadyReviewed):
        await review.reject(session, sub.id, world.mod, "changed my mind")

    # still approved, still paid once
    assert (await review.get_submission(session, sub.id)).status == "Approved"
    assert await ledger.get_total(session, world.alice) == 50


@pytest.mark.asyncio
async def test_rejected_submission_cannot_be_approved(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    await review.reject(session, sub.id, world.mod, None)
    with pytest.raises(AlreadyReviewed):
        await review.approve(session, sub.id, world.mod, None)
    assert await participation.get_status(session, world.alice, world.run5k) == "Pending"


@pytest.mark.asyncio
async def test_review_unknown_submission(session, world):
    with pytest.raises(NotFound):
        await review.approve(session, uuid.uuid4(), world.mod, None)
    with pytest.raises(NotFound):
        await review.reject(session, uuid.uuid4(), world.mod, None)
    with pytest.raises(NotFound):
        await review.get_submission(session, uuid.uuid4())


@pytest.mark.asyncio
async def test_completed_challenge_accepts_no_submissions(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    await review.approve(session, sub.id, world.mod, None)
    with pytest.raises(NotParticipant):
        await review.submit(session, world.alice, world.run5k, "proofs/again.jpg")


@pytest.mark.asyncio
async def test_second_approval_for_same_challenge_pays_nothing(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    await review.approve(session, sub.id, world.mod, None)

    # a stray pending row written around the submit checks
    stray = Submission(user_id=world.alice, challenge_id=world.run5k, file_ref="proofs/stray.jpg")
    session.add(stray)
    await session.commit()

    approved, credited = await review.approve(session, stray.id, world.mod, None)
    assert approved.status == "Approved"
    assert credited is False
    assert await ledger.get_total(session, world.alice) == 50
    assert len(await ledger.entries_for_user(session, world.alice)) == 1


@pytest.mark.asyncio
async def test_failed_approval_rolls_back(session, world, monkeypatch, captured_events):
    await _joined(session, world.alice, world.runners, world.run5k)
    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    captured_events.clear()

    async def _boom(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(review, "credit_challenge_once", _boom)
    with pytest.raises(RuntimeError):
        await review.approve(session, sub.id, world.mod, None)

    assert (await review.get_submission(session, sub.id)).status == "Pending"
    assert await participation.get_status(session, world.alice, world.run5k) == "Pending"
    assert await ledger.get_total(session, world.alice) == 0
    assert captured_events == []


@pytest.mark.asyncio
async def test_broken_subscriber_does_not_fail_review(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)

    def _broken(topic, payload):
        raise ValueError("push gateway down")

    events.subscribe(_broken)
    try:
        sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
        _, credited = await review.approve(session, sub.id, world.mod, None)
    finally:
        events.unsubscribe(_broken)
    assert credited


@pytest.mark.asyncio
async def test_pending_queue_filters(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    await participation.join_challenge(session, world.alice, world.stretch)
    await _joined(session, world.bob, world.runners, world.run5k)
    await _joined(session, world.carol, world.globex_circle, world.walk)

    a_run = await review.submit(session, world.alice, world.run5k, "proofs/a-run.jpg")
    a_str = await review.submit(session, world.alice, world.stretch, "proofs/a-stretch.jpg")
    b_run = await review.submit(session, world.bob, world.run5k, "proofs/b-run.jpg")
    await review.submit(session, world.carol, world.walk, "proofs/c-walk.jpg")

    acme = await review.list_pending(session, tenant_id=world.acme)
    assert {s.id for (s, *_ ) in acme} == {a_run.id, a_str.id, b_run.id}

    by_challenge = await review.list_pending(session, tenant_id=world.acme, challenge_id=world.stretch)
    assert [s.id for (s, *_ ) in by_challenge] == [a_str.id]

    # search matches submitter, challenge or circle name, case-insensitively
    bobs = await review.list_pending(session, tenant_id=world.acme, search="bOb")
    assert [s.id for (s, *_ ) in bobs] == [b_run.id]
    stretches = await review.list_pending(session, tenant_id=world.acme, search="stretch")
    assert [s.id for (s, *_ ) in stretches] == [a_str.id]
    runners = await review.list_pending(session, tenant_id=world.acme, search="RUNNERS")
    assert len(runners) == 3
    assert await review.list_pending(session, tenant_id=world.acme, search="%") == []

    by_name = await review.list_pending(session, tenant_id=world.acme, sort="employee_name")
    assert [uname for (*_, uname) in by_name] == ["Alice", "Alice", "Bob"]
    by_title = await review.list_pending(session, tenant_id=world.acme, sort="challenge_name")
    assert [title for (_, title, *_ ) in by_title] == ["5k Run", "5k Run", "Stretching"]

    await review.approve(session, a_run.id, world.mod, None)
    left = await review.list_pending(session, tenant_id=world.acme, circle_id=world.runners, limit=10)
    assert {s.id for (s, *_ ) in left} == {a_str.id, b_run.id}


@pytest.mark.asyncio
async def test_pending_queue_sorts(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    await _joined(session, world.bob, world.readers, world.novel)
    await _joined(session, world.bob, world.runners, world.stretch)

    old = await review.submit(session, world.alice, world.run5k, "proofs/old.jpg")
    mid = await review.submit(session, world.bob, world.novel, "proofs/mid.jpg")
    new = await review.submit(session, world.bob, world.stretch, "proofs/new.jpg")

    base = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    for i, sub in enumerate((old, mid, new)):
        await session.execute(
            update(Submission).where(Submission.id == sub.id).values(created_at=base + timedelta(hours=i))
        )
    await session.commit()

    async def _order(sort):
        return [s.id for (s, *_ ) in await review.list_pending(session, tenant_id=world.acme, sort=sort)]

    assert await _order("newest") == [new.id, mid.id, old.id]
    assert await _order("oldest") == [old.id, mid.id, new.id]
    # Readers before Runners; within Runners the newer one first
    assert await _order("circle_name") == [mid.id, new.id, old.id]
    assert await _order("challenge_name") == [old.id, mid.id, new.id]


@pytest.mark.asyncio
async def test_approval_without_credit_leaves_earned_points_empty(session, world):
    await _joined(session, world.alice, world.runners, world.run5k)
    # points for this challenge were already paid through another path
    await ledger.credit_challenge_once(
        session, user_id=world.alice, challenge_id=world.run5k, submission_id=None, points=50,
    )
    await session.commit()

    sub = await review.submit(session, world.alice, world.run5k, "proofs/a.jpg")
    _, credited = await review.approve(session, sub.id, world.mod, None)
    assert credited is False

    [part] = await participation.list_user_participations(session, world.alice)
    assert part.status == "Completed"
    assert part.earned_points is None
    assert await ledger.get_total(session, world.alice) == 50
