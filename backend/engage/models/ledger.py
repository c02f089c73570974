from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func, Uuid

from engage.db import Base

class PointsLedgerEntry(Base):
    """
    Append-only record of points awarded for a completed challenge.
    Invariants:
      - one entry per (user, challenge), ever; a resubmitted and re-approved
        challenge never pays twice
      - rows are never updated or deleted; points are not revoked
      - written only by the approval path, in the same transaction that
        marks the submission Approved and bumps UserPoints
    """
    __tablename__ = "points_ledger"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    challenge_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # The approved submission that earned the points
    submission_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("submissions.id", ondelete="SET NULL"), nullable=True
    )

    points: Mapped[int] = mapped_column(Integer, nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_points_ledger_once_per_challenge"),
        CheckConstraint("points > 0", name="ck_points_ledger_positive"),
    )


class UserPoints(Base):
    """Running total per user. Always equals Σ(points_ledger.points) for that user."""
    __tablename__ = "user_points"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
