from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, DateTime, ForeignKey, Index, CheckConstraint, func, text, Uuid

from engage.db import Base

SUBMISSION_PENDING = "Pending"
SUBMISSION_APPROVED = "Approved"
SUBMISSION_REJECTED = "Rejected"


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    challenge_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )

    file_ref: Mapped[str] = mapped_column(Text(), nullable=False)  # opaque blob store key
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SUBMISSION_PENDING)  # Pending|Approved|Rejected
    feedback: Mapped[str | None] = mapped_column(Text(), nullable=True)

    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('Pending','Approved','Rejected')", name="ck_submission_status"),
        # At most one submission awaiting review per user and challenge
        Index(
            "uq_submission_one_pending",
            "user_id",
            "challenge_id",
            unique=True,
            postgresql_where=text("status = 'Pending'"),
            sqlite_where=text("status = 'Pending'"),
        ),
    )
