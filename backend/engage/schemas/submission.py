from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal
from uuid import UUID
from datetime import datetime

SubmissionStatus = Literal["Pending", "Approved", "Rejected"]


class SubmissionCreate(BaseModel):
    challenge_id: UUID
    # Blob store key from the upload service; stored as-is
    file_ref: str = Field(min_length=1, max_length=1024)

    @field_validator("file_ref")
    @classmethod
    def not_blank(cls, v: str):
        if not v.strip():
            raise ValueError("file_ref must not be blank")
        return v


class ReviewDecision(BaseModel):
    feedback: str | None = Field(default=None, max_length=2000)


class SubmissionPublic(BaseModel):
    id: UUID
    user_id: UUID
    challenge_id: UUID
    file_ref: str
    status: SubmissionStatus
    feedback: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ReviewResult(BaseModel):
    submission: SubmissionPublic
    participation_status: Literal["Pending", "Completed"]
    points_awarded: int
    total_points: int


class PendingSubmission(BaseModel):
    id: UUID
    user_id: UUID
    user_name: str
    challenge_id: UUID
    challenge_title: str
    circle_id: UUID
    circle_name: str
    file_ref: str
    created_at: datetime
