"""
assessment_engine/schemas/submission.py
Pydantic schemas for Submissions and grading
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessment_engine.core.config import settings

SubmissionStatus = Literal["submitted", "graded"]


class Answer(BaseModel):
    question_id: str = Field(..., min_length=1, max_length=64)
    response_text: str = Field(..., max_length=settings.MAX_RESPONSE_LENGTH)

    @field_validator("response_text")
    @classmethod
    def non_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("All answers must contain text responses")
        return v


def _unique_questions(answers: Optional[List[Answer]]) -> Optional[List[Answer]]:
    if answers:
        ids = [a.question_id for a in answers]
        if len(ids) != len(set(ids)):
            raise ValueError("Each question may be answered only once")
    return answers


class SubmissionCreate(BaseModel):
    answers: List[Answer] = Field(..., min_length=1)

    @field_validator("answers")
    @classmethod
    def unique_questions(cls, v: List[Answer]) -> List[Answer]:
        return _unique_questions(v)


class GradeCreate(BaseModel):
    total_score: float = Field(..., ge=0)
    feedback: Optional[str] = Field(None, max_length=settings.MAX_FEEDBACK_LENGTH)


class SubmissionWrite(BaseModel):
    """
    Any guarded field of a Submission.
    Used by propose_submission_write; unknown keys are rejected.
    """
    model_config = ConfigDict(extra="forbid")

    answers: Optional[List[Answer]] = Field(None, min_length=1)
    submitted_at: Optional[datetime] = None
    attempt_number: Optional[int] = Field(None, ge=1)
    total_score: Optional[float] = Field(None, ge=0)
    feedback: Optional[str] = Field(None, max_length=settings.MAX_FEEDBACK_LENGTH)
    graded_by: Optional[str] = Field(None, min_length=1, max_length=64)
    graded_at: Optional[datetime] = None
    status: Optional[SubmissionStatus] = None

    @field_validator("answers")
    @classmethod
    def unique_questions(cls, v: Optional[List[Answer]]) -> Optional[List[Answer]]:
        return _unique_questions(v)


# =============================================================================
# RESPONSE
# =============================================================================

class SubmissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: str
    evaluation_id: str
    student_id: str
    answers: List[Answer]
    submitted_at: datetime
    attempt_number: int = 1
    status: SubmissionStatus
    total_score: Optional[float] = None
    feedback: Optional[str] = None
    graded_by: Optional[str] = None
    graded_at: Optional[datetime] = None
