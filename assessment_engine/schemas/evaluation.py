"""
assessment_engine/schemas/evaluation.py
Pydantic schemas for Evaluations (assignment / quiz)
Structural validation only – lifecycle rules live in the guard
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EvaluationType = Literal["assignment", "quiz"]
EvaluationStatus = Literal["draft", "published", "closed"]


# =============================================================================
# BASE & COMMON
# =============================================================================

class EvaluationBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field("", max_length=2000)
    total_marks: float = Field(100, ge=1)
    weight: float = Field(0, ge=0, le=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        return v


class EvaluationCreate(EvaluationBase):
    course_id: str = Field(..., min_length=1, max_length=64)
    type: EvaluationType
    # Defaults to the creating principal; admins may create on behalf of an instructor
    instructor_id: Optional[str] = Field(None, min_length=1, max_length=64)


class EvaluationUpdate(BaseModel):
    """Content edit – only meaningful while the evaluation is a draft"""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    total_marks: Optional[float] = Field(None, ge=1)
    weight: Optional[float] = Field(None, ge=0, le=100)


class EvaluationWrite(BaseModel):
    """
    Any guarded field of an Evaluation except the soft-delete flag.
    Used by propose_evaluation_write; unknown keys are rejected.
    """
    model_config = ConfigDict(extra="forbid")

    course_id: Optional[str] = Field(None, min_length=1, max_length=64)
    instructor_id: Optional[str] = Field(None, min_length=1, max_length=64)
    type: Optional[EvaluationType] = None
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    total_marks: Optional[float] = Field(None, ge=1)
    weight: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[EvaluationStatus] = None
    published_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


# =============================================================================
# RESPONSE
# =============================================================================

class EvaluationOut(EvaluationBase):
    model_config = ConfigDict(from_attributes=True)

    evaluation_id: str
    course_id: str
    instructor_id: str
    type: EvaluationType
    status: EvaluationStatus
    published_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
