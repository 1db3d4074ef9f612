"""
assessment_engine/models/evaluation.py
Evaluation – an assignment or quiz defined by a course instructor

Lifecycle: draft -> published -> closed.
Once published, only the status bookkeeping columns may change
(see assessment_engine.core.lifecycle.EVALUATION_GUARD).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum, Float, Index, Integer, String, Text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.database.base import str_pk, external_id
from assessment_engine.models.base_model import BaseModel

EVALUATION_TYPES = ("assignment", "quiz")
EVALUATION_STATUSES = ("draft", "published", "closed")


class Evaluation(BaseModel):
    __tablename__ = "evaluations"

    guarded_fields = frozenset({
        "course_id", "instructor_id", "type",
        "title", "description", "total_marks", "weight",
        "status", "published_at", "closed_at", "is_deleted",
    })

    evaluation_id: Mapped[str_pk]
    course_id: Mapped[external_id]
    instructor_id: Mapped[external_id]

    type: Mapped[str] = mapped_column(
        Enum(*EVALUATION_TYPES, name="evaluation_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    total_marks: Mapped[float] = mapped_column(Float, nullable=False, default=100)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        Enum(*EVALUATION_STATUSES, name="evaluation_status"),
        nullable=False,
        default="draft",
        index=True,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Soft delete, independent of status
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    submissions: Mapped[List["Submission"]] = relationship(
        "Submission", back_populates="evaluation", passive_deletes=True
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("total_marks >= 1", name="total_marks_min"),
        CheckConstraint("weight >= 0 AND weight <= 100", name="weight_range"),
        Index("ix_evaluations_course_status", "course_id", "status"),
    )

    @property
    def is_draft(self) -> bool:
        return self.status == "draft"

    @property
    def is_open(self) -> bool:
        return self.status == "published" and not self.is_deleted

    def __repr__(self) -> str:
        return f"<Evaluation {self.evaluation_id} {self.type} '{self.title}' [{self.status}]>"
