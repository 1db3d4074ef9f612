"""
assessment_engine/models/submission.py
Submission – one student's answers to one Evaluation

- ONE submission per (student, evaluation), enforced by a UNIQUE constraint
- answers / submitted_at never change after creation
- grading fields freeze once status == "graded"
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON, CheckConstraint, DateTime, Enum, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_engine.database.base import str_pk, external_id
from assessment_engine.models.base_model import BaseModel

SUBMISSION_STATUSES = ("submitted", "graded")


class Submission(BaseModel):
    __tablename__ = "submissions"

    guarded_fields = frozenset({
        "evaluation_id", "student_id", "answers", "submitted_at", "attempt_number",
        "total_score", "feedback", "graded_by", "graded_at", "status",
    })

    submission_id: Mapped[str_pk]
    evaluation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("evaluations.evaluation_id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    student_id: Mapped[external_id]

    # [{"question_id": str, "response_text": str}, ...]
    answers: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Grading (all null until graded)
    total_score: Mapped[Optional[float]] = mapped_column(Float)
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    graded_by: Mapped[Optional[str]] = mapped_column(String(64))
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    status: Mapped[str] = mapped_column(
        Enum(*SUBMISSION_STATUSES, name="submission_status"),
        nullable=False,
        default="submitted",
        index=True,
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    evaluation: Mapped["Evaluation"] = relationship("Evaluation", back_populates="submissions")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("student_id", "evaluation_id", name="uq_one_submission_per_student"),
        CheckConstraint("total_score IS NULL OR total_score >= 0", name="total_score_min"),
        CheckConstraint("attempt_number >= 1", name="attempt_number_min"),
    )

    @property
    def is_graded(self) -> bool:
        return self.status == "graded"

    def __repr__(self) -> str:
        return f"<Submission {self.submission_id} student={self.student_id} [{self.status}]>"
