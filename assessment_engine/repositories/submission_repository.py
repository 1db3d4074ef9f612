"""
assessment_engine/repositories/submission_repository.py
All database operations for Submissions

Uniqueness of (student, evaluation) is left to the database constraint:
an application-level "exists?" check cannot stop two concurrent first
submissions, the UNIQUE index can.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from assessment_engine.models.evaluation import Evaluation  # noqa: F401  (mapper registry)
from assessment_engine.models.submission import Submission
from assessment_engine.utils.exceptions import NotFound, UniquenessConflict

logger = logging.getLogger(__name__)


class SubmissionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, fields: Dict[str, Any]) -> Submission:
        """
        Insert and flush immediately so the UNIQUE constraint is checked now.
        Raises UniquenessConflict when the pair already has a submission;
        the session is rolled back in that case.
        """
        submission = Submission(**fields)
        self.db.add(submission)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                f"Duplicate submission rejected: student={fields.get('student_id')} "
                f"evaluation={fields.get('evaluation_id')}"
            )
            raise UniquenessConflict() from exc
        return submission

    def get_by_id(self, submission_id: str) -> Optional[Submission]:
        return self.db.scalar(
            select(Submission)
            .options(joinedload(Submission.evaluation))
            .where(Submission.submission_id == submission_id)
        )

    def get_for_student(self, student_id: str, evaluation_id: str) -> Optional[Submission]:
        return self.db.scalar(
            select(Submission).where(
                Submission.student_id == student_id,
                Submission.evaluation_id == evaluation_id,
            )
        )

    def get_for_update(self, submission_id: str) -> Submission:
        query = (
            select(Submission)
            .where(Submission.submission_id == submission_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        submission = self.db.scalar(query)
        if not submission:
            raise NotFound("Submission not found")
        return submission

    def find_for_update(self, student_id: str, evaluation_id: str) -> Optional[Submission]:
        query = (
            select(Submission)
            .where(
                Submission.student_id == student_id,
                Submission.evaluation_id == evaluation_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.scalar(query)

    def list_for_evaluation(self, evaluation_id: str) -> List[Submission]:
        query = (
            select(Submission)
            .where(Submission.evaluation_id == evaluation_id)
            .order_by(Submission.submitted_at)
        )
        return list(self.db.scalars(query))
