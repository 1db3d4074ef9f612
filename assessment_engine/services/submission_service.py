"""
assessment_engine/services/submission_service.py
Business logic for Submissions and grading

- Students create exactly one submission per published evaluation
- Only the evaluation's instructor (or an admin) writes grading fields
- Answers never change; a grade never changes once recorded
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from assessment_engine.core.lifecycle import GRADING_FIELDS, SUBMISSION_GUARD, changed_fields
from assessment_engine.core.permissions import Authorizer, Principal
from assessment_engine.models.evaluation import Evaluation
from assessment_engine.models.submission import Submission
from assessment_engine.repositories.evaluation_repository import EvaluationRepository
from assessment_engine.repositories.submission_repository import SubmissionRepository
from assessment_engine.schemas.submission import GradeCreate, SubmissionCreate, SubmissionWrite
from assessment_engine.services.evaluation_service import EnrollmentCheck, EvaluationService
from assessment_engine.services.guarded_write import guarded_commit
from assessment_engine.utils.exceptions import (
    NotFound, PermissionDenied, UniquenessConflict, ValidationError
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = frozenset({"answers"})


class SubmissionService:
    def __init__(self, db: Session, is_enrolled: Optional[EnrollmentCheck] = None):
        self.submission_repo = SubmissionRepository(db)
        self.evaluation_repo = EvaluationRepository(db)
        self.evaluation_service = EvaluationService(db, is_enrolled)
        self.db = db

    # ===================================================================
    # HELPERS
    # ===================================================================

    def _open_evaluation(self, evaluation_id: str) -> Evaluation:
        evaluation = self.evaluation_repo.get_by_id(evaluation_id)
        if not evaluation:
            raise NotFound("Evaluation not found")
        if not evaluation.is_open:
            raise ValidationError("This evaluation is not open for submissions")
        return evaluation

    @staticmethod
    def _ensure_grader(principal: Principal, submission: Submission) -> None:
        if not EvaluationService.is_writer(principal, submission.evaluation):
            raise PermissionDenied("Only the evaluation's instructor can grade submissions")

    @staticmethod
    def _validate_write(proposed_fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return SubmissionWrite.model_validate(proposed_fields).model_dump(exclude_unset=True)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

    @staticmethod
    def _check_score(score: Optional[float], evaluation: Evaluation) -> None:
        if score is not None and not 0 <= score <= evaluation.total_marks:
            raise ValidationError(f"Score must be between 0 and {evaluation.total_marks:g}")

    def _create(self, principal: Principal, student_id: str, evaluation_id: str,
                fields: Dict[str, Any]) -> Submission:
        Authorizer.authorize(principal, [("submissions", "create")])
        if student_id != principal.user_id:
            raise PermissionDenied("Students can only submit for themselves")

        evaluation = self._open_evaluation(evaluation_id)
        self.evaluation_service.ensure_enrolled(
            principal, evaluation.course_id, "You must be enrolled in this course to submit"
        )

        if not fields.get("answers"):
            raise ValidationError("Answers are required")
        unexpected = sorted(set(fields) - CREATE_FIELDS)
        if unexpected:
            raise ValidationError(
                "A new submission may only carry answers",
                errors=[
                    {"field": k, "message": "set by the grader" if k in GRADING_FIELDS else "set by the engine"}
                    for k in unexpected
                ],
            )

        # answers / submitted_at are fixed from here on
        submission = self.submission_repo.create({
            "evaluation_id": evaluation_id,
            "student_id": student_id,
            "answers": fields["answers"],
            "submitted_at": datetime.now(timezone.utc),
            "attempt_number": 1,
            "status": "submitted",
        })
        self.db.commit()
        logger.info(
            f"Submission {submission.submission_id} created: "
            f"student={student_id} evaluation={evaluation_id}"
        )
        return submission

    # ===================================================================
    # STUDENT: SUBMIT
    # ===================================================================

    def submit(self, principal: Principal, evaluation_id: str, data: SubmissionCreate) -> Submission:
        """Raises UniquenessConflict if the student already submitted"""
        fields = {"answers": [a.model_dump() for a in data.answers]}
        return self._create(principal, principal.user_id, evaluation_id, fields)

    # ===================================================================
    # TEACHER: GRADE
    # ===================================================================

    def grade_submission(self, principal: Principal, submission_id: str, data: GradeCreate) -> Submission:
        """One-shot: a graded submission rejects any further grade"""
        Authorizer.authorize(principal, [("grades", "create")])

        def precheck(submission: Submission) -> None:
            self._ensure_grader(principal, submission)
            self._check_score(data.total_score, submission.evaluation)

        submission = guarded_commit(
            self.db,
            load=lambda: self.submission_repo.get_for_update(submission_id),
            guard=SUBMISSION_GUARD,
            proposed=lambda _: {
                "total_score": data.total_score,
                "feedback": data.feedback,
                "graded_by": principal.user_id,
                "graded_at": datetime.now(timezone.utc),
                "status": "graded",
            },
            precheck=precheck,
        )
        logger.info(f"Submission {submission_id} graded by {principal.user_id}: {data.total_score:g}")
        return submission

    # ===================================================================
    # GENERIC WRITE
    # ===================================================================

    def propose_submission_write(
        self,
        principal: Principal,
        student_id: str,
        evaluation_id: str,
        proposed_fields: Dict[str, Any],
    ) -> Submission:
        """
        Create the (student, evaluation) submission, or apply a grading write to it.

        Raises PermissionDenied, NotFound, ValidationError, UniquenessConflict,
        ImmutabilityViolation / IllegalTransition or WriteConflict.
        """
        fields = self._validate_write(proposed_fields)

        existing = self.submission_repo.get_for_student(student_id, evaluation_id)
        if existing is None:
            return self._create(principal, student_id, evaluation_id, fields)

        if principal.user_id == student_id and set(fields) <= CREATE_FIELDS:
            # The student's own repeat submission, not a grading write
            Authorizer.authorize(principal, [("submissions", "create")])
            logger.warning(
                f"Duplicate submission rejected: student={student_id} evaluation={evaluation_id}"
            )
            raise UniquenessConflict()

        Authorizer.authorize(principal, [("grades", "create")])

        def load() -> Submission:
            submission = self.submission_repo.find_for_update(student_id, evaluation_id)
            if submission is None:
                raise NotFound("Submission not found")
            return submission

        def precheck(submission: Submission) -> None:
            self._ensure_grader(principal, submission)
            self._check_score(fields.get("total_score"), submission.evaluation)

        def proposal(submission: Submission) -> Dict[str, Any]:
            # graded_by always names the caller who changed the grade
            proposed = {k: v for k, v in fields.items() if k != "graded_by"}
            before = submission.snapshot()
            if changed_fields(before, {**before, **proposed}) & (GRADING_FIELDS | {"status"}):
                proposed["graded_by"] = principal.user_id
                proposed.setdefault("graded_at", datetime.now(timezone.utc))
            return proposed

        return guarded_commit(
            self.db,
            load=load,
            guard=SUBMISSION_GUARD,
            proposed=proposal,
            precheck=precheck,
        )

    # ===================================================================
    # READ
    # ===================================================================

    def get_my_submission(self, principal: Principal, evaluation_id: str) -> Optional[Submission]:
        Authorizer.authorize(principal, [("submissions", "read")])
        evaluation = self.evaluation_repo.get_by_id(evaluation_id)
        if not evaluation:
            raise NotFound("Evaluation not found")
        self.evaluation_service.ensure_enrolled(
            principal, evaluation.course_id, "You must be enrolled in this course"
        )
        return self.submission_repo.get_for_student(principal.user_id, evaluation_id)

    def list_evaluation_submissions(self, principal: Principal, evaluation_id: str) -> List[Submission]:
        Authorizer.authorize(principal, [("submissions", "read")])
        evaluation = self.evaluation_repo.get_by_id(evaluation_id)
        if not evaluation:
            raise NotFound("Evaluation not found")
        if not EvaluationService.is_writer(principal, evaluation):
            raise PermissionDenied("Only the evaluation's instructor can view all submissions")
        return self.submission_repo.list_for_evaluation(evaluation_id)
