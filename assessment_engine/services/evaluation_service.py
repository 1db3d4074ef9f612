"""
assessment_engine/services/evaluation_service.py
Business logic for Evaluations (assignments / quizzes)

Every mutating call:
1. asks the Authorizer for the (evaluations, <action>) pair
2. checks ownership (evaluation instructor, or an admin)
3. diffs the proposal against the latest row through EVALUATION_GUARD
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from assessment_engine.core.lifecycle import EVALUATION_GUARD
from assessment_engine.core.permissions import Authorizer, Principal
from assessment_engine.models.evaluation import Evaluation
from assessment_engine.repositories.evaluation_repository import EvaluationRepository
from assessment_engine.schemas.evaluation import EvaluationCreate, EvaluationUpdate, EvaluationWrite
from assessment_engine.services.guarded_write import guarded_commit
from assessment_engine.utils.exceptions import (
    IllegalTransition, NotFound, PermissionDenied, ValidationError
)

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = frozenset({
    "course_id", "instructor_id", "type", "title", "description",
    "total_marks", "weight", "status",
})

# (user_id, course_id) -> is the user enrolled in the course?
EnrollmentCheck = Callable[[str, str], bool]


class EvaluationService:
    def __init__(self, db: Session, is_enrolled: Optional[EnrollmentCheck] = None):
        self.evaluation_repo = EvaluationRepository(db)
        self.db = db
        # None: no enrollment source configured, every reader counts as enrolled
        self.is_enrolled = is_enrolled

    # ===================================================================
    # HELPERS
    # ===================================================================

    @staticmethod
    def is_writer(principal: Principal, evaluation: Evaluation) -> bool:
        return principal.is_superuser or evaluation.instructor_id == principal.user_id

    def _ensure_writer(self, principal: Principal, evaluation: Evaluation) -> None:
        if not self.is_writer(principal, evaluation):
            raise PermissionDenied("Only the evaluation's instructor can modify it")

    def enrolled(self, principal: Principal, course_id: str) -> bool:
        if self.is_enrolled is None or principal.is_superuser:
            return True
        return self.is_enrolled(principal.user_id, course_id)

    def ensure_enrolled(self, principal: Principal, course_id: str, detail: str) -> None:
        if not self.enrolled(principal, course_id):
            logger.warning(f"User {principal.user_id} is not enrolled in course {course_id}")
            raise PermissionDenied(detail)

    @staticmethod
    def _validate_write(proposed_fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            fields = EvaluationWrite.model_validate(proposed_fields).model_dump(exclude_unset=True)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        nulls = sorted(k for k, v in fields.items() if v is None and k in NON_NULLABLE_FIELDS)
        if nulls:
            raise ValidationError(
                "Required fields cannot be cleared",
                errors=[{"field": k, "message": "may not be null"} for k in nulls],
            )
        return fields

    # ===================================================================
    # CREATE & GENERIC WRITE
    # ===================================================================

    def create_evaluation(self, principal: Principal, data: EvaluationCreate) -> Evaluation:
        Authorizer.authorize(principal, [("evaluations", "create")])

        instructor_id = data.instructor_id or principal.user_id
        if instructor_id != principal.user_id and not principal.is_superuser:
            raise PermissionDenied("Only administrators can create evaluations for another instructor")

        fields = data.model_dump(exclude={"instructor_id"})
        fields.update(instructor_id=instructor_id, status="draft")

        evaluation = self.evaluation_repo.create(fields)
        self.db.commit()
        logger.info(
            f"Evaluation {evaluation.evaluation_id} created as draft "
            f"for course {evaluation.course_id} by {principal.user_id}"
        )
        return evaluation

    def propose_evaluation_write(
        self,
        principal: Principal,
        evaluation_id: str,
        proposed_fields: Dict[str, Any],
    ) -> Evaluation:
        """
        Commit `proposed_fields` if the evaluation's lifecycle state allows them.

        Raises PermissionDenied, NotFound, ValidationError,
        ImmutabilityViolation / IllegalTransition or WriteConflict.
        """
        Authorizer.authorize(principal, [("evaluations", "update")])
        fields = self._validate_write(proposed_fields)

        return guarded_commit(
            self.db,
            load=lambda: self.evaluation_repo.get_for_update(evaluation_id),
            guard=EVALUATION_GUARD,
            proposed=fields,
            precheck=lambda evaluation: self._ensure_writer(principal, evaluation),
        )

    def update_evaluation(
        self,
        principal: Principal,
        evaluation_id: str,
        data: EvaluationUpdate,
    ) -> Evaluation:
        """Content edit; rejected with ImmutabilityViolation once published"""
        return self.propose_evaluation_write(
            principal, evaluation_id, data.model_dump(exclude_unset=True)
        )

    # ===================================================================
    # LIFECYCLE TRANSITIONS
    # ===================================================================

    def publish_evaluation(self, principal: Principal, evaluation_id: str) -> Evaluation:
        Authorizer.authorize(principal, [("evaluations", "update")])

        def precheck(evaluation: Evaluation) -> None:
            self._ensure_writer(principal, evaluation)
            if evaluation.status != "draft":
                raise IllegalTransition(evaluation.status, "published")
            if evaluation.weight is None or not 0 <= evaluation.weight <= 100:
                raise ValidationError("Weight must be between 0 and 100 before publishing")

        evaluation = guarded_commit(
            self.db,
            load=lambda: self.evaluation_repo.get_for_update(evaluation_id),
            guard=EVALUATION_GUARD,
            proposed={"status": "published", "published_at": datetime.now(timezone.utc)},
            precheck=precheck,
        )
        logger.info(f"Evaluation {evaluation_id} published by {principal.user_id}")
        return evaluation

    def close_evaluation(self, principal: Principal, evaluation_id: str) -> Evaluation:
        Authorizer.authorize(principal, [("evaluations", "update")])

        def precheck(evaluation: Evaluation) -> None:
            self._ensure_writer(principal, evaluation)
            if evaluation.status != "published":
                raise IllegalTransition(evaluation.status, "closed")

        evaluation = guarded_commit(
            self.db,
            load=lambda: self.evaluation_repo.get_for_update(evaluation_id),
            guard=EVALUATION_GUARD,
            proposed={"status": "closed", "closed_at": datetime.now(timezone.utc)},
            precheck=precheck,
        )
        logger.info(f"Evaluation {evaluation_id} closed by {principal.user_id}")
        return evaluation

    def soft_delete_evaluation(self, principal: Principal, evaluation_id: str) -> None:
        """Soft delete is independent of lifecycle status, so it skips the content guard"""
        Authorizer.authorize(principal, [("evaluations", "delete")])
        evaluation = self.evaluation_repo.get_for_update(evaluation_id)
        self._ensure_writer(principal, evaluation)
        self.evaluation_repo.soft_delete(evaluation)
        self.db.commit()
        logger.info(f"Evaluation {evaluation_id} soft-deleted by {principal.user_id}")

    # ===================================================================
    # READ
    # ===================================================================

    def get_evaluation(self, principal: Principal, evaluation_id: str) -> Evaluation:
        Authorizer.authorize(principal, [("evaluations", "read")])
        evaluation = self.evaluation_repo.get_by_id(evaluation_id)
        if not evaluation:
            raise NotFound("Evaluation not found")
        if self.is_writer(principal, evaluation):
            return evaluation

        self.ensure_enrolled(
            principal, evaluation.course_id, "You must be enrolled in this course to view evaluations"
        )
        if evaluation.is_draft:
            raise PermissionDenied("This evaluation is not yet published")
        return evaluation

    def list_course_evaluations(self, principal: Principal, course_id: str) -> List[Evaluation]:
        """
        Writers see their own evaluations, drafts included.
        Enrolled readers see published and closed ones.
        """
        Authorizer.authorize(principal, [("evaluations", "read")])
        enrolled = self.enrolled(principal, course_id)
        evaluations = self.evaluation_repo.list_for_course(course_id)
        return [
            e for e in evaluations
            if self.is_writer(principal, e) or (enrolled and not e.is_draft)
        ]
