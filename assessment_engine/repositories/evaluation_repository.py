"""
assessment_engine/repositories/evaluation_repository.py
All database operations for Evaluations – decoupled from business rules
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from assessment_engine.models.evaluation import Evaluation
from assessment_engine.models.submission import Submission  # noqa: F401  (mapper registry)
from assessment_engine.utils.exceptions import NotFound


class EvaluationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, fields: Dict[str, Any]) -> Evaluation:
        evaluation = Evaluation(**fields)
        self.db.add(evaluation)
        self.db.flush()
        return evaluation

    def get_by_id(self, evaluation_id: str, include_deleted: bool = False) -> Optional[Evaluation]:
        query = select(Evaluation).where(Evaluation.evaluation_id == evaluation_id)
        if not include_deleted:
            query = query.where(Evaluation.is_deleted.is_(False))
        return self.db.scalar(query)

    def get_for_update(self, evaluation_id: str) -> Evaluation:
        """
        Latest persisted row, bypassing the identity map.
        Row-locked on backends that support FOR UPDATE.
        """
        query = (
            select(Evaluation)
            .where(Evaluation.evaluation_id == evaluation_id, Evaluation.is_deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        evaluation = self.db.scalar(query)
        if not evaluation:
            raise NotFound("Evaluation not found")
        return evaluation

    def list_for_course(self, course_id: str, statuses: Optional[List[str]] = None) -> List[Evaluation]:
        query = select(Evaluation).where(
            Evaluation.course_id == course_id,
            Evaluation.is_deleted.is_(False),
        )
        if statuses:
            query = query.where(Evaluation.status.in_(statuses))
        return list(self.db.scalars(query.order_by(Evaluation.created_at.desc())))

    def soft_delete(self, evaluation: Evaluation) -> None:
        evaluation.is_deleted = True
        self.db.flush()
