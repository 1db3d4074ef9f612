"""
assessment_engine/services/guarded_write.py
Load -> diff -> guard -> commit, re-validated against the latest row

Both Evaluation and Submission carry a version_id column. If another
writer commits between our load and our commit, the UPDATE matches no
row and SQLAlchemy raises StaleDataError; we reload the fresh snapshot
and run the guard again, so a content edit can never slip past a
publish/grade that committed first.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from assessment_engine.core.config import settings
from assessment_engine.core.lifecycle import LifecycleGuard
from assessment_engine.models.base_model import BaseModel
from assessment_engine.utils.exceptions import AppException, WriteConflict

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Proposal = Union[Dict[str, Any], Callable[[Any], Dict[str, Any]]]


def guarded_commit(
    db: Session,
    load: Callable[[], ModelT],
    guard: LifecycleGuard,
    proposed: Proposal,
    precheck: Optional[Callable[[ModelT], None]] = None,
    attempts: Optional[int] = None,
) -> ModelT:
    """
    Apply `proposed` to the row returned by `load` if `guard` allows it.

    `proposed` may be a dict or a callable building the dict from the fresh row.
    `precheck` runs on every fresh row before diffing (ownership, preconditions).
    Engine errors roll the transaction back and propagate unchanged.
    """
    attempts = attempts or settings.WRITE_RETRY_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            entity = load()
            if precheck:
                precheck(entity)
            fields = proposed(entity) if callable(proposed) else dict(proposed)

            before = entity.snapshot()
            changed = guard.check(before, {**before, **fields})
            if not changed:
                # Nothing to write; just release the row lock
                db.commit()
                return entity

            entity.apply({k: fields[k] for k in changed if k in fields})
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning(
                f"{guard.name}: concurrent update detected, re-validating "
                f"(attempt {attempt}/{attempts})"
            )
            continue
        except AppException:
            db.rollback()
            raise

        logger.info(f"{guard.name} {_identity(entity)} committed: {sorted(changed)}")
        return entity

    raise WriteConflict()


def _identity(entity: BaseModel) -> str:
    return ",".join(str(getattr(entity, c.key)) for c in entity.__table__.primary_key.columns)
