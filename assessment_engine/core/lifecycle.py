"""
assessment_engine/core/lifecycle.py
LifecycleGuard – one diff-against-whitelist check shared by Evaluation and Submission

The guard is a pure function of (before, after): both are plain dicts of
field -> value. `before is None` means the write creates the record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, FrozenSet, Mapping, Optional, Set

from assessment_engine.utils.exceptions import IllegalTransition, ImmutabilityViolation

logger = logging.getLogger(__name__)

# Sentinel: every field may change in this state
UNRESTRICTED = None


def _comparable(value: Any) -> Any:
    # Backends without tz support (SQLite) hand back naive UTC datetimes
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def changed_fields(before: Mapping[str, Any], after: Mapping[str, Any]) -> Set[str]:
    """Field names whose value differs between the two snapshots"""
    keys = set(before) | set(after)
    return {k for k in keys if _comparable(before.get(k)) != _comparable(after.get(k))}


@dataclass(frozen=True)
class LifecycleGuard:
    """
    state -> fields that may still change while the record is in that state.

    A state mapped to UNRESTRICTED allows any change. A state missing from
    `writable` allows nothing. `transitions` lists the legal next states;
    staying in the same state is always legal.
    """
    name: str
    writable: Mapping[str, Optional[FrozenSet[str]]]
    transitions: Mapping[str, FrozenSet[str]]
    state_field: str = "status"

    def allowed_fields(self, state: str) -> Optional[FrozenSet[str]]:
        return self.writable.get(state, frozenset())

    def check_transition(self, current: str, target: str) -> None:
        if current == target:
            return
        if target not in self.transitions.get(current, frozenset()):
            logger.warning(f"{self.name}: illegal transition {current} -> {target}")
            raise IllegalTransition(current, target)

    def check(self, before: Optional[Mapping[str, Any]], after: Mapping[str, Any]) -> Set[str]:
        """
        Validate a proposed write. Returns the changed field set.

        Raises ImmutabilityViolation (or IllegalTransition) on a forbidden diff.
        """
        if before is None:
            return set(after)

        changed = changed_fields(before, after)
        if not changed:
            return changed

        current = before[self.state_field]
        allowed = self.allowed_fields(current)
        if allowed is not UNRESTRICTED:
            illegal = changed - allowed
            if illegal:
                logger.warning(
                    f"{self.name}: rejected change to {sorted(illegal)} in state '{current}'"
                )
                raise ImmutabilityViolation(
                    illegal,
                    f"Cannot modify {self.name} field(s) {', '.join(sorted(illegal))} "
                    f"while status is '{current}'",
                )

        if self.state_field in changed:
            self.check_transition(current, after[self.state_field])

        return changed


# =============================================================================
# EVALUATION: draft -> published -> closed
# =============================================================================
EVALUATION_STATUS_FIELDS = frozenset({"status", "published_at", "closed_at"})

EVALUATION_GUARD = LifecycleGuard(
    name="evaluation",
    writable={
        "draft": UNRESTRICTED,
        "published": EVALUATION_STATUS_FIELDS,
        "closed": EVALUATION_STATUS_FIELDS,
    },
    transitions={
        "draft": frozenset({"published"}),
        "published": frozenset({"closed"}),
        "closed": frozenset(),
    },
)


# =============================================================================
# SUBMISSION: submitted -> graded
# =============================================================================
GRADING_FIELDS = frozenset({"total_score", "feedback", "graded_by", "graded_at"})

SUBMISSION_GUARD = LifecycleGuard(
    name="submission",
    writable={
        "submitted": GRADING_FIELDS | {"status"},
        # Grade is frozen; only status bookkeeping remains
        "graded": frozenset({"status"}),
    },
    transitions={
        "submitted": frozenset({"graded"}),
        "graded": frozenset(),
    },
)
