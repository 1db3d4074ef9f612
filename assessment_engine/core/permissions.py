"""
assessment_engine/core/permissions.py
Role/permission values and the Authorizer

Decisions are pure functions over roles loaded for the current request.
Two short-circuits run before the generic matching loop:
- an active role named "admin" is allowed everything
- an active role holding ("all", "manage") is allowed everything
Otherwise a SINGLE role must satisfy every required (resource, action)
pair; permissions are never aggregated across roles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

from assessment_engine.utils.exceptions import PermissionDenied

logger = logging.getLogger(__name__)

ROLE_NAMES = ("admin", "instructor", "student")
ACTIONS = ("create", "read", "update", "delete", "manage")

ADMIN_ROLE = "admin"
WILDCARD_RESOURCE = "all"
MANAGE_ACTION = "manage"

# (resource, action)
Permission = Tuple[str, str]


@dataclass(frozen=True)
class PermissionSet:
    """Allowed actions on one resource."""
    resource: str
    actions: FrozenSet[str]

    def __post_init__(self):
        unknown = set(self.actions) - set(ACTIONS)
        if unknown:
            raise ValueError(f"Unknown actions for '{self.resource}': {sorted(unknown)}")
        object.__setattr__(self, "actions", frozenset(self.actions))

    @classmethod
    def of(cls, resource: str, *actions: str) -> PermissionSet:
        return cls(resource=resource, actions=frozenset(actions))

    @classmethod
    def from_dict(cls, data: dict) -> PermissionSet:
        return cls(resource=data["resource"], actions=frozenset(data.get("actions", ())))

    def to_dict(self) -> dict:
        return {"resource": self.resource, "actions": sorted(self.actions)}

    def allows(self, resource: str, action: str) -> bool:
        return self.resource == resource and action in self.actions

    @property
    def is_manage_all(self) -> bool:
        return self.resource == WILDCARD_RESOURCE and MANAGE_ACTION in self.actions


@dataclass(frozen=True)
class RoleGrant:
    """Immutable snapshot of a Role row, as seen by the Authorizer."""
    name: str
    permissions: Tuple[PermissionSet, ...] = ()
    level: int = 1
    is_active: bool = True

    def grants(self, resource: str, action: str) -> bool:
        return any(p.allows(resource, action) for p in self.permissions)

    @property
    def is_admin(self) -> bool:
        return self.name == ADMIN_ROLE

    @property
    def manages_all(self) -> bool:
        return any(p.is_manage_all for p in self.permissions)


@dataclass(frozen=True)
class Principal:
    """The authenticated actor plus its resolved roles."""
    user_id: str
    roles: Tuple[RoleGrant, ...] = ()

    @property
    def active_roles(self) -> Tuple[RoleGrant, ...]:
        return tuple(r for r in self.roles if r.is_active)

    @property
    def role_names(self) -> FrozenSet[str]:
        return frozenset(r.name for r in self.active_roles)

    def has_role(self, name: str) -> bool:
        return name in self.role_names

    @property
    def is_superuser(self) -> bool:
        """Admin role or an all/manage holder – used for ownership overrides."""
        return Authorizer.bypasses(self.active_roles)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    failed: Optional[Permission] = None
    matched_role: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


class Authorizer:
    """
    Stateless permission checker.

    check()     -> Decision (never raises)
    authorize() -> None, or raises PermissionDenied
    """

    @staticmethod
    def bypasses(roles: Iterable[RoleGrant]) -> bool:
        roles = tuple(roles)
        return any(r.is_admin for r in roles) or any(r.manages_all for r in roles)

    @classmethod
    def check(cls, roles: Iterable[RoleGrant], required: Sequence[Permission]) -> Decision:
        active = [r for r in roles if r.is_active]
        if not active:
            return Decision(False, reason="no active role", failed=required[0] if required else None)

        # Hardcoded escape hatch, not data-driven
        for role in active:
            if role.is_admin:
                return Decision(True, reason="admin", matched_role=role.name)

        for role in active:
            if role.manages_all:
                return Decision(True, reason="all:manage", matched_role=role.name)

        first_failure: Optional[Permission] = None
        for role in active:
            missing = next(
                ((res, act) for res, act in required if not role.grants(res, act)),
                None,
            )
            if missing is None:
                return Decision(True, reason="permission", matched_role=role.name)
            if first_failure is None:
                first_failure = missing

        return Decision(False, reason="missing permission", failed=first_failure)

    @classmethod
    def authorize(cls, principal: Principal, required: Sequence[Permission]) -> Decision:
        decision = cls.check(principal.roles, required)
        if not decision:
            logger.warning(
                f"Permission denied for user {principal.user_id}: "
                f"{decision.reason} {decision.failed or ''}".rstrip()
            )
            raise PermissionDenied(failed=decision.failed)
        return decision


def authorize(principal: Principal, required: Sequence[Permission]) -> Decision:
    """Module-level shortcut for Authorizer.authorize"""
    return Authorizer.authorize(principal, required)
