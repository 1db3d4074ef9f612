"""
assessment_engine/models/role.py
Role reference table + user_roles memberships

Permissions are declarative data: an ordered list of
{"resource": str, "actions": [str, ...]} entries stored as JSON.
The Authorizer never sees these rows directly, only their RoleGrant snapshots.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from assessment_engine.core.permissions import ROLE_NAMES, PermissionSet, RoleGrant
from assessment_engine.models.base_model import BaseModel


class Role(BaseModel):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(30),
        primary_key=True,
        comment="admin, instructor, student"
    )
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    permissions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, server_default="1", index=True
    )

    members: Mapped[List["UserRole"]] = relationship(back_populates="role")

    __table_args__ = (
        CheckConstraint("level BETWEEN 1 AND 100", name="level_range"),
    )

    @validates("name")
    def _normalize_name(self, key, value: str) -> str:
        value = value.strip().lower()
        if value not in ROLE_NAMES:
            raise ValueError(f"'{value}' is not a valid role")
        return value

    @validates("level")
    def _check_level(self, key, value: int) -> int:
        if not 1 <= value <= 100:
            raise ValueError("Role level must be between 1 and 100")
        return value

    @validates("permissions")
    def _check_permissions(self, key, value):
        # Round-trip through PermissionSet to reject unknown actions
        return [PermissionSet.from_dict(p).to_dict() for p in value]

    def to_grant(self) -> RoleGrant:
        return RoleGrant(
            name=self.name,
            permissions=tuple(PermissionSet.from_dict(p) for p in self.permissions or ()),
            level=self.level,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class UserRole(BaseModel):
    """A user's membership in a role. Users live outside this engine."""
    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role_name: Mapped[str] = mapped_column(
        String(30), ForeignKey("roles.name", ondelete="CASCADE"), primary_key=True
    )

    role: Mapped["Role"] = relationship(back_populates="members", lazy="joined")


# === SEED DATA (run once at bootstrap) ===
ROLES_SEED = [
    {
        "name": "admin",
        "display_name": "Administrator",
        "description": "Full system access with all permissions. Can manage users, roles, and system configuration.",
        "level": 100,
        "permissions": [
            {"resource": "all", "actions": ["manage"]},
        ],
    },
    {
        "name": "instructor",
        "display_name": "Instructor",
        "description": "Can create and manage courses and evaluations, and grade student submissions.",
        "level": 50,
        "permissions": [
            {"resource": "courses", "actions": ["create", "read", "update", "delete"]},
            {"resource": "content", "actions": ["create", "read", "update", "delete"]},
            {"resource": "students", "actions": ["read"]},
            {"resource": "assignments", "actions": ["create", "read", "update", "delete"]},
            {"resource": "evaluations", "actions": ["create", "read", "update", "delete"]},
            {"resource": "submissions", "actions": ["read"]},
            {"resource": "grades", "actions": ["create", "read", "update"]},
        ],
    },
    {
        "name": "student",
        "display_name": "Student",
        "description": "Can view content, submit evaluations, and track their own progress.",
        "level": 10,
        "permissions": [
            {"resource": "courses", "actions": ["read"]},
            {"resource": "content", "actions": ["read"]},
            {"resource": "assignments", "actions": ["read", "create"]},
            {"resource": "evaluations", "actions": ["read"]},
            {"resource": "submissions", "actions": ["create", "read"]},
            {"resource": "profile", "actions": ["read", "update"]},
        ],
    },
]
