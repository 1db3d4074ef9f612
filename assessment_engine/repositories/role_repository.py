"""
assessment_engine/repositories/role_repository.py
Role + membership data access, and Principal resolution

Roles are always read fresh from the database: permission sets can change
between requests, so nothing here is cached.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from assessment_engine.core.permissions import Principal
from assessment_engine.models.role import ROLES_SEED, Role, UserRole
from assessment_engine.utils.exceptions import NotFound

logger = logging.getLogger(__name__)


class RoleRepository:
    def __init__(self, db: Session):
        self.db = db

    # ===================================================================
    # ROLES
    # ===================================================================

    def get_by_name(self, name: str) -> Optional[Role]:
        return self.db.get(Role, name.strip().lower())

    def get_or_404(self, name: str) -> Role:
        role = self.get_by_name(name)
        if not role:
            raise NotFound(f"Role '{name}' not found")
        return role

    def list_roles(self, include_inactive: bool = False) -> List[Role]:
        query = select(Role).order_by(Role.level.desc())
        if not include_inactive:
            query = query.where(Role.is_active.is_(True))
        return list(self.db.scalars(query))

    def set_active(self, name: str, is_active: bool) -> Role:
        role = self.get_or_404(name)
        role.is_active = is_active
        self.db.flush()
        logger.info(f"Role '{role.name}' {'enabled' if is_active else 'disabled'}")
        return role

    def seed_default_roles(self) -> int:
        """Insert ROLES_SEED if the table is empty. Returns the number inserted."""
        existing = self.db.scalar(select(func.count()).select_from(Role))
        if existing:
            logger.info("Roles already exist, skipping seed")
            return 0

        for data in ROLES_SEED:
            self.db.add(Role(**data))
        self.db.commit()
        logger.info(f"Seeded {len(ROLES_SEED)} default roles")
        return len(ROLES_SEED)

    # ===================================================================
    # MEMBERSHIPS
    # ===================================================================

    def assign(self, user_id: str, role_name: str) -> UserRole:
        role = self.get_or_404(role_name)
        membership = self.db.get(UserRole, (user_id, role.name))
        if membership:
            return membership
        membership = UserRole(user_id=user_id, role_name=role.name)
        self.db.add(membership)
        self.db.flush()
        return membership

    def revoke(self, user_id: str, role_name: str) -> None:
        membership = self.db.get(UserRole, (user_id, role_name.strip().lower()))
        if not membership:
            raise NotFound(f"User {user_id} does not hold role '{role_name}'")
        self.db.delete(membership)
        self.db.flush()

    def roles_for_user(self, user_id: str) -> List[Role]:
        query = (
            select(Role)
            .join(UserRole, UserRole.role_name == Role.name)
            .where(UserRole.user_id == user_id)
            .order_by(Role.level.desc())
            .execution_options(populate_existing=True)
        )
        return list(self.db.scalars(query))

    def load_principal(self, user_id: str) -> Principal:
        """
        Resolve a user's roles into an immutable Principal.
        Inactive roles are carried along; the Authorizer discards them.
        """
        roles = self.roles_for_user(user_id)
        return Principal(user_id=user_id, roles=tuple(r.to_grant() for r in roles))
