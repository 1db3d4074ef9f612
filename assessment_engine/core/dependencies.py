"""
assessment_engine/core/dependencies.py
FastAPI dependency functions for callers embedding the engine

Provides:
- Current Principal (bearer JWT -> user id -> roles fresh from the DB)
- Permission enforcement before a route body runs

Usage:
    @router.post("/evaluations/{evaluation_id}/publish")
    def publish(
        evaluation_id: str,
        principal: Principal = Depends(require_permissions(("evaluations", "update"))),
        db: Session = Depends(get_db),
    ): ...
"""

from typing import Callable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from assessment_engine.core.permissions import Authorizer, Permission, Principal
from assessment_engine.core.security import SecurityManager
from assessment_engine.database.session import get_db
from assessment_engine.repositories.role_repository import RoleRepository
from assessment_engine.utils.exceptions import PermissionDenied

# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_principal(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Principal:
    """
    Decode the bearer token and resolve the user's roles for this request.
    Roles are loaded per request because permission sets can change.
    """
    user_id = SecurityManager.decode_token(token)
    return RoleRepository(db).load_principal(user_id)


def require_permissions(*required: Permission) -> Callable[..., Principal]:
    """
    Factory for permission-gated dependencies
    Usage: Depends(require_permissions(("evaluations", "create")))
    """
    def permission_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        Authorizer.authorize(principal, list(required))
        return principal
    return permission_checker


def require_roles(*role_names: str) -> Callable[..., Principal]:
    """
    Coarse role gate, for routes that key on role membership rather than permissions
    Usage: Depends(require_roles("instructor", "admin"))
    """
    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not any(principal.has_role(name) for name in role_names):
            raise PermissionDenied(f"Access denied. Required role(s): {', '.join(role_names)}")
        return principal
    return role_checker
