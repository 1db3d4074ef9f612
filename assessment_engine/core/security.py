"""
assessment_engine/core/security.py
JWT token creation & verification

The engine does not authenticate users itself; it only needs to know who
the bearer is. `sub` carries the user id; roles are always re-read from
the database, never trusted from the token.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from assessment_engine.core.config import settings
from assessment_engine.utils.exceptions import AppException


class InvalidToken(AppException):
    """401 - Missing, malformed or expired bearer token"""
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(401, "UNAUTHORIZED", detail, headers={"WWW-Authenticate": "Bearer"})


class SecurityManager:
    @staticmethod
    def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT token"""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        payload = {"sub": user_id, "exp": expire, "iat": now}
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> str:
        """Decode and validate JWT token, returning the user id"""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Token expired")
        except jwt.InvalidTokenError:
            raise InvalidToken("Invalid token")

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidToken("Invalid token payload")
        return user_id
