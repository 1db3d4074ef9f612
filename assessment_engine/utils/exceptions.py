"""
assessment_engine/utils/exceptions.py
Error taxonomy for the assessment engine + FastAPI exception handlers

Every engine error is terminal: it reports a policy or data violation and
is never retried by the engine itself.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE EXCEPTIONS
# =============================================================================

class AppException(HTTPException):
    """Base class for all engine exceptions"""
    def __init__(
        self,
        status_code: int,
        code: str,
        detail: str,
        headers: Optional[Dict[str, str]] = None
    ):
        self.code = code
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def extra(self) -> Dict[str, Any]:
        return {}


class PermissionDenied(AppException):
    """403 - Authorization failed or no active role"""
    def __init__(
        self,
        detail: str = "You do not have permission to perform this action",
        failed: Optional[Tuple[str, str]] = None,
    ):
        # Kept for diagnostics only, never rendered to the caller
        self.failed = failed
        super().__init__(403, "FORBIDDEN", detail)


class NotFound(AppException):
    """404 - Evaluation, submission or role absent"""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(404, "NOT_FOUND", detail)


class ImmutabilityViolation(AppException):
    """409 - A write touched fields the current lifecycle state forbids"""
    code_name = "IMMUTABLE_FIELD"

    def __init__(self, fields: Iterable[str], detail: Optional[str] = None):
        self.fields: List[str] = sorted(set(fields))
        super().__init__(
            409,
            self.code_name,
            detail or f"Cannot modify field(s): {', '.join(self.fields)}",
        )

    def extra(self) -> Dict[str, Any]:
        return {"fields": self.fields}


class IllegalTransition(ImmutabilityViolation):
    """409 - Status moved backwards or skipped a state"""
    code_name = "ILLEGAL_TRANSITION"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(["status"], f"Cannot move status from '{current}' to '{target}'")


class UniquenessConflict(AppException):
    """409 - Duplicate submission for the same (student, evaluation)"""
    def __init__(self, detail: str = "You have already submitted this evaluation"):
        super().__init__(409, "CONFLICT", detail)


class WriteConflict(AppException):
    """409 - Concurrent writers kept invalidating the snapshot"""
    def __init__(self, detail: str = "The record was modified concurrently, please retry"):
        super().__init__(409, "WRITE_CONFLICT", detail)


class ValidationError(AppException):
    """422 - Structural constraint failed (range, length, enum)"""
    def __init__(self, detail: str = "Validation failed", errors: Optional[List[Dict[str, str]]] = None):
        self.errors = errors or []
        super().__init__(422, "VALIDATION_ERROR", detail)

    @classmethod
    def from_pydantic(cls, exc) -> ValidationError:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return cls("Validation failed", errors=errors)

    def extra(self) -> Dict[str, Any]:
        return {"errors": self.errors} if self.errors else {}


# =============================================================================
# EXCEPTION HANDLERS (consistent JSON envelope)
# =============================================================================

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all engine AppException errors"""
    response = {
        "success": False,
        "error": {
            "code": exc.code,
            "detail": exc.detail,
            **exc.extra(),
            "path": str(request.url),
            "method": request.method,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }

    logger.warning(f"{exc.code} - {exc.detail} - {request.url}")
    return JSONResponse(
        status_code=exc.status_code,
        content=response,
        headers=exc.headers
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors (never expose stack trace)"""
    logger.error(f"Unhandled exception: {exc} - {request.url}", exc_info=True)

    response = {
        "success": False,
        "error": {
            "code": "INTERNAL_ERROR",
            "detail": "An unexpected error occurred. Please try again later.",
            "request_id": request.headers.get("X-Request-ID", "unknown"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }

    return JSONResponse(status_code=500, content=response)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the engine's handlers on a caller's FastAPI app"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
