"""
Assessment Engine – FastAPI bootstrap
Embedding apps mount their own routers; this module wires the shared parts:
logging, table creation, the default role seed and the error envelope.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from assessment_engine.core.config import settings
from assessment_engine.database.session import build_session_factory, engine as default_engine, init_db
from assessment_engine.repositories.role_repository import RoleRepository
from assessment_engine.utils.exceptions import register_exception_handlers

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def bootstrap(bind: Optional[Engine] = None) -> int:
    """Create tables and seed default roles. Returns the number of roles inserted."""
    bind = bind or default_engine
    init_db(bind)
    db = build_session_factory(bind)()
    try:
        return RoleRepository(db).seed_default_roles()
    finally:
        db.close()


def create_app(bind: Optional[Engine] = None) -> FastAPI:
    # =============================================================================
    # LIFESPAN MANAGER
    # =============================================================================
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Assessment engine starting up ({settings.ENVIRONMENT})")
        bootstrap(bind)
        yield
        logger.info("Assessment engine shutting down")

    app = FastAPI(
        title="LMS Assessment Engine",
        description="Role-based authorization and lifecycle guards for evaluations and submissions",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # =============================================================================
    # HEALTH CHECK
    # =============================================================================
    @app.get("/", tags=["Health"])
    def read_root():
        return {"message": "Assessment engine is running", "version": "1.0.0", "status": "active"}

    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
