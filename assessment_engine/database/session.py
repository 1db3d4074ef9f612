"""
assessment_engine/database/session.py
Database engine + session factory
Fully compatible with FastAPI Depends()
"""

from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from assessment_engine.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create an engine for `url` (defaults to settings.DATABASE_URL).
    SQLite needs check_same_thread disabled to be shared across request threads.
    """
    url = url or settings.DATABASE_URL
    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.DB_ECHO if echo is None else echo,
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(pool_size=20, max_overflow=40, pool_timeout=30)
    return create_engine(url, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,       # Prevents attribute expiration after commit
    )


engine = build_engine()
SessionLocal = build_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency: provides a database session per request
    Usage in routers:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables (use migrations in production)"""
    from assessment_engine.models.base_model import BaseModel
    # Register mappers
    import assessment_engine.models.role  # noqa: F401
    import assessment_engine.models.evaluation  # noqa: F401
    import assessment_engine.models.submission  # noqa: F401

    BaseModel.metadata.create_all(bind=bind or engine)
