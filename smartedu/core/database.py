import logging
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from smartedu.core.config import Settings

logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings) -> Engine:
    return create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, future=True, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist. In production, use migrations instead."""
    from smartedu.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

