from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from payrecon.config import settings


class Base(DeclarativeBase):
    pass


def get_engine():
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Request-scoped database session for FastAPI routes.

    Yields a session and closes it once the response has been produced.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
