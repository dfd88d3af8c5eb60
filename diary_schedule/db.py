# diary_schedule/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from diary_schedule.core.config import settings

_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync handlers in a thread pool
    _connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    """Request-scoped session; closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Factory for code that opens its own sessions off the request thread."""
    return SessionLocal
