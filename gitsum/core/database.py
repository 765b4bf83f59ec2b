"""
Database configuration and session management.

Uses SQLAlchemy 2.x style with DeclarativeBase. The engine and session factory
are built once at import and shared by every request.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from gitsum.core.config import get_settings

settings = get_settings()

database_url = settings.sqlalchemy_database_uri

connect_args = {}
if database_url.startswith("sqlite"):
    # Writers queue on the database lock instead of failing immediately
    connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(
    database_url,
    pool_pre_ping=not database_url.startswith("sqlite"),
    echo=settings.DEBUG,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all database models using SQLAlchemy 2.x style."""
    pass


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
