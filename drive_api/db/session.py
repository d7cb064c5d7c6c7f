from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from drive_api.core.config import settings
from drive_api.db.base import Base

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # only needed for SQLite
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    import drive_api.models  # noqa: F401  # populate metadata

    Base.metadata.create_all(bind=engine)


def get_db():
    """
    Yields a database session for FastAPI dependencies.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
