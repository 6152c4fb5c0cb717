"""Database connection and session management."""
import os
from datetime import datetime
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from urlcoin.core.config import get_settings

settings = get_settings()

# Market reference timezone (UTC+9)
KST = pytz.timezone(settings.scheduler_timezone)


def kst_now():
    """Get current datetime in Korea Standard Time (KST).

    Returns:
        datetime: Current datetime in KST timezone
    """
    return datetime.now(KST)


def to_kst(dt: datetime) -> datetime:
    """Shift a datetime into KST.

    Naive datetimes are taken as the caller's local time.
    """
    return dt.astimezone(KST)


def create_db_engine(database_url: str):
    """Create an engine, sharing one connection for in-memory SQLite."""
    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool
            )
        path = database_url.replace("sqlite:///", "", 1)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


# Create SQLAlchemy engine
engine = create_db_engine(settings.database_url)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create Base class for models
Base = declarative_base()


def init_db(bind=None):
    """Create the document table."""
    from urlcoin.models.document import Document  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
