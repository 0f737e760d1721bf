from sqlmodel import SQLModel, create_engine, Session

from flightdeck.core.config import settings

_engine = None


def get_engine():
    global _engine

    if _engine is not None:
        return _engine

    # Fallback to a local SQLite file
    db_url = settings.DATABASE_URL or "sqlite:///./flightdeck.db"

    # SQLite fix for multithreading
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}

    _engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    return _engine


def init_db(engine=None):
    # Register table models before creating tables
    from flightdeck.models.project import ProjectRecord  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


def get_db():
    with Session(get_engine()) as session:
        yield session
