from sqlmodel import SQLModel, create_engine, Session
from patentflow.core.config import settings

# Global engine instance
_engine = None


def get_engine():
    global _engine

    if _engine is not None:
        return _engine

    # Fallback to local SQLite when no DATABASE_URL is configured
    db_url = settings.DATABASE_URL or "sqlite:///./patentflow.db"

    if db_url.startswith("sqlite"):
        # SQLite fix for multithreading; `timeout` bounds the wait on a locked database
        connect_args = {"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS}
        _engine = create_engine(db_url, connect_args=connect_args)
    else:
        _engine = create_engine(
            db_url,
            pool_pre_ping=True,
            pool_timeout=settings.DB_TIMEOUT_SECONDS,
        )
    return _engine


engine = get_engine()


def init_db(bind=None) -> None:
    """Create every table that does not exist yet."""
    # Registers all table models on SQLModel.metadata
    import patentflow.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_db():
    with Session(engine) as session:
        yield session
