from pathlib import Path

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from linkworker.config import Settings

# SQLite for local dev, stored next to the package folder
DEV_DB_PATH = Path(__file__).parent.parent / "linkworker_dev.db"

Base = declarative_base()


def make_engine(settings: Settings) -> Engine:
    if settings.environment == "prod":
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL must be set in production")
        return create_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
        )

    url = settings.database_url or f"sqlite:///{DEV_DB_PATH}"
    if url.startswith("sqlite"):
        # needed for SQLite + FastAPI: sync endpoints run in a threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)

def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db(request: Request):
    """One session per request, from the factory ``create_app`` put on app.state."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
