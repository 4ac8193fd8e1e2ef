# resume_ab/db.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

# Experiment, Variant, Trial and ResultSnapshot all hang off this
Base = declarative_base()


def create_db_engine(url: str, **kwargs) -> Engine:
    """Engine for `url`; SQLite connections may be shared with the recompute thread."""
    if url.startswith("sqlite"):
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(url, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = create_db_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = engine) -> None:
    """Create any missing experiment tables."""
    from . import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=bind)


def get_db():
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
