from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .config import DEFAULT_CONFIG

_engine: Optional[Engine] = None
SessionLocal = scoped_session(sessionmaker(autocommit=False, autoflush=False))


def _ensure_sqlite_dir(database_url: str) -> None:
    prefix = "sqlite:///"
    if database_url.startswith(prefix) and ":memory:" not in database_url:
        Path(database_url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def init_engine(database_url: str, echo: bool = False) -> Engine:
    global _engine
    _ensure_sqlite_dir(database_url)
    _engine = create_engine(database_url, echo=echo, future=True)
    SessionLocal.remove()
    SessionLocal.configure(bind=_engine)
    from . import models  # noqa: F401

    models.Base.metadata.create_all(bind=_engine)
    return _engine


def init_db(app: Flask) -> None:
    database_url = app.config.get("DATABASE_URL", DEFAULT_CONFIG["DATABASE_URL"])
    init_engine(database_url, bool(app.config.get("DATABASE_ECHO", False)))


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
