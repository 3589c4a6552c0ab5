from typing import Iterator
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from .config import settings
from . import models_db  # noqa: F401  registers the tables on SQLModel.metadata

def _build_engine(url: str) -> Engine:
    kwargs = {"echo": settings.db_echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    eng = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        enable_sqlite_foreign_keys(eng)
    return eng

def enable_sqlite_foreign_keys(eng: Engine) -> None:
    # SQLite ignores FK constraints unless asked per connection
    @event.listens_for(eng, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = _build_engine(settings.resolved_db_url())

def init_db() -> None:
    if settings.db_auto_create:
        SQLModel.metadata.create_all(engine)

def ping(session: Session) -> None:
    session.connection().execute(text("SELECT 1"))

def get_session() -> Iterator[Session]:
    # Disable attribute expiry after commit (avoids {} in responses)
    with Session(engine, expire_on_commit=False) as session:
        yield session
