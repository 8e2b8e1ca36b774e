from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


class SessionCancelled(RuntimeError):
    pass


def init_engine(database_url: str, echo: bool = False) -> Engine:
    engine = create_engine(database_url, pool_pre_ping=True, echo=echo, future=True)
    SessionLocal.configure(bind=engine)
    return engine


@contextmanager
def get_session(cancelled: Optional[threading.Event] = None) -> Iterator[Session]:
    """Unit of work: commit on success, roll back on any error.

    Work running in a worker thread passes ``cancelled``; once the caller
    sets it, the session rolls back instead of committing.
    """
    if SessionLocal.kw.get("bind") is None:
        raise RuntimeError("Database engine not initialized. Call init_engine() before use.")

    session = SessionLocal()
    try:
        yield session
        if cancelled is not None and cancelled.is_set():
            raise SessionCancelled("Unit of work was cancelled before commit.")
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
