import threading

import pytest

from santa.db import Base, SessionCancelled, get_session, init_engine, repo


def setup_engine():
    engine = init_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_session_commits_and_rolls_back():
    setup_engine()

    with get_session() as session:
        repo.upsert_participant(session, 1, "alice", "Alice")

    with pytest.raises(ValueError):
        with get_session() as session:
            repo.upsert_participant(session, 2, "bob", "Bob")
            raise ValueError("boom")

    with get_session() as session:
        assert repo.get_participant_by_telegram_id(session, 1).display_name == "Alice"
        assert repo.get_participant_by_telegram_id(session, 2) is None


def test_cancelled_session_does_not_commit():
    setup_engine()
    cancelled = threading.Event()

    with pytest.raises(SessionCancelled):
        with get_session(cancelled) as session:
            repo.upsert_participant(session, 1, "alice", "Alice")
            cancelled.set()

    with get_session(threading.Event()) as session:
        assert repo.get_participant_by_telegram_id(session, 1) is None
        repo.upsert_participant(session, 2, "bob", "Bob")

    with get_session() as session:
        assert repo.get_participant_by_telegram_id(session, 2).display_name == "Bob"
