from santa.db.models import (
    Assignment,
    Base,
    ExchangeStatus,
    ExclusionRule,
    GiftExchange,
    Participant,
    exchange_participants,
)
from santa.db.session import SessionCancelled, SessionLocal, get_session, init_engine

__all__ = [
    "Assignment",
    "Base",
    "ExchangeStatus",
    "ExclusionRule",
    "GiftExchange",
    "Participant",
    "exchange_participants",
    "SessionCancelled",
    "SessionLocal",
    "get_session",
    "init_engine",
]
