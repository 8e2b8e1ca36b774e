from __future__ import annotations

import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class ExchangeStatus(str, enum.Enum):
    DRAFT = "draft"
    PARTICIPANTS_ADDED = "participants_added"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


exchange_participants = Table(
    "exchange_participants",
    Base.metadata,
    Column(
        "participant_id",
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "exchange_id",
        Integer,
        ForeignKey("gift_exchanges.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    UniqueConstraint("participant_id", "exchange_id", name="uq_exchange_participants_participant_exchange"),
)


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    telegram_username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    has_private_chat = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    exchanges = relationship(
        "GiftExchange", secondary=exchange_participants, back_populates="participants"
    )

    def __repr__(self) -> str:
        return (
            "<Participant(id={0}, telegram_id={1}, username={2}, has_private_chat={3})>"
        ).format(self.id, self.telegram_id, self.telegram_username, self.has_private_chat)


class GiftExchange(Base):
    __tablename__ = "gift_exchanges"

    id = Column(Integer, primary_key=True)
    telegram_chat_id = Column(BigInteger, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(
        Enum(
            ExchangeStatus,
            name="exchange_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=ExchangeStatus.DRAFT,
        server_default=ExchangeStatus.DRAFT.value,
    )
    created_by_telegram_id = Column(BigInteger, nullable=True)
    last_assignment_seed = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    participants = relationship(
        "Participant",
        secondary=exchange_participants,
        back_populates="exchanges",
        order_by="Participant.id",
    )
    exclusion_rules = relationship(
        "ExclusionRule", back_populates="exchange", cascade="all, delete-orphan"
    )
    assignments = relationship("Assignment", back_populates="exchange", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<GiftExchange(id={self.id}, chat_id={self.telegram_chat_id}, status={self.status})>"


class ExclusionRule(Base):
    __tablename__ = "exclusion_rules"

    id = Column(Integer, primary_key=True)
    exchange_id = Column(Integer, ForeignKey("gift_exchanges.id", ondelete="CASCADE"), nullable=False)
    excluder_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    excluded_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    exchange = relationship("GiftExchange", back_populates="exclusion_rules")
    excluder = relationship("Participant", foreign_keys=[excluder_id])
    excluded = relationship("Participant", foreign_keys=[excluded_id])

    __table_args__ = (
        UniqueConstraint(
            "exchange_id", "excluder_id", "excluded_id", name="uq_exclusion_rules_exchange_pair"
        ),
    )


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    exchange_id = Column(Integer, ForeignKey("gift_exchanges.id", ondelete="CASCADE"), nullable=False)
    giver_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    exchange = relationship("GiftExchange", back_populates="assignments")
    giver = relationship("Participant", foreign_keys=[giver_id])
    receiver = relationship("Participant", foreign_keys=[receiver_id])

    __table_args__ = (
        UniqueConstraint("exchange_id", "giver_id", name="uq_assignments_exchange_giver"),
    )
