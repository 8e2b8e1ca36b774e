from __future__ import annotations

import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError

from santa.db.models import (
    Assignment,
    ExchangeStatus,
    ExclusionRule,
    GiftExchange,
    Participant,
    exchange_participants,
)


def get_participant_by_telegram_id(session, telegram_id: int) -> Optional[Participant]:
    return session.scalar(select(Participant).where(Participant.telegram_id == telegram_id))


def get_participant_by_username(session, exchange_id: int, username: str) -> Optional[Participant]:
    return session.scalar(
        select(Participant)
        .join(exchange_participants, exchange_participants.c.participant_id == Participant.id)
        .where(
            and_(
                exchange_participants.c.exchange_id == exchange_id,
                func.lower(Participant.telegram_username) == username.lower(),
            )
        )
    )


def upsert_participant(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    display_name: Optional[str],
) -> Participant:
    participant = get_participant_by_telegram_id(session, telegram_id)
    if participant:
        participant.telegram_username = telegram_username
        participant.display_name = display_name
        return participant

    participant = Participant(
        telegram_id=telegram_id,
        telegram_username=telegram_username,
        display_name=display_name,
    )
    session.add(participant)
    session.flush()
    return participant


def get_exchange_by_chat_id(session, telegram_chat_id: int) -> Optional[GiftExchange]:
    return session.scalar(select(GiftExchange).where(GiftExchange.telegram_chat_id == telegram_chat_id))


def create_exchange(
    session,
    telegram_chat_id: int,
    name: str,
    year: int,
    created_by_telegram_id: Optional[int],
) -> GiftExchange:
    exchange = GiftExchange(
        telegram_chat_id=telegram_chat_id,
        name=name,
        year=year,
        created_by_telegram_id=created_by_telegram_id,
    )
    session.add(exchange)
    session.flush()
    return exchange


def count_exchange_participants(session, exchange_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(exchange_participants)
        .where(exchange_participants.c.exchange_id == exchange_id)
    )


def is_participant_in_exchange(session, participant_id: int, exchange_id: int) -> bool:
    return session.scalar(
        select(func.count())
        .select_from(exchange_participants)
        .where(
            and_(
                exchange_participants.c.participant_id == participant_id,
                exchange_participants.c.exchange_id == exchange_id,
            )
        )
    ) > 0


def add_participant_to_exchange(session, participant_id: int, exchange_id: int) -> bool:
    if is_participant_in_exchange(session, participant_id, exchange_id):
        return False
    try:
        session.execute(
            exchange_participants.insert().values(participant_id=participant_id, exchange_id=exchange_id)
        )
        return True
    except IntegrityError:
        return False


def remove_participant_from_exchange(session, participant_id: int, exchange_id: int) -> bool:
    result = session.execute(
        delete(exchange_participants).where(
            and_(
                exchange_participants.c.participant_id == participant_id,
                exchange_participants.c.exchange_id == exchange_id,
            )
        )
    )
    return bool(result.rowcount)


def list_exchange_participants(session, exchange_id: int) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .join(exchange_participants, exchange_participants.c.participant_id == Participant.id)
            .where(exchange_participants.c.exchange_id == exchange_id)
            .order_by(Participant.id)
        ).all()
    )


def list_exchanges_for_participant(session, participant_id: int) -> List[GiftExchange]:
    return list(
        session.scalars(
            select(GiftExchange)
            .join(exchange_participants, exchange_participants.c.exchange_id == GiftExchange.id)
            .where(exchange_participants.c.participant_id == participant_id)
            .order_by(GiftExchange.id)
        ).all()
    )


def update_exchange_status(
    session,
    exchange: GiftExchange,
    status: ExchangeStatus,
    assigned_at: Optional[datetime.datetime] = None,
) -> None:
    exchange.status = status
    exchange.assigned_at = assigned_at


def update_exchange_assignment_seed(session, exchange: GiftExchange, seed: Optional[int]) -> None:
    exchange.last_assignment_seed = seed


def get_exclusion_rule(
    session, exchange_id: int, excluder_id: int, excluded_id: int
) -> Optional[ExclusionRule]:
    return session.scalar(
        select(ExclusionRule).where(
            and_(
                ExclusionRule.exchange_id == exchange_id,
                ExclusionRule.excluder_id == excluder_id,
                ExclusionRule.excluded_id == excluded_id,
            )
        )
    )


def create_exclusion_rule(
    session,
    exchange_id: int,
    excluder_id: int,
    excluded_id: int,
    reason: Optional[str],
) -> ExclusionRule:
    rule = ExclusionRule(
        exchange_id=exchange_id,
        excluder_id=excluder_id,
        excluded_id=excluded_id,
        reason=reason,
    )
    session.add(rule)
    session.flush()
    return rule


def list_exclusion_rules(session, exchange_id: int) -> List[ExclusionRule]:
    return list(
        session.scalars(
            select(ExclusionRule)
            .where(ExclusionRule.exchange_id == exchange_id)
            .order_by(ExclusionRule.id)
        ).all()
    )


def list_exclusion_pairs(session, exchange_id: int) -> List[Tuple[int, int]]:
    rows = session.execute(
        select(ExclusionRule.excluder_id, ExclusionRule.excluded_id)
        .where(ExclusionRule.exchange_id == exchange_id)
        .order_by(ExclusionRule.id)
    ).all()
    return [(row.excluder_id, row.excluded_id) for row in rows]


def delete_exclusion_rule(session, rule: ExclusionRule) -> None:
    session.delete(rule)
    session.flush()


def delete_participant_exclusion_rules(session, exchange_id: int, participant_id: int) -> int:
    result = session.execute(
        delete(ExclusionRule).where(
            and_(
                ExclusionRule.exchange_id == exchange_id,
                (ExclusionRule.excluder_id == participant_id)
                | (ExclusionRule.excluded_id == participant_id),
            )
        )
    )
    return result.rowcount or 0


def create_assignments(session, exchange_id: int, assignments: Dict[int, int]) -> None:
    rows = [
        Assignment(exchange_id=exchange_id, giver_id=giver_id, receiver_id=receiver_id)
        for giver_id, receiver_id in assignments.items()
    ]
    session.add_all(rows)
    session.flush()


def list_assignments(session, exchange_id: int) -> List[Assignment]:
    return list(
        session.scalars(
            select(Assignment).where(Assignment.exchange_id == exchange_id).order_by(Assignment.id)
        ).all()
    )


def get_assignment_for_giver(session, exchange_id: int, giver_id: int) -> Optional[Assignment]:
    return session.scalar(
        select(Assignment).where(
            and_(Assignment.exchange_id == exchange_id, Assignment.giver_id == giver_id)
        )
    )


def clear_assignments(session, exchange_id: int) -> int:
    result = session.execute(delete(Assignment).where(Assignment.exchange_id == exchange_id))
    return result.rowcount or 0
