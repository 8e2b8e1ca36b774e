from __future__ import annotations

import datetime
import html
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError

from santa.db import ExchangeStatus, ExclusionRule, GiftExchange, Participant, repo
from santa.services.exclusions import FeasibilityReport, ParticipantRef, analyze, would_create_cycle
from santa.services.matching import (
    DEFAULT_RETRY_ATTEMPTS,
    AssignmentError,
    compute_matching,
    is_valid_matching,
)

NO_VALID_ASSIGNMENT_MESSAGE = "Unable to generate valid assignments with current exclusion rules"

CLOSED_STATUSES = {ExchangeStatus.ASSIGNED, ExchangeStatus.COMPLETED}


class ExchangeError(RuntimeError):
    pass


class ExclusionRuleError(ExchangeError):
    pass


@dataclass(frozen=True)
class JoinResult:
    added: bool
    message: str
    exchange: GiftExchange
    participant: Participant


@dataclass(frozen=True)
class AssignmentResult:
    assignments: Dict[int, int]
    participants: List[Participant]
    exchange: GiftExchange


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def format_participant_label(participant: Participant) -> str:
    if participant.telegram_username:
        return f"@{html.escape(participant.telegram_username)}"
    if participant.display_name:
        return html.escape(participant.display_name)
    return f"user-{participant.telegram_id}"


def participant_name(participant: Participant) -> str:
    if participant.display_name:
        return participant.display_name
    if participant.telegram_username:
        return f"@{participant.telegram_username}"
    return f"user-{participant.telegram_id}"


def format_participant_display(participant: Participant) -> str:
    return html.escape(participant_name(participant))


def ensure_participant(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> Participant:
    display_name = " ".join(filter(None, [first_name, last_name])) or None
    return repo.upsert_participant(session, telegram_id, telegram_username, display_name)


def register_private_chat(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> Participant:
    participant = ensure_participant(session, telegram_id, telegram_username, first_name, last_name)
    participant.has_private_chat = True
    return participant


def get_or_create_exchange(
    session,
    telegram_chat_id: int,
    chat_title: Optional[str],
    created_by_telegram_id: Optional[int],
) -> GiftExchange:
    exchange = repo.get_exchange_by_chat_id(session, telegram_chat_id)
    if exchange:
        if chat_title and exchange.name != chat_title:
            exchange.name = chat_title
        return exchange

    year = _utcnow().year
    name = chat_title or f"Secret Santa {year}"
    exchange = repo.create_exchange(session, telegram_chat_id, name, year, created_by_telegram_id)
    logger.bind(exchange_id=exchange.id, chat_id=telegram_chat_id).info("Exchange created")
    return exchange


def join_exchange(
    session,
    telegram_user_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    telegram_chat_id: int,
    chat_title: Optional[str],
) -> JoinResult:
    participant = ensure_participant(session, telegram_user_id, telegram_username, first_name, last_name)
    exchange = get_or_create_exchange(session, telegram_chat_id, chat_title, telegram_user_id)

    if exchange.status in CLOSED_STATUSES:
        return JoinResult(False, "Gifts have already been drawn for this exchange.", exchange, participant)

    added = repo.add_participant_to_exchange(session, participant.id, exchange.id)
    if not added:
        return JoinResult(False, "You are already in this Secret Santa exchange!", exchange, participant)

    if exchange.status == ExchangeStatus.DRAFT:
        repo.update_exchange_status(session, exchange, ExchangeStatus.PARTICIPANTS_ADDED)

    return JoinResult(True, "You have joined the Secret Santa exchange!", exchange, participant)


def leave_exchange(session, exchange: GiftExchange, participant: Participant) -> bool:
    if exchange.status in CLOSED_STATUSES:
        raise ExchangeError("You cannot leave after gifts have been drawn.")

    if not repo.remove_participant_from_exchange(session, participant.id, exchange.id):
        return False
    repo.delete_participant_exclusion_rules(session, exchange.id, participant.id)

    if repo.count_exchange_participants(session, exchange.id) == 0:
        repo.update_exchange_status(session, exchange, ExchangeStatus.DRAFT)
    return True


def list_participants(session, exchange: GiftExchange) -> List[Participant]:
    return repo.list_exchange_participants(session, exchange.id)


def find_participant(
    session,
    exchange: GiftExchange,
    username: Optional[str] = None,
    telegram_id: Optional[int] = None,
) -> Optional[Participant]:
    """Look up an exchange member by @username or, for users without one, by Telegram ID."""
    if telegram_id is not None:
        participant = repo.get_participant_by_telegram_id(session, telegram_id)
        if participant and repo.is_participant_in_exchange(session, participant.id, exchange.id):
            return participant
        return None

    username = (username or "").strip().lstrip("@")
    if not username:
        return None
    return repo.get_participant_by_username(session, exchange.id, username)


def _ensure_rules_editable(exchange: GiftExchange) -> None:
    if exchange.status in CLOSED_STATUSES:
        raise ExclusionRuleError("Exclusion rules cannot change after gifts have been drawn.")


def add_exclusion(
    session,
    exchange: GiftExchange,
    excluder: Participant,
    excluded: Participant,
    reason: Optional[str] = None,
) -> ExclusionRule:
    _ensure_rules_editable(exchange)

    if excluder.id == excluded.id:
        raise ExclusionRuleError("A participant cannot exclude themselves.")
    for participant in (excluder, excluded):
        if not repo.is_participant_in_exchange(session, participant.id, exchange.id):
            raise ExclusionRuleError(
                f"{participant_name(participant)} is not part of this exchange."
            )

    if repo.get_exclusion_rule(session, exchange.id, excluder.id, excluded.id):
        raise ExclusionRuleError("This exclusion rule already exists.")

    existing = repo.list_exclusion_pairs(session, exchange.id)
    if would_create_cycle(existing, excluder.id, excluded.id):
        raise ExclusionRuleError("This exclusion would create a circular exclusion pattern.")

    try:
        rule = repo.create_exclusion_rule(session, exchange.id, excluder.id, excluded.id, reason)
    except IntegrityError as exc:
        raise ExclusionRuleError("This exclusion rule already exists.") from exc

    logger.bind(exchange_id=exchange.id, excluder_id=excluder.id, excluded_id=excluded.id).info(
        "Exclusion rule added"
    )
    return rule


def remove_exclusion(
    session,
    exchange: GiftExchange,
    excluder: Participant,
    excluded: Participant,
) -> bool:
    _ensure_rules_editable(exchange)

    rule = repo.get_exclusion_rule(session, exchange.id, excluder.id, excluded.id)
    if not rule:
        return False
    repo.delete_exclusion_rule(session, rule)
    return True


def list_exclusions(session, exchange: GiftExchange) -> List[ExclusionRule]:
    return repo.list_exclusion_rules(session, exchange.id)


def validate_exclusion_rules(session, exchange: GiftExchange) -> FeasibilityReport:
    participants = [
        ParticipantRef(id=participant.id, name=format_participant_display(participant))
        for participant in repo.list_exchange_participants(session, exchange.id)
    ]
    return analyze(participants, repo.list_exclusion_pairs(session, exchange.id))


def assign_exchange(
    session,
    exchange: GiftExchange,
    seed: Optional[int] = None,
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
) -> AssignmentResult:
    if exchange.status == ExchangeStatus.ASSIGNED:
        raise AssignmentError("Gifts have already been drawn for this exchange.")
    if exchange.status == ExchangeStatus.COMPLETED:
        raise AssignmentError("This Secret Santa exchange is completed.")
    if repo.list_assignments(session, exchange.id):
        raise AssignmentError("Assignments already exist for this exchange.")

    participants = repo.list_exchange_participants(session, exchange.id)
    if len(participants) < 2:
        raise AssignmentError("An exchange needs at least 2 participants.")

    if any(not participant.has_private_chat for participant in participants):
        missing = [participant_name(p) for p in participants if not p.has_private_chat]
        raise AssignmentError(
            "The following participants must start a private chat with the bot: "
            + ", ".join(missing)
        )

    if seed is None:
        seed = random.randint(1, 2**31 - 1)

    participant_ids = [participant.id for participant in participants]
    exclusions = repo.list_exclusion_pairs(session, exchange.id)
    result = compute_matching(
        participant_ids,
        exclusions,
        rng=random.Random(seed),
        max_attempts=max_attempts,
    )
    if not result.success:
        logger.bind(exchange_id=exchange.id, seed=seed).info("Draw failed: constraints are infeasible")
        raise AssignmentError(NO_VALID_ASSIGNMENT_MESSAGE)
    if not is_valid_matching(participant_ids, exclusions, result.assignments):
        raise AssignmentError("Generated assignments failed validation.")

    assignments = result.as_dict()
    try:
        repo.create_assignments(session, exchange.id, assignments)
    except IntegrityError as exc:
        raise AssignmentError("Assignments already exist for this exchange.") from exc

    repo.update_exchange_status(session, exchange, ExchangeStatus.ASSIGNED, assigned_at=_utcnow())
    repo.update_exchange_assignment_seed(session, exchange, seed)
    logger.bind(exchange_id=exchange.id, seed=seed).info("Assignments generated")

    return AssignmentResult(assignments=assignments, participants=participants, exchange=exchange)


def reset_exchange(session, exchange: GiftExchange) -> int:
    removed = repo.clear_assignments(session, exchange.id)
    if repo.count_exchange_participants(session, exchange.id):
        status = ExchangeStatus.PARTICIPANTS_ADDED
    else:
        status = ExchangeStatus.DRAFT
    repo.update_exchange_status(session, exchange, status, assigned_at=None)
    repo.update_exchange_assignment_seed(session, exchange, None)
    logger.bind(exchange_id=exchange.id, removed=removed).info("Assignments cleared")
    return removed


def complete_exchange(session, exchange: GiftExchange) -> bool:
    if exchange.status != ExchangeStatus.ASSIGNED:
        return False
    repo.update_exchange_status(
        session, exchange, ExchangeStatus.COMPLETED, assigned_at=exchange.assigned_at
    )
    return True


def get_receiver_for(session, exchange: GiftExchange, giver: Participant) -> Optional[Participant]:
    assignment = repo.get_assignment_for_giver(session, exchange.id, giver.id)
    return assignment.receiver if assignment else None


def list_giftees(session, telegram_id: int) -> List[Tuple[GiftExchange, Participant]]:
    giver = repo.get_participant_by_telegram_id(session, telegram_id)
    if not giver:
        return []

    giftees = []
    for exchange in repo.list_exchanges_for_participant(session, giver.id):
        if exchange.status != ExchangeStatus.ASSIGNED:
            continue
        receiver = get_receiver_for(session, exchange, giver)
        if receiver:
            giftees.append((exchange, receiver))
    return giftees
