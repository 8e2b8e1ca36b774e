from __future__ import annotations

import asyncio
import html
import threading
from functools import partial
from typing import List, Optional, Tuple

from aiogram import Router, types
from aiogram.filters import Command
from loguru import logger

from santa.bot.keyboards import confirm_draw_keyboard
from santa.bot.utils import (
    GENERIC_ERROR_MESSAGE,
    GROUP_ONLY_MESSAGE,
    NOT_ACTIVE_MESSAGE,
    SLOW_DOWN_MESSAGE,
    check_rate_limit,
    is_admin,
    is_group_chat,
    log_handler_exception,
    run_blocking,
)
from santa.core.config import get_settings
from santa.db import ExchangeStatus, get_session, repo
from santa.services import exchange_flow
from santa.services.matching import AssignmentError

DRAW_TIMEOUT_MESSAGE = "Drawing names took too long. Please review the exclusion rules and try again."

router = Router()


@router.callback_query(lambda c: c.data == "join")
async def join_callback_handler(query: types.CallbackQuery) -> None:
    if not check_rate_limit(query.from_user.id, "join"):
        await query.answer(SLOW_DOWN_MESSAGE, show_alert=True)
        return

    try:
        with get_session() as session:
            result = exchange_flow.join_exchange(
                session,
                query.from_user.id,
                query.from_user.username,
                query.from_user.first_name,
                query.from_user.last_name,
                query.message.chat.id,
                query.message.chat.title,
            )
            participant_label = exchange_flow.format_participant_label(result.participant)
            chat_id = result.exchange.telegram_chat_id

        await query.answer(result.message, show_alert=True)
        if result.added:
            await query.message.bot.send_message(
                chat_id,
                f"{participant_label} joined the Secret Santa exchange!",
            )
    except Exception as exc:
        log_handler_exception("join", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Error joining the Secret Santa exchange.", show_alert=True)


@router.message(Command("list"))
async def list_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "list"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return

            participants = exchange_flow.list_participants(session, exchange)
            if not participants:
                await message.answer("Nobody has joined this Secret Santa exchange yet.")
                return

            lines = []
            for participant in participants:
                label = exchange_flow.format_participant_label(participant)
                suffix = " ✓" if participant.has_private_chat else ""
                lines.append(f"{label}{suffix}")

            message_text = "Participants in Secret Santa:\n" + "\n".join(lines)
            if any(not participant.has_private_chat for participant in participants):
                message_text += (
                    "\n\nNote: Participants without a ✓ need to start a private chat "
                    "with the bot by sending /start."
                )

        await message.answer(message_text)
    except Exception as exc:
        log_handler_exception("list", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("leave"))
async def leave_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "leave"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            participant = repo.get_participant_by_telegram_id(session, message.from_user.id)
            if not exchange or not participant:
                await message.answer("You are not part of a Secret Santa exchange here.")
                return

            left = exchange_flow.leave_exchange(session, exchange, participant)

        if left:
            await message.answer("You have left the Secret Santa exchange.")
        else:
            await message.answer("You are not part of a Secret Santa exchange here.")
    except exchange_flow.ExchangeError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("leave", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("draw"))
async def draw_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "draw"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    if not is_group_chat(message.chat.type):
        await message.answer(GROUP_ONLY_MESSAGE)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can draw names.")
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return

            if exchange.status == ExchangeStatus.ASSIGNED:
                await message.answer("Names have already been drawn for this exchange.")
                return
            if exchange.status == ExchangeStatus.COMPLETED:
                await message.answer("This Secret Santa exchange is completed.")
                return

            report = exchange_flow.validate_exclusion_rules(session, exchange)

        text = "Are you sure you want to draw names now? Joining closes after the draw."
        if not report.valid:
            text += "\n\nHeads up, the exclusion rules look suspicious:\n" + "\n".join(
                f"- {issue}" for issue in report.issues
            )
        await message.answer(text, reply_markup=confirm_draw_keyboard())
    except Exception as exc:
        log_handler_exception("draw", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.callback_query(lambda c: c.data == "cancel_draw")
async def cancel_draw_callback_handler(query: types.CallbackQuery) -> None:
    await query.answer("Draw cancelled.")


def _draw_names(
    chat_id: int, max_attempts: int, cancelled: threading.Event
) -> Optional[List[Tuple[int, str]]]:
    with get_session(cancelled) as session:
        exchange = repo.get_exchange_by_chat_id(session, chat_id)
        if not exchange:
            return None

        result = exchange_flow.assign_exchange(session, exchange, max_attempts=max_attempts)
        participants = {participant.id: participant for participant in result.participants}
        exchange_name = html.escape(exchange.name)

        messages = []
        for giver_id, receiver_id in result.assignments.items():
            giver = participants[giver_id]
            receiver_label = exchange_flow.format_participant_label(participants[receiver_id])
            messages.append(
                (giver.telegram_id, f"Secret Santa ({exchange_name}): you're giving a gift to {receiver_label}!")
            )
    return messages


@router.callback_query(lambda c: c.data == "confirm_draw")
async def confirm_draw_callback_handler(query: types.CallbackQuery) -> None:
    if not check_rate_limit(query.from_user.id, "confirm_draw"):
        await query.answer(SLOW_DOWN_MESSAGE, show_alert=True)
        return

    if not await is_admin(query.message.bot, query.message.chat.id, query.from_user.id):
        await query.answer("Only group admins can draw names.", show_alert=True)
        return

    settings = get_settings()
    draw = partial(_draw_names, query.message.chat.id, settings.matching_retry_attempts)
    try:
        messages = await run_blocking(draw, settings.draw_timeout_seconds)
        if messages is None:
            await query.answer(NOT_ACTIVE_MESSAGE, show_alert=True)
            return

        for telegram_id, text in messages:
            try:
                await query.message.bot.send_message(telegram_id, text)
            except Exception as exc:  # pragma: no cover - network dependent
                logger.bind(user_id=telegram_id).warning(
                    "Failed to send assignment DM: {error}", error=str(exc)
                )

        await query.answer("Names drawn!", show_alert=True)
        await query.message.bot.send_message(
            query.message.chat.id,
            "Names have been drawn! Check your private messages.",
        )
    except asyncio.TimeoutError:
        logger.bind(chat_id=query.message.chat.id, timeout=settings.draw_timeout_seconds).warning(
            "Draw timed out"
        )
        await query.answer(DRAW_TIMEOUT_MESSAGE, show_alert=True)
    except AssignmentError as exc:
        await query.answer(str(exc), show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_draw", query.from_user.id, query.message.chat.id, exc)
        await query.answer(GENERIC_ERROR_MESSAGE, show_alert=True)


@router.message(Command("reset"))
async def reset_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "reset"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can reset the Secret Santa.")
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return
            exchange_flow.reset_exchange(session, exchange)
        await message.answer("Secret Santa has been reset. Participants and exclusions are kept, assignments cleared.")
    except Exception as exc:
        log_handler_exception("reset", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("complete"))
async def complete_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "complete"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can complete the Secret Santa.")
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return
            completed = exchange_flow.complete_exchange(session, exchange)

        if completed:
            await message.answer("Secret Santa is complete. Merry Christmas!")
        else:
            await message.answer("Only an exchange with drawn names can be completed.")
    except Exception as exc:
        log_handler_exception("complete", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("mygiftee"))
async def my_giftee_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "mygiftee"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    if message.chat.type != "private":
        await message.answer("Ask me in a private chat so your giftee stays secret.")
        return

    try:
        with get_session() as session:
            lines = [
                f"{html.escape(exchange.name)}: {exchange_flow.format_participant_label(receiver)}"
                for exchange, receiver in exchange_flow.list_giftees(session, message.from_user.id)
            ]

        if lines:
            await message.answer("You are giving gifts to:\n" + "\n".join(lines))
        else:
            await message.answer("You have no giftees yet.")
    except Exception as exc:
        log_handler_exception("mygiftee", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)
