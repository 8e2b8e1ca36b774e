from __future__ import annotations

import html

from aiogram import Router, types
from aiogram.filters import Command

from santa.bot.utils import (
    GENERIC_ERROR_MESSAGE,
    GROUP_ONLY_MESSAGE,
    NOT_ACTIVE_MESSAGE,
    SLOW_DOWN_MESSAGE,
    check_rate_limit,
    is_admin,
    is_group_chat,
    log_handler_exception,
)
from santa.db import get_session, repo
from santa.services import exchange_flow
from santa.services.mentions import Mention, parse_pair_command

router = Router()


async def _can_edit_rule(message: types.Message, giver: Mention) -> bool:
    sender = message.from_user
    if giver.telegram_id is not None and giver.telegram_id == sender.id:
        return True
    if giver.username and sender.username and sender.username.lower() == giver.username.lower():
        return True
    return await is_admin(message.bot, message.chat.id, sender.id)


def _find(session, exchange, mention: Mention):
    return exchange_flow.find_participant(
        session, exchange, username=mention.username, telegram_id=mention.telegram_id
    )


@router.message(Command("exclude"))
async def exclude_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclude"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    if not is_group_chat(message.chat.type):
        await message.answer(GROUP_ONLY_MESSAGE)
        return

    parsed = parse_pair_command(message.text, message.entities)
    if not parsed:
        await message.answer("Usage: /exclude @giver @receiver [reason]")
        return
    giver_mention, receiver_mention, reason = parsed

    if not await _can_edit_rule(message, giver_mention):
        await message.answer("Only group admins or the giver can add this exclusion.")
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return

            giver = _find(session, exchange, giver_mention)
            receiver = _find(session, exchange, receiver_mention)
            if not giver or not receiver:
                await message.answer("Both people must have joined this Secret Santa exchange.")
                return

            exchange_flow.add_exclusion(session, exchange, giver, receiver, reason)
            text = (
                f"{exchange_flow.format_participant_label(giver)} will not draw "
                f"{exchange_flow.format_participant_label(receiver)}."
            )
        await message.answer(text)
    except exchange_flow.ExclusionRuleError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("exclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("unexclude"))
async def unexclude_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "unexclude"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    parsed = parse_pair_command(message.text, message.entities)
    if not parsed:
        await message.answer("Usage: /unexclude @giver @receiver")
        return
    giver_mention, receiver_mention, _ = parsed

    if not await _can_edit_rule(message, giver_mention):
        await message.answer("Only group admins or the giver can remove this exclusion.")
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return

            giver = _find(session, exchange, giver_mention)
            receiver = _find(session, exchange, receiver_mention)
            removed = bool(giver and receiver) and exchange_flow.remove_exclusion(
                session, exchange, giver, receiver
            )

        if removed:
            await message.answer("Exclusion removed.")
        else:
            await message.answer("There is no such exclusion.")
    except exchange_flow.ExclusionRuleError as exc:
        await message.answer(html.escape(str(exc)))
    except Exception as exc:
        log_handler_exception("unexclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("exclusions"))
async def exclusions_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclusions"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return

            lines = []
            for rule in exchange_flow.list_exclusions(session, exchange):
                line = (
                    f"{exchange_flow.format_participant_label(rule.excluder)} ✗ "
                    f"{exchange_flow.format_participant_label(rule.excluded)}"
                )
                if rule.reason:
                    line += f" ({html.escape(rule.reason)})"
                lines.append(line)

        if lines:
            await message.answer("Exclusion rules:\n" + "\n".join(lines))
        else:
            await message.answer("There are no exclusion rules in this exchange.")
    except Exception as exc:
        log_handler_exception("exclusions", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)


@router.message(Command("checkrules"))
async def check_rules_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "checkrules"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    try:
        with get_session() as session:
            exchange = repo.get_exchange_by_chat_id(session, message.chat.id)
            if not exchange:
                await message.answer(NOT_ACTIVE_MESSAGE)
                return
            report = exchange_flow.validate_exclusion_rules(session, exchange)

        if report.valid:
            await message.answer("The exclusion rules look fine.")
        else:
            await message.answer(
                "Possible problems with the exclusion rules:\n"
                + "\n".join(f"- {issue}" for issue in report.issues)
            )
    except Exception as exc:
        log_handler_exception("checkrules", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)
