from __future__ import annotations

import asyncio
import threading
from typing import Callable, TypeVar

from aiogram.enums import ChatMemberStatus
from loguru import logger

from santa.services.rate_limit import rate_limiter

SLOW_DOWN_MESSAGE = "You're doing that too often. Please slow down."
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."
NOT_ACTIVE_MESSAGE = "There is no Secret Santa exchange in this chat yet. Send /start to begin."
GROUP_ONLY_MESSAGE = "This command can only be used in a group chat."

T = TypeVar("T")


async def is_admin(bot, chat_id: int, user_id: int) -> bool:
    try:
        member = await bot.get_chat_member(chat_id, user_id)
    except Exception as exc:  # pragma: no cover - network dependent
        logger.bind(chat_id=chat_id, user_id=user_id).warning(
            "Failed to check admin status: {error}", error=str(exc)
        )
        return False
    return member.status in {ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.CREATOR}


def is_group_chat(chat_type: str) -> bool:
    return chat_type in {"group", "supergroup"}


def check_rate_limit(user_id: int, action: str) -> bool:
    return rate_limiter.allow(f"{user_id}:{action}").allowed


async def run_blocking(func: Callable[[threading.Event], T], timeout: float) -> T:
    """Run ``func`` in a worker thread so the event loop keeps serving updates.

    ``func`` receives a ``threading.Event`` that is set when ``timeout``
    expires; ``asyncio.TimeoutError`` is raised to the caller either way.
    """
    cancelled = threading.Event()
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, cancelled), timeout)
    except asyncio.TimeoutError:
        cancelled.set()
        raise


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )
