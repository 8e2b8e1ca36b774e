from aiogram import Router, types
from aiogram.filters import CommandStart

from santa.bot.keyboards import join_keyboard
from santa.bot.utils import SLOW_DOWN_MESSAGE, GENERIC_ERROR_MESSAGE, check_rate_limit, log_handler_exception
from santa.db import get_session
from santa.services import exchange_flow

router = Router()


@router.message(CommandStart())
async def command_start_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "start"):
        await message.answer(SLOW_DOWN_MESSAGE)
        return

    try:
        if message.chat.type == "private":
            with get_session() as session:
                exchange_flow.register_private_chat(
                    session,
                    message.from_user.id,
                    message.from_user.username,
                    message.from_user.first_name,
                    message.from_user.last_name,
                )

            await message.answer(
                "Hello! I'm your Secret Santa bot!\n\n"
                "Join an exchange from a group that uses me by pressing 'Join Secret Santa!'.\n\n"
                "In the group you can see everyone with /list and keep people from drawing each other "
                "with /exclude @giver @receiver. /checkrules tells you whether the rules still allow a draw.\n\n"
                "Once an admin runs /draw, I'll message you your giftee. "
                "You can ask again any time with /mygiftee."
            )
            return

        await message.answer(
            "Hello! Please start a private chat with me first (send /start), "
            "then click the button below to join the Secret Santa exchange.",
            reply_markup=join_keyboard(),
        )
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_MESSAGE)
