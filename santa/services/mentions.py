from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from aiogram.enums import MessageEntityType
from aiogram.types import MessageEntity
from aiogram.utils.text_decorations import add_surrogates, remove_surrogates


@dataclass(frozen=True)
class Mention:
    username: Optional[str] = None
    telegram_id: Optional[int] = None


def _text_after(text: str, offset: int) -> str:
    # entity offsets count UTF-16 code units
    return remove_surrogates(add_surrogates(text)[offset * 2 :])


def parse_pair_command(
    text: Optional[str],
    entities: Optional[Iterable[MessageEntity]],
) -> Optional[Tuple[Mention, Mention, Optional[str]]]:
    """Split ``/exclude @giver @receiver [reason]`` into its parts.

    People without a username are picked from Telegram's mention list and
    arrive as ``text_mention`` entities carrying the user, so both entity
    kinds are accepted.
    """
    text = text or ""
    mentions = []
    end = 0
    for entity in entities or []:
        if entity.type == MessageEntityType.MENTION:
            mentions.append(Mention(username=entity.extract_from(text).lstrip("@")))
        elif entity.type == MessageEntityType.TEXT_MENTION and entity.user:
            mentions.append(Mention(telegram_id=entity.user.id))
        else:
            continue
        end = entity.offset + entity.length
        if len(mentions) == 2:
            break

    if len(mentions) < 2:
        return None
    reason = _text_after(text, end).strip()
    return mentions[0], mentions[1], reason or None
