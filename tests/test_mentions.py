from aiogram.enums import MessageEntityType
from aiogram.types import MessageEntity, User

from santa.services.mentions import Mention, parse_pair_command

COMMAND = MessageEntity(type=MessageEntityType.BOT_COMMAND, offset=0, length=8)


def test_parse_usernames_and_reason():
    text = "/exclude @alice @bob they share a budget"
    entities = [
        COMMAND,
        MessageEntity(type=MessageEntityType.MENTION, offset=9, length=6),
        MessageEntity(type=MessageEntityType.MENTION, offset=16, length=4),
    ]
    assert parse_pair_command(text, entities) == (
        Mention(username="alice"),
        Mention(username="bob"),
        "they share a budget",
    )


def test_parse_user_without_username():
    # the giver is picked from the member list and has no @username
    text = "/exclude 🎅Zed @bob 🎁 gifts"
    zed = User(id=42, is_bot=False, first_name="🎅Zed")
    entities = [
        COMMAND,
        MessageEntity(type=MessageEntityType.TEXT_MENTION, offset=9, length=5, user=zed),
        MessageEntity(type=MessageEntityType.MENTION, offset=15, length=4),
    ]
    giver, receiver, reason = parse_pair_command(text, entities)
    assert giver == Mention(telegram_id=42)
    assert receiver == Mention(username="bob")
    assert reason == "🎁 gifts"


def test_parse_without_reason():
    text = "/unexclude @alice @bob"
    entities = [
        MessageEntity(type=MessageEntityType.BOT_COMMAND, offset=0, length=10),
        MessageEntity(type=MessageEntityType.MENTION, offset=11, length=6),
        MessageEntity(type=MessageEntityType.MENTION, offset=18, length=4),
    ]
    assert parse_pair_command(text, entities)[2] is None


def test_parse_needs_two_people():
    text = "/exclude @alice bob"
    entities = [COMMAND, MessageEntity(type=MessageEntityType.MENTION, offset=9, length=6)]
    assert parse_pair_command(text, entities) is None
    assert parse_pair_command(text, None) is None
    assert parse_pair_command(None, None) is None
