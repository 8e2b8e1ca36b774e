import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    matching_retry_attempts: int
    draw_timeout_seconds: float


def _read_number(name: str, default: str, parse):
    raw = os.getenv(name, default)
    try:
        value = parse(raw)
    except ValueError:
        raise ValueError(f"{name} must be a non-negative number, got {raw!r}.") from None
    if value < 0:
        raise ValueError(f"{name} must be a non-negative number, got {raw!r}.")
    return value


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL")

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")
    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_path=os.getenv("LOG_PATH", "logs/santa_bot.log"),
        matching_retry_attempts=_read_number("MATCHING_RETRY_ATTEMPTS", "100", int),
        draw_timeout_seconds=_read_number("DRAW_TIMEOUT_SECONDS", "30", float),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
