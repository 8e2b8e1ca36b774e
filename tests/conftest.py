import os

# santa.bot builds its Bot from these at import time
os.environ.setdefault("BOT_TOKEN", "123456:TEST-token")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
