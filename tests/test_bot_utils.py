import asyncio
import threading

import pytest

from santa.bot.utils import run_blocking


def test_run_blocking_returns_worker_result():
    main_thread = threading.get_ident()

    def work(cancelled):
        assert not cancelled.is_set()
        return threading.get_ident()

    assert asyncio.run(run_blocking(work, timeout=5)) != main_thread


def test_run_blocking_signals_cancellation_on_timeout():
    release = threading.Event()
    seen = []

    def slow(cancelled):
        release.wait(5)
        seen.append(cancelled.is_set())

    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await run_blocking(slow, timeout=0.05)
        release.set()

    asyncio.run(scenario())
    assert seen == [True]
